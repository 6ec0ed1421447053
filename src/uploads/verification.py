"""Upload token verification.

Checks run in a fixed order and the first failure wins:

1. a token string was supplied
2. the token exists
3. the token is active
4. the token has not expired (an expired token is deactivated on the spot)
5. the token still has uses left
6. the requested upload kind is one the token permits
7. the target article still exists

Verification never consumes a use. The pipeline counts a use only after the
article has been updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from src.core.errors import AuthorizationError, ForbiddenError, NotFoundError
from src.core.logger import get_logger, token_hint
from src.core.metrics import record_upload_token_rejection
from src.storage.models import Article, UploadToken
from src.uploads.token_store import as_utc, deactivate_upload_token, get_upload_token_by_token


logger = get_logger("contentops.upload_tokens")


@dataclass(frozen=True)
class VerifiedUploadToken:
    token: UploadToken
    article: Article


def _reject(error: AuthorizationError | NotFoundError, *, token: Optional[str]) -> NoReturn:
    record_upload_token_rejection(reason=error.reason or "unknown")
    logger.info("upload_token_rejected", reason=error.reason, token=token_hint(token))
    raise error


def verify_upload_token(
    session: Session,
    token: Optional[str],
    upload_kind: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> VerifiedUploadToken:
    """Resolve ``token`` to its record and target article or raise.

    ``upload_kind=None`` skips the kind check; the info route uses that to
    describe a token without committing to a kind.
    """

    reference = now or datetime.now(timezone.utc)
    cleaned = (token or "").strip()

    if not cleaned:
        _reject(AuthorizationError("No upload token provided", reason="missing_token"), token=None)

    record = get_upload_token_by_token(session, cleaned)
    if record is None:
        _reject(AuthorizationError("Invalid upload token", reason="invalid_token"), token=cleaned)
    assert record is not None  # for type-checkers only

    if not record.active:
        _reject(AuthorizationError("Upload token is inactive", reason="inactive_token"), token=cleaned)

    if reference >= as_utc(record.expires_at):
        deactivate_upload_token(session, record.id)
        session.commit()
        logger.info("upload_token_expired", token_id=record.id, article_id=record.article_id)
        _reject(AuthorizationError("Upload token has expired", reason="expired_token"), token=cleaned)

    if record.max_uses > 0 and record.uses >= record.max_uses:
        _reject(
            AuthorizationError("Upload token has reached maximum uses", reason="exhausted_token"),
            token=cleaned,
        )

    if upload_kind is not None:
        permitted = record.upload_types
        if upload_kind not in permitted:
            supported = ", ".join(permitted) or "none"
            _reject(
                ForbiddenError(
                    f"This token does not support {upload_kind} uploads; supported: {supported}",
                    reason="kind_not_permitted",
                ),
                token=cleaned,
            )

    article = session.get(Article, record.article_id)
    if article is None:
        _reject(NotFoundError("Target article not found", reason="article_missing"), token=cleaned)
    assert article is not None  # for type-checkers only

    return VerifiedUploadToken(token=record, article=article)
