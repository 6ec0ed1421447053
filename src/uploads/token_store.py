"""Persistence operations for upload tokens."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Optional, Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from src.storage.models import UploadToken


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_upload_token(session: Session, token_id: int) -> Optional[UploadToken]:
    return session.get(UploadToken, token_id)


def get_upload_token_by_token(session: Session, token: str) -> Optional[UploadToken]:
    return session.scalar(select(UploadToken).where(UploadToken.token == token))


def upload_token_exists(session: Session, token: str) -> bool:
    return session.scalar(select(UploadToken.id).where(UploadToken.token == token)) is not None


def list_upload_tokens_by_article(session: Session, article_id: int) -> list[UploadToken]:
    statement = (
        select(UploadToken)
        .where(UploadToken.article_id == article_id)
        .order_by(UploadToken.created_at.asc(), UploadToken.id.asc())
    )
    return list(session.scalars(statement).all())


def insert_upload_token(
    session: Session,
    *,
    token: str,
    article_id: int,
    upload_types: Sequence[str],
    expires_at: datetime,
    max_uses: int,
    name: str,
    notes: str = "",
    created_by_id: Optional[str] = None,
) -> UploadToken:
    record = UploadToken(
        token=token,
        article_id=article_id,
        upload_types_json=json.dumps(list(upload_types), separators=(",", ":")),
        created_by_id=created_by_id,
        expires_at=expires_at,
        max_uses=max_uses,
        uses=0,
        active=True,
        name=name,
        notes=notes,
        created_at=_now_utc(),
    )
    session.add(record)
    session.flush()
    return record


def deactivate_upload_token(session: Session, token_id: int) -> None:
    """Flip ``active`` off. Idempotent, so concurrent writers may race freely."""

    session.execute(
        update(UploadToken)
        .where(UploadToken.id == token_id)
        .values(active=False)
        .execution_options(synchronize_session="fetch")
    )


def increment_upload_token_uses(session: Session, token_id: int) -> bool:
    """Count one successful upload in a single guarded UPDATE.

    Returns ``False`` when the guard rejected the increment because another
    request consumed the last use first.
    """

    result = session.execute(
        update(UploadToken)
        .where(
            UploadToken.id == token_id,
            or_(UploadToken.max_uses == 0, UploadToken.uses < UploadToken.max_uses),
        )
        .values(uses=UploadToken.uses + 1)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def delete_upload_token_row(session: Session, token_id: int) -> bool:
    result = session.execute(delete(UploadToken).where(UploadToken.id == token_id))
    return result.rowcount > 0


def inactivate_expired_tokens(session: Session, *, now: Optional[datetime] = None) -> int:
    reference = now or _now_utc()
    result = session.execute(
        update(UploadToken)
        .where(UploadToken.active.is_(True), UploadToken.expires_at < reference)
        .values(active=False)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)
