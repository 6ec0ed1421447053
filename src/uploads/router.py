"""Public upload API routes.

Three families share the ``/public-upload`` prefix:

* token-free uploads (``POST /public-upload/{kind}``), guarded by the per-IP
  rate limiter and the article's published status;
* token-gated uploads (``POST /public-upload/{kind}/{token}``) and the token
  info lookup, guarded by upload token verification;
* operator token management, guarded by the operator bearer session.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Union

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from src.articles.service import get_article
from src.auth.dependencies import require_operator
from src.auth.jwt import AuthContext
from src.core.config import get_settings
from src.core.errors import ProcessingError, RateLimitedError, UploadError, ValidationError
from src.core.logger import get_logger, token_hint
from src.core.metrics import record_rate_limit_block
from src.core.observability import capture_exception
from src.core.rate_limit import get_upload_rate_limiter, resolve_client_ip
from src.schemas.uploads import (
    ArchiveResult,
    ArchiveUploadResponse,
    ArticleRef,
    ArticleSummary,
    DeleteTokenResponse,
    GenerateTokenRequest,
    GenerateTokenResponse,
    ImageUploadResponse,
    TokenArchiveUploadResponse,
    TokenImageUploadResponse,
    TokenInfo,
    TokenInfoResponse,
    UploadTokenItem,
    UploadTokenListResponse,
)
from src.storage.db import get_session
from src.storage.models import UploadToken
from src.uploads.intake import stage_upload
from src.uploads.pipeline import SOURCE_TOKEN, SOURCE_TOKEN_FREE, UploadOutcome, run_upload, uploads_remaining
from src.uploads.service import create_upload_token, delete_upload_token, list_article_upload_tokens
from src.uploads.tokens import build_upload_url
from src.uploads.validators import (
    UPLOAD_KIND_HTML_ZIP,
    UPLOAD_KIND_IMAGE,
    UPLOAD_KIND_INSTAGRAM_IMAGE,
    ensure_article_uploadable,
    ensure_file_allowed,
    normalize_upload_kind,
    parse_article_id,
)
from src.uploads.verification import verify_upload_token


RATE_LIMIT_STATE_KEY = "upload_rate_limit"
RATE_LIMIT_MESSAGE = "Too many upload attempts from this IP, please try again later."

_KIND_LABELS = {
    UPLOAD_KIND_IMAGE: "image",
    UPLOAD_KIND_INSTAGRAM_IMAGE: "Instagram image",
    UPLOAD_KIND_HTML_ZIP: "HTML ZIP",
}
_SUCCESS_MESSAGES = {
    UPLOAD_KIND_IMAGE: "Main image uploaded successfully",
    UPLOAD_KIND_INSTAGRAM_IMAGE: "Instagram image uploaded successfully",
    UPLOAD_KIND_HTML_ZIP: "HTML ZIP uploaded and processed successfully",
}

UploadResponse = Union[
    ImageUploadResponse,
    ArchiveUploadResponse,
    TokenImageUploadResponse,
    TokenArchiveUploadResponse,
]

logger = get_logger("contentops.public_upload")

router = APIRouter(prefix="/public-upload", tags=["public-upload"])


def enforce_upload_rate_limit(request: Request) -> None:
    settings = get_settings()
    if not settings.upload_rate_limit_enabled:
        return

    client_ip = resolve_client_ip(request)
    decision = get_upload_rate_limiter().check(key=client_ip)
    setattr(request.state, RATE_LIMIT_STATE_KEY, decision)
    if not decision.allowed:
        record_rate_limit_block(kind="upload")
        logger.info("public_upload_rate_limited", client_ip=client_ip, reset_seconds=decision.reset_seconds)
        raise RateLimitedError(RATE_LIMIT_MESSAGE, reset_seconds=decision.reset_seconds)


@contextmanager
def _unexpected_errors_as_processing(upload_kind: str) -> Iterator[None]:
    try:
        yield
    except UploadError:
        raise
    except Exception as exc:
        logger.exception("public_upload_failed", upload_kind=upload_kind, error_type=type(exc).__name__)
        capture_exception(exc)
        label = _KIND_LABELS.get(upload_kind, upload_kind)
        raise ProcessingError(f"Failed to process {label} upload", reason="unexpected_error") from exc


def _require_allowed_file(upload_kind: str, file: Optional[UploadFile]) -> UploadFile:
    if file is None or not (file.filename or "").strip():
        raise ValidationError("No file uploaded", reason="missing_file")
    ensure_file_allowed(upload_kind, content_type=file.content_type, filename=file.filename)
    return file


def _upload_response(outcome: UploadOutcome, *, token_gated: bool) -> UploadResponse:
    article = ArticleRef(id=outcome.article_id, title=outcome.article_title)
    message = _SUCCESS_MESSAGES[outcome.upload_kind]

    if outcome.extraction is not None:
        result = ArchiveResult(
            message=outcome.extraction.message,
            source_file=outcome.extraction.source_file,
            content_length=len(outcome.extraction.content),
        )
        if token_gated:
            return TokenArchiveUploadResponse(
                message=message,
                result=result,
                article=article,
                uploads_remaining=outcome.uploads_remaining,
            )
        return ArchiveUploadResponse(message=message, result=result, article=article)

    image_url = outcome.image_url or ""
    if token_gated:
        return TokenImageUploadResponse(
            message=message,
            image_url=image_url,
            article=article,
            uploads_remaining=outcome.uploads_remaining,
        )
    return ImageUploadResponse(message=message, image_url=image_url, article=article)


def _token_free_upload(
    session: Session,
    *,
    upload_kind: str,
    file: Optional[UploadFile],
    raw_article_id: Optional[str],
) -> UploadResponse:
    with _unexpected_errors_as_processing(upload_kind):
        article_id = parse_article_id(raw_article_id)
        article = ensure_article_uploadable(get_article(session, article_id))
        upload = _require_allowed_file(upload_kind, file)
        with stage_upload(upload, upload_kind) as staged:
            outcome = run_upload(
                session,
                article=article,
                upload_kind=upload_kind,
                staged=staged,
                source=SOURCE_TOKEN_FREE,
            )
        return _upload_response(outcome, token_gated=False)


def _token_upload(
    session: Session,
    *,
    upload_kind: str,
    token: str,
    file: Optional[UploadFile],
) -> UploadResponse:
    with _unexpected_errors_as_processing(upload_kind):
        verified = verify_upload_token(session, token, upload_kind)
        article = ensure_article_uploadable(verified.article)
        upload = _require_allowed_file(upload_kind, file)
        logger.info(
            "public_upload_token_accepted",
            article_id=article.id,
            upload_kind=upload_kind,
            token=token_hint(token),
        )
        with stage_upload(upload, upload_kind) as staged:
            outcome = run_upload(
                session,
                article=article,
                upload_kind=upload_kind,
                staged=staged,
                source=SOURCE_TOKEN,
                upload_token=verified.token,
            )
        return _upload_response(outcome, token_gated=True)


def _upload_urls(record: UploadToken) -> dict[str, str]:
    base_url = get_settings().app_public_base_url
    return {kind: build_upload_url(kind, record.token, base_url) for kind in record.upload_types}


# Operator token management. Declared before the two-segment upload routes.


@router.post("/generate-token", response_model=GenerateTokenResponse)
def generate_token(
    payload: GenerateTokenRequest,
    auth: AuthContext = Depends(require_operator),
    session: Session = Depends(get_session),
) -> GenerateTokenResponse:
    record = create_upload_token(
        session,
        article_id=payload.article_id,
        upload_types=payload.requested_upload_types(),
        expiration_days=payload.expiration_days,
        max_uses=payload.max_uses,
        name=payload.name,
        notes=payload.notes,
        created_by_id=auth.user_id,
    )
    upload_urls = _upload_urls(record)
    return GenerateTokenResponse(
        id=record.id,
        token=record.token,
        name=record.name,
        upload_types=record.upload_types,
        upload_urls=upload_urls,
        upload_url=upload_urls[record.upload_types[0]],
        expires_at=record.expires_at,
        max_uses=record.max_uses,
    )


@router.get("/tokens/{article_id}", response_model=UploadTokenListResponse)
def list_tokens(
    article_id: str,
    auth: AuthContext = Depends(require_operator),
    session: Session = Depends(get_session),
) -> UploadTokenListResponse:
    del auth
    listing = list_article_upload_tokens(session, parse_article_id(article_id))
    return UploadTokenListResponse(
        article_id=listing.article.id,
        article_title=listing.article.title,
        tokens=[
            UploadTokenItem(
                id=item.id,
                token=item.token,
                upload_types=item.upload_types,
                upload_urls=_upload_urls(item),
                created_at=item.created_at,
                expires_at=item.expires_at,
                max_uses=item.max_uses,
                uses=item.uses,
                uploads_remaining=uploads_remaining(item),
                active=item.active,
                name=item.name,
                notes=item.notes,
            )
            for item in listing.tokens
        ],
    )


@router.delete("/tokens/{token_id}", response_model=DeleteTokenResponse)
def remove_token(
    token_id: int,
    auth: AuthContext = Depends(require_operator),
    session: Session = Depends(get_session),
) -> DeleteTokenResponse:
    if not delete_upload_token(session, token_id, deleted_by_id=auth.user_id):
        raise ProcessingError("Failed to delete token", reason="token_delete_failed")
    return DeleteTokenResponse()


@router.get("/info/{token}", response_model=TokenInfoResponse)
def token_info(token: str, session: Session = Depends(get_session)) -> TokenInfoResponse:
    verified = verify_upload_token(session, token)
    record = verified.token
    return TokenInfoResponse(
        token=TokenInfo(
            id=record.id,
            upload_types=record.upload_types,
            upload_urls=_upload_urls(record),
            expires_at=record.expires_at,
            max_uses=record.max_uses,
            uses=record.uses,
            uploads_remaining=uploads_remaining(record),
            active=record.active,
            name=record.name,
            notes=record.notes,
        ),
        article=ArticleSummary(
            id=verified.article.id,
            title=verified.article.title,
            status=verified.article.status,
        ),
    )


# Token-free uploads.


@router.post("/image", response_model=ImageUploadResponse, dependencies=[Depends(enforce_upload_rate_limit)])
def upload_image(
    file: Optional[UploadFile] = File(default=None),
    article_id: Optional[str] = Form(default=None, alias="articleId"),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_free_upload(session, upload_kind=UPLOAD_KIND_IMAGE, file=file, raw_article_id=article_id)


@router.post(
    "/instagram-image",
    response_model=ImageUploadResponse,
    dependencies=[Depends(enforce_upload_rate_limit)],
)
def upload_instagram_image(
    file: Optional[UploadFile] = File(default=None),
    article_id: Optional[str] = Form(default=None, alias="articleId"),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_free_upload(
        session,
        upload_kind=UPLOAD_KIND_INSTAGRAM_IMAGE,
        file=file,
        raw_article_id=article_id,
    )


@router.post("/html-zip", response_model=ArchiveUploadResponse, dependencies=[Depends(enforce_upload_rate_limit)])
def upload_html_zip(
    file: Optional[UploadFile] = File(default=None),
    article_id: Optional[str] = Form(default=None, alias="articleId"),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_free_upload(session, upload_kind=UPLOAD_KIND_HTML_ZIP, file=file, raw_article_id=article_id)


# Token-gated uploads. The unified route must stay last.


@router.post("/image/{token}", response_model=TokenImageUploadResponse)
def upload_image_with_token(
    token: str,
    file: Optional[UploadFile] = File(default=None),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_upload(session, upload_kind=UPLOAD_KIND_IMAGE, token=token, file=file)


@router.post("/instagram-image/{token}", response_model=TokenImageUploadResponse)
def upload_instagram_image_with_token(
    token: str,
    file: Optional[UploadFile] = File(default=None),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_upload(session, upload_kind=UPLOAD_KIND_INSTAGRAM_IMAGE, token=token, file=file)


@router.post("/html-zip/{token}", response_model=TokenArchiveUploadResponse)
def upload_html_zip_with_token(
    token: str,
    file: Optional[UploadFile] = File(default=None),
    session: Session = Depends(get_session),
) -> UploadResponse:
    return _token_upload(session, upload_kind=UPLOAD_KIND_HTML_ZIP, token=token, file=file)


@router.post("/{upload_type}/{token}", response_model=None)
def upload_with_token(
    upload_type: str,
    token: str,
    file: Optional[UploadFile] = File(default=None),
    session: Session = Depends(get_session),
) -> UploadResponse:
    upload_kind = normalize_upload_kind(upload_type)
    return _token_upload(session, upload_kind=upload_kind, token=token, file=file)
