"""Operator-side upload token management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.errors import NotFoundError, ValidationError
from src.core.logger import get_logger
from src.storage.models import Article, UploadToken
from src.uploads.activity import write_activity_log
from src.uploads.token_store import (
    delete_upload_token_row,
    get_upload_token,
    inactivate_expired_tokens,
    insert_upload_token,
    list_upload_tokens_by_article,
    upload_token_exists,
)
from src.uploads.tokens import calculate_expiration_date, generate_unique_token
from src.uploads.validators import normalize_upload_kinds


MAX_EXPIRATION_DAYS = 365

logger = get_logger("contentops.upload_tokens")


@dataclass(frozen=True)
class ArticleUploadTokens:
    article: Article
    tokens: list[UploadToken]
    expired_swept: int


def _default_token_name(upload_kinds: list[str], article: Article) -> str:
    return f"{', '.join(upload_kinds)} upload for {article.title}"


def create_upload_token(
    session: Session,
    *,
    article_id: int,
    upload_types: Iterable[str],
    expiration_days: Optional[int] = None,
    max_uses: int = 1,
    name: Optional[str] = None,
    notes: Optional[str] = None,
    created_by_id: Optional[str] = None,
) -> UploadToken:
    settings = get_settings()
    kinds = normalize_upload_kinds(upload_types)
    days = expiration_days if expiration_days is not None else settings.upload_token_default_expiration_days
    if days <= 0 or days > MAX_EXPIRATION_DAYS:
        raise ValidationError(
            f"Expiration must be between 1 and {MAX_EXPIRATION_DAYS} days",
            reason="invalid_expiration_days",
        )
    if max_uses < 0:
        raise ValidationError("Max uses cannot be negative", reason="invalid_max_uses")

    article = session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found", reason="article_not_found")

    token_value = generate_unique_token(
        lambda candidate: upload_token_exists(session, candidate),
        settings.upload_token_length,
    )
    record = insert_upload_token(
        session,
        token=token_value,
        article_id=article.id,
        upload_types=kinds,
        expires_at=calculate_expiration_date(days),
        max_uses=max_uses,
        name=(name or "").strip() or _default_token_name(kinds, article),
        notes=(notes or "").strip(),
        created_by_id=created_by_id,
    )
    session.commit()

    write_activity_log(
        session,
        action="create",
        resource_type="upload_token",
        resource_id=str(record.id),
        user_id=created_by_id,
        details={
            "articleId": article.id,
            "articleTitle": article.title,
            "uploadTypes": kinds,
            "expiresAt": record.expires_at.isoformat(),
            "maxUses": max_uses,
        },
    )
    logger.info(
        "upload_token_created",
        token_id=record.id,
        article_id=article.id,
        upload_types=kinds,
        max_uses=max_uses,
        expiration_days=days,
    )
    return record


def list_article_upload_tokens(session: Session, article_id: int) -> ArticleUploadTokens:
    article = session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found", reason="article_not_found")

    swept = inactivate_expired_tokens(session)
    session.commit()
    if swept:
        logger.info("upload_tokens_expired_swept", count=swept)

    return ArticleUploadTokens(
        article=article,
        tokens=list_upload_tokens_by_article(session, article_id),
        expired_swept=swept,
    )


def delete_upload_token(session: Session, token_id: int, *, deleted_by_id: Optional[str] = None) -> bool:
    record = get_upload_token(session, token_id)
    if record is None:
        raise NotFoundError("Token not found", reason="token_not_found")

    article_id = record.article_id
    deleted = delete_upload_token_row(session, token_id)
    session.commit()
    if not deleted:
        return False

    write_activity_log(
        session,
        action="delete",
        resource_type="upload_token",
        resource_id=str(token_id),
        user_id=deleted_by_id,
        details={"articleId": article_id},
    )
    logger.info("upload_token_deleted", token_id=token_id, article_id=article_id)
    return True
