"""Upload pipeline shared by token-free and token-gated routes.

A request moves through processed -> persisted and counted -> logged -> synced.
Nothing is written to the article unless processing succeeded. The article
write and the guarded token increment share one commit, so an upload that
loses the race for a token's last use leaves the article untouched. The
activity log and the Airtable push run afterwards and can fail without
affecting the response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.errors import AuthorizationError, ProcessingError, UploadError, ValidationError
from src.core.logger import get_logger, token_hint
from src.core.metrics import record_upload
from src.hosting import HostedImage, ImageHost
from src.integrations.airtable import AirtableClient, SyncOutcome, sync_article_field
from src.storage.models import Article, UploadToken
from src.uploads.activity import write_activity_log
from src.uploads.intake import StagedUpload
from src.uploads.processors.archive import ArchiveExtraction, process_archive
from src.uploads.processors.image import process_image
from src.uploads.token_store import increment_upload_token_uses
from src.uploads.validators import (
    UPLOAD_KIND_HTML_ZIP,
    UPLOAD_KIND_IMAGE,
    UPLOAD_KIND_INSTAGRAM_IMAGE,
    UPLOAD_KINDS,
)


SOURCE_TOKEN_FREE = "public-upload"
SOURCE_TOKEN = "public-upload-token"

_ACTIVITY_RESOURCE_TYPES = {
    UPLOAD_KIND_IMAGE: "image",
    UPLOAD_KIND_INSTAGRAM_IMAGE: "instagram-image",
    UPLOAD_KIND_HTML_ZIP: "html",
}

logger = get_logger("contentops.uploads")


@dataclass(frozen=True)
class UploadOutcome:
    upload_kind: str
    article_id: int
    article_title: str
    hosted_image: Optional[HostedImage] = None
    extraction: Optional[ArchiveExtraction] = None
    usage_counted: bool = False
    uploads_remaining: Optional[int] = None
    sync: Optional[SyncOutcome] = None

    @property
    def image_url(self) -> Optional[str]:
        return self.hosted_image.url if self.hosted_image is not None else None


def uploads_remaining(token: UploadToken) -> Optional[int]:
    if token.max_uses == 0:
        return None
    return max(0, token.max_uses - token.uses)


def _sync_field_name(upload_kind: str) -> str:
    settings = get_settings()
    if upload_kind == UPLOAD_KIND_IMAGE:
        return settings.airtable_main_image_field
    if upload_kind == UPLOAD_KIND_INSTAGRAM_IMAGE:
        return settings.airtable_instagram_image_field
    return settings.airtable_content_field


def _process(
    session: Session,
    *,
    article: Article,
    upload_kind: str,
    staged: StagedUpload,
    image_host: Optional[ImageHost],
) -> tuple[Optional[HostedImage], Optional[ArchiveExtraction]]:
    if upload_kind in (UPLOAD_KIND_IMAGE, UPLOAD_KIND_INSTAGRAM_IMAGE):
        return process_image(staged, image_host=image_host), None
    if upload_kind == UPLOAD_KIND_HTML_ZIP:
        return None, process_archive(session, archive_path=staged.path, article_id=article.id)
    raise ValidationError(
        "Invalid upload type. Must be one of: " + ", ".join(UPLOAD_KINDS),
        reason="unknown_upload_kind",
    )


def _persist(
    session: Session,
    *,
    article: Article,
    upload_kind: str,
    hosted: Optional[HostedImage],
    extraction: Optional[ArchiveExtraction],
    upload_token: Optional[UploadToken],
) -> None:
    """Write the article field and count the token use in one transaction."""

    try:
        if upload_kind == UPLOAD_KIND_IMAGE and hosted is not None:
            article.image_url = hosted.url
            article.image_type = "url"
        elif upload_kind == UPLOAD_KIND_INSTAGRAM_IMAGE and hosted is not None:
            article.instagram_image_url = hosted.url
        elif upload_kind == UPLOAD_KIND_HTML_ZIP and extraction is not None:
            article.content = extraction.content
            article.content_format = "html"
        if upload_token is not None and not increment_upload_token_uses(session, upload_token.id):
            session.rollback()
            logger.warning(
                "upload_token_increment_rejected",
                token_id=upload_token.id,
                token=token_hint(upload_token.token),
                article_id=article.id,
            )
            raise AuthorizationError("Upload token has reached maximum uses", reason="exhausted_token")
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("article_update_failed", article_id=article.id, upload_kind=upload_kind, error=str(exc))
        raise ProcessingError("Failed to update article with the uploaded content", reason="article_update_failed") from exc


def run_upload(
    session: Session,
    *,
    article: Article,
    upload_kind: str,
    staged: StagedUpload,
    source: str,
    upload_token: Optional[UploadToken] = None,
    image_host: Optional[ImageHost] = None,
    airtable_client: Optional[AirtableClient] = None,
) -> UploadOutcome:
    try:
        hosted, extraction = _process(
            session,
            article=article,
            upload_kind=upload_kind,
            staged=staged,
            image_host=image_host,
        )
        _persist(
            session,
            article=article,
            upload_kind=upload_kind,
            hosted=hosted,
            extraction=extraction,
            upload_token=upload_token,
        )
    except UploadError:
        record_upload(upload_kind=upload_kind, status="failed")
        raise

    usage_counted = False
    remaining: Optional[int] = None
    if upload_token is not None:
        session.refresh(upload_token)
        usage_counted = True
        remaining = uploads_remaining(upload_token)

    details = {
        "uploadType": upload_kind,
        "filename": staged.original_name,
        "source": source,
    }
    if upload_token is not None:
        details["tokenId"] = upload_token.id
    write_activity_log(
        session,
        action="upload",
        resource_type=_ACTIVITY_RESOURCE_TYPES.get(upload_kind, upload_kind),
        resource_id=str(article.id),
        details=details,
    )

    value = hosted.url if hosted is not None else (extraction.content if extraction is not None else "")
    sync = sync_article_field(
        article,
        field_name=_sync_field_name(upload_kind),
        value=value,
        client=airtable_client,
    )

    record_upload(upload_kind=upload_kind, status="success")
    logger.info(
        "public_upload_succeeded",
        article_id=article.id,
        upload_kind=upload_kind,
        source=source,
        usage_counted=usage_counted,
        synced=sync.synced,
    )
    return UploadOutcome(
        upload_kind=upload_kind,
        article_id=article.id,
        article_title=article.title,
        hosted_image=hosted,
        extraction=extraction,
        usage_counted=usage_counted,
        uploads_remaining=remaining,
        sync=sync,
    )
