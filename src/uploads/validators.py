"""Request-shape and file-type gatekeeping for public uploads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from src.core.config import get_settings
from src.core.errors import NotFoundError, ValidationError
from src.storage.models import Article


UPLOAD_KIND_IMAGE = "image"
UPLOAD_KIND_INSTAGRAM_IMAGE = "instagram-image"
UPLOAD_KIND_HTML_ZIP = "html-zip"

UPLOAD_KINDS = (UPLOAD_KIND_IMAGE, UPLOAD_KIND_INSTAGRAM_IMAGE, UPLOAD_KIND_HTML_ZIP)
IMAGE_UPLOAD_KINDS = frozenset({UPLOAD_KIND_IMAGE, UPLOAD_KIND_INSTAGRAM_IMAGE})

ALLOWED_IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})
ALLOWED_ARCHIVE_MIME_TYPES = frozenset({"application/zip", "application/x-zip-compressed"})

PUBLISHED_STATUS = "published"


@dataclass(frozen=True)
class UploadLimits:
    max_bytes: int
    label: str


def normalize_upload_kind(raw: Optional[str]) -> str:
    normalized = (raw or "").strip().lower()
    if normalized not in UPLOAD_KINDS:
        raise ValidationError(
            "Invalid upload type. Must be one of: " + ", ".join(UPLOAD_KINDS),
            reason="unknown_upload_kind",
        )
    return normalized


def normalize_upload_kinds(raw: Iterable[str]) -> list[str]:
    """Validate a token's permitted kinds, dropping duplicates and keeping order."""

    kinds: list[str] = []
    for item in raw:
        kind = normalize_upload_kind(item)
        if kind not in kinds:
            kinds.append(kind)
    if not kinds:
        raise ValidationError("At least one upload type is required", reason="empty_upload_kinds")
    return kinds


def upload_limits(upload_kind: str) -> UploadLimits:
    settings = get_settings()
    if upload_kind == UPLOAD_KIND_HTML_ZIP:
        return UploadLimits(max_bytes=settings.archive_upload_max_bytes, label="ZIP")
    return UploadLimits(max_bytes=settings.image_upload_max_bytes, label="image")


def parse_article_id(raw: Any) -> int:
    try:
        article_id = int(str(raw).strip())
    except (TypeError, ValueError):
        article_id = 0
    if article_id <= 0:
        raise ValidationError("Valid article ID is required", reason="invalid_article_id")
    return article_id


def ensure_article_uploadable(article: Optional[Article]) -> Article:
    if article is None:
        raise NotFoundError("Article not found", reason="article_not_found")
    if article.status == PUBLISHED_STATUS:
        raise ValidationError("Cannot upload to published articles", reason="article_published")
    return article


def _is_zip(content_type: str, filename: str) -> bool:
    return content_type in ALLOWED_ARCHIVE_MIME_TYPES or filename.lower().endswith(".zip")


def ensure_file_allowed(upload_kind: str, *, content_type: Optional[str], filename: Optional[str]) -> None:
    normalized_type = (content_type or "").split(";", 1)[0].strip().lower()
    name = (filename or "").strip()

    if upload_kind in IMAGE_UPLOAD_KINDS:
        if normalized_type not in ALLOWED_IMAGE_MIME_TYPES:
            raise ValidationError(
                "Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed.",
                reason="invalid_image_type",
            )
        return

    if upload_kind == UPLOAD_KIND_HTML_ZIP:
        if not _is_zip(normalized_type, name):
            raise ValidationError("Invalid file type. Only ZIP files are allowed.", reason="invalid_archive_type")
        return

    raise ValidationError(
        "Invalid upload type. Must be one of: " + ", ".join(UPLOAD_KINDS),
        reason="unknown_upload_kind",
    )
