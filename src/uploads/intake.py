"""Staging of multipart upload bodies on local disk."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import re
from typing import BinaryIO, Iterator, Optional, Protocol
import uuid

from src.core.config import get_settings
from src.core.errors import ValidationError
from src.core.logger import get_logger
from src.uploads.validators import upload_limits


CHUNK_SIZE = 1024 * 1024

logger = get_logger("contentops.uploads.intake")


class IncomingFile(Protocol):
    """The slice of ``fastapi.UploadFile`` that intake reads."""

    filename: Optional[str]
    content_type: Optional[str]
    file: BinaryIO


@dataclass(frozen=True)
class StagedUpload:
    path: Path
    content_type: str
    original_name: str
    size_bytes: int


def upload_temp_root() -> Path:
    settings = get_settings()
    configured = Path(settings.upload_temp_dir)
    if configured.is_absolute():
        return configured
    return Path.cwd() / configured


def _sanitize_filename(name: str) -> str:
    base = Path(name.replace("\\", "/")).name
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._")
    return cleaned[:100] or "upload"


def _size_label(max_bytes: int) -> str:
    megabytes = max_bytes / (1024 * 1024)
    if megabytes.is_integer():
        return f"{int(megabytes)}MB"
    return f"{megabytes:.1f}MB"


@contextmanager
def stage_upload(file: Optional[IncomingFile], upload_kind: str) -> Iterator[StagedUpload]:
    """Copy ``file`` to a request-scoped temp file and yield its description.

    The copy stops with a 400 as soon as the kind's size limit is crossed.
    The temp file is removed when the block exits, however it exits.
    """

    if file is None or not (file.filename or "").strip():
        raise ValidationError("No file uploaded", reason="missing_file")

    limits = upload_limits(upload_kind)
    root = upload_temp_root()
    root.mkdir(parents=True, exist_ok=True)
    original_name = (file.filename or "").strip()
    path = root / f"file-{uuid.uuid4().hex}-{_sanitize_filename(original_name)}"

    try:
        size = 0
        with path.open("wb") as target:
            while True:
                chunk = file.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > limits.max_bytes:
                    raise ValidationError(
                        f"File too large. Maximum size is {_size_label(limits.max_bytes)}",
                        reason="file_too_large",
                    )
                target.write(chunk)

        if size == 0:
            raise ValidationError("Uploaded file is empty", reason="empty_file")

        logger.info("upload_staged", upload_kind=upload_kind, size_bytes=size)
        yield StagedUpload(
            path=path,
            content_type=(file.content_type or "application/octet-stream"),
            original_name=original_name,
            size_bytes=size,
        )
    finally:
        path.unlink(missing_ok=True)
