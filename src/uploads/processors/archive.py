"""Archive processor: pulls the primary HTML document out of a ZIP bundle."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import tempfile
from typing import Optional
import zipfile

from sqlalchemy.orm import Session

from src.core.errors import CorruptArchive, NoMarkupFound, NotFoundError
from src.core.logger import get_logger
from src.storage.models import Article
from src.uploads.intake import upload_temp_root


PRIMARY_MARKUP_NAME = "index.html"
MARKUP_SUFFIXES = (".html", ".htm")

logger = get_logger("contentops.uploads.archive")


@dataclass(frozen=True)
class ArchiveExtraction:
    content: str
    source_file: str
    message: str


def _safe_extract(archive: zipfile.ZipFile, destination: Path) -> None:
    root = destination.resolve()
    for member in archive.infolist():
        target = (root / member.filename).resolve()
        if target != root and root not in target.parents:
            raise CorruptArchive("The ZIP file contains unsafe paths", reason="archive_path_escape")
    archive.extractall(root)


def select_markup_file(directory: Path) -> Optional[Path]:
    """``index.html`` wins; otherwise the first HTML file by name, top level only."""

    primary = directory / PRIMARY_MARKUP_NAME
    if primary.is_file():
        return primary

    for entry in sorted(directory.iterdir(), key=lambda item: item.name):
        if entry.is_file() and entry.name.lower().endswith(MARKUP_SUFFIXES):
            return entry
    return None


def process_archive(
    session: Session,
    *,
    archive_path: Path,
    article_id: int,
    work_dir: Optional[Path] = None,
) -> ArchiveExtraction:
    if session.get(Article, article_id) is None:
        raise NotFoundError("Article not found", reason="article_not_found")

    root = work_dir or upload_temp_root()
    root.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix=f"zip_extract_{article_id}_", dir=root) as extract_dir:
        destination = Path(extract_dir)
        try:
            with zipfile.ZipFile(archive_path) as archive:
                _safe_extract(archive, destination)
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            logger.warning("archive_unreadable", article_id=article_id, error=str(exc))
            raise CorruptArchive("The uploaded file is not a valid ZIP archive", reason="bad_zip") from exc

        selected = select_markup_file(destination)
        if selected is None:
            raise NoMarkupFound(
                "No HTML file found in the ZIP. Please ensure your ZIP contains an index.html file "
                "or at least one HTML file.",
                reason="no_markup",
            )

        content = selected.read_text(encoding="utf-8", errors="replace")
        source_file = selected.name

    logger.info("archive_extracted", article_id=article_id, source_file=source_file, content_length=len(content))
    return ArchiveExtraction(
        content=content,
        source_file=source_file,
        message=(
            f"HTML content from {source_file} in the ZIP file has been successfully extracted "
            "and set as the article content."
        ),
    )
