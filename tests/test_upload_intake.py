from __future__ import annotations

import io

import pytest

from src.core.config import get_settings
from src.core.errors import NotFoundError, ValidationError
from src.storage.models import Article
from src.uploads.intake import stage_upload
from src.uploads.validators import (
    ensure_article_uploadable,
    ensure_file_allowed,
    normalize_upload_kind,
    normalize_upload_kinds,
    parse_article_id,
)


class _Upload:
    def __init__(self, content: bytes, *, filename: str = "cover.png", content_type: str = "image/png") -> None:
        self.filename = filename
        self.content_type = content_type
        self.file = io.BytesIO(content)


@pytest.fixture
def temp_dir(monkeypatch, tmp_path):
    target = tmp_path / "uploads"
    monkeypatch.setenv("UPLOAD_TEMP_DIR", str(target))
    monkeypatch.setenv("IMAGE_UPLOAD_MAX_BYTES", "1024")
    get_settings.cache_clear()
    yield target
    get_settings.cache_clear()


def test_stage_upload_copies_file_and_removes_it_on_exit(temp_dir) -> None:
    with stage_upload(_Upload(b"x" * 100, filename="../../My Cover!.png"), "image") as staged:
        assert staged.path.exists()
        assert staged.path.parent == temp_dir
        assert staged.path.name.startswith("file-")
        assert staged.path.name.endswith("-My_Cover_.png")
        assert staged.size_bytes == 100
        assert staged.path.read_bytes() == b"x" * 100

    assert list(temp_dir.iterdir()) == []


def test_stage_upload_removes_file_when_block_raises(temp_dir) -> None:
    with pytest.raises(RuntimeError):
        with stage_upload(_Upload(b"x" * 10), "image"):
            raise RuntimeError("processor crashed")

    assert list(temp_dir.iterdir()) == []


def test_stage_upload_rejects_oversized_files(temp_dir) -> None:
    with pytest.raises(ValidationError) as excinfo:
        with stage_upload(_Upload(b"x" * 1025), "image"):
            pass

    assert excinfo.value.status_code == 400
    assert excinfo.value.message.startswith("File too large")
    assert list(temp_dir.iterdir()) == []


def test_stage_upload_requires_a_file(temp_dir) -> None:
    with pytest.raises(ValidationError, match="No file uploaded"):
        with stage_upload(None, "image"):
            pass


def test_archive_limit_message_names_the_limit(temp_dir, monkeypatch) -> None:
    monkeypatch.setenv("ARCHIVE_UPLOAD_MAX_BYTES", str(2 * 1024 * 1024))
    get_settings.cache_clear()
    upload = _Upload(b"z" * (2 * 1024 * 1024 + 1), filename="site.zip", content_type="application/zip")

    with pytest.raises(ValidationError) as excinfo:
        with stage_upload(upload, "html-zip"):
            pass

    assert excinfo.value.message == "File too large. Maximum size is 2MB"


def test_default_limits_are_ten_and_fifty_megabytes(monkeypatch) -> None:
    monkeypatch.delenv("IMAGE_UPLOAD_MAX_BYTES", raising=False)
    monkeypatch.delenv("ARCHIVE_UPLOAD_MAX_BYTES", raising=False)
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.image_upload_max_bytes == 10 * 1024 * 1024
        assert settings.archive_upload_max_bytes == 50 * 1024 * 1024
    finally:
        get_settings.cache_clear()


@pytest.mark.parametrize("content_type", ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"])
def test_image_allow_list(content_type) -> None:
    ensure_file_allowed("image", content_type=content_type, filename="x")
    ensure_file_allowed("instagram-image", content_type=content_type, filename="x")


@pytest.mark.parametrize("content_type", ["image/svg+xml", "image/*", "application/pdf", None])
def test_image_allow_list_rejects_others(content_type) -> None:
    with pytest.raises(ValidationError, match="Only JPEG, PNG, GIF, and WebP"):
        ensure_file_allowed("image", content_type=content_type, filename="x.png")


def test_archive_accepts_zip_mime_or_extension() -> None:
    ensure_file_allowed("html-zip", content_type="application/zip", filename="bundle")
    ensure_file_allowed("html-zip", content_type="application/x-zip-compressed", filename="bundle")
    ensure_file_allowed("html-zip", content_type="application/octet-stream", filename="Bundle.ZIP")

    with pytest.raises(ValidationError, match="Only ZIP files"):
        ensure_file_allowed("html-zip", content_type="text/html", filename="index.html")


def test_upload_kind_normalization() -> None:
    assert normalize_upload_kind(" Image ") == "image"
    assert normalize_upload_kinds(["image", "html-zip", "image"]) == ["image", "html-zip"]

    with pytest.raises(ValidationError, match="Must be one of: image, instagram-image, html-zip"):
        normalize_upload_kind("video")
    with pytest.raises(ValidationError):
        normalize_upload_kinds([])


@pytest.mark.parametrize("raw", [None, "", "abc", "0", "-3"])
def test_parse_article_id_rejects_invalid_values(raw) -> None:
    with pytest.raises(ValidationError, match="Valid article ID is required"):
        parse_article_id(raw)


def test_parse_article_id_accepts_positive_ints() -> None:
    assert parse_article_id(" 12 ") == 12


def test_article_guard() -> None:
    with pytest.raises(NotFoundError):
        ensure_article_uploadable(None)
    with pytest.raises(ValidationError, match="Cannot upload to published articles"):
        ensure_article_uploadable(Article(id=1, title="Live", status="published"))

    draft = Article(id=2, title="Draft", status="pending")
    assert ensure_article_uploadable(draft) is draft
