from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import io
from pathlib import Path
from typing import Dict, Iterable, Optional
import zipfile

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import src.api.main as api_main
from src.auth.jwt import AuthContext, create_access_token
from src.core.config import get_settings
from src.core.metrics import reset_metrics_for_tests
from src.core.rate_limit import reset_upload_rate_limiter
from src.hosting import HostedImage, reset_image_host_cache
from src.integrations.airtable import reset_airtable_client
from src.storage.db import Base, get_session, load_models
from src.storage.models import Article
from src.uploads.token_store import insert_upload_token


TEST_SECRET_KEY = "upload-tests-secret-key-with-enough-length"

# Smallest valid PNG: 1x1 transparent pixel.
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6300010000000500010d0a2db40000000049454e44ae426082"
)


class FakeImageHost:
    provider_name = "fake"

    def __init__(self, *, url: str = "https://i.ibb.co/abc123/cover.png", error: Optional[Exception] = None) -> None:
        self.url = url
        self.error = error
        self.calls: list[dict[str, object]] = []

    def upload_image(self, *, path: Path, filename: str, content_type: Optional[str] = None) -> HostedImage:
        self.calls.append(
            {
                "path": Path(path),
                "filename": filename,
                "content_type": content_type,
                "existed": Path(path).exists(),
            }
        )
        if self.error is not None:
            raise self.error
        return HostedImage(provider=self.provider_name, id="abc123", url=self.url, display_url=self.url)


@dataclass
class UploadTestContext:
    client: TestClient
    session_factory: sessionmaker
    temp_dir: Path
    operator_token: str

    def operator_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.operator_token}"}


def build_sqlite_session_factory() -> sessionmaker:
    load_models()
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def reset_upload_caches() -> None:
    get_settings.cache_clear()
    reset_image_host_cache()
    reset_upload_rate_limiter()
    reset_airtable_client()


def create_upload_test_context(
    monkeypatch,
    tmp_path: Path,
    *,
    env: Optional[Dict[str, str]] = None,
) -> UploadTestContext:
    temp_dir = tmp_path / "uploads"
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET_KEY)
    monkeypatch.setenv("UPLOAD_TEMP_DIR", str(temp_dir))
    monkeypatch.setenv("IMAGE_HOST_PROVIDER", "mock")
    monkeypatch.setenv("AIRTABLE_SYNC_ENABLED", "false")
    monkeypatch.setenv("UPLOAD_RATE_LIMIT_BACKEND", "memory")
    monkeypatch.setenv("APP_PUBLIC_BASE_URL", "")
    for key, value in (env or {}).items():
        monkeypatch.setenv(key, value)

    reset_upload_caches()
    reset_metrics_for_tests()

    session_factory = build_sqlite_session_factory()

    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    api_main.app.dependency_overrides[get_session] = override_get_session
    operator_token, _ = create_access_token(
        AuthContext(user_id="operator-1", role="admin", email="editor@contentops.test")
    )

    return UploadTestContext(
        client=TestClient(api_main.app),
        session_factory=session_factory,
        temp_dir=temp_dir,
        operator_token=operator_token,
    )


def teardown_upload_test_context(context: UploadTestContext) -> None:
    del context
    api_main.app.dependency_overrides.clear()
    reset_upload_caches()


def seed_article(
    session_factory: sessionmaker,
    *,
    title: str = "Spring launch notes",
    status: str = "draft",
    external_id: Optional[str] = None,
) -> int:
    with session_factory() as session:
        article = Article(title=title, status=status, external_id=external_id)
        session.add(article)
        session.commit()
        return article.id


def seed_upload_token(
    session_factory: sessionmaker,
    *,
    article_id: int,
    token: str = "tok_0123456789abcdef0123456789ab",
    upload_types: Iterable[str] = ("image",),
    max_uses: int = 1,
    uses: int = 0,
    active: bool = True,
    expires_at: Optional[datetime] = None,
) -> int:
    with session_factory() as session:
        record = insert_upload_token(
            session,
            token=token,
            article_id=article_id,
            upload_types=list(upload_types),
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(days=7),
            max_uses=max_uses,
            name="test token",
        )
        record.uses = uses
        record.active = active
        session.commit()
        return record.id


def build_zip(files: Dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def leftover_temp_entries(temp_dir: Path) -> list[str]:
    if not temp_dir.exists():
        return []
    return sorted(entry.name for entry in temp_dir.iterdir())
