"""Deterministic mock image host for local/dev usage."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional

from src.hosting.base import HostedImage, ImageHost


class MockImageHost(ImageHost):
    provider_name = "mock"

    def upload_image(self, *, path: Path, filename: str, content_type: Optional[str] = None) -> HostedImage:
        del content_type
        digest = hashlib.sha1(Path(path).read_bytes()).hexdigest()[:16]
        suffix = Path(filename).suffix.lower() or ".jpg"
        url = f"https://images.example.invalid/{digest}{suffix}"
        return HostedImage(
            provider=self.provider_name,
            id=digest,
            url=url,
            display_url=url,
            payload={"seed": digest},
        )
