"""Imgur image hosting provider (anonymous uploads via Client-ID)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from src.core.errors import HostingUploadFailed
from src.hosting.base import HostedImage, ImageHost, post_to_host


class ImgurImageHost(ImageHost):
    provider_name = "imgur"

    def __init__(
        self,
        *,
        client_id: str,
        base_url: str = "https://api.imgur.com/3",
        timeout_seconds: int = 30,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._client_id = client_id.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    def upload_image(self, *, path: Path, filename: str, content_type: Optional[str] = None) -> HostedImage:
        if not self._client_id:
            raise HostingUploadFailed("Image hosting is not configured", reason="imgur_client_id_missing")

        body = post_to_host(
            provider=self.provider_name,
            url=f"{self._base_url}/image",
            timeout_seconds=self._timeout_seconds,
            client=self._client,
            headers={"Authorization": f"Client-ID {self._client_id}"},
            data={"type": "file", "name": filename},
            files={"image": (filename, Path(path).read_bytes(), content_type or "application/octet-stream")},
        )

        data: Dict[str, Any] = body.get("data") if isinstance(body.get("data"), dict) else {}
        link = str(data.get("link") or "").strip()
        image_id = str(data.get("id") or "").strip()
        if not body.get("success") or not link or not image_id:
            raise HostingUploadFailed(
                "Failed to upload image to storage service",
                reason="imgur_missing_link",
            )

        return HostedImage(
            provider=self.provider_name,
            id=image_id,
            url=link,
            display_url=link,
            payload=data,
        )
