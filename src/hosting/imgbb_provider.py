"""ImgBB image hosting provider."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from src.core.errors import HostingUploadFailed
from src.hosting.base import HostedImage, ImageHost, post_to_host


class ImgBBImageHost(ImageHost):
    provider_name = "imgbb"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.imgbb.com/1",
        timeout_seconds: int = 30,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    def upload_image(self, *, path: Path, filename: str, content_type: Optional[str] = None) -> HostedImage:
        del content_type
        if not self._api_key:
            raise HostingUploadFailed("Image hosting is not configured", reason="imgbb_api_key_missing")

        encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
        body = post_to_host(
            provider=self.provider_name,
            url=f"{self._base_url}/upload",
            timeout_seconds=self._timeout_seconds,
            client=self._client,
            data={"key": self._api_key, "image": encoded, "name": Path(filename).stem or "upload"},
        )

        if not body.get("success"):
            raise HostingUploadFailed(
                "Failed to upload image to storage service",
                reason="imgbb_unsuccessful_response",
            )
        data: Dict[str, Any] = body.get("data") if isinstance(body.get("data"), dict) else {}
        image_url = str(data.get("url") or "").strip()
        image_id = str(data.get("id") or "").strip()
        if not image_url or not image_id:
            raise HostingUploadFailed(
                "Failed to upload image to storage service",
                reason="imgbb_missing_url",
            )

        return HostedImage(
            provider=self.provider_name,
            id=image_id,
            url=image_url,
            display_url=str(data.get("display_url") or image_url),
            payload=data,
        )
