"""Provider contracts for external image hosting."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import httpx

from src.core.errors import HostingUploadFailed


@dataclass(frozen=True)
class HostedImage:
    provider: str
    id: str
    url: str
    display_url: str
    payload: Dict[str, Any] = field(default_factory=dict)


class ImageHost(Protocol):
    provider_name: str

    def upload_image(self, *, path: Path, filename: str, content_type: Optional[str] = None) -> HostedImage:
        raise NotImplementedError


def post_to_host(
    *,
    provider: str,
    url: str,
    timeout_seconds: int,
    client: Optional[httpx.Client] = None,
    **request_kwargs: Any,
) -> Dict[str, Any]:
    """POST to a hosting API and return its JSON object body.

    Transport errors, timeouts, non-2xx statuses and non-object bodies all
    surface as ``HostingUploadFailed`` so callers only handle one error type.
    """

    try:
        if client is not None:
            response = client.post(url, **request_kwargs)
        else:
            with httpx.Client(timeout=timeout_seconds) as owned_client:
                response = owned_client.post(url, **request_kwargs)
    except httpx.TimeoutException as exc:
        raise HostingUploadFailed(
            "Image hosting service timed out",
            reason=f"{provider}_timeout",
        ) from exc
    except httpx.HTTPError as exc:
        raise HostingUploadFailed(
            "Image hosting service is unreachable",
            reason=f"{provider}_transport_error",
        ) from exc

    if response.status_code < 200 or response.status_code >= 300:
        raise HostingUploadFailed(
            "Failed to upload image to storage service",
            reason=f"{provider}_status_{response.status_code}",
        )

    try:
        body = response.json()
    except ValueError as exc:
        raise HostingUploadFailed(
            "Failed to upload image to storage service",
            reason=f"{provider}_invalid_json_response",
        ) from exc

    if not isinstance(body, dict):
        raise HostingUploadFailed(
            "Failed to upload image to storage service",
            reason=f"{provider}_invalid_payload",
        )
    return body
