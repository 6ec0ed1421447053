"""Image processor: forwards a staged image to the configured host."""

from __future__ import annotations

from typing import Optional

from src.core.errors import HostingUploadFailed
from src.core.logger import get_logger
from src.hosting import HostedImage, ImageHost, get_image_host
from src.uploads.intake import StagedUpload


logger = get_logger("contentops.uploads.image")


def process_image(staged: StagedUpload, *, image_host: Optional[ImageHost] = None) -> HostedImage:
    host = image_host or get_image_host()
    try:
        hosted = host.upload_image(
            path=staged.path,
            filename=staged.original_name,
            content_type=staged.content_type,
        )
    except HostingUploadFailed as exc:
        logger.warning(
            "image_hosting_failed",
            provider=getattr(host, "provider_name", "unknown"),
            reason=exc.reason,
            size_bytes=staged.size_bytes,
        )
        raise

    if not hosted.url:
        raise HostingUploadFailed(
            "Failed to upload image to storage service",
            reason=f"{hosted.provider}_missing_url",
        )

    logger.info("image_hosted", provider=hosted.provider, hosted_id=hosted.id, size_bytes=staged.size_bytes)
    return hosted
