"""Factory to resolve the active image host."""

from __future__ import annotations

from functools import lru_cache

from src.core.config import get_settings
from src.hosting.base import ImageHost
from src.hosting.imgbb_provider import ImgBBImageHost
from src.hosting.imgur_provider import ImgurImageHost
from src.hosting.mock_provider import MockImageHost


@lru_cache(maxsize=1)
def get_image_host() -> ImageHost:
    settings = get_settings()
    provider = settings.image_host_provider.strip().lower()
    if provider == "imgur":
        return ImgurImageHost(
            client_id=settings.imgur_client_id,
            base_url=settings.imgur_api_base_url,
            timeout_seconds=settings.image_host_timeout_seconds,
        )
    if provider == "mock":
        return MockImageHost()
    return ImgBBImageHost(
        api_key=settings.imgbb_api_key,
        base_url=settings.imgbb_api_base_url,
        timeout_seconds=settings.image_host_timeout_seconds,
    )


def reset_image_host_cache() -> None:
    get_image_host.cache_clear()
