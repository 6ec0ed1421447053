"""Redis connection used by the shared upload rate-limit store."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Tuple

from redis import Redis

from src.core.config import get_settings


REDIS_SOCKET_TIMEOUT_SECONDS = 2


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    settings = get_settings()
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
        socket_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
    )


def reset_redis_client() -> None:
    get_redis_client.cache_clear()


def ping_redis() -> Tuple[bool, Optional[str]]:
    """Only meaningful when ``UPLOAD_RATE_LIMIT_BACKEND=redis``."""

    try:
        get_redis_client().ping()
        return True, None
    except Exception as exc:  # pragma: no cover
        return False, str(exc)
