"""Per-client rate limiting for anonymous upload endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from threading import Lock
import time
from typing import Callable, Dict, Optional, Protocol

from fastapi import Request

from src.core.config import get_settings
from src.core.logger import get_logger
from src.storage.redis_client import get_redis_client


logger = get_logger("contentops.rate_limit")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class UploadRateLimiter(Protocol):
    def check(self, *, key: str) -> RateLimitDecision:
        """Count one attempt for this client key and return a decision."""


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryUploadRateLimiter:
    """Fixed window counter kept in process memory.

    The request that opens a new window counts as its first attempt. Once the
    cap is reached every further attempt in the same window is rejected
    without being counted.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 10,
        window_seconds: int = 15 * 60,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._limit = max_attempts
        self._window = window_seconds
        self._clock = clock or time.monotonic
        self._lock = Lock()
        self._store: Dict[str, _Window] = {}

    def _prune(self, now: float) -> None:
        stale_keys = [key for key, window in self._store.items() if now > window.reset_at]
        for stale in stale_keys:
            self._store.pop(stale, None)

    def check(self, *, key: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            window = self._store.get(key)
            if window is None or now > window.reset_at:
                self._prune(now)
                window = _Window(count=1, reset_at=now + self._window)
                self._store[key] = window
                allowed = True
            elif window.count >= self._limit:
                allowed = False
            else:
                window.count += 1
                allowed = True
            count = window.count
            reset_seconds = max(int(window.reset_at - now), 0)

        return RateLimitDecision(
            allowed=allowed,
            limit=self._limit,
            remaining=max(self._limit - count, 0),
            reset_seconds=reset_seconds,
        )

    def allow(self, key: str) -> bool:
        return self.check(key=key).allowed

    def attempts(self, key: str) -> int:
        with self._lock:
            window = self._store.get(key)
            return window.count if window is not None else 0


class RedisUploadRateLimiter:
    """Shared-store variant for deployments running more than one process."""

    def __init__(self, *, max_attempts: int = 10, window_seconds: int = 15 * 60, redis_client=None) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._limit = max_attempts
        self._window = window_seconds
        self._redis = redis_client if redis_client is not None else get_redis_client()

    def check(self, *, key: str) -> RateLimitDecision:
        redis_key = f"contentops:ratelimit:upload:{key}"

        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(redis_key, 0, ex=self._window, nx=True)
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            _, raw_count, raw_ttl = pipe.execute()
            count = int(raw_count)
            ttl = int(raw_ttl)
        except Exception as exc:
            logger.warning("upload_rate_limit_store_unavailable", error=str(exc))
            return RateLimitDecision(
                allowed=True,
                limit=self._limit,
                remaining=self._limit,
                reset_seconds=self._window,
            )

        allowed = count <= self._limit
        return RateLimitDecision(
            allowed=allowed,
            limit=self._limit,
            remaining=max(self._limit - count, 0),
            reset_seconds=ttl if ttl > 0 else self._window,
        )

    def allow(self, key: str) -> bool:
        return self.check(key=key).allowed


@lru_cache(maxsize=1)
def get_upload_rate_limiter() -> UploadRateLimiter:
    settings = get_settings()
    if settings.upload_rate_limit_backend.strip().lower() == "redis":
        return RedisUploadRateLimiter(
            max_attempts=settings.upload_rate_limit_max_attempts,
            window_seconds=settings.upload_rate_limit_window_seconds,
        )
    return InMemoryUploadRateLimiter(
        max_attempts=settings.upload_rate_limit_max_attempts,
        window_seconds=settings.upload_rate_limit_window_seconds,
    )


def reset_upload_rate_limiter() -> None:
    get_upload_rate_limiter.cache_clear()


def resolve_client_ip(request: Request) -> str:
    """Client key for rate limiting: first forwarded hop, then real IP, then peer."""

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
