"""Upload token generation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import secrets
from typing import Callable, Optional


MAX_ATTEMPTS_PER_LENGTH = 5
LENGTH_STEP = 8


def generate_secure_token(length: int = 32) -> str:
    """Return ``length`` hex characters from the OS CSPRNG."""

    if length <= 0:
        raise ValueError("length must be positive")
    return secrets.token_hex((length + 1) // 2)[:length]


def generate_unique_token(exists: Callable[[str], bool], length: int = 32) -> str:
    """Generate a token that ``exists`` reports as unused.

    After five collisions at one length the search restarts eight characters
    longer. Errors raised by ``exists`` propagate to the caller.
    """

    for _ in range(MAX_ATTEMPTS_PER_LENGTH):
        candidate = generate_secure_token(length)
        if not exists(candidate):
            return candidate
    return generate_unique_token(exists, length + LENGTH_STEP)


def calculate_expiration_date(days: int = 7, now: Optional[datetime] = None) -> datetime:
    reference = now or datetime.now(timezone.utc)
    return reference + timedelta(days=days)


def build_upload_url(upload_kind: str, token: str, base_url: str = "") -> str:
    """Relative path unless ``base_url`` (APP_PUBLIC_BASE_URL) is configured."""

    return f"{base_url.strip().rstrip('/')}/public-upload/{upload_kind}/{token}"
