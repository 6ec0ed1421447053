from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re

import pytest

from src.uploads.tokens import (
    build_upload_url,
    calculate_expiration_date,
    generate_secure_token,
    generate_unique_token,
)


def test_generate_secure_token_returns_hex_of_requested_length() -> None:
    for length in (16, 31, 32, 40):
        token = generate_secure_token(length)
        assert len(token) == length
        assert re.fullmatch(r"[0-9a-f]+", token)


def test_generate_secure_token_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        generate_secure_token(0)


def test_generate_unique_token_retries_on_collision() -> None:
    seen: list[str] = []

    def exists(candidate: str) -> bool:
        seen.append(candidate)
        return len(seen) < 3

    token = generate_unique_token(exists, 32)

    assert len(seen) == 3
    assert token == seen[-1]
    assert len(token) == 32


def test_generate_unique_token_grows_length_after_five_collisions() -> None:
    lengths: list[int] = []

    def exists(candidate: str) -> bool:
        lengths.append(len(candidate))
        return len(candidate) == 32

    token = generate_unique_token(exists, 32)

    assert lengths[:5] == [32] * 5
    assert lengths[5] == 40
    assert len(token) == 40


def test_generate_unique_token_propagates_lookup_errors() -> None:
    def exists(candidate: str) -> bool:  # noqa: ARG001
        raise RuntimeError("store unavailable")

    with pytest.raises(RuntimeError, match="store unavailable"):
        generate_unique_token(exists)


def test_calculate_expiration_date_defaults_to_seven_days() -> None:
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert calculate_expiration_date(now=now) == now + timedelta(days=7)
    assert calculate_expiration_date(2, now=now) == now + timedelta(days=2)


def test_calculate_expiration_date_is_timezone_aware() -> None:
    assert calculate_expiration_date().tzinfo is not None


def test_build_upload_url() -> None:
    assert build_upload_url("html-zip", "abc") == "/public-upload/html-zip/abc"


def test_build_upload_url_prefixes_public_base_url() -> None:
    assert (
        build_upload_url("image", "abc", "https://ops.example.com/")
        == "https://ops.example.com/public-upload/image/abc"
    )
