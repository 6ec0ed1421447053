"""Resolves the operator session from the bearer header, if any."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from src.auth.jwt import AuthContext, decode_access_token
from src.core.errors import AuthorizationError
from src.core.logger import get_logger


AUTH_CONTEXT_KEY = "auth_context"

logger = get_logger("contentops.auth")


def _extract_bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def resolve_request_auth_context(request: Request) -> Optional[AuthContext]:
    """Anonymous requests and bad sessions both resolve to ``None``.

    Routes that need an operator reject ``None`` through ``require_operator``;
    public upload routes never look at it.
    """

    token = _extract_bearer_token(request)
    if not token:
        return None

    try:
        return decode_access_token(token)
    except AuthorizationError:
        logger.info("operator_session_rejected", path=request.url.path)
        return None
