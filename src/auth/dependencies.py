"""FastAPI dependencies for operator authentication."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from src.auth.jwt import OPERATOR_ROLES, AuthContext
from src.auth.middleware import AUTH_CONTEXT_KEY
from src.core.errors import AuthorizationError, ForbiddenError


def get_optional_auth_context(request: Request) -> Optional[AuthContext]:
    return getattr(request.state, AUTH_CONTEXT_KEY, None)


def require_auth_context(auth: Optional[AuthContext] = Depends(get_optional_auth_context)) -> AuthContext:
    if auth is None:
        raise AuthorizationError("Unauthorized", reason="missing_session")
    return auth


def require_operator(auth: AuthContext = Depends(require_auth_context)) -> AuthContext:
    if auth.role not in OPERATOR_ROLES:
        raise ForbiddenError("Insufficient role", reason="insufficient_role")
    return auth
