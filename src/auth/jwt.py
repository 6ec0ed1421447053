"""JWT verify primitives for operator sessions.

Operator sessions are issued by the dashboard's identity service; this service
only needs to verify them. ``create_access_token`` exists for tooling and
tests that need a signed operator token.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from src.core.config import get_settings
from src.core.errors import AuthorizationError


OPERATOR_ROLES = frozenset({"admin", "editor"})


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: str
    email: str


def create_access_token(context: AuthContext) -> tuple[str, int]:
    settings = get_settings()
    expires_in = settings.access_token_exp_minutes * 60
    now = datetime.now(timezone.utc)
    payload = {
        "sub": context.user_id,
        "email": context.email,
        "role": context.role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, expires_in


def decode_access_token(token: str) -> AuthContext:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return AuthContext(
            user_id=str(payload["sub"]),
            role=str(payload.get("role", "")),
            email=str(payload.get("email", "")),
        )
    except Exception as exc:
        raise AuthorizationError("Invalid or expired session", reason="invalid_session") from exc
