"""
Authentication utilities for the admin portal.
Handles JWT bearer tokens issued at login.

Tokens only prove identity. The admin role is looked up in the
profiles table on every request (see enxoval_api.routers.admin._base).
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.utils.exceptions import UnauthorizedError

logger = get_logger(__name__)


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign an access token with the given payload.

    Args:
        payload: Claims to include in the token (sub, email).
        ttl_seconds: Token lifetime in seconds. Defaults to the configured expiry.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, settings.jwt_secret, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        UnauthorizedError: If token is invalid, expired or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Sessão expirada")
    except jwt.InvalidTokenError as e:
        # Log the actual error, return a generic message to the client
        logger.warning("JWT validation failed", error=str(e))
        raise UnauthorizedError("Token inválido")

    if "sub" not in payload:
        raise UnauthorizedError("Token inválido")
    try:
        int(payload["sub"])
    except (ValueError, TypeError):
        raise UnauthorizedError("Token inválido")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        UnauthorizedError: If header is missing or malformed.
    """
    if not authorization:
        raise UnauthorizedError("Não autorizado")
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Formato de autorização inválido")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError("Não autorizado")
    return token


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency that extracts and verifies the bearer token.

    Usage:
        @router.get("/me")
        def me(ctx: dict = Depends(current_user_context)):
            user_id = int(ctx["sub"])
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)
