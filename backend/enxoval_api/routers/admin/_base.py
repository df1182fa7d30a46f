"""
Shared dependencies and helpers for admin routers.

Every admin resource is one ``POST /api/admin/<resource>`` endpoint whose
body is ``{"action": ..., ...}``. The body arrives as a plain dict and is
parsed here against the resource's discriminated union, so a missing or
unknown action gets the same 400 shape as a bad field.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from enxoval_api.models import Profile
from shared.config.constants import Roles
from shared.config.logging import audit_auth_event
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context as current_user
from shared.utils.exceptions import ForbiddenError, ValidationError

INVALID_ACTION_MESSAGE = "Ação inválida"

_TAG_ERRORS = {"union_tag_invalid", "union_tag_not_found"}


# =============================================================================
# Role-based Dependencies
# =============================================================================


def require_admin(
    request: Request,
    user: dict = Depends(current_user),
    db: Session = Depends(get_db),
) -> dict:
    """
    Dependency that requires ``profiles.role == 'admin'``.

    The token only proves identity; the role is read on every request so
    a demoted account loses access immediately.
    """
    user_id = int(user["sub"])
    role = db.scalar(select(Profile.role).where(Profile.user_id == user_id))
    if role != Roles.ADMIN:
        audit_auth_event(
            "ACCESS_DENIED",
            user_id=user_id,
            email=user.get("email"),
            success=False,
            reason="not an admin",
            path=request.url.path,
        )
        raise ForbiddenError("acessar o painel administrativo", user_id=user_id)
    return {**user, "role": role}


# =============================================================================
# Action parsing
# =============================================================================


def action_body(payload: Any = Body(default=None)) -> dict[str, Any]:
    """Raw JSON body; anything but an object is treated as a missing action."""
    if not isinstance(payload, dict):
        raise ValidationError(INVALID_ACTION_MESSAGE)
    return payload


def parse_action(adapter: TypeAdapter, payload: dict[str, Any]) -> Any:
    """
    Validate ``payload`` against a discriminated union of actions.

    Raises:
        ValidationError: unknown/missing action, or ``<field>: <msg>`` for
            the first invalid field
    """
    try:
        return adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        if first["type"] in _TAG_ERRORS:
            raise ValidationError(INVALID_ACTION_MESSAGE, action=payload.get("action"))
        # loc starts with the action tag
        loc = ".".join(str(part) for part in first["loc"][1:])
        message = first["msg"]
        raise ValidationError(f"{loc}: {message}" if loc else message, action=payload.get("action"))


def audit_user(user: dict) -> dict:
    """Claims handed to services for audit rows."""
    return {"sub": user.get("sub"), "email": user.get("email")}


__all__ = [
    "APIRouter",
    "Depends",
    "Optional",
    "Session",
    "TypeAdapter",
    "action_body",
    "audit_user",
    "get_db",
    "parse_action",
    "require_admin",
    "status",
]
