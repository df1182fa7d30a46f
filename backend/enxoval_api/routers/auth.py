"""
Authentication router.
Handles admin portal login and the current-user lookup.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from enxoval_api.models import AdminUser
from shared.config.constants import Roles
from shared.config.logging import audit_auth_event, mask_email
from shared.config.logging import auth_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, sign_jwt
from shared.security.password import verify_password
from shared.security.rate_limit import limiter
from shared.utils.exceptions import UnauthorizedError
from shared.utils.schemas import LoginRequest, LoginResponse, UserInfo


router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Email ou senha inválidos"


def _user_info(user: AdminUser) -> UserInfo:
    role = user.profile.role if user.profile is not None else Roles.USER
    return UserInfo(id=user.id, email=user.email, full_name=user.full_name, role=role)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """
    Authenticate an account and return a bearer token.

    The token carries ``sub`` and ``email`` only. Whether the account may
    use the admin endpoints is decided per request from its profile.
    """
    client_ip = request.client.host if request.client else None
    user = db.scalar(
        select(AdminUser)
        .options(joinedload(AdminUser.profile))
        .where(func.lower(AdminUser.email) == body.email.lower())
    )

    if user is None or not verify_password(body.password, user.password):
        logger.warning("Login failed", email=mask_email(body.email))
        audit_auth_event(
            "LOGIN",
            user_id=user.id if user else None,
            email=body.email,
            success=False,
            reason="user not found" if user is None else "wrong password",
            ip_address=client_ip,
        )
        raise UnauthorizedError(INVALID_CREDENTIALS)

    token = sign_jwt({"sub": str(user.id), "email": user.email})
    info = _user_info(user)
    audit_auth_event("LOGIN", user_id=user.id, email=user.email, ip_address=client_ip, role=info.role)

    return LoginResponse(
        access_token=token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=info,
    )


@router.get("/me", response_model=UserInfo)
def me(ctx: dict = Depends(current_user_context), db: Session = Depends(get_db)) -> UserInfo:
    """The account behind the bearer token, with its current role."""
    user = db.scalar(
        select(AdminUser).options(joinedload(AdminUser.profile)).where(AdminUser.id == int(ctx["sub"]))
    )
    if user is None:
        raise UnauthorizedError("Usuário não encontrado")
    return _user_info(user)
