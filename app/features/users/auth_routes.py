"""
Authentication routes: login and password reset.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request

from app.core import config
from app.core.rate_limit import limiter
from app.features.users.dependencies import get_user_service
from app.features.users.schemas import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from app.features.users.service import UserService
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Exchange email and password for an access token."""
    user, token = await service.authenticate(credentials.email, credentials.password, credentials.tenant)
    return TokenResponse(
        access_token=token,
        expires_in=config.JWT_EXPIRES_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT)
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    service: Annotated[UserService, Depends(get_user_service)]
):
    """
    Issue a short-lived password reset token.

    The raw token is only part of the response when EXPOSE_RESET_TOKEN is set.
    """
    token = await service.forgot_password(data.email, data.tenant)
    if not config.EXPOSE_RESET_TOKEN:
        log.info("Password reset token issued; not returned because EXPOSE_RESET_TOKEN is off")
        token = None
    return ForgotPasswordResponse(
        message="Password reset token issued",
        reset_token=token,
        expires_in=config.PASSWORD_RESET_EXPIRES_MINUTES * 60,
    )


@router.post("/reset-password", response_model=UserResponse)
async def reset_password(
    data: ResetPasswordRequest,
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Set a new password using a reset token."""
    return await service.reset_password(data.token, data.password)
