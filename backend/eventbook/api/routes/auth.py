"""
Authentication endpoints: register, login, token refresh, logout and profile.
"""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_current_user
from eventbook.api.envelope import EnvelopeRoute
from eventbook.core.config import get_settings
from eventbook.core.exceptions import UnauthorizedError
from eventbook.db.session import get_db
from eventbook.models import User
from eventbook.schemas.common import MessageResponse
from eventbook.schemas.user import (
    AuthResponse,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenPair,
    UserResponse,
)
from eventbook.services.auth_service import authenticate_user, logout_user, refresh_tokens, register_user

settings = get_settings()
router = APIRouter(prefix="/auth", tags=["Authentication"], route_class=EnvelopeRoute)


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        refresh_token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Register a new participant account."""
    user, access_token, refresh_token = await register_user(db, user_data)
    return AuthResponse(access_token=access_token, refresh_token=refresh_token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(login_data: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive an access/refresh token pair."""
    user, access_token, refresh_token = await authenticate_user(db, login_data)
    _set_refresh_cookie(response, refresh_token)
    return AuthResponse(access_token=access_token, refresh_token=refresh_token, user=UserResponse.model_validate(user))


@router.post("/refresh", response_model=TokenPair)
async def refresh(
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token (body or cookie) for a new token pair."""
    token = (body.refresh_token if body else None) or refresh_cookie
    if not token:
        raise UnauthorizedError("Refresh token required")

    access_token, refresh_token = await refresh_tokens(db, token)
    _set_refresh_cookie(response, refresh_token)
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the refresh token and clear the cookie."""
    token = (body.refresh_token if body else None) or refresh_cookie
    await logout_user(db, user, token)
    response.delete_cookie(
        settings.REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="strict",
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Current user profile."""
    return user
