"""
Authentication service: registration, login, refresh-token rotation and logout.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.exceptions import ConflictError, UnauthorizedError
from eventbook.core.logging import get_logger
from eventbook.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from eventbook.models import RefreshToken, User, UserRole
from eventbook.schemas.user import LoginRequest, RegisterRequest
from eventbook.services import notification_service
from eventbook.services.user_service import email_taken

logger = get_logger(__name__)


async def _issue_tokens(db: AsyncSession, user: User) -> tuple[str, str]:
    """Create an access/refresh pair and persist the refresh token."""
    access_token = create_access_token(user.id, user.email, user.role.value)
    refresh_token, expires_at = create_refresh_token(user.id, user.email)
    db.add(RefreshToken(token=refresh_token, user_id=user.id, expires_at=expires_at))
    return access_token, refresh_token


async def register_user(db: AsyncSession, user_data: RegisterRequest) -> tuple[User, str, str]:
    """
    Register a new participant and sign them in.
    Raises 409 if the email already exists.
    """
    if await email_taken(db, user_data.email):
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise ConflictError("Email already registered")

    user = User(
        email=user_data.email,
        password_hash=hash_password(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        role=UserRole.PARTICIPANT,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent registration took the email after the check above
        await db.rollback()
        logger.warning("registration_failed", reason="email_race", email=user_data.email)
        raise ConflictError("Email already registered")

    access_token, refresh_token = await _issue_tokens(db, user)
    await db.commit()

    logger.info("user_registered", user_id=user.id, email=user.email)
    notification_service.send_welcome(user.email, user.first_name)
    return user, access_token, refresh_token


async def authenticate_user(db: AsyncSession, login_data: LoginRequest) -> tuple[User, str, str]:
    """
    Authenticate user and return a fresh token pair.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.password_hash):
        logger.warning("login_failed", email=login_data.email)
        raise UnauthorizedError("Invalid credentials")

    access_token, refresh_token = await _issue_tokens(db, user)
    await db.commit()

    logger.info("user_logged_in", user_id=user.id)
    return user, access_token, refresh_token


async def refresh_tokens(db: AsyncSession, refresh_token: str) -> tuple[str, str]:
    """
    Exchange a valid, unrevoked refresh token for a new pair.
    The stored record is rotated so the old refresh token stops working.
    """
    try:
        payload = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        user_id = int(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedError("Invalid refresh token")

    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token == refresh_token,
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > datetime.now(timezone.utc),
        )
    )
    stored = result.scalar_one_or_none()
    if not stored:
        logger.warning("refresh_rejected", user_id=user_id)
        raise UnauthorizedError("Invalid refresh token")

    user = await db.get(User, user_id)
    if not user:
        raise UnauthorizedError("User not found")

    access_token = create_access_token(user.id, user.email, user.role.value)
    new_refresh_token, expires_at = create_refresh_token(user.id, user.email)
    stored.token = new_refresh_token
    stored.expires_at = expires_at
    await db.commit()

    logger.info("tokens_refreshed", user_id=user_id)
    return access_token, new_refresh_token


async def logout_user(db: AsyncSession, user: User, refresh_token: Optional[str]) -> None:
    """Revoke the given refresh token, or every token of the user when none is given."""
    query = update(RefreshToken).where(RefreshToken.user_id == user.id)
    if refresh_token:
        query = query.where(RefreshToken.token == refresh_token)
    result = await db.execute(query.values(revoked=True).execution_options(synchronize_session=False))
    await db.commit()

    logger.info("user_logged_out", user_id=user.id, tokens_revoked=result.rowcount)
