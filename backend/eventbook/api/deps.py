"""
Request dependencies: database session and the authenticated caller.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.exceptions import UnauthorizedError
from eventbook.core.security import ACCESS_TOKEN_TYPE, decode_token
from eventbook.db.session import get_db
from eventbook.models import User
from eventbook.services.permissions import ensure_admin

# auto_error=False so missing credentials surface as our own 401
bearer_scheme = HTTPBearer(auto_error=False)


async def _resolve_user(db: AsyncSession, token: str) -> User:
    try:
        payload = decode_token(token, ACCESS_TOKEN_TYPE)
        user_id = int(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired token")

    user = await db.get(User, user_id, populate_existing=True)
    if not user:
        raise UnauthorizedError("User not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require a valid bearer access token."""
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    return await _resolve_user(db, credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Anonymous callers get None; a present but invalid token is still rejected."""
    if credentials is None:
        return None
    return await _resolve_user(db, credentials.credentials)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    ensure_admin(user)
    return user
