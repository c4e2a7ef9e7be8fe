"""
Pydantic schemas for users and authentication.
"""

from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from eventbook.models.enums import UserRole
from eventbook.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class UserCreate(RegisterRequest):
    role: UserRole = UserRole.PARTICIPANT


class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    role: Optional[UserRole] = None


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPair):
    user: UserResponse
