"""
User administration endpoints. Admin only.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import require_admin
from eventbook.api.envelope import EnvelopeRoute
from eventbook.db.session import get_db
from eventbook.schemas.common import MessageResponse
from eventbook.schemas.user import UserCreate, UserResponse, UserUpdate
from eventbook.services import user_service

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    route_class=EnvelopeRoute,
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[UserResponse])
async def list_users_endpoint(db: AsyncSession = Depends(get_db)):
    return await user_service.list_users(db)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    return await user_service.create_user(db, user_data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    return await user_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user_endpoint(user_id: int, user_data: UserUpdate, db: AsyncSession = Depends(get_db)):
    return await user_service.update_user(db, user_id, user_data)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a user who owns no events and holds no reservations."""
    await user_service.delete_user(db, user_id)
    return MessageResponse(message="User deleted successfully")
