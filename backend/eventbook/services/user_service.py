"""
User administration.
"""

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.exceptions import ConflictError, NotFoundError
from eventbook.core.logging import get_logger
from eventbook.core.security import hash_password
from eventbook.models import Event, RefreshToken, Reservation, User
from eventbook.schemas.user import UserCreate, UserUpdate

logger = get_logger(__name__)


async def email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id.asc()))
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id, populate_existing=True)
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    if await email_taken(db, user_data.email):
        raise ConflictError("Email already registered")

    user = User(
        email=user_data.email,
        password_hash=hash_password(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        role=user_data.role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already registered")
    user_id = user.id
    await db.commit()

    logger.info("user_created", user_id=user_id, role=user_data.role.value)
    return await get_user(db, user_id)


async def update_user(db: AsyncSession, user_id: int, user_data: UserUpdate) -> User:
    user = await get_user(db, user_id)
    changes = user_data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes and changes["email"] != user.email and await email_taken(db, changes["email"]):
        raise ConflictError("Email already registered")

    if "password" in changes:
        user.password_hash = hash_password(changes.pop("password"))
    for field, value in changes.items():
        setattr(user, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already registered")

    logger.info("user_updated", user_id=user_id, fields=sorted(user_data.model_fields_set))
    return await get_user(db, user_id)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """Delete a user that owns no events and holds no reservations."""
    await get_user(db, user_id)

    owned_events = (await db.execute(select(func.count(Event.id)).where(Event.owner_id == user_id))).scalar()
    reservations = (
        await db.execute(select(func.count(Reservation.id)).where(Reservation.user_id == user_id))
    ).scalar()
    if owned_events or reservations:
        raise ConflictError("Cannot delete a user who owns events or has reservations")

    await db.execute(
        delete(RefreshToken).where(RefreshToken.user_id == user_id).execution_options(synchronize_session=False)
    )
    await db.execute(delete(User).where(User.id == user_id).execution_options(synchronize_session=False))
    await db.commit()

    logger.info("user_deleted", user_id=user_id)
