"""
Event service: CRUD, lifecycle transitions and admin statistics.

Lifecycle is strictly forward: DRAFT -> PUBLISHED -> CANCELED.
Every transition is a conditional UPDATE on the current status so two
concurrent admins cannot both apply it.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventbook.core.config import get_settings
from eventbook.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_event_transition
from eventbook.models import (
    ACTIVE_RESERVATION_STATUSES,
    Event,
    EventStatus,
    Reservation,
    ReservationStatus,
    User,
)
from eventbook.schemas.event import EventCreate, EventFilters, EventUpdate
from eventbook.services import notification_service
from eventbook.services.permissions import ensure_admin, ensure_event_owner, ensure_event_visible, is_admin

logger = get_logger(__name__)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ensure_future(value: datetime) -> datetime:
    value = as_utc(value)
    if value <= datetime.now(timezone.utc):
        raise ValidationError("Event date must be in the future")
    return value


async def _load_event(db: AsyncSession, event_id: int, with_owner: bool = False) -> Event:
    query = select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    if with_owner:
        query = query.options(selectinload(Event.owner))
    result = await db.execute(query)
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError(f"Event with ID {event_id} not found")
    return event


async def create_event(db: AsyncSession, event_data: EventCreate, user: User) -> Event:
    """Create a DRAFT event with full seat availability."""
    ensure_admin(user, "create events")
    event_date = _ensure_future(event_data.date)

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_date,
        location=event_data.location,
        capacity=event_data.capacity,
        available_seats=event_data.capacity,
        status=EventStatus.DRAFT,
        owner_id=user.id,
    )
    db.add(event)
    await db.flush()
    event_id = event.id
    await db.commit()

    record_event_transition("create")
    logger.info("event_created", event_id=event_id, title=event_data.title, capacity=event_data.capacity)
    return await _load_event(db, event_id)


async def get_event(db: AsyncSession, event_id: int, user: Optional[User] = None) -> Event:
    """Get a single event. Non-published events are hidden from non-admins."""
    event = await _load_event(db, event_id, with_owner=True)
    ensure_event_visible(event, user)
    return event


async def list_events(
    db: AsyncSession,
    filters: EventFilters,
    user: Optional[User] = None,
) -> tuple[list[Event], int]:
    """
    List events with search, date and status filters, ordered by date.
    Non-admin callers only ever see published events.
    """
    settings = get_settings()
    query = select(Event)

    if is_admin(user):
        if filters.status:
            query = query.where(Event.status == filters.status)
    else:
        query = query.where(Event.status == EventStatus.PUBLISHED)

    if filters.search:
        query = query.where(Event.title.icontains(filters.search, autoescape=True))

    if filters.from_date:
        query = query.where(Event.date >= as_utc(filters.from_date))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    limit = min(filters.limit, settings.MAX_PAGE_SIZE)
    events_query = (
        query
        .options(selectinload(Event.owner))
        .order_by(Event.date.asc(), Event.id.asc())
        .offset((filters.page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate, user: User) -> Event:
    """
    Update event details. A capacity change shifts available seats by the
    same amount and may not drop below the seats already held.
    """
    event = await _load_event(db, event_id)
    ensure_event_owner(event, user, "update")

    if event.status == EventStatus.CANCELED:
        raise InvalidStateError("Canceled events cannot be modified")

    values = event_data.model_dump(exclude_unset=True, exclude_none=True)
    if "date" in values:
        values["date"] = _ensure_future(values["date"])

    conditions = [Event.id == event_id, Event.status != EventStatus.CANCELED]
    if "capacity" in values:
        delta = values["capacity"] - event.capacity
        values["available_seats"] = Event.available_seats + delta
        conditions.append(Event.available_seats + delta >= 0)
        # delta was computed from this capacity
        conditions.append(Event.capacity == event.capacity)

    if not values:
        return event

    result = await db.execute(
        update(Event).where(*conditions).values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        if "capacity" in values:
            raise ConflictError("Capacity cannot be lower than the number of reserved seats")
        raise InvalidStateError("Canceled events cannot be modified")
    await db.commit()

    logger.info("event_updated", event_id=event_id, fields=sorted(values))
    return await _load_event(db, event_id)


async def publish_event(db: AsyncSession, event_id: int, user: User) -> Event:
    """DRAFT -> PUBLISHED: exposes the event to participants."""
    event = await _load_event(db, event_id)
    ensure_event_owner(event, user, "publish")

    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.status == EventStatus.DRAFT)
        .values(status=EventStatus.PUBLISHED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidStateError("Can only publish draft events")
    await db.commit()

    record_event_transition("publish")
    logger.info("event_published", event_id=event_id)
    return await _load_event(db, event_id)


async def cancel_event(db: AsyncSession, event_id: int, user: User) -> Event:
    """
    PUBLISHED -> CANCELED, cascading to every active reservation.

    The event and all its active reservations change in one transaction.
    Seats are not restored: the event leaves circulation.
    """
    event = await _load_event(db, event_id)
    ensure_event_owner(event, user, "cancel")

    if event.status != EventStatus.PUBLISHED:
        raise InvalidStateError("Only published events can be canceled")

    event_title, event_date = event.title, event.date
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.status == EventStatus.PUBLISHED)
        .values(status=EventStatus.CANCELED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidStateError("Only published events can be canceled")

    # The event row is CANCELED from here on, so no new reservation can join.
    # Recipients are exactly the rows this statement cancels.
    canceled_user_ids = (
        await db.execute(
            update(Reservation)
            .where(
                Reservation.event_id == event_id,
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
            .values(status=ReservationStatus.CANCELED, canceled_at=datetime.now(timezone.utc))
            .returning(Reservation.user_id)
            .execution_options(synchronize_session=False)
        )
    ).scalars().all()

    affected = []
    if canceled_user_ids:
        affected = (
            await db.execute(
                select(User.email, User.first_name).where(User.id.in_(set(canceled_user_ids)))
            )
        ).all()
    await db.commit()

    record_event_transition("cancel")
    logger.info("event_canceled", event_id=event_id, reservations_canceled=len(canceled_user_ids))

    for email, first_name in affected:
        notification_service.send_event_canceled(email, first_name, event_title, event_date)

    return await _load_event(db, event_id)


async def delete_event(db: AsyncSession, event_id: int, user: User) -> None:
    """Delete an event that holds no active reservations, along with its history."""
    event = await _load_event(db, event_id)
    ensure_event_owner(event, user, "delete")

    active = (
        await db.execute(
            select(func.count(Reservation.id)).where(
                Reservation.event_id == event_id,
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
        )
    ).scalar()
    if active:
        raise InvalidStateError("Cannot delete event with active reservations. Cancel the event instead.")

    await db.execute(
        delete(Reservation).where(Reservation.event_id == event_id).execution_options(synchronize_session=False)
    )
    await db.execute(delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False))
    await db.commit()

    record_event_transition("delete")
    logger.info("event_deleted", event_id=event_id)


async def list_event_reservations(db: AsyncSession, event_id: int, user: User) -> list[Reservation]:
    """All reservations of an event, for its owner."""
    event = await _load_event(db, event_id)
    ensure_event_owner(event, user, "view reservations for")

    result = await db.execute(
        select(Reservation)
        .where(Reservation.event_id == event_id)
        .options(selectinload(Reservation.user), selectinload(Reservation.event))
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_dashboard_stats(db: AsyncSession, user: User) -> dict:
    """Admin dashboard figures, scoped to the caller's events where relevant."""
    ensure_admin(user, "access event statistics")

    upcoming = (
        await db.execute(
            select(func.count(Event.id)).where(
                Event.date >= datetime.now(timezone.utc),
                Event.status == EventStatus.PUBLISHED,
            )
        )
    ).scalar()

    total_reservations = (
        await db.execute(
            select(func.count(Reservation.id))
            .join(Event, Reservation.event_id == Event.id)
            .where(Event.owner_id == user.id)
        )
    ).scalar()

    published = (
        await db.execute(
            select(Event.capacity, Event.available_seats).where(
                Event.owner_id == user.id,
                Event.status == EventStatus.PUBLISHED,
            )
        )
    ).all()
    if published:
        fill_rates = [(capacity - available) / capacity * 100 for capacity, available in published]
        avg_fill_rate = round(sum(fill_rates) / len(fill_rates), 2)
    else:
        avg_fill_rate = 0.0

    distribution_rows = (
        await db.execute(
            select(Event.status, func.count(Event.id))
            .where(Event.owner_id == user.id)
            .group_by(Event.status)
        )
    ).all()
    status_distribution = {
        (status.value if isinstance(status, EventStatus) else str(status)): count
        for status, count in distribution_rows
    }

    return {
        "upcoming_events": upcoming,
        "total_reservations": total_reservations,
        "avg_fill_rate": avg_fill_rate,
        "status_distribution": status_distribution,
    }
