"""
Reservation workflow with consistent seat accounting.

SEAT ACCOUNTING STRATEGY: Conditional UPDATE inside one transaction
====================================================================

Invariant:
  For every non-canceled event
    available_seats = capacity - SUM(number_of_seats of PENDING/CONFIRMED reservations)

Problem:
  Two users try to reserve the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  The decrement re-checks availability in the same statement that performs it:

    UPDATE events SET available_seats = available_seats - :n
    WHERE id = :event_id AND status = 'PUBLISHED' AND available_seats >= :n

  If rows_affected == 0 the seats are gone (or the event left circulation)
  and the request fails with a conflict, without any state change. The
  reservation INSERT runs in the same transaction, so a reservation row never
  exists without its decrement. The CHECK constraint available_seats >= 0 is
  the final safety net.

  Status transitions are conditional too (WHERE status IN (...)), so a
  repeated refuse/cancel affects zero rows and seats are restored exactly once.

  A partial unique index on (user_id, event_id) for active statuses backs the
  "one active reservation per user and event" rule when two requests from the
  same user race past the application check.

Side effects (emails) are dispatched only after commit and never fail the
operation.
"""

import asyncio
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventbook.core.config import get_settings
from eventbook.core.exceptions import AppError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_reservation, reservation_create_latency
from eventbook.models import (
    ACTIVE_RESERVATION_STATUSES,
    Event,
    EventStatus,
    Reservation,
    ReservationStatus,
    User,
)
from eventbook.schemas.reservation import ReservationFilters
from eventbook.services import notification_service
from eventbook.services.permissions import (
    ensure_admin,
    ensure_reservation_access,
    ensure_reservation_owner,
    is_admin,
)
from eventbook.services.ticket_service import TicketData, render_ticket

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _seat_conflict(message: str) -> ConflictError:
    """Sold-out and duplicate reservations are answered as 400 Bad Request."""
    return ConflictError(message, status_code=400)


@contextmanager
def _tracked(action: str):
    """Count workflow outcomes per action."""
    try:
        yield
    except AppError as e:
        record_reservation(action, type(e).__name__)
        raise
    record_reservation(action, "success")


def _with_relations(query):
    return query.options(
        selectinload(Reservation.event),
        selectinload(Reservation.user),
    ).execution_options(populate_existing=True)


async def _load_reservation(db: AsyncSession, reservation_id: int) -> Reservation:
    result = await db.execute(_with_relations(select(Reservation).where(Reservation.id == reservation_id)))
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise NotFoundError(f"Reservation with ID {reservation_id} not found")
    return reservation


async def _transition(
    db: AsyncSession,
    reservation_id: int,
    from_statuses: Iterable[ReservationStatus],
    to_status: ReservationStatus,
    restore_seats: Optional[tuple[int, int]] = None,
    **timestamps: datetime,
) -> bool:
    """
    Move a reservation to `to_status` if it is still in one of `from_statuses`.
    `restore_seats` is an (event_id, seats) pair credited back in the same
    transaction. Returns False when the reservation had already moved on.
    """
    result = await db.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id, Reservation.status.in_(list(from_statuses)))
        .values(status=to_status, **timestamps)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    if restore_seats:
        event_id, seats = restore_seats
        await db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(available_seats=Event.available_seats + seats)
            .execution_options(synchronize_session=False)
        )
    return True


async def create_reservation(
    db: AsyncSession,
    user: User,
    event_id: int,
    number_of_seats: int = 1,
) -> Reservation:
    """
    Reserve seats for a published event.
    The reservation starts PENDING and holds its seats until refused or canceled.
    """
    user_id, email, first_name = user.id, user.email, user.first_name
    started = time.perf_counter()

    with _tracked("create"):
        result = await db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()

        if not event:
            raise NotFoundError(f"Event with ID {event_id} not found")

        if event.status != EventStatus.PUBLISHED:
            raise InvalidStateError("Cannot reserve an unpublished event")

        if event.available_seats < number_of_seats:
            logger.warning(
                "reservation_failed_no_seats",
                event_id=event_id,
                requested=number_of_seats,
                available=event.available_seats,
            )
            raise _seat_conflict(
                f"Not enough seats available. Only {event.available_seats} seats left."
            )

        existing = await db.execute(
            select(Reservation.id).where(
                Reservation.user_id == user_id,
                Reservation.event_id == event_id,
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
        )
        if existing.first():
            raise _seat_conflict("You already have an active reservation for this event")

        event_title, event_date = event.title, event.date

        # Check-then-decrement in a single statement
        decrement = await db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.PUBLISHED,
                Event.available_seats >= number_of_seats,
            )
            .values(available_seats=Event.available_seats - number_of_seats)
            .execution_options(synchronize_session=False)
        )
        if decrement.rowcount == 0:
            await db.rollback()
            logger.warning(
                "reservation_lost_race",
                event_id=event_id,
                requested=number_of_seats,
            )
            raise _seat_conflict("Not enough seats available")

        reservation = Reservation(
            event_id=event_id,
            user_id=user_id,
            number_of_seats=number_of_seats,
            status=ReservationStatus.PENDING,
        )
        db.add(reservation)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise _seat_conflict("You already have an active reservation for this event")

        reservation_id = reservation.id
        await db.commit()

    reservation_create_latency.observe(time.perf_counter() - started)
    logger.info(
        "reservation_created",
        reservation_id=reservation_id,
        user_id=user_id,
        event_id=event_id,
        seats=number_of_seats,
    )

    notification_service.send_reservation_pending(email, first_name, event_title, event_date, number_of_seats)
    return await _load_reservation(db, reservation_id)


async def confirm_reservation(db: AsyncSession, reservation_id: int, admin: User) -> Reservation:
    """Approve a pending reservation. Seats were already taken at creation."""
    with _tracked("confirm"):
        ensure_admin(admin, "confirm reservations")
        reservation = await _load_reservation(db, reservation_id)

        if reservation.status != ReservationStatus.PENDING:
            raise InvalidStateError("Only pending reservations can be confirmed")

        moved = await _transition(
            db,
            reservation_id,
            (ReservationStatus.PENDING,),
            ReservationStatus.CONFIRMED,
            confirmed_at=_utcnow(),
        )
        if not moved:
            await db.rollback()
            raise InvalidStateError("Only pending reservations can be confirmed")
        await db.commit()

    reservation = await _load_reservation(db, reservation_id)
    logger.info("reservation_confirmed", reservation_id=reservation_id, admin_id=admin.id)

    notification_service.send_reservation_confirmed(
        reservation.user.email,
        reservation.user.first_name,
        reservation.event.title,
        reservation.event.date,
        reservation.event.location,
        reservation.number_of_seats,
    )
    return reservation


async def refuse_reservation(db: AsyncSession, reservation_id: int, admin: User) -> Reservation:
    """Reject a pending reservation and give its seats back to the event."""
    with _tracked("refuse"):
        ensure_admin(admin, "refuse reservations")
        reservation = await _load_reservation(db, reservation_id)

        if reservation.status != ReservationStatus.PENDING:
            raise InvalidStateError("Only pending reservations can be refused")

        moved = await _transition(
            db,
            reservation_id,
            (ReservationStatus.PENDING,),
            ReservationStatus.REFUSED,
            restore_seats=(reservation.event_id, reservation.number_of_seats),
        )
        if not moved:
            await db.rollback()
            raise InvalidStateError("Only pending reservations can be refused")
        await db.commit()

    logger.info(
        "reservation_refused",
        reservation_id=reservation_id,
        admin_id=admin.id,
        seats_restored=reservation.number_of_seats,
    )
    return await _load_reservation(db, reservation_id)


async def cancel_by_user(db: AsyncSession, reservation_id: int, user: User) -> Reservation:
    """Cancel one's own pending or confirmed reservation and release its seats."""
    with _tracked("cancel_user"):
        reservation = await _load_reservation(db, reservation_id)
        ensure_reservation_owner(reservation, user, "cancel")

        if reservation.status not in ACTIVE_RESERVATION_STATUSES:
            raise InvalidStateError("Cannot cancel this reservation")

        seats = reservation.number_of_seats
        moved = await _transition(
            db,
            reservation_id,
            ACTIVE_RESERVATION_STATUSES,
            ReservationStatus.CANCELED,
            restore_seats=(reservation.event_id, seats),
            canceled_at=_utcnow(),
        )
        if not moved:
            await db.rollback()
            raise InvalidStateError("Cannot cancel this reservation")
        await db.commit()

    reservation = await _load_reservation(db, reservation_id)
    logger.info("reservation_canceled", reservation_id=reservation_id, by="user", seats_restored=seats)

    notification_service.send_reservation_canceled(
        reservation.user.email,
        reservation.user.first_name,
        reservation.event.title,
        "Canceled by user",
    )
    return reservation


async def cancel_by_admin(db: AsyncSession, reservation_id: int, admin: User) -> Reservation:
    """
    Cancel any user's reservation.
    Terminal reservations are rejected so their seats are never credited twice.
    """
    with _tracked("cancel_admin"):
        ensure_admin(admin, "cancel other users' reservations")
        reservation = await _load_reservation(db, reservation_id)

        if reservation.status not in ACTIVE_RESERVATION_STATUSES:
            raise InvalidStateError(f"Reservation is already {reservation.status.value.lower()}")

        seats = reservation.number_of_seats
        moved = await _transition(
            db,
            reservation_id,
            ACTIVE_RESERVATION_STATUSES,
            ReservationStatus.CANCELED,
            restore_seats=(reservation.event_id, seats),
            canceled_at=_utcnow(),
        )
        if not moved:
            await db.rollback()
            raise InvalidStateError("Reservation is no longer active")
        await db.commit()

    reservation = await _load_reservation(db, reservation_id)
    logger.info(
        "reservation_canceled",
        reservation_id=reservation_id,
        by="admin",
        admin_id=admin.id,
        seats_restored=seats,
    )

    notification_service.send_reservation_canceled(
        reservation.user.email,
        reservation.user.first_name,
        reservation.event.title,
        "Canceled by an administrator",
    )
    return reservation


async def get_reservation(db: AsyncSession, reservation_id: int, user: User) -> Reservation:
    reservation = await _load_reservation(db, reservation_id)
    ensure_reservation_access(reservation, user)
    return reservation


async def list_my_reservations(db: AsyncSession, user: User) -> list[Reservation]:
    """Get all reservations for a user, newest first."""
    result = await db.execute(
        _with_relations(
            select(Reservation)
            .where(Reservation.user_id == user.id)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        )
    )
    return list(result.scalars().all())


async def list_reservations(
    db: AsyncSession,
    filters: ReservationFilters,
    user: User,
) -> tuple[list[Reservation], int]:
    """
    Paginated reservation search. Admins see everything;
    anyone else is limited to their own reservations.
    """
    settings = get_settings()
    query = select(Reservation)

    if not is_admin(user):
        query = query.where(Reservation.user_id == user.id)
    if filters.status:
        query = query.where(Reservation.status == filters.status)
    if filters.event_id:
        query = query.where(Reservation.event_id == filters.event_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    limit = min(filters.limit, settings.MAX_PAGE_SIZE)
    result = await db.execute(
        _with_relations(
            query
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .offset((filters.page - 1) * limit)
            .limit(limit)
        )
    )
    return list(result.scalars().all()), total


async def get_ticket_pdf(db: AsyncSession, reservation_id: int, user: User) -> bytes:
    """Render the PDF ticket of a confirmed reservation for its owner."""
    reservation = await _load_reservation(db, reservation_id)
    ensure_reservation_owner(reservation, user, "download tickets for")

    if reservation.status != ReservationStatus.CONFIRMED:
        raise ForbiddenError("Ticket can only be downloaded for confirmed reservations")

    ticket = TicketData(
        reservation_id=reservation.id,
        event_id=reservation.event.id,
        event_title=reservation.event.title,
        event_date=reservation.event.date,
        event_location=reservation.event.location,
        status=reservation.status.value,
        number_of_seats=reservation.number_of_seats,
        booked_at=reservation.created_at,
        holder_name=f"{reservation.user.first_name} {reservation.user.last_name}",
        holder_email=reservation.user.email,
    )
    # ReportLab rendering is CPU-bound
    pdf = await asyncio.to_thread(render_ticket, ticket)
    logger.info("ticket_generated", reservation_id=reservation.id, size=len(pdf))
    return pdf
