"""
Authorization guard: role and ownership rules for events and reservations.

Rules:
- Event mutation requires the ADMIN role and ownership of the event
- Reservation confirm/refuse/admin-cancel require the ADMIN role only;
  any admin may manage any event's reservations
- Cancel-by-user and ticket download require ownership of the reservation
- Non-published events are only visible to admins
"""

from typing import Optional

from eventbook.core.exceptions import ForbiddenError, NotFoundError
from eventbook.models import Event, EventStatus, Reservation, User


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.is_admin


def ensure_admin(user: User, action: str = "perform this action") -> None:
    if not is_admin(user):
        raise ForbiddenError(f"Only admins can {action}")


def ensure_event_owner(event: Event, user: User, action: str = "modify") -> None:
    ensure_admin(user, f"{action} events")
    if event.owner_id != user.id:
        raise ForbiddenError(f"You can only {action} events you created")


def ensure_event_visible(event: Event, user: Optional[User]) -> None:
    if event.status != EventStatus.PUBLISHED and not is_admin(user):
        # Hidden events are indistinguishable from missing ones
        raise NotFoundError(f"Event with ID {event.id} not found")


def ensure_reservation_owner(reservation: Reservation, user: User, action: str = "access") -> None:
    if reservation.user_id != user.id:
        raise ForbiddenError(f"You can only {action} your own reservations")


def ensure_reservation_access(reservation: Reservation, user: User) -> None:
    if not is_admin(user):
        ensure_reservation_owner(reservation, user)
