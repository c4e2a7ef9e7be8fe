from eventbook.models.enums import UserRole, EventStatus, ReservationStatus, ACTIVE_RESERVATION_STATUSES
from eventbook.models.user import User
from eventbook.models.event import Event
from eventbook.models.reservation import Reservation
from eventbook.models.refresh_token import RefreshToken

__all__ = [
    "UserRole", "EventStatus", "ReservationStatus", "ACTIVE_RESERVATION_STATUSES",
    "User", "Event", "Reservation", "RefreshToken",
]
