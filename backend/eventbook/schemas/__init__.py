from eventbook.schemas.user import (
    RegisterRequest, LoginRequest, RefreshTokenRequest, UserCreate, UserUpdate,
    UserResponse, TokenPair, AuthResponse,
)
from eventbook.schemas.event import (
    EventCreate, EventUpdate, EventFilters, EventResponse, EventWithOwner,
    EventListResponse, DashboardStats,
)
from eventbook.schemas.reservation import (
    ReservationCreate, ReservationFilters, ReservationResponse, ReservationDetail,
    ReservationListResponse,
)

__all__ = [
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "UserCreate", "UserUpdate",
    "UserResponse", "TokenPair", "AuthResponse",
    "EventCreate", "EventUpdate", "EventFilters", "EventResponse", "EventWithOwner",
    "EventListResponse", "DashboardStats",
    "ReservationCreate", "ReservationFilters", "ReservationResponse", "ReservationDetail",
    "ReservationListResponse",
]
