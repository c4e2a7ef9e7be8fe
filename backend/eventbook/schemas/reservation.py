"""
Pydantic schemas for reservation-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field

from eventbook.models.enums import ReservationStatus
from eventbook.schemas.common import CamelModel
from eventbook.schemas.event import EventSummary
from eventbook.schemas.user import UserSummary


class ReservationCreate(CamelModel):
    event_id: int
    number_of_seats: int = Field(default=1, ge=1)


class ReservationFilters(CamelModel):
    status: Optional[ReservationStatus] = None
    event_id: Optional[int] = None
    page: int = 1
    limit: int = 10


class ReservationResponse(CamelModel):
    id: int
    event_id: int
    user_id: int
    number_of_seats: int
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None


class ReservationDetail(ReservationResponse):
    event: Optional[EventSummary] = None
    user: Optional[UserSummary] = None


class ReservationListResponse(CamelModel):
    reservations: list[ReservationDetail]
    total: int
    page: int
    total_pages: int
