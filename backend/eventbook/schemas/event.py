"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field

from eventbook.models.enums import EventStatus
from eventbook.schemas.common import CamelModel
from eventbook.schemas.user import UserSummary


class EventCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    capacity: int = Field(..., ge=1, le=10000)


class EventUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=1, le=10000)


class EventFilters(CamelModel):
    search: Optional[str] = None
    from_date: Optional[datetime] = None
    status: Optional[EventStatus] = None
    page: int = 1
    limit: int = 10


class EventResponse(CamelModel):
    id: int
    title: str
    description: str
    date: datetime
    location: str
    capacity: int
    available_seats: int
    status: EventStatus
    owner_id: int
    created_at: datetime
    updated_at: datetime


class EventWithOwner(EventResponse):
    owner: Optional[UserSummary] = None


class EventSummary(CamelModel):
    id: int
    title: str
    date: datetime
    location: str
    status: EventStatus


class EventListResponse(CamelModel):
    events: list[EventWithOwner]
    total: int
    page: int
    total_pages: int


class DashboardStats(CamelModel):
    upcoming_events: int
    total_reservations: int
    avg_fill_rate: float
    status_distribution: dict[str, int]
