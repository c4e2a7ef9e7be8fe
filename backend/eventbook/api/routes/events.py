"""
Event endpoints: public browsing and owner-only administration.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_current_user, get_optional_user, require_admin
from eventbook.api.envelope import EnvelopeRoute
from eventbook.core.config import get_settings
from eventbook.db.session import get_db
from eventbook.models import EventStatus, User
from eventbook.schemas.common import MessageResponse, total_pages
from eventbook.schemas.event import (
    DashboardStats,
    EventCreate,
    EventFilters,
    EventListResponse,
    EventResponse,
    EventUpdate,
    EventWithOwner,
)
from eventbook.schemas.reservation import ReservationDetail
from eventbook.services import event_service

settings = get_settings()
router = APIRouter(prefix="/events", tags=["Events"], route_class=EnvelopeRoute)


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a DRAFT event. Admin only."""
    return await event_service.create_event(db, event_data, user)


@router.get("", response_model=EventListResponse)
async def list_events_endpoint(
    search: Optional[str] = Query(None, max_length=200),
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List events ordered by date.
    Anonymous and participant callers only see published events.
    """
    filters = EventFilters(search=search, from_date=from_date, status=event_status, page=page, limit=limit)
    events, total = await event_service.list_events(db, filters, user)
    return EventListResponse(
        events=[EventWithOwner.model_validate(e) for e in events],
        total=total,
        page=page,
        total_pages=total_pages(total, limit),
    )


@router.get("/stats/dashboard", response_model=DashboardStats)
async def dashboard_stats_endpoint(
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return DashboardStats(**await event_service.get_dashboard_stats(db, user))


@router.get("/{event_id}", response_model=EventWithOwner)
async def get_event_endpoint(
    event_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.get_event(db, event_id, user)


@router.get("/{event_id}/reservations", response_model=list[ReservationDetail])
async def list_event_reservations_endpoint(
    event_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.list_event_reservations(db, event_id, user)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.update_event(db, event_id, event_data, user)


@router.patch("/{event_id}/publish", response_model=EventResponse)
async def publish_event_endpoint(
    event_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.publish_event(db, event_id, user)


@router.patch("/{event_id}/cancel", response_model=EventResponse)
async def cancel_event_endpoint(
    event_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a published event and every active reservation on it."""
    return await event_service.cancel_event(db, event_id, user)


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event_endpoint(
    event_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await event_service.delete_event(db, event_id, user)
    return MessageResponse(message="Event deleted successfully")
