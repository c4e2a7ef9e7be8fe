"""
Reservation endpoints: the PENDING -> CONFIRMED / REFUSED / CANCELED workflow.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_current_user, require_admin
from eventbook.api.envelope import EnvelopeRoute
from eventbook.core.config import get_settings
from eventbook.db.session import get_db
from eventbook.models import ReservationStatus, User
from eventbook.schemas.common import total_pages
from eventbook.schemas.reservation import (
    ReservationCreate,
    ReservationDetail,
    ReservationFilters,
    ReservationListResponse,
)
from eventbook.services import reservation_service

settings = get_settings()
router = APIRouter(prefix="/reservations", tags=["Reservations"], route_class=EnvelopeRoute)


@router.post("", response_model=ReservationDetail, status_code=status.HTTP_201_CREATED)
async def create_reservation_endpoint(
    reservation_data: ReservationCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve seats for a published event.

    Seats are taken immediately; the reservation stays PENDING until an
    admin confirms or refuses it. Returns 409 when seats run out or the
    caller already holds an active reservation for the event.
    """
    return await reservation_service.create_reservation(
        db, user, reservation_data.event_id, reservation_data.number_of_seats
    )


@router.get("/my", response_model=list[ReservationDetail])
async def my_reservations_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.list_my_reservations(db, user)


@router.get("", response_model=ReservationListResponse)
async def list_reservations_endpoint(
    reservation_status: Optional[ReservationStatus] = Query(None, alias="status"),
    event_id: Optional[int] = Query(None, alias="eventId"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    filters = ReservationFilters(status=reservation_status, event_id=event_id, page=page, limit=limit)
    reservations, total = await reservation_service.list_reservations(db, filters, user)
    return ReservationListResponse(
        reservations=[ReservationDetail.model_validate(r) for r in reservations],
        total=total,
        page=page,
        total_pages=total_pages(total, limit),
    )


@router.get("/{reservation_id}", response_model=ReservationDetail)
async def get_reservation_endpoint(
    reservation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.get_reservation(db, reservation_id, user)


@router.patch("/{reservation_id}/confirm", response_model=ReservationDetail)
async def confirm_reservation_endpoint(
    reservation_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.confirm_reservation(db, reservation_id, user)


@router.patch("/{reservation_id}/refuse", response_model=ReservationDetail)
async def refuse_reservation_endpoint(
    reservation_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.refuse_reservation(db, reservation_id, user)


@router.delete("/{reservation_id}", response_model=ReservationDetail)
async def cancel_reservation_endpoint(
    reservation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one's own reservation and release its seats."""
    return await reservation_service.cancel_by_user(db, reservation_id, user)


@router.delete("/{reservation_id}/admin", response_model=ReservationDetail)
async def admin_cancel_reservation_endpoint(
    reservation_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.cancel_by_admin(db, reservation_id, user)


@router.get(
    "/{reservation_id}/ticket",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def ticket_endpoint(
    reservation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Download the PDF ticket of a confirmed reservation."""
    pdf = await reservation_service.get_ticket_pdf(db, reservation_id, user)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{reservation_id}.pdf"'},
    )
