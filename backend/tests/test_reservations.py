"""
Tests for reservation endpoints: creation, the admin workflow, cancellation and tickets.
"""

import pytest
from httpx import AsyncClient

from conftest import available_seats, create_event
from eventbook.models import EventStatus


async def _reserve(client: AsyncClient, headers: dict, event_id: int, seats: int = 1):
    return await client.post(
        "/api/reservations",
        json={"eventId": event_id, "numberOfSeats": seats},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_create_reservation(
    client: AsyncClient, session_factory, participant, participant_headers, published_event
):
    """A new reservation is PENDING and takes its seats immediately."""
    event_id = published_event.id
    response = await _reserve(client, participant_headers, event_id, 2)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["eventId"] == event_id
    assert data["userId"] == participant.id
    assert data["numberOfSeats"] == 2
    assert data["status"] == "PENDING"
    assert data["event"]["title"] == "Jazz Night"

    assert await available_seats(session_factory, event_id) == 8


@pytest.mark.asyncio
async def test_create_reservation_default_one_seat(client: AsyncClient, participant_headers, published_event):
    response = await client.post(
        "/api/reservations", json={"eventId": published_event.id}, headers=participant_headers
    )
    assert response.status_code == 201
    assert response.json()["data"]["numberOfSeats"] == 1


@pytest.mark.asyncio
async def test_create_reservation_unauthenticated(client: AsyncClient, published_event):
    """Unauthenticated reservation returns 401."""
    response = await client.post("/api/reservations", json={"eventId": published_event.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_reservation_zero_seats(client: AsyncClient, participant_headers, published_event):
    response = await _reserve(client, participant_headers, published_event.id, 0)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_reservation_too_many_seats(
    client: AsyncClient, session_factory, participant_headers, small_event
):
    """Requesting more seats than available returns 400 and changes nothing."""
    event_id = small_event.id
    response = await _reserve(client, participant_headers, event_id, 3)
    assert response.status_code == 400
    assert response.json()["error"] == "Not enough seats available. Only 2 seats left."
    assert await available_seats(session_factory, event_id) == 2


@pytest.mark.asyncio
async def test_create_reservation_draft_event(client: AsyncClient, participant_headers, draft_event):
    response = await _reserve(client, participant_headers, draft_event.id)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot reserve an unpublished event"


@pytest.mark.asyncio
async def test_create_reservation_missing_event(client: AsyncClient, participant_headers):
    response = await _reserve(client, participant_headers, 99999)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_reservation(client: AsyncClient, participant_headers, published_event):
    """Same user reserving the same event twice returns 400."""
    first = await _reserve(client, participant_headers, published_event.id)
    assert first.status_code == 201

    second = await _reserve(client, participant_headers, published_event.id)
    assert second.status_code == 400
    assert second.json()["error"] == "You already have an active reservation for this event"


@pytest.mark.asyncio
async def test_reserve_sold_out_event(
    client: AsyncClient, session_factory, participant_headers, second_participant_headers, small_event
):
    """Once one user holds every seat, the next request is a 400 and nothing moves."""
    event_id = small_event.id
    first = await _reserve(client, participant_headers, event_id, 2)
    assert first.status_code == 201

    response = await _reserve(client, second_participant_headers, event_id, 1)
    assert response.status_code == 400
    body = response.json()
    assert body["statusCode"] == 400
    assert body["error"] == "Not enough seats available. Only 0 seats left."
    assert await available_seats(session_factory, event_id) == 0


@pytest.mark.asyncio
async def test_reserve_again_after_cancel(client: AsyncClient, participant_headers, published_event):
    """Canceled reservations do not block a new one."""
    first = await _reserve(client, participant_headers, published_event.id)
    await client.delete(f"/api/reservations/{first.json()['data']['id']}", headers=participant_headers)

    again = await _reserve(client, participant_headers, published_event.id)
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_confirm_reservation(client: AsyncClient, admin_headers, participant_headers, published_event):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]

    response = await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "CONFIRMED"
    assert data["confirmedAt"] is not None

    # Confirming twice is not a valid transition
    response = await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_confirm_requires_admin(client: AsyncClient, participant_headers, published_event):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]

    response = await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_refuse_reservation_restores_seats(
    client: AsyncClient, session_factory, admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    created = await _reserve(client, participant_headers, event_id, 3)
    reservation_id = created.json()["data"]["id"]
    assert await available_seats(session_factory, event_id) == 7

    response = await client.patch(f"/api/reservations/{reservation_id}/refuse", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "REFUSED"
    assert await available_seats(session_factory, event_id) == 10

    # A second refuse must not credit the seats again
    response = await client.patch(f"/api/reservations/{reservation_id}/refuse", headers=admin_headers)
    assert response.status_code == 400
    assert await available_seats(session_factory, event_id) == 10


@pytest.mark.asyncio
async def test_cancel_own_reservation(
    client: AsyncClient, session_factory, admin_headers, participant_headers, published_event
):
    """A confirmed reservation can be canceled once; its seats come back exactly once."""
    event_id = published_event.id
    created = await _reserve(client, participant_headers, event_id, 2)
    reservation_id = created.json()["data"]["id"]
    confirmed = await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)
    assert confirmed.json()["data"]["status"] == "CONFIRMED"
    assert await available_seats(session_factory, event_id) == 8

    response = await client.delete(f"/api/reservations/{reservation_id}", headers=participant_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "CANCELED"
    assert data["canceledAt"] is not None
    assert await available_seats(session_factory, event_id) == 10

    response = await client.delete(f"/api/reservations/{reservation_id}", headers=participant_headers)
    assert response.status_code == 400
    assert await available_seats(session_factory, event_id) == 10


@pytest.mark.asyncio
async def test_cancel_someone_elses_reservation(
    client: AsyncClient, participant_headers, second_participant_headers, published_event
):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]

    response = await client.delete(f"/api/reservations/{reservation_id}", headers=second_participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cancel_confirmed_reservation(
    client: AsyncClient, session_factory, admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    created = await _reserve(client, participant_headers, event_id, 4)
    reservation_id = created.json()["data"]["id"]
    await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)

    response = await client.delete(f"/api/reservations/{reservation_id}/admin", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELED"
    assert await available_seats(session_factory, event_id) == 10


@pytest.mark.asyncio
async def test_admin_cancel_refused_reservation_rejected(
    client: AsyncClient, session_factory, admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    created = await _reserve(client, participant_headers, event_id, 4)
    reservation_id = created.json()["data"]["id"]
    await client.patch(f"/api/reservations/{reservation_id}/refuse", headers=admin_headers)

    response = await client.delete(f"/api/reservations/{reservation_id}/admin", headers=admin_headers)
    assert response.status_code == 400
    assert await available_seats(session_factory, event_id) == 10


@pytest.mark.asyncio
async def test_my_reservations(
    client: AsyncClient, db_session, admin_user, participant_headers, second_participant_headers, published_event
):
    other = await create_event(db_session, admin_user, title="Blues Evening")
    await _reserve(client, participant_headers, published_event.id)
    await _reserve(client, participant_headers, other.id)
    await _reserve(client, second_participant_headers, published_event.id)

    response = await client.get("/api/reservations/my", headers=participant_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 2
    assert {r["event"]["title"] for r in data} == {"Jazz Night", "Blues Evening"}


@pytest.mark.asyncio
async def test_list_reservations_admin_filters(
    client: AsyncClient, db_session, admin_user, admin_headers, participant_headers, second_participant_headers,
    published_event,
):
    other = await create_event(db_session, admin_user, title="Blues Evening")
    first = await _reserve(client, participant_headers, published_event.id)
    await _reserve(client, second_participant_headers, published_event.id)
    await _reserve(client, participant_headers, other.id)
    await client.patch(f"/api/reservations/{first.json()['data']['id']}/confirm", headers=admin_headers)

    response = await client.get("/api/reservations", headers=admin_headers)
    data = response.json()["data"]
    assert data["total"] == 3

    response = await client.get(
        "/api/reservations", params={"eventId": published_event.id, "status": "PENDING"}, headers=admin_headers
    )
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["reservations"][0]["user"]["email"] == "bob@example.com"

    response = await client.get("/api/reservations", params={"limit": 2, "page": 2}, headers=admin_headers)
    data = response.json()["data"]
    assert data["totalPages"] == 2
    assert len(data["reservations"]) == 1


@pytest.mark.asyncio
async def test_list_reservations_admin_only(client: AsyncClient, participant_headers):
    response = await client.get("/api/reservations", headers=participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_reservation_access(
    client: AsyncClient, admin_headers, participant_headers, second_participant_headers, published_event
):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]

    assert (await client.get(f"/api/reservations/{reservation_id}", headers=participant_headers)).status_code == 200
    assert (await client.get(f"/api/reservations/{reservation_id}", headers=admin_headers)).status_code == 200
    assert (
        await client.get(f"/api/reservations/{reservation_id}", headers=second_participant_headers)
    ).status_code == 403
    assert (await client.get("/api/reservations/99999", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_download_ticket(client: AsyncClient, admin_headers, participant_headers, published_event):
    created = await _reserve(client, participant_headers, published_event.id, 2)
    reservation_id = created.json()["data"]["id"]
    await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)

    response = await client.get(f"/api/reservations/{reservation_id}/ticket", headers=participant_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f'attachment; filename="ticket-{reservation_id}.pdf"'
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_ticket_requires_confirmed_reservation(client: AsyncClient, participant_headers, published_event):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]

    response = await client.get(f"/api/reservations/{reservation_id}/ticket", headers=participant_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Ticket can only be downloaded for confirmed reservations"


@pytest.mark.asyncio
async def test_ticket_only_for_owner(
    client: AsyncClient, admin_headers, participant_headers, second_participant_headers, published_event
):
    created = await _reserve(client, participant_headers, published_event.id)
    reservation_id = created.json()["data"]["id"]
    await client.patch(f"/api/reservations/{reservation_id}/confirm", headers=admin_headers)

    response = await client.get(f"/api/reservations/{reservation_id}/ticket", headers=second_participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reservations_closed_after_event_cancel(
    client: AsyncClient, db_session, admin_user, participant_headers
):
    event = await create_event(db_session, admin_user, status=EventStatus.CANCELED)
    response = await _reserve(client, participant_headers, event.id)
    assert response.status_code == 400
