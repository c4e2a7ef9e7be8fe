"""
Tests for event endpoints: CRUD, lifecycle, visibility and dashboard stats.
"""

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient

from conftest import available_seats, create_event, reservation_status
from eventbook.models import EventStatus, ReservationStatus


def _future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _event_payload(**overrides) -> dict:
    payload = {
        "title": "Python Conference 2026",
        "description": "Annual Python gathering with talks and workshops",
        "date": _future(),
        "location": "Convention Center",
        "capacity": 500,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, admin_user, admin_headers):
    """Admin creates a DRAFT event with every seat available."""
    response = await client.post("/api/events", json=_event_payload(), headers=admin_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "Python Conference 2026"
    assert data["capacity"] == 500
    assert data["availableSeats"] == 500
    assert data["status"] == "DRAFT"
    assert data["ownerId"] == admin_user.id


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    """Unauthenticated request returns 401."""
    response = await client.post("/api/events", json=_event_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_as_participant(client: AsyncClient, participant_headers):
    """Participants cannot create events."""
    response = await client.post("/api/events", json=_event_payload(), headers=participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, admin_headers):
    """Event with past date returns 400."""
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post("/api/events", json=_event_payload(date=past_date), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Event date must be in the future"


@pytest.mark.asyncio
@pytest.mark.parametrize("capacity", [0, 10001])
async def test_create_event_capacity_bounds(client: AsyncClient, admin_headers, capacity):
    response = await client.post("/api/events", json=_event_payload(capacity=capacity), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["errors"]


@pytest.mark.asyncio
async def test_list_events_anonymous_sees_only_published(
    client: AsyncClient, draft_event, published_event
):
    response = await client.get("/api/events")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["page"] == 1
    assert data["totalPages"] == 1
    assert [e["id"] for e in data["events"]] == [published_event.id]
    assert data["events"][0]["owner"]["email"] == "admin@example.com"


@pytest.mark.asyncio
async def test_list_events_status_filter_ignored_for_participants(
    client: AsyncClient, participant_headers, draft_event, published_event
):
    response = await client.get("/api/events", params={"status": "DRAFT"}, headers=participant_headers)
    data = response.json()["data"]
    assert [e["status"] for e in data["events"]] == ["PUBLISHED"]


@pytest.mark.asyncio
async def test_list_events_admin_status_filter(client: AsyncClient, admin_headers, draft_event, published_event):
    response = await client.get("/api/events", params={"status": "DRAFT"}, headers=admin_headers)
    data = response.json()["data"]
    assert [e["id"] for e in data["events"]] == [draft_event.id]


@pytest.mark.asyncio
async def test_list_events_search_and_date_filters(client: AsyncClient, db_session, admin_user):
    await create_event(db_session, admin_user, title="Rock Festival", days_ahead=5)
    later = await create_event(db_session, admin_user, title="Rock Opera", days_ahead=60)
    await create_event(db_session, admin_user, title="Poetry Slam", days_ahead=10)

    response = await client.get("/api/events", params={"search": "rock"})
    titles = [e["title"] for e in response.json()["data"]["events"]]
    assert titles == ["Rock Festival", "Rock Opera"]  # ordered by date

    response = await client.get("/api/events", params={"search": "rock", "fromDate": _future(30)})
    assert [e["id"] for e in response.json()["data"]["events"]] == [later.id]


@pytest.mark.asyncio
async def test_list_events_search_escapes_wildcards(client: AsyncClient, db_session, admin_user):
    await create_event(db_session, admin_user, title="Discount 50% Night")
    await create_event(db_session, admin_user, title="Regular Night")

    response = await client.get("/api/events", params={"search": "%"})
    assert [e["title"] for e in response.json()["data"]["events"]] == ["Discount 50% Night"]


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, db_session, admin_user):
    for day in range(1, 6):
        await create_event(db_session, admin_user, title=f"Session {day}", days_ahead=day)

    response = await client.get("/api/events", params={"page": 2, "limit": 2})
    data = response.json()["data"]
    assert data["total"] == 5
    assert data["totalPages"] == 3
    assert [e["title"] for e in data["events"]] == ["Session 3", "Session 4"]


@pytest.mark.asyncio
async def test_list_events_limit_above_maximum(client: AsyncClient):
    response = await client.get("/api/events", params={"limit": 500})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, published_event):
    response = await client.get(f"/api/events/{published_event.id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Jazz Night"
    assert data["availableSeats"] == 10


@pytest.mark.asyncio
async def test_get_draft_event_hidden_from_participants(
    client: AsyncClient, participant_headers, admin_headers, draft_event
):
    """Non-published events look missing to anyone but admins."""
    response = await client.get(f"/api/events/{draft_event.id}", headers=participant_headers)
    assert response.status_code == 404

    response = await client.get(f"/api/events/{draft_event.id}", headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_get_nonexistent_event(client: AsyncClient):
    """Non-existent event returns 404."""
    response = await client.get("/api/events/99999")
    assert response.status_code == 404
    body = response.json()
    assert body["statusCode"] == 404
    assert body["path"] == "/api/events/99999"
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_update_event(client: AsyncClient, admin_headers, published_event):
    response = await client.patch(
        f"/api/events/{published_event.id}",
        json={"title": "Jazz Night Deluxe", "location": "Main Hall"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Jazz Night Deluxe"
    assert data["location"] == "Main Hall"
    assert data["description"] == published_event.description


@pytest.mark.asyncio
async def test_update_event_capacity_shifts_available_seats(
    client: AsyncClient, session_factory, admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    await client.post("/api/reservations", json={"eventId": event_id, "numberOfSeats": 4}, headers=participant_headers)

    response = await client.patch(f"/api/events/{event_id}", json={"capacity": 15}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["availableSeats"] == 11

    # Dropping below the 4 held seats is refused
    response = await client.patch(f"/api/events/{event_id}", json={"capacity": 3}, headers=admin_headers)
    assert response.status_code == 409
    assert await available_seats(session_factory, event_id) == 11


@pytest.mark.asyncio
async def test_update_event_by_other_admin_forbidden(client: AsyncClient, other_admin_headers, published_event):
    response = await client.patch(
        f"/api/events/{published_event.id}", json={"title": "Hijacked"}, headers=other_admin_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_publish_event(client: AsyncClient, admin_headers, draft_event):
    response = await client.patch(f"/api/events/{draft_event.id}/publish", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "PUBLISHED"

    # Only drafts can be published
    response = await client.patch(f"/api/events/{draft_event.id}/publish", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancel_event_cascades_to_reservations(
    client: AsyncClient,
    session_factory,
    admin_headers,
    participant_headers,
    second_participant_headers,
    published_event,
):
    event_id = published_event.id
    first = await client.post("/api/reservations", json={"eventId": event_id, "numberOfSeats": 2}, headers=participant_headers)
    second = await client.post("/api/reservations", json={"eventId": event_id}, headers=second_participant_headers)
    first_id = first.json()["data"]["id"]
    second_id = second.json()["data"]["id"]
    await client.patch(f"/api/reservations/{first_id}/confirm", headers=admin_headers)

    response = await client.patch(f"/api/events/{event_id}/cancel", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELED"

    assert await reservation_status(session_factory, first_id) == ReservationStatus.CANCELED
    assert await reservation_status(session_factory, second_id) == ReservationStatus.CANCELED
    # The event leaves circulation, seats are not handed back
    assert await available_seats(session_factory, event_id) == 7


@pytest.mark.asyncio
async def test_cancel_draft_event_rejected(client: AsyncClient, admin_headers, draft_event):
    response = await client.patch(f"/api/events/{draft_event.id}/cancel", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_canceled_event_cannot_be_updated(client: AsyncClient, db_session, admin_user, admin_headers):
    event = await create_event(db_session, admin_user, status=EventStatus.CANCELED)
    response = await client.patch(f"/api/events/{event.id}", json={"title": "Back again"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, admin_headers, draft_event):
    event_id = draft_event.id
    response = await client.delete(f"/api/events/{event_id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/events/{event_id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_event_with_active_reservations_rejected(
    client: AsyncClient, admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    await client.post("/api/reservations", json={"eventId": event_id}, headers=participant_headers)

    response = await client.delete(f"/api/events/{event_id}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_event_removes_closed_reservations(
    client: AsyncClient, admin_headers, participant_headers, published_event
):
    """Events whose reservations are all closed can be deleted with their history."""
    event_id = published_event.id
    created = await client.post("/api/reservations", json={"eventId": event_id}, headers=participant_headers)
    await client.delete(f"/api/reservations/{created.json()['data']['id']}", headers=participant_headers)

    response = await client.delete(f"/api/events/{event_id}", headers=admin_headers)
    assert response.status_code == 200

    my = await client.get("/api/reservations/my", headers=participant_headers)
    assert my.json()["data"] == []


@pytest.mark.asyncio
async def test_list_event_reservations(
    client: AsyncClient, admin_headers, other_admin_headers, participant_headers, published_event
):
    event_id = published_event.id
    await client.post("/api/reservations", json={"eventId": event_id, "numberOfSeats": 3}, headers=participant_headers)

    response = await client.get(f"/api/events/{event_id}/reservations", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["numberOfSeats"] == 3
    assert data[0]["user"]["email"] == "alice@example.com"

    response = await client.get(f"/api/events/{event_id}/reservations", headers=other_admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_dashboard_stats(
    client: AsyncClient, db_session, admin_user, admin_headers, participant_headers, published_event, draft_event
):
    await create_event(db_session, admin_user, title="Past Gala", capacity=4, days_ahead=-3)
    await client.post(
        "/api/reservations", json={"eventId": published_event.id, "numberOfSeats": 5}, headers=participant_headers
    )

    response = await client.get("/api/events/stats/dashboard", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["upcomingEvents"] == 1
    assert data["totalReservations"] == 1
    # Jazz Night is half full, Past Gala empty
    assert data["avgFillRate"] == 25.0
    assert data["statusDistribution"] == {"PUBLISHED": 2, "DRAFT": 1}


@pytest.mark.asyncio
async def test_dashboard_stats_admin_only(client: AsyncClient, participant_headers):
    response = await client.get("/api/events/stats/dashboard", headers=participant_headers)
    assert response.status_code == 403
