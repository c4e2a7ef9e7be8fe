"""
Locust Load Test Suite

Needs an admin account to create and publish the contested event:
  LOCUST_ADMIN_EMAIL / LOCUST_ADMIN_PASSWORD (defaults below)

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test read path
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

ADMIN_EMAIL = os.getenv("LOCUST_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("LOCUST_ADMIN_PASSWORD", "admin12345")
CONCURRENCY_SEATS = int(os.getenv("LOCUST_SEATS", "10"))

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def data(resp):
    """Unwrap the {data, timestamp, path, success} envelope."""
    return resp.json()["data"]


def register_participant(client):
    email = random_email()
    resp = client.post("/api/auth/register", json={
        "email": email,
        "password": "loadtest123",
        "firstName": "Load",
        "lastName": "Tester",
    })
    if resp.status_code == 201:
        return {"Authorization": f"Bearer {data(resp)['accessToken']}"}
    return {}


def login_admin(client):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {data(resp)['accessToken']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: concurrency event will have {CONCURRENCY_SEATS} seats")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT capacity, available_seats FROM events WHERE id = X;
      SELECT SUM(number_of_seats) FROM reservations
        WHERE event_id = X AND status IN ('PENDING', 'CONFIRMED');
    The sum must equal capacity - available_seats and never exceed capacity.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_participant(self.client)
        self.reserved = False

        if not CONCURRENCY_EVENT_ID:
            admin_headers = login_admin(self.client)
            if not admin_headers:
                return
            future = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
            resp = self.client.post(
                "/api/events",
                json={
                    "title": "Concurrency Test Event",
                    "description": f"{CONCURRENCY_SEATS} seats only, everyone wants one",
                    "date": future,
                    "location": "Test",
                    "capacity": CONCURRENCY_SEATS,
                },
                headers=admin_headers,
            )
            if resp.status_code == 201:
                event_id = data(resp)["id"]
                self.client.patch(f"/api/events/{event_id}/publish", headers=admin_headers)
                globals()["CONCURRENCY_EVENT_ID"] = event_id
                print(f"\nCreated event {event_id} with {CONCURRENCY_SEATS} seats\n")

    @tag("concurrency")
    @task
    def reserve_limited_seats(self):
        """All users fight for the same seats, one reservation each."""
        if not CONCURRENCY_EVENT_ID or not self.headers or self.reserved:
            return

        with self.client.post(
            "/api/reservations",
            json={"eventId": CONCURRENCY_EVENT_ID, "numberOfSeats": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.reserved = True
                resp.success()
            elif resp.status_code == 400:
                resp.success()  # Expected: sold out or already holding one
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - public read path

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/events?page={page}&limit=20", name="/api/events")
        if resp.status_code == 200:
            for event in data(resp)["events"]:
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/events/{random.choice(EVENT_IDS)}", name="/api/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_participant(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post("/api/reservations", json={"eventId": 999999, "numberOfSeats": 1},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post("/api/reservations", json={"eventId": 1, "numberOfSeats": 0},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def huge_seats(self):
        with self.client.post("/api/reservations", json={"eventId": 1, "numberOfSeats": 999999},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/reservations", data="not json at all",
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/reservations", json={"eventId": 1, "numberOfSeats": 1},
                              catch_response=True) as resp:
            self._expect(resp, [401])


class WorkflowAdmin(HttpUser):
    """
    TEST 4: Admin decisions racing participant reservations

    Run: locust -f locustfile.py --tags workflow -u 5 -r 5 --run-time 60s
    alongside ConcurrencyUser. Refusals hand seats back, which new
    reservations immediately compete for.
    """
    wait_time = between(0.2, 1)

    def on_start(self):
        self.headers = login_admin(self.client)

    @tag("workflow")
    @task
    def decide_pending(self):
        if not self.headers or not CONCURRENCY_EVENT_ID:
            return
        resp = self.client.get(
            f"/api/reservations?status=PENDING&eventId={CONCURRENCY_EVENT_ID}&limit=5",
            headers=self.headers,
            name="/api/reservations?status=PENDING",
        )
        if resp.status_code != 200:
            return
        for reservation in data(resp)["reservations"]:
            action = random.choice(["confirm", "refuse"])
            with self.client.patch(
                f"/api/reservations/{reservation['id']}/{action}",
                headers=self.headers,
                name=f"/api/reservations/{{id}}/{action}",
                catch_response=True,
            ) as decision:
                # Another admin may have decided first
                if decision.status_code in (200, 400):
                    decision.success()
                else:
                    decision.failure(f"Unexpected: {decision.status_code}")
