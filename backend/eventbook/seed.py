"""
Development seed data: one admin, two participants, a few events and reservations.

Usage:
    python -m eventbook.seed

Idempotent on users; events and reservations are only created when the admin
account is new. Reservations go through the workflow so seat counts stay
consistent.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventbook.core.logging import get_logger, setup_logging
from eventbook.core.security import hash_password
from eventbook.db.session import SessionLocal, engine
from eventbook.models import Event, EventStatus, User, UserRole
from eventbook.services import notification_service, reservation_service

logger = get_logger(__name__)

ADMIN = ("admin@eventbooking.com", "Admin123!", "Admin", "EventBooking")
PARTICIPANTS = [
    ("alice@example.com", "User123!", "Alice", "Dupont"),
    ("bob@example.com", "User123!", "Bob", "Martin"),
]
EVENTS = [
    ("Tech Conference", "A full day on the latest technology, with international speakers and workshops.",
     30, "Convention Center, Paris", 200, EventStatus.PUBLISHED),
    ("React & Next.js Workshop", "Hands-on workshop on React and Next.js. Bring your laptop!",
     14, "La Felicita, Paris", 50, EventStatus.PUBLISHED),
    ("DevOps & Cloud Meetup", "Monthly meetup: Kubernetes, CI/CD and observability.",
     7, "42 School, Paris", 80, EventStatus.PUBLISHED),
    ("Generative AI Hackathon", "48 hours of generative AI hacking with mentors and prizes.",
     45, "Station F, Paris", 100, EventStatus.DRAFT),
]


async def _get_or_create_user(
    db: AsyncSession, email: str, password: str, first_name: str, last_name: str, role: UserRole
) -> tuple[User, bool]:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user, False

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(user)
    await db.commit()
    return user, True


async def seed(session_factory: async_sessionmaker = SessionLocal) -> dict:
    async with session_factory() as db:
        admin, created = await _get_or_create_user(db, *ADMIN, UserRole.ADMIN)
        participants = [
            (await _get_or_create_user(db, *p, UserRole.PARTICIPANT))[0] for p in PARTICIPANTS
        ]
        if not created:
            logger.info("seed_skipped", reason="admin_exists", email=admin.email)
            return {"users": 0, "events": 0, "reservations": 0}

        now = datetime.now(timezone.utc)
        events = []
        for title, description, days, location, capacity, status in EVENTS:
            event = Event(
                title=title,
                description=description,
                date=now + timedelta(days=days),
                location=location,
                capacity=capacity,
                available_seats=capacity,
                status=status,
                owner_id=admin.id,
            )
            db.add(event)
            events.append(event)
        await db.commit()

    async with session_factory() as db:
        confirmed = await reservation_service.create_reservation(db, participants[0], events[0].id, 2)
    async with session_factory() as db:
        await reservation_service.confirm_reservation(db, confirmed.id, admin)
    async with session_factory() as db:
        await reservation_service.create_reservation(db, participants[1], events[1].id, 1)

    summary = {"users": 1 + len(participants), "events": len(events), "reservations": 2}
    logger.info("seed_completed", **summary)
    return summary


async def main() -> None:
    setup_logging()
    try:
        await seed()
        await notification_service.drain()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
