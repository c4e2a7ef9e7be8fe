"""
Event model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized and kept equal to
  capacity minus the seats held by active reservations
- Seat decrements are conditional UPDATEs guarded by the CHECK constraints below
- Index on `date` for the listing's range filter and ordering
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, CheckConstraint, Enum
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin
from eventbook.models.enums import EventStatus


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = Column(
        Enum(EventStatus, name="event_status", native_enum=False, length=20),
        nullable=False,
        default=EventStatus.DRAFT,
    )
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    owner = relationship("User", back_populates="events")
    reservations = relationship("Reservation", back_populates="event")

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("capacity > 0", name="check_capacity_positive"),
        CheckConstraint("available_seats <= capacity", name="check_available_lte_capacity"),
        Index("ix_events_date", "date"),
        Index("ix_events_status_date", "status", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, status={self.status}, "
            f"available={self.available_seats}/{self.capacity})>"
        )
