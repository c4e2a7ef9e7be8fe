"""
Reservation model: a user's hold on seats for an event.

Key design decisions:
- Partial unique index allows only one active (PENDING/CONFIRMED) reservation
  per user and event, while keeping refused/canceled rows as history
- Status changes never delete rows; confirmed_at/canceled_at record when
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, CheckConstraint, Enum, text
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin
from eventbook.models.enums import ReservationStatus

ACTIVE_STATUS_CLAUSE = text("status IN ('PENDING', 'CONFIRMED')")


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    number_of_seats = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(ReservationStatus, name="reservation_status", native_enum=False, length=20),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="reservations")
    event = relationship("Event", back_populates="reservations")

    __table_args__ = (
        CheckConstraint("number_of_seats > 0", name="check_reservation_seats_positive"),
        Index(
            "uq_active_reservation_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=ACTIVE_STATUS_CLAUSE,
            sqlite_where=ACTIVE_STATUS_CLAUSE,
        ),
        Index("ix_reservations_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, user={self.user_id}, event={self.event_id}, "
            f"seats={self.number_of_seats}, status={self.status})>"
        )
