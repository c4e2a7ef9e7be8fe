"""
User model with secure password storage and a role.
"""

from sqlalchemy import Column, Integer, String, Enum
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin
from eventbook.models.enums import UserRole


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=20),
        nullable=False,
        default=UserRole.PARTICIPANT,
    )

    # Relationships
    events = relationship("Event", back_populates="owner")
    reservations = relationship("Reservation", back_populates="user")
    refresh_tokens = relationship("RefreshToken", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
