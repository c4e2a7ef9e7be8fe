"""
Declarative base and shared timestamp columns.
"""

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Fetch server-generated timestamps right after INSERT/UPDATE so they
    # never need a lazy refresh on an async session
    __mapper_args__ = {"eager_defaults": True}
