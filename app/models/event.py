from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from .base import Base


class Event(Base):
    """Audit event (registration, resets, billing updates)."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(32), nullable=True, index=True)
    event = Column(String, nullable=False)
    ts = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
