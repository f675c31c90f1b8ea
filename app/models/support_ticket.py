from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text

from .base import Base


class SupportTicket(Base):
    """Customer support request; priority is fixed at creation."""

    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    email = Column(String(255), nullable=False)
    reason = Column(String(100), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(
        Enum("open", "in-progress", "closed", name="ticket_status"),
        nullable=False,
        default="open",
    )
    priority = Column(
        Enum("low", "normal", "high", "urgent", name="ticket_priority"),
        nullable=False,
        default="normal",
    )
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["SupportTicket"]
