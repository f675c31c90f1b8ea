from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text

from app.models.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=lambda: uuid4().hex)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255))
    display_name = Column(String(100))
    timezone = Column(String(64))
    trading_bio = Column(Text)
    is_premium = Column(Boolean, nullable=False, default=False)
    # counter is only meaningful for the day stored in last_reset_date
    analyses_used = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date)
    stripe_customer_id = Column(String(64), unique=True)
    stripe_subscription_id = Column(String(64), unique=True)
    subscription_status = Column(String(32))
    subscription_period_end = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["User"]
