from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from .base import Base


class ChartAnalysis(Base):
    """A single metered chart analysis and its structured read-out."""

    __tablename__ = "chart_analyses"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_name = Column(String(255), nullable=False)
    image_size = Column(Integer, nullable=False, default=0)
    trading_style = Column(String(32), nullable=False, default="general")
    pattern = Column(String(255))
    confidence = Column(String(32))
    timeframe = Column(String(32))
    trend = Column(String(32))
    entry_point = Column(Float)
    stop_loss = Column(Float)
    target = Column(Float)
    risk_reward = Column(String(32))
    explanation = Column(Text)
    full_analysis = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["ChartAnalysis"]
