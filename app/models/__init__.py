from .base import Base
from .chart_analysis import ChartAnalysis
from .error_code import ErrorCode
from .event import Event
from .support_ticket import SupportTicket
from .user import User

__all__ = [
    "Base",
    "ChartAnalysis",
    "ErrorCode",
    "Event",
    "SupportTicket",
    "User",
]
