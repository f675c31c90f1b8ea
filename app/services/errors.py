"""Error taxonomy shared by the usage, ticket and billing services."""
from __future__ import annotations

from datetime import datetime


class ServiceError(Exception):
    """Base class for errors surfaced to request handlers."""


class NotFound(ServiceError):
    """Unknown account or ticket."""


class InvalidInput(ServiceError, ValueError):
    """Missing or malformed input; never worth retrying."""


class StorageUnavailable(ServiceError):
    """Transient persistence failure; safe to retry, not a quota denial."""


class QuotaExceeded(ServiceError):
    """The daily allowance for the metered action is used up."""

    def __init__(
        self,
        message: str,
        *,
        daily_limit: int,
        remaining: int = 0,
        reset_at: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.daily_limit = daily_limit
        self.remaining = remaining
        self.reset_at = reset_at


__all__ = [
    "ServiceError",
    "NotFound",
    "InvalidInput",
    "StorageUnavailable",
    "QuotaExceeded",
]
