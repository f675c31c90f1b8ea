"""Daily entitlement policy for the metered chart analysis.

The policy is a pure function of the stored counter and "today": a counter
whose ``last_reset_date`` is not today is stale and counts as zero.
Denial is a normal return value, never an exception.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import NamedTuple

from app.config import Settings
from app.services.clock import to_day
from app.services.errors import InvalidInput

FREE_DAILY_LIMIT = 3
# Sentinel for "effectively unlimited"; callers must not do arithmetic on it.
PREMIUM_DAILY_LIMIT = 999
UNLIMITED = -1


class EntitlementDecision(NamedTuple):
    allowed: bool
    effective_used: int
    remaining: int
    reset_needed: bool
    daily_limit: int


def daily_limit_for(is_premium: bool, settings: Settings | None = None) -> int:
    if settings is None:
        return PREMIUM_DAILY_LIMIT if is_premium else FREE_DAILY_LIMIT
    return settings.premium_daily_limit if is_premium else settings.free_daily_limit


def evaluate(
    is_premium: bool,
    analyses_used: int,
    last_reset_date: date | datetime | str | None,
    today: date | datetime | str,
    daily_limit: int,
) -> EntitlementDecision:
    """Decide whether one more metered action is allowed today."""
    if analyses_used is None or analyses_used < 0:
        raise InvalidInput("analyses_used must be a non-negative integer")
    if daily_limit < 0:
        raise InvalidInput("daily_limit must be non-negative")

    today_key = to_day(today)
    last_key = to_day(last_reset_date) if last_reset_date is not None else None

    if last_key != today_key:
        effective_used, reset_needed = 0, True
    else:
        effective_used, reset_needed = analyses_used, False

    allowed = bool(is_premium) or effective_used < daily_limit
    if is_premium:
        remaining = daily_limit
    else:
        remaining = max(0, daily_limit - effective_used)

    return EntitlementDecision(
        allowed=allowed,
        effective_used=effective_used,
        remaining=remaining,
        reset_needed=reset_needed,
        daily_limit=daily_limit,
    )


def summarize(decision: EntitlementDecision, is_premium: bool) -> dict:
    """Usage summary shown on the dashboard."""
    if is_premium:
        return {
            "is_premium": True,
            "daily": {"used": decision.effective_used, "limit": UNLIMITED, "remaining": UNLIMITED},
            "message": "Premium - Unlimited analyses",
        }
    if decision.remaining == 0:
        message = f"Daily limit of {decision.daily_limit} analyses reached. Resets tomorrow."
    else:
        message = f"{decision.remaining} analyses remaining today"
    return {
        "is_premium": False,
        "daily": {
            "used": decision.effective_used,
            "limit": decision.daily_limit,
            "remaining": decision.remaining,
        },
        "message": message,
    }


__all__ = [
    "FREE_DAILY_LIMIT",
    "PREMIUM_DAILY_LIMIT",
    "UNLIMITED",
    "EntitlementDecision",
    "daily_limit_for",
    "evaluate",
    "summarize",
]
