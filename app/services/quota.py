"""Single entry point for metering sites: reset, evaluate, deny."""
from __future__ import annotations

import logging
from datetime import date

from app.config import Settings
from app.metrics import quota_reject_total
from app.services.clock import Clock
from app.services.entitlement import EntitlementDecision, daily_limit_for, evaluate
from app.services.errors import QuotaExceeded
from app.services.usage_store import UsageAccount, UsageStore

settings = Settings()
logger = logging.getLogger(__name__)

usage_store = UsageStore(Clock(settings.usage_timezone))


def decide(account: UsageAccount, today: date) -> EntitlementDecision:
    limit = daily_limit_for(account.is_premium, settings)
    return evaluate(
        account.is_premium,
        account.analyses_used,
        account.last_reset_date,
        today,
        limit,
    )


def check_entitlement(user_id: str) -> tuple[UsageAccount, EntitlementDecision]:
    """Reset a stale counter, then evaluate the account against today."""
    today = usage_store.clock.today()
    account = usage_store.check_and_maybe_reset(user_id, today)
    return account, decide(account, today)


def require_entitlement(user_id: str) -> tuple[UsageAccount, EntitlementDecision]:
    """Like :func:`check_entitlement` but raises ``QuotaExceeded`` on denial."""
    account, decision = check_entitlement(user_id)
    if not decision.allowed:
        quota_reject_total.inc()
        logger.info("quota reached for user %s (%d used)", user_id, decision.effective_used)
        raise QuotaExceeded(
            f"Daily limit of {decision.daily_limit} analyses reached. "
            "Upgrade to premium for unlimited analyses.",
            daily_limit=decision.daily_limit,
            remaining=decision.remaining,
            reset_at=usage_store.clock.next_reset(usage_store.clock.today()),
        )
    return account, decision


__all__ = ["usage_store", "decide", "check_entitlement", "require_entitlement"]
