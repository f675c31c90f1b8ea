"""Billing webhook handling.

The payment provider owns checkout and subscriptions; this module only
verifies its signed events and mirrors the outcome onto ``users.is_premium``
and the subscription columns. Accounts are resolved from local state.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import Event, User
from app.services.errors import NotFound

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_S = 300


def compute_webhook_signature(secret: str, timestamp: int, body: bytes) -> str:
    signed = f"{timestamp}.".encode() + body
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_signature(
    sig_header: str | None,
    body: bytes,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_S,
    now: float | None = None,
) -> bool:
    """Check a ``t=<unix>,v1=<hex>`` signature header against ``body``."""
    if not sig_header or not secret:
        return False
    parts: dict[str, list[str]] = {}
    for item in sig_header.split(","):
        key, _, value = item.strip().partition("=")
        if key and value:
            parts.setdefault(key, []).append(value)
    try:
        timestamp = int(parts["t"][0])
    except (KeyError, ValueError):
        return False
    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        return False
    expected = compute_webhook_signature(secret, timestamp, body)
    return any(hmac.compare_digest(expected, sig) for sig in parts.get("v1", []))


def _timestamp_to_datetime(value: Any) -> datetime | None:
    if not isinstance(value, (int, float)) or value <= 0:
        return None
    try:
        return datetime.fromtimestamp(value, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _by_email(db: Session, email: str | None) -> User | None:
    if not email:
        return None
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def _by_customer(db: Session, customer_id: str | None) -> User | None:
    if not customer_id:
        return None
    return db.execute(
        select(User).where(User.stripe_customer_id == customer_id)
    ).scalar_one_or_none()


def _by_subscription(db: Session, subscription_id: str | None) -> User | None:
    if not subscription_id:
        return None
    return db.execute(
        select(User).where(User.stripe_subscription_id == subscription_id)
    ).scalar_one_or_none()


def _handle_checkout_completed(db: Session, obj: dict[str, Any]) -> bool:
    details = obj.get("customer_details") or {}
    metadata = obj.get("metadata") or {}
    user = (
        _by_email(db, obj.get("customer_email"))
        or _by_email(db, details.get("email"))
        or _by_customer(db, obj.get("customer"))
    )
    if user is None and metadata.get("userId"):
        user = db.get(User, metadata["userId"])
    if user is None:
        logger.warning("checkout %s: could not resolve customer", obj.get("id"))
        return False
    user.is_premium = True
    if obj.get("customer"):
        user.stripe_customer_id = obj["customer"]
    db.add(Event(user_id=user.id, event="premium_activated"))
    logger.info("user %s upgraded to premium via checkout", user.id)
    return True


def _handle_subscription_created(db: Session, obj: dict[str, Any]) -> bool:
    user = _by_customer(db, obj.get("customer")) or _by_email(
        db, obj.get("customer_email")
    )
    if user is None:
        raise NotFound(f"no user for customer {obj.get('customer')}")
    user.is_premium = True
    user.stripe_customer_id = obj.get("customer") or user.stripe_customer_id
    user.stripe_subscription_id = obj.get("id")
    user.subscription_status = obj.get("status")
    period_end = _timestamp_to_datetime(obj.get("current_period_end"))
    if period_end:
        user.subscription_period_end = period_end
    return True


def _handle_subscription_updated(db: Session, obj: dict[str, Any]) -> bool:
    user = _by_subscription(db, obj.get("id"))
    if user is None:
        user = _by_customer(db, obj.get("customer"))
        if user is not None:
            user.stripe_subscription_id = obj.get("id")
    if user is None:
        logger.warning("subscription %s: user not found, skipping", obj.get("id"))
        return False
    status = obj.get("status")
    user.is_premium = status == "active"
    user.subscription_status = status
    period_end = _timestamp_to_datetime(obj.get("current_period_end"))
    if period_end:
        user.subscription_period_end = period_end
    return True


def _handle_subscription_deleted(db: Session, obj: dict[str, Any]) -> bool:
    user = _by_subscription(db, obj.get("id"))
    if user is None:
        raise NotFound(f"no user for subscription {obj.get('id')}")
    user.is_premium = False
    user.subscription_status = "canceled"
    user.stripe_subscription_id = None
    db.add(Event(user_id=user.id, event="premium_canceled"))
    return True


def _handle_invoice_succeeded(db: Session, obj: dict[str, Any]) -> bool:
    user = _by_email(db, obj.get("customer_email")) or _by_customer(
        db, obj.get("customer")
    )
    if user is None:
        if not obj.get("customer_email"):
            logger.info("invoice %s: no customer email, skipping", obj.get("id"))
            return False
        raise NotFound(f"no user with email {obj.get('customer_email')}")
    if not user.is_premium:
        user.is_premium = True
        if obj.get("customer"):
            user.stripe_customer_id = obj["customer"]
    return True


def _handle_invoice_failed(db: Session, obj: dict[str, Any]) -> bool:
    logger.warning(
        "invoice %s payment failed for customer %s (amount due %s)",
        obj.get("id"),
        obj.get("customer"),
        obj.get("amount_due"),
    )
    return True


HANDLERS: dict[str, Callable[[Session, dict[str, Any]], bool]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.created": _handle_subscription_created,
    "customer.subscription.updated": _handle_subscription_updated,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_succeeded": _handle_invoice_succeeded,
    "invoice.payment_failed": _handle_invoice_failed,
}


def apply_event(db: Session, event: dict[str, Any]) -> bool:
    """Apply one billing event; returns ``False`` when it was only acknowledged.

    The caller commits.
    """
    event_type = event.get("type", "")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("unhandled billing event type %s", event_type)
        return False
    obj = (event.get("data") or {}).get("object") or {}
    processed = handler(db, obj)
    if processed:
        db.add(Event(user_id=None, event=f"billing:{event_type}"))
    return processed


__all__ = [
    "compute_webhook_signature",
    "verify_signature",
    "apply_event",
    "HANDLERS",
]
