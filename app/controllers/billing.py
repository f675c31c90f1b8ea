import asyncio
import json
import logging

from fastapi import APIRouter, Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from app import db as db_module
from app.config import Settings
from app.dependencies import ErrorResponse, http_error
from app.metrics import billing_events_total, webhook_forbidden_total
from app.models import ErrorCode
from app.services.billing import apply_event, verify_signature
from app.services.errors import NotFound

settings = Settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing")


@router.post(
    "/webhook",
    status_code=200,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def billing_webhook(
    request: Request,
    billing_signature: str | None = Header(None, alias="Billing-Signature"),
):
    """Mirror subscription state from signed payment-provider events."""
    if not billing_signature:
        webhook_forbidden_total.inc()
        logger.warning("audit: billing webhook without signature")
        raise http_error(400, ErrorCode.BAD_REQUEST, "No signature")

    secret = settings.billing_webhook_secret
    if not secret:
        logger.error("BILLING_WEBHOOK_SECRET not configured")
        raise http_error(
            500, ErrorCode.SERVICE_UNAVAILABLE, "Webhook secret not configured"
        )

    raw_body = await request.body()
    if not verify_signature(
        billing_signature, raw_body, secret, settings.billing_webhook_tolerance_s
    ):
        webhook_forbidden_total.inc()
        logger.warning("audit: invalid billing webhook signature")
        raise http_error(400, ErrorCode.BAD_REQUEST, "Invalid signature")

    try:
        event = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, "Malformed JSON body") from exc
    if not isinstance(event, dict) or not event.get("type"):
        raise http_error(400, ErrorCode.BAD_REQUEST, "Invalid event payload")

    event_type = event["type"]
    event_id = event.get("id")
    billing_events_total.labels(type=event_type).inc()

    def _db_call() -> bool:
        with db_module.SessionLocal() as db:
            processed = apply_event(db, event)
            db.commit()
            return processed

    try:
        processed = await asyncio.to_thread(_db_call)
    except (NotFound, SQLAlchemyError) as exc:
        logger.exception(
            "billing event %s (%s) failed",
            event_id,
            event_type,
            extra={"event_type": event_type, "event_id": event_id},
        )
        raise HTTPException(
            status_code=500,
            detail={
                "code": ErrorCode.WEBHOOK_FAILED.value,
                "message": str(exc),
                "event_type": event_type,
                "event_id": event_id,
            },
        ) from exc

    logger.info(
        "billing event %s (%s) %s",
        event_id,
        event_type,
        "processed" if processed else "acknowledged",
        extra={"event_type": event_type, "event_id": event_id},
    )
    return {
        "received": True,
        "processed": processed,
        "event_type": event_type,
        "event_id": event_id,
    }
