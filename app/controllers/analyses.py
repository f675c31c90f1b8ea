import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app import db as db_module
from app.config import Settings
from app.dependencies import (
    ErrorResponse,
    QuotaErrorResponse,
    http_error,
    raise_for_service_error,
    rate_limit,
    read_json_object,
)
from app.metrics import analysis_requests_total, storage_error_total
from app.models import ErrorCode, Event
from app.services.analyses import analysis_to_dict, build_analysis, list_analyses
from app.services.errors import ServiceError, StorageUnavailable
from app.services.quota import require_entitlement, usage_store

settings = Settings()
logger = logging.getLogger(__name__)

TRADING_STYLES = {"general", "scalp", "day", "swing", "position"}

router = APIRouter(prefix="/analyses")


class AnalysisCreate(BaseModel):
    image_name: str = Field(min_length=1, max_length=255)
    image_size: int = Field(default=0, ge=0)
    trading_style: str = "general"
    full_analysis: str = ""
    pattern: str | None = None
    confidence: str | None = None
    timeframe: str | None = None
    trend: str | None = None
    entry_point: float | None = None
    stop_loss: float | None = None
    target: float | None = None
    risk_reward: str | None = None
    explanation: str | None = None


@router.post(
    "",
    responses={
        400: {"model": ErrorResponse},
        402: {"model": QuotaErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_analysis(request: Request, user_id: str = Depends(rate_limit)):
    """Store one chart analysis; counts against the daily allowance."""
    payload = await read_json_object(request)

    try:
        body = AnalysisCreate.model_validate(payload)
    except ValidationError as exc:
        raise http_error(
            400,
            ErrorCode.BAD_REQUEST,
            "Missing required fields: image_name, trading_style",
        ) from exc
    if body.trading_style not in TRADING_STYLES:
        raise http_error(400, ErrorCode.BAD_REQUEST, "Unknown trading style")
    if body.image_size > settings.max_image_size:
        raise http_error(400, ErrorCode.BAD_REQUEST, "File size too large")

    analysis_requests_total.inc()
    try:
        account, decision = await asyncio.to_thread(require_entitlement, user_id)
    except ServiceError as exc:
        raise_for_service_error(exc)

    today = usage_store.clock.today()

    def _db_call():
        try:
            with db_module.SessionLocal() as db:
                row = build_analysis(user_id, body.model_dump())
                db.add(row)
                after = usage_store.record_usage(user_id, today, db=db)
                db.add(Event(user_id=user_id, event="analysis_created"))
                db.commit()
                return analysis_to_dict(row), after
        except SQLAlchemyError as exc:
            storage_error_total.inc()
            logger.exception("failed to save analysis for %s", user_id)
            raise StorageUnavailable("analysis storage unavailable") from exc

    try:
        analysis, after = await asyncio.to_thread(_db_call)
    except ServiceError as exc:
        raise_for_service_error(exc)

    if account.is_premium:
        remaining = decision.daily_limit
    else:
        remaining = max(0, decision.daily_limit - after.analyses_used)
    logger.info(
        "analysis %s stored for %s (%d used today)",
        analysis["id"],
        user_id,
        after.analyses_used,
    )
    return {
        "success": True,
        "analysis": analysis,
        "usage": {
            "remaining": remaining,
            "analyses_used": after.analyses_used,
            "is_premium": account.is_premium,
            "reason": "premium" if account.is_premium else "within_limit",
        },
    }


@router.get(
    "",
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_analyses(
    user_id: str = Depends(rate_limit),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    trading_style: str | None = Query(None),
):
    def _db_call() -> dict:
        with db_module.SessionLocal() as db:
            return list_analyses(
                db, user_id, limit=limit, offset=offset, trading_style=trading_style
            )

    try:
        data = await asyncio.to_thread(_db_call)
    except SQLAlchemyError as exc:
        logger.exception("failed to list analyses for %s", user_id)
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "Failed to fetch analyses"
        ) from exc
    return {"success": True, **data}
