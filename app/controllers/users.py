import asyncio
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db as db_module
from app.config import Settings
from app.dependencies import (
    ErrorResponse,
    http_error,
    read_json_object,
    raise_for_service_error,
    rate_limit,
    require_api_key,
)
from app.models import ErrorCode, Event, User
from app.services.analyses import trading_metrics
from app.services.entitlement import summarize
from app.services.errors import ServiceError
from app.services.quota import check_entitlement, decide, usage_store

settings = Settings()
logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Eastern Time (ET)"

router = APIRouter(prefix="/users")


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or not domain or " " in value:
            raise ValueError("invalid email")
        return value


class RegisteredUser(BaseModel):
    id: str
    email: str
    name: str | None = None


class RegisterResponse(BaseModel):
    success: bool = True
    user: RegisteredUser


class ProfileUpdate(BaseModel):
    display_name: str = Field(max_length=100)
    timezone: str | None = Field(default=None, max_length=64)
    trading_bio: str | None = Field(default=None, max_length=500)


class Profile(BaseModel):
    id: str
    name: str | None = None
    display_name: str | None = None
    email: str
    timezone: str | None = None
    trading_bio: str | None = None
    is_premium: bool
    subscription_status: str | None = None
    subscription_period_end: datetime | None = None
    created_at: datetime | None = None


class UsageView(BaseModel):
    user_id: str
    email: str
    is_premium: bool
    analyses_used: int
    last_reset_date: date | None
    max_analyses: int
    remaining_analyses: int
    can_analyze: bool


class CanAnalyzeResponse(BaseModel):
    success: bool = True
    can_analyze: bool
    analyses_used: int
    max_analyses: int
    is_premium: bool


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def register(request: Request, _: None = Depends(require_api_key)):
    payload = await read_json_object(request)
    try:
        body = RegisterRequest.model_validate(payload)
    except ValidationError as exc:
        raise http_error(
            400, ErrorCode.BAD_REQUEST, "A valid email is required"
        ) from exc

    today = usage_store.clock.today()

    def _db_call() -> User:
        with db_module.SessionLocal() as db:
            exists = db.execute(
                select(User.id).where(func.lower(User.email) == body.email.lower())
            ).first()
            if exists:
                raise http_error(400, ErrorCode.CONFLICT, "User already exists")
            user = User(
                email=body.email,
                name=body.name or None,
                analyses_used=0,
                last_reset_date=today,
            )
            db.add(user)
            db.flush()
            db.add(Event(user_id=user.id, event="registered"))
            db.commit()
            return user

    try:
        user = await asyncio.to_thread(_db_call)
    except IntegrityError as exc:
        raise http_error(400, ErrorCode.CONFLICT, "User already exists") from exc
    except SQLAlchemyError as exc:
        logger.exception("registration failed")
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "Failed to create user"
        ) from exc

    logger.info("user %s registered", user.id)
    return RegisterResponse(
        user=RegisteredUser(id=user.id, email=user.email, name=user.name)
    )


async def _run_db(func, *args):
    try:
        return await asyncio.to_thread(func, *args)
    except SQLAlchemyError as exc:
        logger.exception("user storage failure")
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "User storage unavailable"
        ) from exc


def _load_user(user_id: str) -> User:
    with db_module.SessionLocal() as db:
        user = db.get(User, user_id)
        if user is None:
            raise http_error(404, ErrorCode.NOT_FOUND, "User not found")
        return user


@router.get(
    "/me/profile",
    response_model=Profile,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_profile(user_id: str = Depends(rate_limit)):
    user = await _run_db(_load_user, user_id)
    return Profile.model_validate(user, from_attributes=True)


@router.put(
    "/me/profile",
    response_model=Profile,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def update_profile(request: Request, user_id: str = Depends(rate_limit)):
    payload = await read_json_object(request)
    try:
        body = ProfileUpdate.model_validate(payload)
    except ValidationError as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, "Invalid profile data") from exc
    if not body.display_name.strip():
        raise http_error(400, ErrorCode.BAD_REQUEST, "Display name is required")

    def _db_call() -> User:
        with db_module.SessionLocal() as db:
            user = db.get(User, user_id)
            if user is None:
                raise http_error(404, ErrorCode.NOT_FOUND, "User not found")
            # the registration name is kept; only the public name changes
            user.display_name = body.display_name.strip()
            user.timezone = body.timezone or DEFAULT_TIMEZONE
            user.trading_bio = (body.trading_bio or "").strip() or None
            db.commit()
            return user

    user = await _run_db(_db_call)
    return Profile.model_validate(user, from_attributes=True)


async def _entitlement(user_id: str):
    try:
        return await asyncio.to_thread(check_entitlement, user_id)
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get(
    "/me/usage",
    response_model=UsageView,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_usage(user_id: str = Depends(rate_limit)):
    account, decision = await _entitlement(user_id)
    return UsageView(
        user_id=account.user_id,
        email=account.email,
        is_premium=account.is_premium,
        analyses_used=decision.effective_used,
        last_reset_date=account.last_reset_date,
        max_analyses=decision.daily_limit,
        remaining_analyses=decision.remaining,
        can_analyze=decision.allowed,
    )


@router.get(
    "/me/can-analyze",
    response_model=CanAnalyzeResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def can_analyze(user_id: str = Depends(rate_limit)):
    account, decision = await _entitlement(user_id)
    return CanAnalyzeResponse(
        can_analyze=decision.allowed,
        analyses_used=decision.effective_used,
        max_analyses=decision.daily_limit,
        is_premium=account.is_premium,
    )


@router.get(
    "/me/usage-summary",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def usage_summary(user_id: str = Depends(rate_limit)):
    account, decision = await _entitlement(user_id)
    return {"usage": summarize(decision, account.is_premium)}


@router.get(
    "/me/trading-metrics",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_trading_metrics(user_id: str = Depends(rate_limit)):
    """Breakdown of the caller's analyses by trading style and trend."""

    def _db_call() -> dict:
        with db_module.SessionLocal() as db:
            if db.get(User, user_id) is None:
                raise http_error(404, ErrorCode.NOT_FOUND, "User not found")
            return trading_metrics(db, user_id)

    metrics = await _run_db(_db_call)
    return {"success": True, "metrics": metrics}


@router.post(
    "/me/reset-usage",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def reset_usage(user_id: str = Depends(rate_limit)):
    try:
        account = await asyncio.to_thread(usage_store.reset_usage, user_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    logger.info("audit: usage reset requested by user %s", user_id)
    decision = decide(account, account.last_reset_date)
    return {
        "success": True,
        "user": {
            "id": account.user_id,
            "email": account.email,
            "analyses_used": account.analyses_used,
            "last_reset_date": account.last_reset_date,
            "remaining_analyses": decision.remaining,
        },
    }


dev_router = APIRouter(prefix="/dev")


class TogglePremiumRequest(BaseModel):
    user_id: str


@dev_router.post(
    "/toggle-premium",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def toggle_premium(request: Request, auth_user: str = Depends(rate_limit)):
    if not settings.is_development:
        raise http_error(403, ErrorCode.FORBIDDEN, "Not available in production")

    payload = await read_json_object(request)
    try:
        body = TogglePremiumRequest.model_validate(payload)
    except ValidationError as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, "User ID required") from exc

    def _toggle():
        current = usage_store.get(body.user_id)
        return usage_store.set_premium(body.user_id, not current.is_premium)

    try:
        account = await asyncio.to_thread(_toggle)
    except ServiceError as exc:
        raise_for_service_error(exc)
    logger.warning(
        "audit: premium toggled to %s for %s by %s",
        account.is_premium,
        account.user_id,
        auth_user,
    )
    return {
        "success": True,
        "user": {
            "id": account.user_id,
            "email": account.email,
            "is_premium": account.is_premium,
        },
    }
