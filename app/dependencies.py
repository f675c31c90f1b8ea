from __future__ import annotations

import asyncio
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app import db as db_module
from app.config import Settings
from app.models import ErrorCode, User
from app.services.errors import (
    InvalidInput,
    NotFound,
    QuotaExceeded,
    ServiceError,
    StorageUnavailable,
)

settings = Settings()
redis_client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)


logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str


class QuotaErrorResponse(ErrorResponse):
    daily_limit: int
    remaining: int = 0
    reset_at: str | None = None


def http_error(status_code: int, code: ErrorCode, message: str) -> HTTPException:
    err = ErrorResponse(code=code.value, message=message)
    return HTTPException(status_code=status_code, detail=err.model_dump())


async def read_json_object(request: Request) -> dict:
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, "Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise http_error(400, ErrorCode.BAD_REQUEST, "Payload must be a JSON object")
    return payload


def raise_for_service_error(exc: ServiceError) -> None:
    """Translate a service-layer error into the matching HTTP response."""
    if isinstance(exc, NotFound):
        raise http_error(404, ErrorCode.NOT_FOUND, str(exc)) from exc
    if isinstance(exc, InvalidInput):
        raise http_error(400, ErrorCode.BAD_REQUEST, str(exc)) from exc
    if isinstance(exc, StorageUnavailable):
        raise http_error(503, ErrorCode.SERVICE_UNAVAILABLE, str(exc)) from exc
    if isinstance(exc, QuotaExceeded):
        err = QuotaErrorResponse(
            code=ErrorCode.USAGE_LIMIT_EXCEEDED.value,
            message=exc.message,
            daily_limit=exc.daily_limit,
            remaining=exc.remaining,
            reset_at=exc.reset_at.isoformat() if exc.reset_at else None,
        )
        raise HTTPException(status_code=402, detail=err.model_dump()) from exc
    raise exc


async def require_api_key(
    x_api_key: str = Header(..., alias="X-API-Key"),
    x_api_ver: str | None = Header(None, alias="X-API-Ver"),
) -> None:
    if x_api_ver is None:
        raise http_error(426, ErrorCode.UPGRADE_REQUIRED, "Missing API version")

    if x_api_ver != "v1":
        raise http_error(426, ErrorCode.UPGRADE_REQUIRED, "Invalid API version")

    if x_api_key != settings.api_key:
        raise http_error(401, ErrorCode.UNAUTHORIZED, "Invalid API key")


async def require_api_headers(
    _: None = Depends(require_api_key),
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> str:
    if not x_user_id or not x_user_id.strip():
        raise http_error(401, ErrorCode.UNAUTHORIZED, "Missing user ID")
    return x_user_id.strip()


async def optional_user(
    _: None = Depends(require_api_key),
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> str | None:
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


def _client_ip(request: Request) -> str:
    client_host = request.client.host if request.client else ""
    ip = client_host
    xff = request.headers.get("X-Forwarded-For")
    if xff and client_host in settings.trusted_proxies:
        forwarded = [h.strip() for h in xff.split(",") if h.strip()]
        proxies = forwarded[1:] + [client_host]
        if forwarded and all(p in settings.trusted_proxies for p in proxies):
            ip = forwarded[0]
    return ip


async def _throttle(request: Request, user_key: str | None) -> None:
    ip_key = f"rate:ip:{_client_ip(request)}"
    try:
        pipe = redis_client.pipeline()
        pipe.incr(ip_key)
        pipe.expire(ip_key, 60)
        if user_key:
            pipe.incr(user_key)
            pipe.expire(user_key, 60)
        results = await pipe.execute()
    except RedisError as exc:
        logger.exception("Redis unavailable for rate limiting: %s", exc)
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "Rate limiter unavailable"
        ) from exc
    ip_count = results[0]
    user_count = results[2] if user_key else 0
    if ip_count > settings.rate_limit_ip or user_count > settings.rate_limit_user:
        raise http_error(429, ErrorCode.TOO_MANY_REQUESTS, "Rate limit exceeded")


async def rate_limit(request: Request, user_id: str = Depends(require_api_headers)) -> str:
    """Throttle requests by IP and user via Redis."""
    await _throttle(request, f"rate:user:{user_id}")
    return user_id


async def rate_limit_optional(
    request: Request, user_id: str | None = Depends(optional_user)
) -> str | None:
    """Throttle requests that may come without a signed-in user."""
    await _throttle(request, f"rate:user:{user_id}" if user_id else None)
    return user_id


async def require_admin(user_id: str = Depends(rate_limit)) -> str:
    """Allow only accounts whose email is listed in ``ADMIN_EMAILS``."""

    def _email() -> str | None:
        with db_module.SessionLocal() as db:
            user = db.get(User, user_id)
            return user.email if user else None

    try:
        email = await asyncio.to_thread(_email)
    except SQLAlchemyError as exc:
        logger.exception("admin lookup failed")
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "Storage unavailable"
        ) from exc
    if not email or email.lower() not in settings.admin_email_set:
        logger.warning("audit: non-admin %s denied", user_id)
        raise http_error(403, ErrorCode.FORBIDDEN, "Admin access required")
    return user_id
