import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, ValidationError

from app.dependencies import (
    ErrorResponse,
    http_error,
    read_json_object,
    raise_for_service_error,
    rate_limit_optional,
    require_admin,
)
from app.models import ErrorCode
from app.services import tickets
from app.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/support")


class TicketCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    reason: str = Field(min_length=1, max_length=100)
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=5000)


class TicketStatusUpdate(BaseModel):
    status: str


@router.post(
    "",
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def create_ticket(
    request: Request, user_id: str | None = Depends(rate_limit_optional)
):
    """Open a support ticket; signed-in users get it linked to their account."""
    payload = await read_json_object(request)
    try:
        body = TicketCreate.model_validate(payload)
    except ValidationError as exc:
        raise http_error(
            400,
            ErrorCode.BAD_REQUEST,
            "Missing required fields: email, reason, subject, message",
        ) from exc

    try:
        ticket = await asyncio.to_thread(
            tickets.create_ticket,
            email=body.email,
            reason=body.reason,
            subject=body.subject,
            message=body.message,
            user_id=user_id,
        )
    except ServiceError as exc:
        raise_for_service_error(exc)

    return {
        "success": True,
        "ticket": {
            "id": ticket["id"],
            "subject": ticket["subject"],
            "status": ticket["status"],
            "priority": ticket["priority"],
            "created_at": ticket["created_at"],
        },
    }


@router.get(
    "",
    responses={403: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def list_tickets(
    _: str = Depends(require_admin),
    status: str = Query("all"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    try:
        data = await asyncio.to_thread(tickets.list_tickets, status, limit, offset)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return {"success": True, **data}


@router.patch(
    "/{ticket_id}",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def update_ticket(
    ticket_id: int, request: Request, admin_id: str = Depends(require_admin)
):
    payload = await read_json_object(request)
    try:
        body = TicketStatusUpdate.model_validate(payload)
    except ValidationError as exc:
        raise http_error(
            400, ErrorCode.BAD_REQUEST, "Valid status required (open, in-progress, closed)"
        ) from exc

    try:
        ticket = await asyncio.to_thread(tickets.update_status, ticket_id, body.status)
    except ServiceError as exc:
        raise_for_service_error(exc)
    logger.info("audit: ticket %s updated by %s", ticket_id, admin_id)
    return {"success": True, "ticket": ticket}
