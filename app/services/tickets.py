"""Support ticket intake and triage."""
from __future__ import annotations

import enum
import logging
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db as db_module
from app.metrics import storage_error_total, support_tickets_total
from app.models import Event, SupportTicket, User
from app.services.errors import InvalidInput, NotFound, StorageUnavailable

logger = logging.getLogger(__name__)

HIGH_PRIORITY_REASONS = {"Technical Issue", "Account Problem"}
LOW_PRIORITY_REASONS = {"Feature Request"}


class Priority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


PRIORITY_RANK = {
    Priority.URGENT.value: 3,
    Priority.HIGH.value: 2,
    Priority.NORMAL.value: 1,
    Priority.LOW.value: 0,
}


def classify(reason: str | None, subject: str | None) -> Priority:
    """Priority ladder: the first matching rule wins."""
    reason = reason or ""
    subject = subject or ""
    if "Urgent" in reason or "urgent" in subject.lower():
        return Priority.URGENT
    if reason in HIGH_PRIORITY_REASONS:
        return Priority.HIGH
    if reason in LOW_PRIORITY_REASONS:
        return Priority.LOW
    return Priority.NORMAL


def ticket_to_dict(ticket: SupportTicket) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "user_id": ticket.user_id,
        "email": ticket.email,
        "reason": ticket.reason,
        "subject": ticket.subject,
        "message": ticket.message,
        "status": ticket.status,
        "priority": ticket.priority,
        "created_at": ticket.created_at,
        "updated_at": ticket.updated_at,
    }


def create_ticket(
    *,
    email: str,
    reason: str,
    subject: str,
    message: str,
    user_id: str | None = None,
) -> dict[str, Any]:
    missing = [
        name
        for name, value in (
            ("email", email),
            ("reason", reason),
            ("subject", subject),
            ("message", message),
        )
        if not value or not str(value).strip()
    ]
    if missing:
        raise InvalidInput("Missing required fields: " + ", ".join(missing))

    priority = classify(reason, subject)
    try:
        with db_module.SessionLocal() as db:
            if user_id is not None and db.get(User, user_id) is None:
                # unknown principals file the ticket anonymously
                logger.warning("ticket from unknown user %s stored without owner", user_id)
                user_id = None
            ticket = SupportTicket(
                user_id=user_id,
                email=email.strip(),
                reason=reason,
                subject=subject,
                message=message,
                status=TicketStatus.OPEN.value,
                priority=priority.value,
            )
            db.add(ticket)
            db.add(Event(user_id=user_id, event="ticket_created"))
            db.commit()
            data = ticket_to_dict(ticket)
    except IntegrityError as exc:
        logger.warning("support ticket rejected: %s", exc.orig)
        raise InvalidInput("ticket references an unknown account") from exc
    except SQLAlchemyError as exc:
        storage_error_total.inc()
        logger.exception("failed to store support ticket")
        raise StorageUnavailable("ticket storage unavailable") from exc

    support_tickets_total.labels(priority=priority.value).inc()
    logger.info("support ticket %s created with priority %s", data["id"], priority.value)
    return data


def list_tickets(
    status: str = "all", limit: int = 50, offset: int = 0
) -> dict[str, Any]:
    """Tickets ordered most urgent first, newest first within a priority."""
    if status != "all" and status not in {s.value for s in TicketStatus}:
        raise InvalidInput(f"invalid status filter: {status}")
    if limit < 1 or offset < 0:
        raise InvalidInput("limit must be positive and offset non-negative")

    rank = case(PRIORITY_RANK, value=SupportTicket.priority, else_=0)
    query = select(SupportTicket)
    count_query = select(func.count()).select_from(SupportTicket)
    if status != "all":
        query = query.where(SupportTicket.status == status)
        count_query = count_query.where(SupportTicket.status == status)

    try:
        with db_module.SessionLocal() as db:
            rows = db.execute(
                query.order_by(rank.desc(), SupportTicket.created_at.desc(), SupportTicket.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            tickets = [ticket_to_dict(t) for t in rows]
            total = db.execute(count_query).scalar_one()
    except SQLAlchemyError as exc:
        storage_error_total.inc()
        logger.exception("failed to list support tickets")
        raise StorageUnavailable("ticket storage unavailable") from exc

    return {
        "tickets": tickets,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }


def update_status(ticket_id: int, status: str) -> dict[str, Any]:
    """Set the ticket status; priority is left untouched."""
    if status not in {s.value for s in TicketStatus}:
        raise InvalidInput("Valid status required (open, in-progress, closed)")
    try:
        with db_module.SessionLocal() as db:
            ticket = db.get(SupportTicket, ticket_id)
            if ticket is None:
                raise NotFound(f"ticket {ticket_id} not found")
            previous = ticket.status
            ticket.status = status
            db.commit()
            data = ticket_to_dict(ticket)
    except SQLAlchemyError as exc:
        storage_error_total.inc()
        logger.exception("failed to update support ticket %s", ticket_id)
        raise StorageUnavailable("ticket storage unavailable") from exc

    logger.info(
        "audit: ticket %s status %s -> %s",
        ticket_id,
        previous,
        status,
        extra={"ticket_id": ticket_id},
    )
    return data


__all__ = [
    "Priority",
    "TicketStatus",
    "PRIORITY_RANK",
    "classify",
    "create_ticket",
    "list_tickets",
    "update_status",
]
