"""Persisted daily usage counters.

Each operation is one SQL statement scoped to a single ``users`` row, so the
counter and its ``last_reset_date`` are always written together and two
concurrent requests for the same account cannot lose an update.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, NamedTuple

from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import db as db_module
from app.metrics import storage_error_total, usage_reset_total
from app.models import Event, User
from app.services.clock import Clock
from app.services.errors import NotFound, StorageUnavailable

logger = logging.getLogger(__name__)


class UsageAccount(NamedTuple):
    """Read-only view of the usage columns of a ``users`` row."""

    user_id: str
    email: str
    is_premium: bool
    analyses_used: int
    last_reset_date: date | None

    @classmethod
    def from_user(cls, user: User) -> "UsageAccount":
        return cls(
            user_id=user.id,
            email=user.email,
            is_premium=bool(user.is_premium),
            analyses_used=user.analyses_used or 0,
            last_reset_date=user.last_reset_date,
        )


class UsageStore:
    """Owns the ``analyses_used`` / ``last_reset_date`` pair of every account."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or Clock()

    def _today(self, today: date | datetime | str | None) -> date:
        return self.clock.today() if today is None else self.clock.to_day(today)

    @contextmanager
    def _session(self, db: Session | None) -> Iterator[tuple[Session, bool]]:
        """Yield ``(session, owned)``; owned sessions are committed here."""
        try:
            if db is not None:
                yield db, False
                return
            with db_module.SessionLocal() as session:
                yield session, True
        except SQLAlchemyError as exc:
            storage_error_total.inc()
            logger.exception("usage storage failure: %s", exc)
            raise StorageUnavailable("usage storage unavailable") from exc

    @staticmethod
    def _load(db: Session, user_id: str) -> UsageAccount:
        user = db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if user is None:
            raise NotFound(f"user {user_id} not found")
        return UsageAccount.from_user(user)

    def get(self, user_id: str) -> UsageAccount:
        with self._session(None) as (db, _):
            return self._load(db, user_id)

    def check_and_maybe_reset(
        self, user_id: str, today: date | datetime | str | None = None
    ) -> UsageAccount:
        """Zero a stale counter and return the current view.

        The reset is a compare-and-swap on ``last_reset_date``; calling it
        again with the same ``today`` changes nothing.
        """
        day = self._today(today)
        with self._session(None) as (db, _):
            stmt = (
                update(User)
                .where(
                    User.id == user_id,
                    or_(User.last_reset_date.is_(None), User.last_reset_date != day),
                )
                .values(analyses_used=0, last_reset_date=day)
                .execution_options(synchronize_session=False)
            )
            result = db.execute(stmt)
            if result.rowcount:
                db.add(Event(user_id=user_id, event="usage_reset"))
            db.commit()
            account = self._load(db, user_id)
        if result.rowcount:
            usage_reset_total.inc()
            logger.info(
                "usage counter reset for user %s (day %s)",
                user_id,
                day,
                extra={"user_id": user_id},
            )
        return account

    def record_usage(
        self,
        user_id: str,
        today: date | datetime | str | None = None,
        db: Session | None = None,
    ) -> UsageAccount:
        """Count one metered action.

        Does not re-check the limit. A counter left over from an earlier day
        restarts at 1 in the same statement. When ``db`` is given the update
        joins the caller's transaction and is committed by the caller.
        """
        day = self._today(today)
        with self._session(db) as (session, owned):
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(
                    analyses_used=case(
                        (User.last_reset_date == day, User.analyses_used + 1),
                        else_=1,
                    ),
                    last_reset_date=day,
                )
                .execution_options(synchronize_session=False)
            )
            result = session.execute(stmt)
            if not result.rowcount:
                raise NotFound(f"user {user_id} not found")
            if owned:
                session.commit()
            else:
                session.flush()
            return self._load(session, user_id)

    def reset_usage(
        self, user_id: str, today: date | datetime | str | None = None
    ) -> UsageAccount:
        """Unconditionally zero the counter for ``today``."""
        day = self._today(today)
        with self._session(None) as (db, _):
            result = db.execute(
                update(User)
                .where(User.id == user_id)
                .values(analyses_used=0, last_reset_date=day)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise NotFound(f"user {user_id} not found")
            db.add(Event(user_id=user_id, event="usage_reset_manual"))
            db.commit()
            account = self._load(db, user_id)
        usage_reset_total.inc()
        return account

    def reset_stale(self, today: date | datetime | str | None = None) -> int:
        """Zero every counter not accounted for ``today``; returns the row count."""
        day = self._today(today)
        with self._session(None) as (db, _):
            result = db.execute(
                update(User)
                .where(or_(User.last_reset_date.is_(None), User.last_reset_date < day))
                .values(analyses_used=0, last_reset_date=day)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        count = result.rowcount or 0
        if count:
            usage_reset_total.inc(count)
        logger.info("reset %d stale usage counters for %s", count, day)
        return count

    def set_premium(self, user_id: str, is_premium: bool) -> UsageAccount:
        with self._session(None) as (db, _):
            result = db.execute(
                update(User)
                .where(User.id == user_id)
                .values(is_premium=is_premium)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise NotFound(f"user {user_id} not found")
            db.commit()
            return self._load(db, user_id)


__all__ = ["UsageAccount", "UsageStore"]
