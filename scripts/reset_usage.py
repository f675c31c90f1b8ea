"""Reset daily analysis counters.

Usage:
  python scripts/reset_usage.py --user-id 3f2a...
  python scripts/reset_usage.py --stale
  python scripts/reset_usage.py --stale --day 2026-10-19
"""

from __future__ import annotations

import argparse
import logging
from datetime import date

from app.config import Settings
from app.db import init_db
from app.logger import setup_logging
from app.services.clock import Clock, FixedClock, to_day
from app.services.errors import InvalidInput, ServiceError
from app.services.usage_store import UsageStore

logger = logging.getLogger("reset_usage")


def _day(value: str) -> date:
    try:
        return to_day(value)
    except InvalidInput as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", help="zero the counter of one account")
    target.add_argument(
        "--stale",
        action="store_true",
        help="zero every counter not yet accounted for the current day",
    )
    parser.add_argument(
        "--day", type=_day, help="accounting day (YYYY-MM-DD), defaults to today"
    )
    args = parser.parse_args(argv)

    settings = Settings()
    setup_logging(settings.log_level)
    init_db(settings)

    try:
        clock = (
            FixedClock(args.day, settings.usage_timezone)
            if args.day
            else Clock(settings.usage_timezone)
        )
        store = UsageStore(clock)
        if args.user_id:
            account = store.reset_usage(args.user_id)
            logger.info(
                "audit: usage reset for %s (day %s)",
                account.user_id,
                account.last_reset_date,
            )
            print(account.user_id)
        else:
            count = store.reset_stale()
            print(count)
    except ServiceError as exc:
        logger.error("reset failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
