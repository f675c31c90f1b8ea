from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.models import Base

logger = logging.getLogger(__name__)


engine: Engine | None = None
_session_factory: sessionmaker | None = None


class _SessionWrapper:
    """Callable proxy returning sessions from the current factory."""

    def __call__(self, *args: Any, **kwargs: Any):
        if _session_factory is None:
            raise RuntimeError("Database not initialized")
        return _session_factory(*args, **kwargs)


SessionLocal = _SessionWrapper()


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    # SQLite leaves FK enforcement off per connection
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(cfg: Settings) -> None:
    """Create the process-wide pooled engine and session factory."""
    global engine, _session_factory

    if engine is not None and str(engine.url) == cfg.database_url:
        return

    engine = create_engine(
        cfg.database_url,
        future=True,
        pool_size=cfg.db_pool_size,
        max_overflow=0,
        pool_recycle=30,
        pool_pre_ping=True,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    _session_factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    logger.info("database engine initialized (%s)", engine.dialect.name)

    if cfg.db_create_all:
        Base.metadata.create_all(engine)


def dispose_db() -> None:
    """Release pooled connections; the engine stays usable afterwards."""
    if engine is not None:
        engine.dispose()
