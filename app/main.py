from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import Settings
from app.db import dispose_db, init_db
from app.logger import setup_logging
from app.controllers import v1

settings = Settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one pooled engine per process; sessions are opened per unit of work
    await asyncio.to_thread(init_db, settings)
    logger.info("chartdesk api started (env=%s)", settings.app_env)
    yield
    await asyncio.to_thread(dispose_db)


app = FastAPI(
    title="ChartDesk API",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(v1.router)

Instrumentator().instrument(app).expose(app)
