"""
Family Accord Core API
Goals, conflict detection, resolution and agreements for one family
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

import settings
from database import AsyncSessionLocal, close_db_connections, create_schema
from event_bus import event_bus
from infrastructure.uow import create_uow_provider
from logging_config import get_logger
from notifications import register_notification_subscriber

from api.endpoints import agreements, conflicts, goals
from api.middleware import LoggingMiddleware, parse_allowed_origins

logger = get_logger(__name__)


async def wait_for_db(max_retries: int = 30, delay: float = 2.0) -> None:
    """Wait for database connection"""
    for attempt in range(1, max_retries + 1):
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
            logger.info("database_connected", attempt=attempt)
            return
        except (OSError, DBAPIError) as e:
            logger.warning("database_unavailable", attempt=attempt, max_retries=max_retries, error=str(e))
            await asyncio.sleep(delay)

    raise RuntimeError("Failed to connect to database after maximum retries")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("family_accord_starting")

    await wait_for_db()
    await create_schema()
    register_notification_subscriber(event_bus)

    logger.info("family_accord_online")

    yield

    logger.info("family_accord_shutting_down")
    event_bus.clear()
    await close_db_connections()


app = FastAPI(
    title="Family Accord Core API",
    description="Family goals with conflict detection and negotiated agreements",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_allowed_origins(settings.ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

# One transaction per request; tests swap in their own provider
app.state.uow_provider = create_uow_provider(event_bus=event_bus)

app.include_router(goals.router)
app.include_router(conflicts.router)
app.include_router(agreements.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
    }
