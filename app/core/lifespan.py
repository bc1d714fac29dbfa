"""Application lifespan: startup and shutdown.

Single place for startup/shutdown logic. Used by main.py; no business logic
here, only wiring of infrastructure (shared HTTP client, telemetry flush, DB
engine dispose).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from app.core.config import get_settings
from app.infrastructure.persistence.database import dispose_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Shutdown order: shared HTTP client close, telemetry flush, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    # Shared HTTP client for provider sends (connection reuse).
    app.state.http_client = httpx.AsyncClient(timeout=settings.sender_timeout_seconds)
    logger.info(
        "%s %s started (sms=%s, email=%s)",
        settings.app_name,
        settings.app_version,
        settings.sms_sender_backend,
        settings.email_sender_backend,
    )

    yield

    # ---- Shutdown ----
    if getattr(app.state, "http_client", None) is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTP client closed")

    provider = getattr(app.state, "tracer_provider", None)
    if provider is not None:
        provider.shutdown()
        logger.info("Telemetry shutdown complete")

    await dispose_engine()
    logger.info("Database engine disposed")
