# /djula/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from djula.utils.logging import setup_logging
from djula.utils.rate_limiter import outbound_rate_limiter
from djula.utils.scheduler import build_scheduler
from djula.services.ai_service import ai_service
from djula.services.cache_service import cache_service
from djula.services.collaborators import commerce_client
from djula.services.context_service import context_service
from djula.services.conversation_engine import turn_executor
from djula.services.db_service import db_service
from djula.services.whatsapp_service import whatsapp_service

# This file manages the application's lifespan, handling startup tasks like
# initializing services and shutdown tasks like cleaning up connections.

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()
    logger.info("Application starting up...")

    await db_service.create_indexes()
    if not ai_service.is_configured:
        logger.warning("No AI provider is configured; free-text messages will be classified as UNKNOWN.")

    scheduler = build_scheduler(context_service, cache_service, outbound_rate_limiter)
    scheduler.start()
    turn_executor.start()
    app.state.turn_executor = turn_executor

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    await turn_executor.stop()
    scheduler.shutdown(wait=False)
    await whatsapp_service.close()
    await commerce_client.close()
    await cache_service.close()
    if db_service.client:
        db_service.client.close()
