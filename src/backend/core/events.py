"""
Application lifecycle event handlers.

Manages startup and shutdown of the Cosmos DB client and containers.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db import close_cosmos, init_cosmos

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("Starting Surbate API...", env=settings.APP_ENV)

        # Database and containers (idempotent)
        await init_cosmos()
        logger.info("Cosmos DB initialized", database=settings.AZURE_COSMOS_DATABASE)

        logger.info("Surbate API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("Shutting down Surbate API...")

        await close_cosmos()

        logger.info("Surbate API shutdown complete")

    return stop_app
