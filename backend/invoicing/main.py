"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from invoicing.api.v1 import health, invoices, webhooks
from invoicing.config import settings
from invoicing.db import dispose_engine
from invoicing.logging import setup_logging

# Configure logging before anything else
setup_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Invoicing API", debug=settings.debug, environment=settings.environment)

    yield

    logger.info("Shutting down Invoicing API")
    await dispose_engine()
    logger.info("Database connections disposed")


app = FastAPI(
    title="Invoicing API",
    description="Sequential invoice numbering for placed orders",
    version="0.1.0",
    lifespan=lifespan,
)

# API routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(invoices.router, prefix="/api/v1", tags=["invoices"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["webhooks"])
