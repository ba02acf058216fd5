"""Shared utilities for Dramatiq background tasks."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from invoicing.config import settings


@asynccontextmanager
async def task_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Context manager that provides a session factory for background tasks.

    Creates a fresh engine bound to the current event loop and disposes it on exit.
    This is necessary because each asyncio.run() call creates a new event loop,
    and the database connections must be bound to the current event loop.

    The pool is sized for one sweep batch of concurrent sessions.

    Usage:
        async with task_session_maker() as session_maker:
            async with session_maker() as session:
                ...
    """
    engine = create_async_engine(
        settings.database_url,
        echo=False,  # SQL logging controlled via structlog configuration
        future=True,
        pool_size=settings.invoice_sweep_batch_size,
        max_overflow=3,
        pool_pre_ping=True,
    )
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        # Dispose engine to release all connections back to PostgreSQL
        await engine.dispose()


@asynccontextmanager
async def task_db_session() -> AsyncGenerator[AsyncSession]:
    """Context manager that provides a single database session for background tasks.

    Usage:
        async with task_db_session() as session:
            # Use session for database operations
            ...
    """
    async with task_session_maker() as session_maker:
        async with session_maker() as session:
            yield session
