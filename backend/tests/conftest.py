"""
Pytest fixtures for the invoicing test suite.

Provides:
- A fresh SQLite database per test (file based, so concurrent sessions
  really contend on the unique indexes)
- Session factories and sessions bound to it
- Invoice configs with millisecond backoff

Environment is set before the application is imported: the in-memory
dramatiq broker is selected and failure simulation is off by default.
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

os.environ["ENVIRONMENT"] = "test"
os.environ["INVOICE_SIMULATE_FAILURES"] = "false"
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'invoicing-test.db'}",
)

import pytest  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import invoicing.models  # noqa: E402, F401
from invoicing.config import InvoiceConfig  # noqa: E402
from invoicing.models.enums import InvoiceStatus  # noqa: E402
from invoicing.models.invoice import Invoice  # noqa: E402
from invoicing.services.invoices.invoice_service import InvoiceService  # noqa: E402


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Async engine on an empty per-test database with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'invoices.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def service(session: AsyncSession) -> InvoiceService:
    """InvoiceService with millisecond conflict retries."""
    return InvoiceService(session, conflict_retry_delay_ms=1)


@pytest.fixture
def fast_config() -> InvoiceConfig:
    """Backoff in single milliseconds, failure simulation off."""
    return InvoiceConfig(failure_rate=0.0, simulate_failures=False, base_backoff_delay=1, max_backoff_delay=4)


@pytest.fixture
def make_pending(session_maker: async_sessionmaker[AsyncSession]):
    """Create pending invoices for the given order ids and return their ids."""

    async def _make(*order_ids: str) -> list[str]:
        async with session_maker() as session:
            service = InvoiceService(session)
            return [(await service.create_pending_invoice(order_id)).id for order_id in order_ids]

    return _make


@pytest.fixture
def count_invoices(session_maker: async_sessionmaker[AsyncSession]):
    """Count live invoices, optionally by status."""

    async def _count(status: InvoiceStatus | None = None) -> int:
        statement = select(func.count()).select_from(Invoice).where(Invoice.deleted_at == None)  # noqa: E711
        if status is not None:
            statement = statement.where(Invoice.status == status)
        async with session_maker() as session:
            result = await session.execute(statement)
            return result.scalar_one()

    return _count
