"""Periodic sweep that numbers invoices left in the pending state.

An invoice stays pending when its order placed task crashed, was abandoned,
or gave up. The sweep rediscovers those invoices and runs number assignment
again, a bounded batch at a time.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import dramatiq
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.config import InvoiceConfig, settings
from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice
from invoicing.services.invoices.invoice_service import InvoiceService
from invoicing.tasks.utils import task_session_maker
from invoicing.utils.batching import chunk
from invoicing.utils.failure_injection import raise_if_simulated_failure
from invoicing.utils.redis_lock import LockUnavailable, RedisLock

logger = structlog.get_logger(__name__)

DEFAULT_SWEEP_BATCH_SIZE = 5

# Lock settings
SWEEP_LOCK_KEY = "invoices:retry-pending"
SWEEP_TIME_LIMIT_MS = 600_000  # 10 minutes
# Outlives the time limit so a running sweep never loses its lock
SWEEP_LOCK_TTL = SWEEP_TIME_LIMIT_MS // 1000 + 60


@dataclass
class SweepResult:
    """Outcome counts of a single sweep."""

    found: int = 0
    assigned: int = 0
    failed: int = 0


@dramatiq.actor(max_retries=0, queue_name="default", time_limit=SWEEP_TIME_LIMIT_MS)
def retry_pending_invoices() -> None:
    """Dramatiq task that sweeps pending invoices.

    Uses Redis lock to ensure only one sweep runs at a time.
    """
    try:
        with RedisLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, raise_exc=True):
            asyncio.run(_retry_pending_invoices_async())
    except LockUnavailable:
        logger.debug("Pending invoice sweep already running, skipping")


async def _retry_pending_invoices_async() -> None:
    config = InvoiceConfig.from_settings()
    try:
        async with task_session_maker() as session_maker:
            await sweep_pending_invoices(session_maker, config, batch_size=settings.invoice_sweep_batch_size)
    except Exception as e:
        logger.error("Error in pending invoice sweep", error=str(e))


async def sweep_pending_invoices(
    session_maker: async_sessionmaker[AsyncSession],
    config: InvoiceConfig,
    *,
    batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
    service_kwargs: dict[str, Any] | None = None,
) -> SweepResult:
    """Find pending invoices and assign their numbers.

    Batches run one after another; invoices within a batch run concurrently,
    each in its own session. A failed invoice is logged and left pending for
    the next run without affecting the rest of the batch.

    Args:
        session_maker: Factory for the per-invoice sessions.
        config: Failure injection settings.
        batch_size: Maximum number of concurrent assignments.
        service_kwargs: Extra keyword arguments for InvoiceService.
    """
    logger.info("Checking for pending invoices")
    kwargs = service_kwargs or {}

    async with session_maker() as session:
        pending = await InvoiceService(session, **kwargs).list_invoices(status=InvoiceStatus.PENDING)

    result = SweepResult(found=len(pending))
    if not pending:
        logger.info("No pending invoices found")
        return result

    logger.info("Found pending invoices", count=len(pending))

    for batch in chunk(pending, batch_size):
        outcomes = await asyncio.gather(
            *(_process_invoice(session_maker, config, invoice, kwargs) for invoice in batch),
            return_exceptions=True,
        )
        for invoice, outcome in zip(batch, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                result.failed += 1
                logger.warning(
                    "Failed to create invoice for order, will retry in next run",
                    order_id=invoice.order_id,
                    invoice_id=invoice.id,
                    error=str(outcome),
                )
            else:
                result.assigned += 1

    logger.info(
        "Pending invoice sweep complete",
        found=result.found,
        assigned=result.assigned,
        failed=result.failed,
    )
    return result


async def _process_invoice(
    session_maker: async_sessionmaker[AsyncSession],
    config: InvoiceConfig,
    invoice: Invoice,
    service_kwargs: dict[str, Any],
) -> Invoice:
    raise_if_simulated_failure(config)
    async with session_maker() as session:
        updated = await InvoiceService(session, **service_kwargs).assign_invoice_number(invoice.id)
    logger.info("Invoice created for order", order_id=invoice.order_id, invoice_number=updated.invoice_number)
    return updated
