"""Invoice creation for placed orders."""

import asyncio

import dramatiq
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.config import InvoiceConfig
from invoicing.models.invoice import Invoice
from invoicing.services.invoices.exceptions import InvoiceNotFound
from invoicing.services.invoices.invoice_service import InvoiceService
from invoicing.tasks.utils import task_db_session
from invoicing.utils.backoff import calculate_backoff_delay
from invoicing.utils.failure_injection import raise_if_simulated_failure
from invoicing.utils.retry import run_with_retry

logger = structlog.get_logger(__name__)

# Number assignment retries until it succeeds; the worker must not interrupt it
HANDLER_TIME_LIMIT_MS = float("inf")


@dramatiq.actor(max_retries=0, queue_name="invoices", time_limit=HANDLER_TIME_LIMIT_MS)
def create_invoice_for_order(order_id: str) -> None:
    """Background task run for every "order placed" event.

    Creates the pending invoice and retries number assignment with exponential
    backoff until it succeeds, so the time limit is lifted as well. Dramatiq
    retries are disabled: an invoice left pending (worker killed, unexpected
    error) is picked up by the pending sweep.
    """
    asyncio.run(_create_invoice_for_order_async(order_id, InvoiceConfig.from_settings()))


async def _create_invoice_for_order_async(order_id: str, config: InvoiceConfig) -> None:
    # Every event logged while handling this order carries its id
    with structlog.contextvars.bound_contextvars(order_id=order_id):
        logger.info("Order placed, attempting to create invoice")
        try:
            async with task_db_session() as session:
                await create_invoice(session, order_id, config)
        except Exception as e:
            logger.error("Unexpected error in order placed handler", error=str(e))


async def create_invoice(
    session: AsyncSession,
    order_id: str,
    config: InvoiceConfig,
    *,
    max_attempts: int | None = None,
    service: InvoiceService | None = None,
) -> Invoice:
    """Bootstrap the pending invoice for an order and number it.

    Number assignment runs behind the failure injector and is retried with the
    configured backoff, forever unless ``max_attempts`` is given. A missing
    invoice aborts immediately.
    """
    service = service or InvoiceService(session)
    pending = await service.create_pending_invoice(order_id)

    async def _assign() -> Invoice:
        raise_if_simulated_failure(config, "Simulated invoice creation failure")
        return await service.assign_invoice_number(pending.id)

    def _on_attempt_fail(attempt: int, error: BaseException) -> None:
        logger.warning(
            "Invoice attempt failed",
            order_id=order_id,
            invoice_id=pending.id,
            attempt=attempt,
            error=str(error),
            retry_in_ms=calculate_backoff_delay(attempt, config),
        )

    invoice = await run_with_retry(
        _assign,
        config=config,
        max_attempts=max_attempts,
        on_attempt_fail=_on_attempt_fail,
        should_abort=lambda error: isinstance(error, InvoiceNotFound),
    )

    logger.info("Invoice created for order", order_id=order_id, invoice_number=invoice.invoice_number)
    return invoice
