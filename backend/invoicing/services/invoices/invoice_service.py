"""Invoice service.

Creates pending invoices for placed orders and assigns them gapless sequential
numbers. There is no counter row or database sequence: the next number is read
as MAX(invoice_number) + 1 and committed optimistically, with the partial unique
index on invoice_number as the only serialization point between writers.

Retries at this layer cover unique conflicts only. Transient failures are retried
by callers through invoicing.utils.retry.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from ulid import ULID

from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import INVOICE_NUMBER_UNIQUE_INDEX, ORDER_ID_UNIQUE_INDEX, Invoice
from invoicing.models.utils.auto_increment import AutoIncrementOnConflict, is_unique_violation
from invoicing.services.invoices.exceptions import InvoiceNotFound

logger = structlog.get_logger(__name__)

CONFLICT_RETRY_MAX = 5
CONFLICT_RETRY_DELAY_MS = 100


def _is_ulid(value: str) -> bool:
    try:
        ULID.from_str(value)
    except ValueError:
        return False
    return True


class InvoiceService:
    """Service for invoice bootstrap, numbering and lookups.

    Every query ignores soft-deleted invoices.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        conflict_retry_max: int = CONFLICT_RETRY_MAX,
        conflict_retry_delay_ms: float = CONFLICT_RETRY_DELAY_MS,
    ):
        self.session = session
        self.conflict_retry_max = conflict_retry_max
        self.conflict_retry_delay_ms = conflict_retry_delay_ms

    async def list_invoices(
        self,
        *,
        status: InvoiceStatus | None = None,
        limit: int | None = None,
    ) -> list[Invoice]:
        """List live invoices, oldest first."""
        statement = select(Invoice).where(Invoice.deleted_at == None)  # noqa: E711
        if status is not None:
            statement = statement.where(Invoice.status == status)
        statement = statement.order_by(Invoice.created_at, Invoice.id)  # type: ignore[arg-type]
        if limit is not None:
            statement = statement.limit(limit)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_invoice(self, invoice_id: str) -> Invoice:
        """Get a live invoice by id, reading current database state."""
        if not _is_ulid(invoice_id):
            raise InvoiceNotFound(f"Invoice {invoice_id} not found")
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.deleted_at == None)  # noqa: E711
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        invoice = result.scalars().first()
        if not invoice:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found")
        return invoice

    async def get_invoice_by_order_id(self, order_id: str) -> Invoice | None:
        """Get the live invoice for an order, if any."""
        statement = select(Invoice).where(Invoice.order_id == order_id, Invoice.deleted_at == None)  # noqa: E711
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def create_pending_invoice(self, order_id: str) -> Invoice:
        """Create a pending invoice for an order, or return the existing one (idempotent).

        The unique index on order_id settles concurrent creators: the loser
        rolls back and returns the winner's invoice.
        """
        existing = await self.get_invoice_by_order_id(order_id)
        if existing:
            logger.info("Invoice already exists for order", order_id=order_id, invoice_id=existing.id)
            return existing

        invoice = Invoice(order_id=order_id, status=InvoiceStatus.PENDING, invoice_number=None)
        self.session.add(invoice)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if not is_unique_violation(e, ORDER_ID_UNIQUE_INDEX):
                raise
            winner = await self.get_invoice_by_order_id(order_id)
            if winner is None:
                raise
            logger.info("Pending invoice created concurrently", order_id=order_id, invoice_id=winner.id)
            return winner

        logger.info("Pending invoice created", order_id=order_id, invoice_id=invoice.id)
        return invoice

    async def assign_invoice_number(self, invoice_id: str) -> Invoice:
        """Assign the next sequential number to a pending invoice.

        Idempotent: an invoice that already has a number is returned unchanged
        without writing. Unique conflicts on the number are retried up to
        ``conflict_retry_max`` times with a delay of ``conflict_retry_delay_ms``
        times the retry count; other errors propagate immediately.

        Raises:
            InvoiceNotFound: The invoice does not exist or was deleted.
            IntegrityError: Conflicts persisted past the retry limit.
        """
        invoice: Invoice | None = None

        async for attempt in AutoIncrementOnConflict(
            session=self.session,
            increment_column=Invoice.invoice_number,
            filter_columns={Invoice.status: InvoiceStatus.CREATED, Invoice.deleted_at: None},
            constraint=INVOICE_NUMBER_UNIQUE_INDEX,
            max_retries=self.conflict_retry_max,
            retry_delay_ms=self.conflict_retry_delay_ms,
            log_context={"invoice_id": invoice_id},
        ):
            async with attempt:
                invoice = await self.get_invoice(invoice_id)
                if invoice.is_numbered:
                    logger.info(
                        "Invoice already has number assigned",
                        invoice_id=invoice_id,
                        invoice_number=invoice.invoice_number,
                    )
                    continue

                number = await attempt.next_value()
                if await self._write_invoice_number(invoice_id, number):
                    invoice = await self.get_invoice(invoice_id)
                    logger.info("Invoice number assigned", invoice_id=invoice_id, invoice_number=number)
                else:
                    # Numbered by a concurrent worker between our read and write
                    invoice = await self.get_invoice(invoice_id)
                    logger.info(
                        "Invoice numbered concurrently",
                        invoice_id=invoice_id,
                        invoice_number=invoice.invoice_number,
                    )

        assert invoice is not None
        return invoice

    async def _write_invoice_number(self, invoice_id: str, number: int) -> bool:
        """Move a pending invoice to CREATED with the given number.

        Returns False when the invoice is no longer pending.
        """
        statement = (
            update(Invoice)
            .where(
                Invoice.id == invoice_id,  # type: ignore[arg-type]
                Invoice.status == InvoiceStatus.PENDING,  # type: ignore[arg-type]
                Invoice.deleted_at == None,  # type: ignore[arg-type]  # noqa: E711
            )
            .values(invoice_number=number, status=InvoiceStatus.CREATED, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def delete_invoices(self, invoice_ids: Sequence[str]) -> int:
        """Soft-delete invoices. Returns the number of invoices deleted."""
        if not invoice_ids:
            return 0
        statement = (
            update(Invoice)
            .where(
                Invoice.id.in_(invoice_ids),  # type: ignore[attr-defined]
                Invoice.deleted_at == None,  # type: ignore[arg-type]  # noqa: E711
            )
            .values(deleted_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        deleted: int = result.rowcount  # type: ignore[attr-defined]
        logger.info("Invoices deleted", count=deleted)
        return deleted
