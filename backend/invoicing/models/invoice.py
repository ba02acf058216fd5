"""Invoice database model."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Enum, Index, text
from sqlmodel import Field, SQLModel
from ulid import ULID

from invoicing.models.enums import InvoiceStatus
from invoicing.models.types import ULIDType


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


# Soft-deleted rows are excluded from both uniqueness constraints
_LIVE_ROWS = text("deleted_at IS NULL")

# One live invoice per order
ORDER_ID_UNIQUE_INDEX = Index(
    "uq_invoices_order_id",
    "order_id",
    unique=True,
    postgresql_where=_LIVE_ROWS,
    sqlite_where=_LIVE_ROWS,
)

# Serialization point for number assignment - conflicts here are retried
INVOICE_NUMBER_UNIQUE_INDEX = Index(
    "uq_invoices_invoice_number",
    "invoice_number",
    unique=True,
    postgresql_where=_LIVE_ROWS,
    sqlite_where=_LIVE_ROWS,
)


class Invoice(SQLModel, table=True):
    """Invoice for a placed order.

    Created as PENDING without a number, then numbered exactly once.
    """

    __tablename__ = "invoices"
    __table_args__ = (ORDER_ID_UNIQUE_INDEX, INVOICE_NUMBER_UNIQUE_INDEX)

    # ULID stored as UUID
    id: str = Field(
        default_factory=_ulid,
        max_length=26,
        sa_column=Column(ULIDType, primary_key=True),
    )
    order_id: str = Field(nullable=False)
    invoice_number: int | None = Field(default=None)
    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING,
        sa_column=Column(
            Enum(
                InvoiceStatus,
                values_callable=lambda e: [x.value for x in e],
                name="invoicestatus",
                native_enum=False,
                create_constraint=True,
                length=16,
            ),
            nullable=False,
            index=True,
        ),
    )
    created_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    deleted_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True))

    @property
    def is_numbered(self) -> bool:
        return self.status == InvoiceStatus.CREATED and self.invoice_number is not None
