"""API schemas for invoice endpoints."""

from pydantic import BaseModel

from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice


class InvoiceResponse(BaseModel):
    """Invoice response schema."""

    id: str
    invoice_number: int | None
    order_id: str
    status: InvoiceStatus

    @classmethod
    def from_model(cls, invoice: Invoice) -> "InvoiceResponse":
        """Create response from Invoice model."""
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            order_id=invoice.order_id,
            status=invoice.status,
        )


class OrderInvoiceResponse(BaseModel):
    """Invoice lookup result for an order."""

    invoice: InvoiceResponse


class ErrorResponse(BaseModel):
    """Error body returned by invoice endpoints."""

    message: str
    invoice: None = None
