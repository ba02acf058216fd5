"""Database models."""

from sqlmodel import SQLModel

from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice

__all__ = [
    "SQLModel",
    "Invoice",
    "InvoiceStatus",
]
