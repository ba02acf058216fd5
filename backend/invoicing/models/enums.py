"""Enum definitions for database models."""

from enum import StrEnum


class InvoiceStatus(StrEnum):
    """Status of an invoice.

    Transitions only PENDING -> CREATED, when a number is assigned.
    """

    PENDING = "pending"
    CREATED = "created"
