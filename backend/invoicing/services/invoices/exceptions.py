"""Invoice domain exceptions."""

from invoicing.services.exceptions import NotFoundError


class InvoiceNotFound(NotFoundError):
    """Invoice not found (or soft-deleted)."""

    pass
