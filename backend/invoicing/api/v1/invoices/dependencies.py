"""FastAPI dependencies for service injection."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.db import get_session
from invoicing.services.invoices.invoice_service import InvoiceService


async def get_invoice_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> InvoiceService:
    """Get an InvoiceService instance with the current session."""
    return InvoiceService(session)


# Type aliases for cleaner endpoint signatures
InvoiceServiceDep = Annotated[InvoiceService, Depends(get_invoice_service)]
