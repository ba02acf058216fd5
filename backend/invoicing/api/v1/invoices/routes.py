"""Invoice lookup API endpoints."""

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from invoicing.api.v1.invoices.dependencies import InvoiceServiceDep
from invoicing.api.v1.invoices.schemas import ErrorResponse, InvoiceResponse, OrderInvoiceResponse
from invoicing.config import settings
from invoicing.utils.order_helpers import is_valid_order_id

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["invoices"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


@router.get(
    "/orders/{order_id}/invoice",
    response_model=OrderInvoiceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    operation_id="getOrderInvoice",
)
async def get_order_invoice(
    order_id: str,
    service: InvoiceServiceDep,
) -> OrderInvoiceResponse | JSONResponse:
    """Get the invoice of an order."""
    if not is_valid_order_id(order_id):
        return _error(400, "Invalid order ID format")

    try:
        invoice = await service.get_invoice_by_order_id(order_id)
    except Exception as e:
        if settings.is_production:
            logger.error("Failed to retrieve invoice", order_id=order_id)
        else:
            logger.error("Failed to retrieve invoice", order_id=order_id, error=str(e))
        return _error(500, "Failed to retrieve invoice")

    if invoice is None:
        return _error(404, "Invoice not found")

    return OrderInvoiceResponse(invoice=InvoiceResponse.from_model(invoice))
