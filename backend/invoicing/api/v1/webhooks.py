"""Order event webhook endpoints."""

import hashlib
import hmac
import json
from base64 import b64encode

import structlog
from fastapi import APIRouter, HTTPException, Request, Response

from invoicing.config import settings
from invoicing.tasks.invoices.order_placed import create_invoice_for_order

logger = structlog.get_logger(__name__)

router = APIRouter()

HMAC_HEADER = "X-Webhook-Hmac-Sha256"


def verify_webhook_hmac(body: bytes, hmac_header: str | None) -> bool:
    """
    Verify the webhook HMAC signature.

    Verification is skipped when no webhook secret is configured.

    Args:
        body: Raw request body bytes
        hmac_header: X-Webhook-Hmac-Sha256 header value (base64 HMAC-SHA256)

    Returns:
        True if signature is valid or verification is disabled, False otherwise
    """
    if not settings.order_webhook_secret:
        return True
    if not hmac_header:
        return False

    computed_hmac = b64encode(
        hmac.new(
            settings.order_webhook_secret.encode("utf-8"),
            body,
            hashlib.sha256,
        ).digest()
    ).decode("utf-8")

    return hmac.compare_digest(computed_hmac, hmac_header)


@router.post("/webhooks/order-placed", operation_id="orderPlacedWebhook")
async def order_placed_webhook(request: Request) -> Response:
    """
    Handle "order placed" events.

    1. Verify HMAC signature
    2. Enqueue invoice creation for the order
    3. Return 200 immediately

    Delivery is at least once; invoice creation is idempotent per order.
    """
    body = await request.body()

    if not verify_webhook_hmac(body, request.headers.get(HMAC_HEADER)):
        logger.warning("Invalid order webhook HMAC")
        raise HTTPException(status_code=401, detail="Invalid HMAC signature")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in webhook payload", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    order_id = payload.get("id") if isinstance(payload, dict) else None
    if not isinstance(order_id, str) or not order_id:
        raise HTTPException(status_code=400, detail="Missing order ID in payload")

    create_invoice_for_order.send(order_id)
    logger.info("Enqueued invoice creation", order_id=order_id)

    return Response(status_code=200)
