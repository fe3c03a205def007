"""Webhook API routes for payment provider callbacks."""

import logging

from fastapi import APIRouter, Request, status

from src.api.deps import LifecycleServiceDep, Payments
from src.core.payments import PAYMENT_SUCCEEDED

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives payment provider events. Requires a valid signature when Stripe is configured.",
)
async def stripe_webhook(
    request: Request,
    payments: Payments,
    service: LifecycleServiceDep,
) -> dict[str, bool]:
    """Handle payment provider webhook events.

    Handles:
    - payment_intent.succeeded: marks the order's payment as paid_estimated

    Other event types are acknowledged and ignored.

    Args:
        request: FastAPI request object for reading raw body and headers.
        payments: Payment provider used to verify and parse the event.
        service: Order lifecycle service.

    Returns:
        dict: Acknowledgment.

    Raises:
        ValidationError: 400 if the signature or payload is invalid.
    """
    payload = await request.body()
    event = payments.parse_webhook(payload, request.headers.get("stripe-signature"))

    logger.info("Received payment webhook: %s", event.kind)
    if event.kind == PAYMENT_SUCCEEDED and event.payment_intent_id:
        await service.mark_payment_succeeded(event.payment_intent_id)

    return {"received": True}
