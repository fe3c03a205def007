"""Payment provider collaborators.

The booking and refund flows only see the PaymentProvider interface. The
Stripe implementation talks to the Stripe API; the mock implementation
returns deterministic ids for local development and tests.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

import stripe
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import Settings
from src.core.errors import DependencyError, ValidationError
from src.core.stripe import get_stripe

logger = logging.getLogger(__name__)

# Retry configuration (connection errors only; idempotency keys make replays safe)
MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 10

PAYMENT_SUCCEEDED = "payment_succeeded"
IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentIntent:
    """Provider payment intent reference."""

    intent_id: str
    client_secret: str


@dataclass(frozen=True)
class ProviderRefund:
    """Refund confirmed by the provider."""

    refund_id: str
    amount_cents: int


@dataclass(frozen=True)
class WebhookEvent:
    """Provider webhook reduced to what the order flow cares about."""

    kind: str
    payment_intent_id: str | None = None


class PaymentProvider(ABC):
    """Interface to an external payment gateway."""

    name: str

    @abstractmethod
    async def create_intent(
        self,
        order_id: UUID,
        order_number: str,
        amount_cents: int,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent: ...

    @abstractmethod
    async def refund(
        self,
        intent_id: str,
        amount_cents: int,
        reason: str,
        idempotency_key: str,
    ) -> ProviderRefund: ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str | None) -> WebhookEvent: ...


def _event_from_payload(event: Any) -> WebhookEvent:
    if event["type"] == "payment_intent.succeeded":
        return WebhookEvent(kind=PAYMENT_SUCCEEDED, payment_intent_id=event["data"]["object"]["id"])
    return WebhookEvent(kind=IGNORED)


class MockPaymentProvider(PaymentProvider):
    """Deterministic provider used when Stripe is not configured."""

    name = "mock"

    async def create_intent(
        self,
        order_id: UUID,
        order_number: str,
        amount_cents: int,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        return PaymentIntent(
            intent_id=f"pi_mock_{order_id.hex}",
            client_secret=f"pi_mock_secret_{order_number}",
        )

    async def refund(
        self,
        intent_id: str,
        amount_cents: int,
        reason: str,
        idempotency_key: str,
    ) -> ProviderRefund:
        return ProviderRefund(refund_id=f"re_mock_{idempotency_key}", amount_cents=amount_cents)

    def parse_webhook(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Parse an unsigned event body (development only)."""
        try:
            event = json.loads(payload or b"{}")
            return _event_from_payload(event)
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError("Invalid webhook payload", error_type="invalid_webhook") from e


class StripePaymentProvider(PaymentProvider):
    """Stripe PaymentIntents and Refunds."""

    name = "stripe"

    def __init__(
        self,
        webhook_secret: str,
        currency: str = "usd",
        client: Any = None,
        wait: Any = None,
    ) -> None:
        """Initialize the provider.

        Args:
            webhook_secret: Signing secret for webhook verification.
            currency: ISO currency code for new intents.
            client: Optional Stripe module/client. Defaults to the configured module.
            wait: Optional tenacity wait strategy between connection retries.
        """
        self._client = client or get_stripe()
        self._webhook_secret = webhook_secret
        self._currency = currency
        self._wait = wait or wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS)

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking Stripe call off the event loop, retrying connection errors."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(stripe.APIConnectionError),
                stop=stop_after_attempt(MAX_RETRIES),
                wait=self._wait,
                reraise=True,
            ):
                with attempt:
                    return await asyncio.to_thread(fn, **kwargs)
        except stripe.StripeError as e:
            logger.error("Stripe %s failed: %s", operation, e)
            raise DependencyError(f"Payment provider error during {operation}", service="stripe") from e

    async def create_intent(
        self,
        order_id: UUID,
        order_number: str,
        amount_cents: int,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        intent = await self._call(
            "create_intent",
            self._client.PaymentIntent.create,
            amount=amount_cents,
            currency=self._currency,
            metadata={"order_id": str(order_id), "order_number": order_number, **(metadata or {})},
            automatic_payment_methods={"enabled": True},
            # A retried booking can come back with a different number or total
            idempotency_key=f"order-{order_id}-{order_number}-{amount_cents}",
        )

        if not intent.client_secret:
            raise DependencyError("Stripe payment intent did not return a client secret", service="stripe")

        logger.info("Created payment intent %s for order %s", intent.id, order_number)
        return PaymentIntent(intent_id=intent.id, client_secret=intent.client_secret)

    async def refund(
        self,
        intent_id: str,
        amount_cents: int,
        reason: str,
        idempotency_key: str,
    ) -> ProviderRefund:
        refund = await self._call(
            "refund",
            self._client.Refund.create,
            payment_intent=intent_id,
            amount=amount_cents,
            metadata={"reason": reason},
            idempotency_key=idempotency_key,
        )
        return ProviderRefund(refund_id=refund.id, amount_cents=refund.amount)

    def parse_webhook(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify and parse a Stripe webhook.

        Raises:
            ValidationError: If the signature header is missing or invalid.
        """
        if not signature:
            raise ValidationError("Missing Stripe-Signature header", error_type="invalid_signature")

        try:
            event = self._client.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload", error_type="invalid_webhook") from e
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature", error_type="invalid_signature") from e

        return _event_from_payload(event)


def build_payment_provider(settings: Settings) -> PaymentProvider:
    """Build the configured payment provider.

    Raises:
        RuntimeError: If Stripe is selected in production without its secrets.
    """
    if settings.payment_provider == "stripe":
        if settings.is_stripe_configured:
            return StripePaymentProvider(
                webhook_secret=settings.stripe_webhook_secret,
                currency=settings.currency,
            )
        if settings.is_production:
            raise RuntimeError("STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are required in production")
        logger.warning(
            "Using mock payment provider. Configure STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET for Stripe."
        )

    return MockPaymentProvider()
