"""Order lifecycle: status changes, delays, finalization, refunds and fulfillment."""

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable
from uuid import UUID
from zoneinfo import ZoneInfo

from src.core.config import Settings
from src.core.errors import (
    NoPaymentIntentError,
    NotFoundError,
    NothingToRefundError,
    TerminalStateError,
    ValidationError,
)
from src.core.payments import PaymentProvider
from src.core.receipt_storage import ReceiptStorage
from src.models.order import Order, OrderItem, OrderStatus, PaymentStatus, Refund
from src.models.product import ProductUnit
from src.services.booking_service import normalize_phone
from src.services.delay_rules import slot_shift_hours
from src.services.money import build_totals, clamp_refund_amount, line_subtotal_cents
from src.services.pickup_slots import SLOT_LENGTH, utc_now
from src.services.receipt_formatter import (
    RECEIPT_CONTENT_TYPE,
    build_escpos_receipt,
    receipt_key,
    render_receipt_document,
)
from src.services.status_flow import assert_valid_transition, can_transition
from src.stores.base import OrderStore, StoreTransaction, retry_on_conflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalItemInput:
    """Weighed or counted amount for one order item. Omitted values keep the estimate."""

    order_item_id: UUID
    final_quantity: Decimal | None = None
    final_weight_lb: Decimal | None = None


@dataclass(frozen=True)
class OrderDetail:
    """Order with its items, refund total and receipt link."""

    order: Order
    items: list[OrderItem]
    refunded_cents: int
    receipt_url: str | None = None


@dataclass(frozen=True)
class RefundOutcome:
    """Result of a refund request."""

    refunded_cents: int
    order: Order


@dataclass(frozen=True)
class FulfillmentOutcome:
    """Receipt handles produced when an order is fulfilled."""

    order: Order
    receipt_url: str
    escpos_payload_base64: str


@dataclass(frozen=True)
class ReceiptDownload:
    """Stored receipt, as content to serve or a URL to redirect to."""

    order: Order
    filename: str
    content: bytes | None = None
    url: str | None = None


@dataclass(frozen=True)
class EscposReceipt:
    """Printer payload for an order, plus its stored receipt link if any."""

    order: Order
    receipt_url: str | None
    escpos_payload_base64: str


def _apply_final_amount(item: OrderItem, final: FinalItemInput) -> None:
    if item.snapshot.unit == ProductUnit.LB:
        weight = final.final_weight_lb if final.final_weight_lb is not None else item.estimated_weight_lb
        item.final_weight_lb = weight
        item.final_line_subtotal_cents = line_subtotal_cents(item.snapshot.price_cents, weight or Decimal("0"))
    else:
        quantity = final.final_quantity if final.final_quantity is not None else item.estimated_quantity
        item.final_quantity = quantity
        item.final_line_subtotal_cents = line_subtotal_cents(item.snapshot.price_cents, quantity or Decimal("0"))


class OrderLifecycleService:
    """Operator actions on placed orders.

    Every action locks the order row, validates it and writes its changes
    in one store transaction. Provider and storage calls happen inside that
    transaction, so their failure leaves nothing written. A transaction that
    loses a race is retried from the start; provider calls carry
    idempotency keys so a retry replays rather than repeats them.
    """

    def __init__(
        self,
        store: OrderStore,
        payments: PaymentProvider,
        storage: ReceiptStorage,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.payments = payments
        self.storage = storage
        self.settings = settings
        self.clock = clock
        self.tz = ZoneInfo(settings.store_timezone)

    async def _load(self, tx: StoreTransaction, order_id: UUID, for_update: bool = False) -> Order:
        order = await tx.get_order(order_id, for_update=for_update)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def _save(self, tx: StoreTransaction, order: Order) -> None:
        order.updated_at = self.clock()
        await tx.update_order(order)

    async def _detail(self, tx: StoreTransaction, order: Order) -> OrderDetail:
        items = await tx.list_order_items(order.id)
        refunded = await tx.refunded_total(order.id)
        key = await tx.get_receipt_key(order.id)
        url = await self.storage.signed_url(key) if key else None
        return OrderDetail(order=order, items=items, refunded_cents=refunded, receipt_url=url)

    async def list_orders(self, status: OrderStatus | None = None) -> list[Order]:
        """List orders for the operator dashboard."""
        async with self.store.transaction() as tx:
            return await tx.list_orders(status=status)

    async def get_order_detail(self, order_id: UUID) -> OrderDetail:
        """Get an order with items and refund total.

        Raises:
            NotFoundError: If the order does not exist.
        """
        async with self.store.transaction() as tx:
            order = await self._load(tx, order_id)
            return await self._detail(tx, order)

    async def lookup_order(self, order_number: str, phone: str) -> OrderDetail:
        """Find a shopper's order by order number and phone.

        Raises:
            NotFoundError: If no order matches both values.
        """
        async with self.store.transaction() as tx:
            order = await tx.get_order_by_number(order_number.strip().upper())
            if order is None or order.customer_phone != normalize_phone(phone):
                raise NotFoundError("Order not found")
            return await self._detail(tx, order)

    async def change_status(self, order_id: UUID, new_status: OrderStatus) -> Order:
        """Move an order to a new status.

        Cancelling restores every item's reserved amount to stock. Setting
        the current status again changes nothing.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the move is not allowed.
        """
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._load(tx, order_id, for_update=True)
                    if order.status == new_status:
                        return order

                    assert_valid_transition(order.status, new_status)

                    if new_status == OrderStatus.CANCELLED:
                        for item in await tx.list_order_items(order.id):
                            await tx.increment_stock(item.product_id, item.restorable_amount)

                    previous = order.status
                    order.status = new_status
                    await self._save(tx, order)

        logger.info("Order %s status %s -> %s", order.order_number, previous.value, new_status.value)
        return order

    async def apply_delay(self, order_id: UUID, delay_minutes: int) -> Order:
        """Delay an order.

        Delays accumulate. Long delays move the physical pickup slot; the
        estimated pickup window always trails the requested start by the
        total delay.

        Raises:
            ValidationError: If delay_minutes is not an allowed choice.
            NotFoundError: If the order does not exist.
            TerminalStateError: If the order is cancelled or refunded.
            InvalidTransitionError: If the order cannot be delayed (fulfilled).
        """
        shift_hours = slot_shift_hours(delay_minutes)

        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._load(tx, order_id, for_update=True)
                    if order.is_terminal:
                        raise TerminalStateError(f"Cannot delay a {order.status.value} order")
                    assert_valid_transition(order.status, OrderStatus.DELAYED)

                    order.total_delay_minutes += delay_minutes
                    order.status = OrderStatus.DELAYED
                    order.pickup_slot_start += timedelta(hours=shift_hours)
                    order.pickup_slot_end += timedelta(hours=shift_hours)
                    delay = timedelta(minutes=order.total_delay_minutes)
                    order.estimated_pickup_start = order.requested_pickup_start + delay
                    order.estimated_pickup_end = order.estimated_pickup_start + SLOT_LENGTH
                    await self._save(tx, order)

        logger.info(
            "Order %s delayed %d min (total %d, slot shift %dh)",
            order.order_number,
            delay_minutes,
            order.total_delay_minutes,
            shift_hours,
        )
        return order

    async def finalize(self, order_id: UUID, final_items: list[FinalItemInput]) -> OrderDetail:
        """Record weighed/counted amounts and compute final totals.

        Raises:
            NotFoundError: If the order does not exist.
            TerminalStateError: If the order is cancelled or refunded.
            ValidationError: If an item id does not belong to the order.
        """
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._load(tx, order_id, for_update=True)
                    if order.is_terminal:
                        raise TerminalStateError(f"Cannot finalize a {order.status.value} order")

                    items = await tx.list_order_items(order.id)
                    by_id = {item.id: item for item in items}

                    for final in final_items:
                        item = by_id.get(final.order_item_id)
                        if item is None:
                            raise ValidationError(f"Order item {final.order_item_id} does not belong to this order")

                        _apply_final_amount(item, final)
                        await tx.update_order_item(item)

                    totals = build_totals(
                        sum(item.effective_line_subtotal_cents for item in items),
                        self.settings.tax_rate_bps,
                    )
                    order.set_final_totals(totals.subtotal_cents, totals.tax_cents, totals.total_cents)
                    await self._save(tx, order)
                    detail = await self._detail(tx, order)

        logger.info("Order %s finalized (total=%d cents)", order.order_number, totals.total_cents)
        return detail

    async def refund(self, order_id: UUID, amount_cents: int, reason: str) -> RefundOutcome:
        """Refund part or all of what was paid, capped at the remaining balance.

        Raises:
            NotFoundError: If the order does not exist.
            NothingToRefundError: If the order is already fully refunded.
            NoPaymentIntentError: If the order has no payment intent.
            DependencyError: If the payment provider fails.
        """
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._load(tx, order_id, for_update=True)

                    already = await tx.refunded_total(order.id)
                    paid = order.paid_total_cents
                    refundable = clamp_refund_amount(amount_cents, already, paid)
                    if refundable <= 0:
                        raise NothingToRefundError()
                    if not order.payment_intent_id:
                        raise NoPaymentIntentError()

                    provider_refund = await self.payments.refund(
                        intent_id=order.payment_intent_id,
                        amount_cents=refundable,
                        reason=reason,
                        idempotency_key=f"refund-{order.id}-{already}-{refundable}",
                    )
                    await tx.add_refund(
                        Refund(
                            order_id=order.id,
                            amount_cents=refundable,
                            reason=reason,
                            provider_ref=provider_refund.refund_id,
                        )
                    )

                    if already + refundable >= paid:
                        order.payment_status = PaymentStatus.FULLY_REFUNDED
                        if can_transition(order.status, OrderStatus.REFUNDED):
                            order.status = OrderStatus.REFUNDED
                    else:
                        order.payment_status = PaymentStatus.PARTIALLY_REFUNDED
                    await self._save(tx, order)

        logger.info(
            "Refunded %d cents on order %s (%s)",
            refundable,
            order.order_number,
            order.payment_status.value,
        )
        return RefundOutcome(refunded_cents=refundable, order=order)

    async def fulfill(self, order_id: UUID) -> FulfillmentOutcome:
        """Mark an order fulfilled and (re)generate its receipts.

        Fulfilling an already fulfilled order only regenerates the receipts.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the order cannot be fulfilled.
            DependencyError: If receipt storage fails.
        """
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._load(tx, order_id, for_update=True)
                    if order.status != OrderStatus.FULFILLED:
                        assert_valid_transition(order.status, OrderStatus.FULFILLED)
                        order.status = OrderStatus.FULFILLED
                        await self._save(tx, order)

                    items = await tx.list_order_items(order.id)
                    key = await self.storage.put(
                        receipt_key(order),
                        render_receipt_document(order, items, self.tz),
                        RECEIPT_CONTENT_TYPE,
                    )
                    await tx.upsert_receipt(order.id, key)
                    url = await self.storage.signed_url(key)
                    escpos = build_escpos_receipt(order, items, self.tz)

        logger.info("Order %s fulfilled; receipt stored at %s", order.order_number, key)
        return FulfillmentOutcome(
            order=order,
            receipt_url=url,
            escpos_payload_base64=base64.b64encode(escpos).decode("ascii"),
        )

    async def get_receipt(self, order_id: UUID) -> ReceiptDownload:
        """Get the stored receipt of a fulfilled order.

        Storage that can serve content returns the document itself; other
        storage returns a signed URL.

        Raises:
            NotFoundError: If the order or its receipt does not exist.
            DependencyError: If receipt storage fails.
        """
        async with self.store.transaction() as tx:
            order = await self._load(tx, order_id)
            key = await tx.get_receipt_key(order.id)
        if key is None:
            raise NotFoundError("Receipt not found")

        filename = key.rsplit("/", 1)[-1]
        if not self.storage.serves_content:
            return ReceiptDownload(order=order, filename=filename, url=await self.storage.signed_url(key))

        content = await self.storage.read(key)
        if content is None:
            logger.warning("Receipt %s for order %s is missing from storage", key, order.order_number)
            raise NotFoundError("Receipt not found")
        return ReceiptDownload(order=order, filename=filename, content=content)

    async def get_escpos_receipt(self, order_id: UUID) -> EscposReceipt:
        """Build the printer payload for an order without changing it.

        Raises:
            NotFoundError: If the order does not exist.
        """
        async with self.store.transaction() as tx:
            order = await self._load(tx, order_id)
            items = await tx.list_order_items(order.id)
            key = await tx.get_receipt_key(order.id)
        url = await self.storage.signed_url(key) if key else None
        escpos = build_escpos_receipt(order, items, self.tz)
        return EscposReceipt(
            order=order,
            receipt_url=url,
            escpos_payload_base64=base64.b64encode(escpos).decode("ascii"),
        )

    async def mark_payment_succeeded(self, payment_intent_id: str) -> Order | None:
        """Record a successful payment reported by the provider webhook."""
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await tx.get_order_by_payment_intent(payment_intent_id)
                    if order is None:
                        logger.warning("Payment succeeded for unknown intent %s", payment_intent_id)
                        return None
                    if order.payment_status == PaymentStatus.PENDING:
                        order.payment_status = PaymentStatus.PAID_ESTIMATED
                        await self._save(tx, order)

        logger.info("Order %s payment status %s", order.order_number, order.payment_status.value)
        return order
