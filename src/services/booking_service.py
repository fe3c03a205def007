"""Booking transaction coordinator for shopper orders."""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from src.core.config import Settings
from src.core.errors import (
    InsufficientStockError,
    InvalidSlotError,
    ProductUnavailableError,
    SlotFullError,
    ValidationError,
)
from src.core.payments import PaymentProvider
from src.models.order import Order, OrderItem, ProductSnapshot
from src.models.product import Product
from src.services.money import EstimatedLine, build_totals, estimate_line
from src.services.order_number import build_order_number
from src.services.pickup_availability_service import PickupAvailabilityService
from src.services.pickup_slots import SLOT_LENGTH, to_utc
from src.stores.base import OrderStore, StoreTransaction, retry_on_conflict

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 7


def normalize_phone(phone: str) -> str:
    """Strip formatting from a phone number, keeping digits and a leading '+'."""
    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    return f"+{digits}" if phone.startswith("+") else digits


@dataclass(frozen=True)
class OrderLineRequest:
    """One requested product line."""

    product_id: UUID
    quantity: Decimal
    estimated_weight_lb: Decimal | None = None


@dataclass(frozen=True)
class _PricedLine:
    product: Product
    estimate: EstimatedLine


class BookingService:
    """Places orders into pickup slots without ever exceeding capacity.

    A pre-check rejects obviously bad requests early. The authoritative
    capacity count, sequence allocation, payment intent, inserts and stock
    decrements then all happen in a single store transaction, run under a
    per-slot lock and retried whole if it loses a race.
    """

    def __init__(
        self,
        store: OrderStore,
        payments: PaymentProvider,
        availability: PickupAvailabilityService,
        settings: Settings,
    ) -> None:
        self.store = store
        self.payments = payments
        self.availability = availability
        self.settings = settings

    async def create_order(
        self,
        customer_name: str,
        customer_phone: str,
        pickup_slot_start: datetime,
        items: list[OrderLineRequest],
    ) -> Order:
        """Book an order into a pickup slot.

        Args:
            customer_name: Name printed on the order.
            customer_phone: Contact phone, used with the order number for lookup.
            pickup_slot_start: Start instant of the chosen slot.
            items: Requested product lines.

        Returns:
            Order: The placed order, including its payment client secret.

        Raises:
            ValidationError: If the customer details or lines are malformed.
            InvalidSlotError: If the slot is not currently bookable.
            SlotFullError: If the slot has no remaining capacity.
            ProductUnavailableError: If a product is missing or inactive.
            InsufficientStockError: If stock cannot cover a line.
            TransactionConflictError: If every attempt collided with concurrent bookings.
            DependencyError: If the payment provider fails.
        """
        customer_name = customer_name.strip()
        phone = normalize_phone(customer_phone)
        if not customer_name:
            raise ValidationError("Customer name is required")
        if len(phone.lstrip("+")) < MIN_PHONE_DIGITS:
            raise ValidationError("Customer phone is invalid")
        if not items:
            raise ValidationError("Order must contain at least one item")
        for line in items:
            if line.quantity <= 0 or (line.estimated_weight_lb is not None and line.estimated_weight_lb <= 0):
                raise ValidationError("Item quantities must be positive")

        slot_start = to_utc(pickup_slot_start)
        await self._precheck(slot_start, items)

        order_id = uuid4()
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    order = await self._book(tx, order_id, customer_name, phone, slot_start, items)

        logger.info(
            "Order %s placed for slot %s (total=%d cents)",
            order.order_number,
            slot_start.isoformat(),
            order.estimated_total_cents,
        )
        return order

    async def _book(
        self,
        tx: StoreTransaction,
        order_id: UUID,
        customer_name: str,
        phone: str,
        slot_start: datetime,
        items: list[OrderLineRequest],
    ) -> Order:
        """Count, reserve and insert inside one transaction. Retried whole on conflict."""
        await tx.lock_slot(slot_start)
        booked = await tx.count_live_bookings(slot_start)
        if booked >= self.settings.slot_capacity:
            raise SlotFullError()

        lines = await self._price_lines(tx, items)
        totals = build_totals(
            sum(line.estimate.line_subtotal_cents for line in lines),
            self.settings.tax_rate_bps,
        )

        service_date = self.availability.service_date_of(slot_start)
        sequence = await tx.next_daily_sequence(service_date)
        order_number = build_order_number(service_date, sequence)

        for line in lines:
            if not await tx.decrement_stock(line.product.id, line.estimate.amount_to_reserve):
                raise InsufficientStockError(f"Insufficient stock for {line.product.name}")

        intent = await self.payments.create_intent(
            order_id=order_id,
            order_number=order_number,
            amount_cents=totals.total_cents,
            metadata={"customer_name": customer_name, "customer_phone": phone},
        )

        slot_end = slot_start + SLOT_LENGTH
        order = Order(
            id=order_id,
            order_number=order_number,
            customer_name=customer_name,
            customer_phone=phone,
            requested_pickup_start=slot_start,
            requested_pickup_end=slot_end,
            pickup_slot_start=slot_start,
            pickup_slot_end=slot_end,
            estimated_pickup_start=slot_start,
            estimated_pickup_end=slot_end,
            estimated_subtotal_cents=totals.subtotal_cents,
            estimated_tax_cents=totals.tax_cents,
            estimated_total_cents=totals.total_cents,
            payment_provider=self.payments.name,
            payment_intent_id=intent.intent_id,
            payment_client_secret=intent.client_secret,
        )
        order_items = [
            OrderItem(
                order_id=order_id,
                product_id=line.product.id,
                snapshot=ProductSnapshot(
                    name=line.product.name,
                    unit=line.product.unit,
                    price_cents=line.product.price_cents,
                ),
                estimated_quantity=line.estimate.estimated_quantity,
                estimated_weight_lb=line.estimate.estimated_weight_lb,
                estimated_line_subtotal_cents=line.estimate.line_subtotal_cents,
            )
            for line in lines
        ]
        await tx.insert_order(order, order_items)
        return order

    async def _precheck(self, slot_start: datetime, items: list[OrderLineRequest]) -> None:
        """Reject unbookable slots and unavailable products before the booking transaction."""
        service_date = self.availability.service_date_of(slot_start)

        async with self.store.transaction() as tx:
            _, slots = await self.availability.slots_for_date(tx, service_date, apply_lead_time=True)
            slot = next((s for s in slots if s.start == slot_start), None)
            if slot is None or slot.is_unavailable:
                raise InvalidSlotError()
            if slot.available <= 0:
                raise SlotFullError()

            lines = await self._price_lines(tx, items)

        requested: dict[UUID, Decimal] = defaultdict(Decimal)
        for line in lines:
            requested[line.product.id] += line.estimate.amount_to_reserve
        for line in lines:
            if line.product.stock_quantity < requested[line.product.id]:
                raise InsufficientStockError(f"Insufficient stock for {line.product.name}")

    async def _price_lines(self, tx: StoreTransaction, items: list[OrderLineRequest]) -> list[_PricedLine]:
        lines = []
        for item in items:
            product = await tx.get_product(item.product_id)
            if product is None or not product.active:
                raise ProductUnavailableError(f"Product {item.product_id} is unavailable")
            lines.append(
                _PricedLine(
                    product=product,
                    estimate=estimate_line(
                        product.unit,
                        product.price_cents,
                        item.quantity,
                        item.estimated_weight_lb,
                    ),
                )
            )
        return lines
