"""Order model type definitions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from src.models.product import ProductUnit


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PLACED = "placed"
    PREPARING = "preparing"
    READY = "ready"
    FULFILLED = "fulfilled"
    DELAYED = "delayed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Orders in these states no longer hold a pickup slot seat
INACTIVE_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


class PaymentStatus(str, Enum):
    """Payment status tracked on the order."""

    PENDING = "pending"
    PAID_ESTIMATED = "paid_estimated"
    PARTIALLY_REFUNDED = "partially_refunded"
    FULLY_REFUNDED = "fully_refunded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog data copied onto an order item when the order is placed.

    Later catalog edits never change what a historical order was charged.
    """

    name: str
    unit: ProductUnit
    price_cents: int


@dataclass
class OrderItem:
    """Single line of an order.

    Exactly one of estimated_quantity / estimated_weight_lb is set,
    chosen by the snapshotted unit. The final_* fields are filled in
    when the order is finalized.
    """

    order_id: UUID
    product_id: UUID
    snapshot: ProductSnapshot
    estimated_line_subtotal_cents: int
    estimated_quantity: Decimal | None = None
    estimated_weight_lb: Decimal | None = None
    final_quantity: Decimal | None = None
    final_weight_lb: Decimal | None = None
    final_line_subtotal_cents: int | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def reserved_amount(self) -> Decimal:
        """Amount taken from stock when the order was booked."""
        return self.estimated_weight_lb or self.estimated_quantity or Decimal("0")

    @property
    def restorable_amount(self) -> Decimal:
        """Amount handed back to stock on cancellation (final wins over estimate)."""
        if self.snapshot.unit == ProductUnit.LB:
            amount = self.final_weight_lb if self.final_weight_lb is not None else self.estimated_weight_lb
        else:
            amount = self.final_quantity if self.final_quantity is not None else self.estimated_quantity
        return amount or Decimal("0")

    @property
    def effective_line_subtotal_cents(self) -> int:
        """Final line subtotal when finalized, estimated otherwise."""
        if self.final_line_subtotal_cents is not None:
            return self.final_line_subtotal_cents
        return self.estimated_line_subtotal_cents


@dataclass
class Order:
    """Order row.

    Three pickup clocks are kept apart: the requested slot (what the
    customer chose, never changes), the current slot (moved by long
    delays) and the estimated window (requested start plus every minute
    of delay).
    """

    order_number: str
    customer_name: str
    customer_phone: str
    requested_pickup_start: datetime
    requested_pickup_end: datetime
    pickup_slot_start: datetime
    pickup_slot_end: datetime
    estimated_pickup_start: datetime
    estimated_pickup_end: datetime
    estimated_subtotal_cents: int
    estimated_tax_cents: int
    estimated_total_cents: int
    payment_provider: str
    status: OrderStatus = OrderStatus.PLACED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    total_delay_minutes: int = 0
    final_subtotal_cents: int | None = None
    final_tax_cents: int | None = None
    final_total_cents: int | None = None
    payment_intent_id: str | None = None
    payment_client_secret: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def paid_total_cents(self) -> int:
        """Amount the customer is charged: final total once known, else the estimate."""
        if self.final_total_cents is not None:
            return self.final_total_cents
        return self.estimated_total_cents

    @property
    def is_terminal(self) -> bool:
        """Check if the order is cancelled or refunded."""
        return self.status in INACTIVE_ORDER_STATUSES

    def set_final_totals(self, subtotal_cents: int, tax_cents: int, total_cents: int) -> None:
        """Set all final totals together."""
        self.final_subtotal_cents = subtotal_cents
        self.final_tax_cents = tax_cents
        self.final_total_cents = total_cents


@dataclass
class Refund:
    """Append-only refund ledger entry."""

    order_id: UUID
    amount_cents: int
    reason: str
    provider_ref: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
