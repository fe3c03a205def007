"""Money, tax and refund arithmetic in integer cents.

All rounding is half-up, so 82.5 cents becomes 83 rather than Python's
round-half-even 82.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from src.models.product import ProductUnit

BASIS_POINTS = 10000


@dataclass(frozen=True)
class OrderTotals:
    """Subtotal, tax and total for an order, in cents."""

    subtotal_cents: int
    tax_cents: int
    total_cents: int


@dataclass(frozen=True)
class EstimatedLine:
    """Estimated quantity or weight for one requested line."""

    estimated_quantity: Decimal | None
    estimated_weight_lb: Decimal | None
    line_subtotal_cents: int

    @property
    def amount_to_reserve(self) -> Decimal:
        """Stock amount held for this line."""
        if self.estimated_weight_lb is not None:
            return self.estimated_weight_lb
        return self.estimated_quantity or Decimal("0")


def round_cents(value: Decimal) -> int:
    """Round a fractional cent amount half-up to whole cents."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    """Compute tax for a subtotal at a basis-point rate."""
    return round_cents(Decimal(subtotal_cents) * Decimal(tax_rate_bps) / Decimal(BASIS_POINTS))


def build_totals(subtotal_cents: int, tax_rate_bps: int) -> OrderTotals:
    """Build subtotal, tax and total for an order."""
    tax_cents = compute_tax_cents(subtotal_cents, tax_rate_bps)
    return OrderTotals(
        subtotal_cents=subtotal_cents,
        tax_cents=tax_cents,
        total_cents=subtotal_cents + tax_cents,
    )


def line_subtotal_cents(price_cents: int, amount: Decimal) -> int:
    """Price a line as unit price times quantity or weight."""
    return round_cents(Decimal(price_cents) * amount)


def estimate_line(
    unit: ProductUnit,
    price_cents: int,
    quantity: Decimal,
    estimated_weight_lb: Decimal | None = None,
) -> EstimatedLine:
    """Estimate one requested line.

    By-weight products use the shopper's weight estimate and fall back to
    the quantity field; discrete products use the quantity.

    Args:
        unit: Product unit.
        price_cents: Unit (or per-pound) price in cents.
        quantity: Requested quantity.
        estimated_weight_lb: Optional weight estimate for by-weight products.

    Returns:
        EstimatedLine: Estimated amount and line subtotal.
    """
    if unit == ProductUnit.LB:
        weight = estimated_weight_lb if estimated_weight_lb is not None else quantity
        return EstimatedLine(
            estimated_quantity=None,
            estimated_weight_lb=weight,
            line_subtotal_cents=line_subtotal_cents(price_cents, weight),
        )

    return EstimatedLine(
        estimated_quantity=quantity,
        estimated_weight_lb=None,
        line_subtotal_cents=line_subtotal_cents(price_cents, quantity),
    )


def clamp_refund_amount(requested_cents: int, already_refunded_cents: int, paid_cents: int) -> int:
    """Cap a refund request at what is still refundable.

    Args:
        requested_cents: Amount the operator asked to refund.
        already_refunded_cents: Sum of the refund ledger for the order.
        paid_cents: Amount charged for the order.

    Returns:
        int: Refund amount to issue (zero or less means nothing is left).
    """
    remaining = max(0, paid_cents - already_refunded_cents)
    return min(requested_cents, remaining)


def format_money(cents: int) -> str:
    """Format cents as a dollar string."""
    return f"${Decimal(cents) / 100:.2f}"
