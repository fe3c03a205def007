"""Customer receipt document and ESC/POS printer payload."""

from decimal import Decimal
from zoneinfo import ZoneInfo

from src.models.order import Order, OrderItem
from src.services.money import format_money

STORE_NAME = "OASIS MARKETS"
RECEIPT_WIDTH = 32
RECEIPT_CONTENT_TYPE = "text/plain; charset=utf-8"

# ESC/POS control sequences
ESC = b"\x1b"
GS = b"\x1d"
INIT = ESC + b"@"
ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
SIZE_DOUBLE = GS + b"!\x11"
SIZE_NORMAL = GS + b"!\x00"
FULL_CUT = GS + b"V\x00"


def receipt_key(order: Order) -> str:
    """Storage key of an order's receipt document."""
    return f"receipts/{order.order_number}.txt"


def item_amount(item: OrderItem) -> Decimal:
    """Amount shown on the receipt: final weight or quantity, else the estimate."""
    for amount in (item.final_weight_lb, item.final_quantity, item.estimated_weight_lb, item.estimated_quantity):
        if amount is not None:
            return amount
    return Decimal("0")


def _pickup_label(order: Order, tz: ZoneInfo) -> str:
    start = order.pickup_slot_start.astimezone(tz)
    end = order.pickup_slot_end.astimezone(tz)
    return f"{start:%Y-%m-%d %H:%M} - {end:%H:%M}"


def render_receipt_document(order: Order, items: list[OrderItem], tz: ZoneInfo) -> bytes:
    """Render the customer receipt stored alongside the order."""
    rule = "-" * RECEIPT_WIDTH
    lines = [
        STORE_NAME.center(RECEIPT_WIDTH),
        f"ORDER {order.order_number}".center(RECEIPT_WIDTH),
        order.customer_name.upper().center(RECEIPT_WIDTH),
        "",
        f"Order ID: {order.id}",
        f"Pickup: {_pickup_label(order, tz)}",
        f"Status: {order.status.value.upper()}",
        rule,
    ]

    for item in items:
        lines.append(item.snapshot.name)
        lines.append(
            f"  {item_amount(item):.2f} {item.snapshot.unit.value}  "
            f"{format_money(item.effective_line_subtotal_cents)}"
        )

    lines.append(rule)
    lines.append(f"Estimated Total: {format_money(order.estimated_total_cents)}")
    if order.final_total_cents is not None:
        lines.append(f"Final Subtotal: {format_money(order.final_subtotal_cents or 0)}")
        lines.append(f"Final Tax: {format_money(order.final_tax_cents or 0)}")
        lines.append(f"Final Total: {format_money(order.final_total_cents)}")
    lines.append("")
    lines.append(f"Thank you for shopping at {STORE_NAME.title()}.")

    return ("\n".join(lines) + "\n").encode("utf-8")


def build_escpos_receipt(order: Order, items: list[OrderItem], tz: ZoneInfo) -> bytes:
    """Build the raw byte stream for an ESC/POS thermal printer."""

    def text(value: str) -> bytes:
        return value.encode("cp437", errors="replace") + b"\n"

    out = bytearray()
    out += INIT + ALIGN_CENTER + SIZE_DOUBLE
    out += text(STORE_NAME)
    out += SIZE_NORMAL
    out += text(f"ORDER {order.order_number}")
    out += text(f"NAME {order.customer_name.upper()}")
    out += b"\n" + ALIGN_LEFT
    out += text("-" * RECEIPT_WIDTH)

    for item in items:
        out += text(item.snapshot.name)
        out += text(
            f"  {item_amount(item):.2f} {item.snapshot.unit.value}  "
            f"{format_money(item.effective_line_subtotal_cents)}"
        )

    out += text("-" * RECEIPT_WIDTH)
    out += text(f"EST TOTAL: {format_money(order.estimated_total_cents)}")
    if order.final_total_cents is not None:
        out += text(f"FINAL TOTAL: {format_money(order.final_total_cents)}")
    out += text(f"STATUS: {order.status.value.upper()}")
    out += text(f"PICKUP: {_pickup_label(order, tz)}")
    out += b"\n\n" + FULL_CUT

    return bytes(out)
