"""Human-readable order numbers."""

from datetime import date

ORDER_NUMBER_PREFIX = "OM"


def build_order_number(order_date: date, sequence: int) -> str:
    """Build an order number such as ``OM-20260211-0042``.

    The sequence is zero-padded to four digits and is never truncated.
    """
    return f"{ORDER_NUMBER_PREFIX}-{order_date:%Y%m%d}-{sequence:04d}"
