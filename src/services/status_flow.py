"""Order status transition guard."""

from src.core.errors import InvalidTransitionError
from src.models.order import OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset(
        {OrderStatus.PREPARING, OrderStatus.DELAYED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.PREPARING: frozenset(
        {OrderStatus.READY, OrderStatus.DELAYED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.READY: frozenset(
        {OrderStatus.FULFILLED, OrderStatus.DELAYED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.DELAYED: frozenset(
        {OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.FULFILLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """Check whether an order may move from one status to another.

    Moving to the same status is always allowed.
    """
    if current == requested:
        return True
    return requested in ALLOWED_TRANSITIONS[current]


def assert_valid_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Raise InvalidTransitionError unless the move is allowed.

    Raises:
        InvalidTransitionError: If the transition table forbids the move.
    """
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)
