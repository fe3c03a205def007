"""Order store interface.

Every consistency-critical read and write happens on a StoreTransaction
obtained from OrderStore.transaction(). Leaving the context normally
commits; any exception rolls back every change made inside it.

Transactions that lose a race with a concurrent one raise
TransactionConflictError. Callers that write wrap the whole transaction in
retry_on_conflict() so the retried attempt re-reads current state.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from src.core.errors import TransactionConflictError
from src.models.admin import AdminUser
from src.models.order import Order, OrderItem, OrderStatus, Refund
from src.models.pickup import PickupDayRange
from src.models.product import Product, ProductCategory


class StoreTransaction(ABC):
    """Operations available inside one store transaction."""

    # Catalog

    @abstractmethod
    async def get_product(self, product_id: UUID) -> Product | None: ...

    @abstractmethod
    async def list_products(
        self,
        category: ProductCategory | None = None,
        include_inactive: bool = False,
    ) -> list[Product]: ...

    @abstractmethod
    async def add_product(self, product: Product) -> Product: ...

    @abstractmethod
    async def update_product(self, product: Product) -> Product | None:
        """Overwrite the editable fields of an existing product.

        Returns:
            Product | None: The stored product, or None when it does not exist.
        """

    @abstractmethod
    async def set_product_stock(self, product_id: UUID, stock_quantity: Decimal) -> Product | None: ...

    @abstractmethod
    async def decrement_stock(self, product_id: UUID, amount: Decimal) -> bool:
        """Take stock if enough remains.

        Returns:
            bool: False when the product is missing or stock would go negative.
        """

    @abstractmethod
    async def increment_stock(self, product_id: UUID, amount: Decimal) -> None: ...

    # Pickup schedule

    @abstractmethod
    async def lock_slot(self, slot_start: datetime) -> None:
        """Hold an exclusive lock on one pickup slot until the transaction ends.

        Bookings take this before re-counting so two transactions can never
        both see the last free seat.
        """

    @abstractmethod
    async def count_live_bookings(self, slot_start: datetime) -> int:
        """Count orders currently holding a slot, excluding cancelled and refunded."""

    @abstractmethod
    async def live_booking_counts(self, start: datetime, end: datetime) -> dict[datetime, int]:
        """Count live orders per slot start within [start, end)."""

    @abstractmethod
    async def get_day_range(self, service_date: date) -> PickupDayRange | None: ...

    @abstractmethod
    async def upsert_day_range(self, day_range: PickupDayRange) -> PickupDayRange: ...

    @abstractmethod
    async def unavailable_slot_starts(self, start: datetime, end: datetime) -> set[datetime]: ...

    @abstractmethod
    async def set_slot_unavailable(self, slot_start: datetime, unavailable: bool) -> None: ...

    # Orders

    @abstractmethod
    async def next_daily_sequence(self, order_date: date) -> int:
        """Increment-or-insert the counter for a date and return the new value."""

    @abstractmethod
    async def insert_order(self, order: Order, items: list[OrderItem]) -> None: ...

    @abstractmethod
    async def get_order(self, order_id: UUID, for_update: bool = False) -> Order | None:
        """Load an order, optionally locking its row until the transaction ends."""

    @abstractmethod
    async def get_order_by_number(self, order_number: str) -> Order | None: ...

    @abstractmethod
    async def get_order_by_payment_intent(self, payment_intent_id: str) -> Order | None: ...

    @abstractmethod
    async def list_orders(self, status: OrderStatus | None = None, limit: int = 200) -> list[Order]:
        """List orders, earliest current pickup slot first."""

    @abstractmethod
    async def update_order(self, order: Order) -> None: ...

    @abstractmethod
    async def list_order_items(self, order_id: UUID) -> list[OrderItem]: ...

    @abstractmethod
    async def update_order_item(self, item: OrderItem) -> None: ...

    # Refunds and receipts

    @abstractmethod
    async def refunded_total(self, order_id: UUID) -> int:
        """Sum of the refund ledger for an order."""

    @abstractmethod
    async def add_refund(self, refund: Refund) -> None: ...

    @abstractmethod
    async def upsert_receipt(self, order_id: UUID, storage_key: str) -> None: ...

    @abstractmethod
    async def get_receipt_key(self, order_id: UUID) -> str | None: ...

    # Admin accounts

    @abstractmethod
    async def get_admin_user(self, admin_id: UUID) -> AdminUser | None: ...

    @abstractmethod
    async def get_admin_user_by_email(self, email: str) -> AdminUser | None: ...

    @abstractmethod
    async def add_admin_user(self, user: AdminUser) -> AdminUser:
        """Insert an admin account.

        Raises:
            ConflictError: If the email is already registered.
        """


class OrderStore(ABC):
    """Transactional persistence for the catalog, schedule and orders."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a transaction."""

    @abstractmethod
    async def check_health(self) -> dict[str, Any]:
        """Check store connectivity.

        Returns:
            dict: {"healthy": bool, "error": str | None}
        """

    async def close(self) -> None:
        """Release connections held by the store."""



CONFLICT_RETRY_ATTEMPTS = 3


def retry_on_conflict(attempts: int = CONFLICT_RETRY_ATTEMPTS) -> AsyncRetrying:
    """Retry policy for whole store transactions.

    Usage:
        async for attempt in retry_on_conflict():
            with attempt:
                async with store.transaction() as tx:
                    ...

    After the last attempt the TransactionConflictError itself is re-raised.
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(TransactionConflictError),
        stop=stop_after_attempt(attempts),
        wait=wait_random(min=0.01, max=0.1),
        reraise=True,
    )
