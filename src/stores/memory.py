"""In-process order store used for tests and local demos."""

import asyncio
import copy
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.core.errors import ConflictError
from src.models.admin import AdminUser
from src.models.order import INACTIVE_ORDER_STATUSES, Order, OrderItem, OrderStatus, Refund
from src.models.pickup import PickupDayRange
from src.models.product import Product, ProductCategory
from src.services.pickup_slots import to_utc
from src.stores.base import OrderStore, StoreTransaction

logger = logging.getLogger(__name__)


@dataclass
class _MemoryState:
    products: dict[UUID, Product] = field(default_factory=dict)
    orders: dict[UUID, Order] = field(default_factory=dict)
    order_items: dict[UUID, list[OrderItem]] = field(default_factory=dict)
    refunds: list[Refund] = field(default_factory=list)
    day_ranges: dict[date, PickupDayRange] = field(default_factory=dict)
    unavailable_slots: set[datetime] = field(default_factory=set)
    daily_sequences: dict[date, int] = field(default_factory=dict)
    receipts: dict[UUID, str] = field(default_factory=dict)
    admin_users: dict[UUID, AdminUser] = field(default_factory=dict)


class MemoryStoreTransaction(StoreTransaction):
    """Transaction over the shared in-memory state.

    Rows handed out are copies, so callers must write changes back
    through update_* just like with the SQL store.
    """

    def __init__(self, state: _MemoryState) -> None:
        self._state = state

    async def get_product(self, product_id: UUID) -> Product | None:
        return copy.deepcopy(self._state.products.get(product_id))

    async def list_products(
        self,
        category: ProductCategory | None = None,
        include_inactive: bool = False,
    ) -> list[Product]:
        products = [
            p
            for p in self._state.products.values()
            if (include_inactive or p.active) and (category is None or p.category == category)
        ]
        return copy.deepcopy(sorted(products, key=lambda p: p.name))

    async def add_product(self, product: Product) -> Product:
        self._state.products[product.id] = copy.deepcopy(product)
        return product

    async def update_product(self, product: Product) -> Product | None:
        if product.id not in self._state.products:
            return None
        product.updated_at = datetime.now(timezone.utc)
        self._state.products[product.id] = copy.deepcopy(product)
        return copy.deepcopy(product)

    async def set_product_stock(self, product_id: UUID, stock_quantity: Decimal) -> Product | None:
        product = self._state.products.get(product_id)
        if product is None:
            return None
        product.stock_quantity = stock_quantity
        product.updated_at = datetime.now(timezone.utc)
        return copy.deepcopy(product)

    async def decrement_stock(self, product_id: UUID, amount: Decimal) -> bool:
        product = self._state.products.get(product_id)
        if product is None or product.stock_quantity < amount:
            return False
        product.stock_quantity -= amount
        return True

    async def increment_stock(self, product_id: UUID, amount: Decimal) -> None:
        product = self._state.products.get(product_id)
        if product is not None:
            product.stock_quantity += amount

    async def lock_slot(self, slot_start: datetime) -> None:
        # Transactions already run one at a time
        return None

    async def count_live_bookings(self, slot_start: datetime) -> int:
        slot_start = to_utc(slot_start)
        return sum(
            1
            for order in self._state.orders.values()
            if order.pickup_slot_start == slot_start and order.status not in INACTIVE_ORDER_STATUSES
        )

    async def live_booking_counts(self, start: datetime, end: datetime) -> dict[datetime, int]:
        start, end = to_utc(start), to_utc(end)
        return dict(
            Counter(
                order.pickup_slot_start
                for order in self._state.orders.values()
                if start <= order.pickup_slot_start < end and order.status not in INACTIVE_ORDER_STATUSES
            )
        )

    async def get_day_range(self, service_date: date) -> PickupDayRange | None:
        return copy.deepcopy(self._state.day_ranges.get(service_date))

    async def upsert_day_range(self, day_range: PickupDayRange) -> PickupDayRange:
        self._state.day_ranges[day_range.service_date] = copy.deepcopy(day_range)
        return day_range

    async def unavailable_slot_starts(self, start: datetime, end: datetime) -> set[datetime]:
        start, end = to_utc(start), to_utc(end)
        return {s for s in self._state.unavailable_slots if start <= s < end}

    async def set_slot_unavailable(self, slot_start: datetime, unavailable: bool) -> None:
        if unavailable:
            self._state.unavailable_slots.add(to_utc(slot_start))
        else:
            self._state.unavailable_slots.discard(to_utc(slot_start))

    async def next_daily_sequence(self, order_date: date) -> int:
        sequence = self._state.daily_sequences.get(order_date, 0) + 1
        self._state.daily_sequences[order_date] = sequence
        return sequence

    async def insert_order(self, order: Order, items: list[OrderItem]) -> None:
        self._state.orders[order.id] = copy.deepcopy(order)
        self._state.order_items[order.id] = copy.deepcopy(items)

    async def get_order(self, order_id: UUID, for_update: bool = False) -> Order | None:
        return copy.deepcopy(self._state.orders.get(order_id))

    async def get_order_by_number(self, order_number: str) -> Order | None:
        for order in self._state.orders.values():
            if order.order_number == order_number:
                return copy.deepcopy(order)
        return None

    async def get_order_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        for order in self._state.orders.values():
            if order.payment_intent_id == payment_intent_id:
                return copy.deepcopy(order)
        return None

    async def list_orders(self, status: OrderStatus | None = None, limit: int = 200) -> list[Order]:
        orders = [o for o in self._state.orders.values() if status is None or o.status == status]
        orders.sort(key=lambda o: (o.pickup_slot_start, o.created_at))
        return copy.deepcopy(orders[:limit])

    async def update_order(self, order: Order) -> None:
        self._state.orders[order.id] = copy.deepcopy(order)

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        return copy.deepcopy(self._state.order_items.get(order_id, []))

    async def update_order_item(self, item: OrderItem) -> None:
        items = self._state.order_items.get(item.order_id, [])
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = copy.deepcopy(item)
                return

    async def refunded_total(self, order_id: UUID) -> int:
        return sum(r.amount_cents for r in self._state.refunds if r.order_id == order_id)

    async def add_refund(self, refund: Refund) -> None:
        self._state.refunds.append(copy.deepcopy(refund))

    async def upsert_receipt(self, order_id: UUID, storage_key: str) -> None:
        self._state.receipts[order_id] = storage_key

    async def get_receipt_key(self, order_id: UUID) -> str | None:
        return self._state.receipts.get(order_id)

    async def get_admin_user(self, admin_id: UUID) -> AdminUser | None:
        return copy.deepcopy(self._state.admin_users.get(admin_id))

    async def get_admin_user_by_email(self, email: str) -> AdminUser | None:
        email = email.lower()
        for user in self._state.admin_users.values():
            if user.email == email:
                return copy.deepcopy(user)
        return None

    async def add_admin_user(self, user: AdminUser) -> AdminUser:
        if await self.get_admin_user_by_email(user.email) is not None:
            raise ConflictError("Admin email already registered", error_type="admin_exists")
        self._state.admin_users[user.id] = copy.deepcopy(user)
        return user


class MemoryOrderStore(OrderStore):
    """Order store held in process memory.

    Transactions run one at a time under an asyncio lock. A snapshot of
    the state is taken on entry and restored if the block raises.
    """

    def __init__(self) -> None:
        self._state = _MemoryState()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            try:
                yield MemoryStoreTransaction(self._state)
            except BaseException:
                self._state = snapshot
                logger.debug("Memory store transaction rolled back")
                raise

    async def check_health(self) -> dict[str, Any]:
        return {"healthy": True, "error": None}
