"""Unit tests for the memory and SQL order stores."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.exc import DBAPIError, OperationalError

from src.core.config import Settings
from src.core.errors import ConflictError
from src.models.admin import AdminRole, AdminUser
from src.models.order import Order, OrderItem, OrderStatus, ProductSnapshot, Refund
from src.models.pickup import PickupDayRange
from src.models.product import Product, ProductCategory, ProductUnit
from src.stores.base import OrderStore
from src.stores.factory import build_order_store
from src.stores.memory import MemoryOrderStore
from src.stores.sql import SqlOrderStore, is_serialization_failure, slot_lock_key

SLOT = datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc)
DAY = date(2026, 2, 11)


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncGenerator[OrderStore, None]:
    """Yield each store implementation."""
    if request.param == "memory":
        yield MemoryOrderStore()
        return

    sql_store = SqlOrderStore(f"sqlite+aiosqlite:///{tmp_path}/orders.db")
    await sql_store.create_schema()
    yield sql_store
    await sql_store.close()


def _product(**overrides: Any) -> Product:
    fields = {
        "name": "Basmati Rice",
        "unit": ProductUnit.EACH,
        "price_cents": 1899,
        "stock_quantity": Decimal("5"),
        "category": ProductCategory.GROCERY_OTHER,
    }
    fields.update(overrides)
    return Product(**fields)


def _order(product: Product, number: str = "OM-20260211-0001", slot: datetime = SLOT) -> tuple[Order, list[OrderItem]]:
    end = slot + timedelta(hours=1)
    order = Order(
        order_number=number,
        customer_name="Amina",
        customer_phone="3125550142",
        requested_pickup_start=slot,
        requested_pickup_end=end,
        pickup_slot_start=slot,
        pickup_slot_end=end,
        estimated_pickup_start=slot,
        estimated_pickup_end=end,
        estimated_subtotal_cents=1899,
        estimated_tax_cents=0,
        estimated_total_cents=1899,
        payment_provider="mock",
        payment_intent_id=f"pi_{number}",
    )
    item = OrderItem(
        order_id=order.id,
        product_id=product.id,
        snapshot=ProductSnapshot(name=product.name, unit=product.unit, price_cents=product.price_cents),
        estimated_quantity=Decimal("1"),
        estimated_line_subtotal_cents=1899,
    )
    return order, [item]


class TestCatalogRows:
    """Tests for product persistence."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, store: OrderStore) -> None:
        """Test a product round-trips through the store."""
        product = _product()
        async with store.transaction() as tx:
            await tx.add_product(product)

        async with store.transaction() as tx:
            loaded = await tx.get_product(product.id)

        assert loaded is not None
        assert loaded.name == "Basmati Rice"
        assert loaded.unit == ProductUnit.EACH
        assert loaded.stock_quantity == Decimal("5")

    @pytest.mark.asyncio
    async def test_decrement_refuses_negative_stock(self, store: OrderStore) -> None:
        """Test stock never goes below zero."""
        product = _product(stock_quantity=Decimal("2"))
        async with store.transaction() as tx:
            await tx.add_product(product)

        async with store.transaction() as tx:
            assert await tx.decrement_stock(product.id, Decimal("1.5"))
            assert not await tx.decrement_stock(product.id, Decimal("1"))
            await tx.increment_stock(product.id, Decimal("0.25"))

        async with store.transaction() as tx:
            assert (await tx.get_product(product.id)).stock_quantity == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_rollback_discards_changes(self, store: OrderStore) -> None:
        """Test an exception inside a transaction undoes its writes."""
        product = _product()
        async with store.transaction() as tx:
            await tx.add_product(product)

        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.decrement_stock(product.id, Decimal("3"))
                raise RuntimeError("abort")

        async with store.transaction() as tx:
            assert (await tx.get_product(product.id)).stock_quantity == Decimal("5")

    @pytest.mark.asyncio
    async def test_update_product(self, store: OrderStore) -> None:
        """Test editable fields are overwritten and a missing product is reported."""
        product = _product()
        async with store.transaction() as tx:
            await tx.add_product(product)

        product.name = "Sella Basmati Rice"
        product.price_cents = 2099
        product.active = False
        async with store.transaction() as tx:
            updated = await tx.update_product(product)
            assert await tx.update_product(_product()) is None

        async with store.transaction() as tx:
            loaded = await tx.get_product(product.id)

        assert updated.name == loaded.name == "Sella Basmati Rice"
        assert loaded.price_cents == 2099
        assert loaded.active is False
        assert loaded.stock_quantity == Decimal("5")


class TestScheduleRows:
    """Tests for day ranges and blocked slots."""

    @pytest.mark.asyncio
    async def test_day_range_upsert(self, store: OrderStore) -> None:
        """Test a day override can be written twice."""
        async with store.transaction() as tx:
            await tx.upsert_day_range(PickupDayRange(service_date=DAY, open_hour=10, close_hour=14))
            await tx.upsert_day_range(PickupDayRange(service_date=DAY, open_hour=11, close_hour=15))

        async with store.transaction() as tx:
            day_range = await tx.get_day_range(DAY)
            assert await tx.get_day_range(DAY + timedelta(days=1)) is None

        assert (day_range.open_hour, day_range.close_hour) == (11, 15)

    @pytest.mark.asyncio
    async def test_unavailable_slots(self, store: OrderStore) -> None:
        """Test blocking is idempotent and reversible."""
        async with store.transaction() as tx:
            await tx.set_slot_unavailable(SLOT, True)
            await tx.set_slot_unavailable(SLOT, True)
            await tx.set_slot_unavailable(SLOT + timedelta(hours=1), True)
            await tx.set_slot_unavailable(SLOT + timedelta(hours=1), False)

        async with store.transaction() as tx:
            blocked = await tx.unavailable_slot_starts(SLOT - timedelta(hours=12), SLOT + timedelta(hours=12))

        assert blocked == {SLOT}


class TestOrderRows:
    """Tests for orders, sequences, refunds and receipts."""

    @pytest.mark.asyncio
    async def test_daily_sequence(self, store: OrderStore) -> None:
        """Test sequences count per date."""
        async with store.transaction() as tx:
            assert await tx.next_daily_sequence(DAY) == 1
            assert await tx.next_daily_sequence(DAY) == 2
            assert await tx.next_daily_sequence(DAY + timedelta(days=1)) == 1

    @pytest.mark.asyncio
    async def test_insert_and_lookup(self, store: OrderStore) -> None:
        """Test an order is found by id, number and payment intent."""
        product = _product()
        order, items = _order(product)
        async with store.transaction() as tx:
            await tx.add_product(product)
            await tx.insert_order(order, items)

        async with store.transaction() as tx:
            by_id = await tx.get_order(order.id)
            by_number = await tx.get_order_by_number(order.order_number)
            by_intent = await tx.get_order_by_payment_intent(order.payment_intent_id)
            loaded_items = await tx.list_order_items(order.id)

        assert by_id.id == by_number.id == by_intent.id == order.id
        assert by_id.pickup_slot_start == SLOT
        assert by_id.status == OrderStatus.PLACED
        assert loaded_items[0].snapshot == items[0].snapshot
        assert loaded_items[0].estimated_quantity == Decimal("1")

    @pytest.mark.asyncio
    async def test_live_booking_counts_skip_inactive(self, store: OrderStore) -> None:
        """Test cancelled orders do not hold seats."""
        product = _product()
        first, first_items = _order(product, "OM-20260211-0001")
        second, second_items = _order(product, "OM-20260211-0002")
        later, later_items = _order(product, "OM-20260211-0003", SLOT + timedelta(hours=1))
        second.status = OrderStatus.CANCELLED
        async with store.transaction() as tx:
            await tx.add_product(product)
            await tx.insert_order(first, first_items)
            await tx.insert_order(second, second_items)
            await tx.insert_order(later, later_items)

        async with store.transaction() as tx:
            assert await tx.count_live_bookings(SLOT) == 1
            counts = await tx.live_booking_counts(SLOT - timedelta(hours=1), SLOT + timedelta(hours=3))

        assert counts == {SLOT: 1, SLOT + timedelta(hours=1): 1}

    @pytest.mark.asyncio
    async def test_update_order_and_item(self, store: OrderStore) -> None:
        """Test order and item updates persist."""
        product = _product()
        order, items = _order(product)
        async with store.transaction() as tx:
            await tx.add_product(product)
            await tx.insert_order(order, items)

        async with store.transaction() as tx:
            loaded = await tx.get_order(order.id)
            loaded.status = OrderStatus.READY
            loaded.set_final_totals(1899, 0, 1899)
            await tx.update_order(loaded)
            item = (await tx.list_order_items(order.id))[0]
            item.final_quantity = Decimal("1")
            item.final_line_subtotal_cents = 1899
            await tx.update_order_item(item)

        async with store.transaction() as tx:
            reloaded = await tx.get_order(order.id)
            item = (await tx.list_order_items(order.id))[0]
            ready = await tx.list_orders(status=OrderStatus.READY)

        assert reloaded.final_total_cents == 1899
        assert item.final_quantity == Decimal("1")
        assert [o.id for o in ready] == [order.id]

    @pytest.mark.asyncio
    async def test_refund_ledger_and_receipt(self, store: OrderStore) -> None:
        """Test the refunded total sums the ledger and receipts upsert."""
        product = _product()
        order, items = _order(product)
        async with store.transaction() as tx:
            await tx.add_product(product)
            await tx.insert_order(order, items)
            assert await tx.refunded_total(order.id) == 0
            await tx.add_refund(Refund(order_id=order.id, amount_cents=300, reason="a", provider_ref="re_1"))
            await tx.add_refund(Refund(order_id=order.id, amount_cents=200, reason="b", provider_ref="re_2"))
            await tx.upsert_receipt(order.id, "receipts/old.txt")
            await tx.upsert_receipt(order.id, f"receipts/{order.order_number}.txt")

        async with store.transaction() as tx:
            assert await tx.refunded_total(order.id) == 500
            assert await tx.get_receipt_key(order.id) == f"receipts/{order.order_number}.txt"

    @pytest.mark.asyncio
    async def test_locked_reads(self, store: OrderStore) -> None:
        """Test row and slot locks can be taken inside a write transaction."""
        product = _product()
        order, items = _order(product)
        async with store.transaction() as tx:
            await tx.add_product(product)
            await tx.insert_order(order, items)

        async with store.transaction() as tx:
            await tx.lock_slot(SLOT)
            locked = await tx.get_order(order.id, for_update=True)
            locked.status = OrderStatus.PREPARING
            await tx.update_order(locked)

        async with store.transaction() as tx:
            assert (await tx.get_order(order.id)).status == OrderStatus.PREPARING

    @pytest.mark.asyncio
    async def test_health(self, store: OrderStore) -> None:
        """Test the store reports healthy."""
        assert (await store.check_health())["healthy"] is True


class TestSerializationFailures:
    """Tests for mapping database errors to transaction conflicts."""

    def test_postgres_serialization_failure(self) -> None:
        """Test SQLSTATE 40001 is a conflict."""

        class _Orig(Exception):
            sqlstate = "40001"

        assert is_serialization_failure(DBAPIError("UPDATE", {}, _Orig()))

    def test_sqlite_locked(self) -> None:
        """Test a locked SQLite database is a conflict."""
        assert is_serialization_failure(OperationalError("UPDATE", {}, Exception("database is locked")))

    def test_other_errors(self) -> None:
        """Test unrelated errors are not conflicts."""
        assert not is_serialization_failure(DBAPIError("UPDATE", {}, Exception("syntax error")))


class TestBuildOrderStore:
    """Tests for store selection."""

    @pytest.mark.asyncio
    async def test_memory_backend(self, make_settings: Any) -> None:
        """Test the memory backend is selected by setting."""
        store = await build_order_store(make_settings(order_store_backend="memory"))

        assert isinstance(store, MemoryOrderStore)

    @pytest.mark.asyncio
    async def test_sql_backend_creates_schema(self, make_settings: Any, tmp_path: Path) -> None:
        """Test the SQL backend creates its tables."""
        settings: Settings = make_settings(
            order_store_backend="sql",
            database_url=f"sqlite+aiosqlite:///{tmp_path}/built.db",
        )
        store = await build_order_store(settings)
        try:
            assert isinstance(store, SqlOrderStore)
            async with store.transaction() as tx:
                assert await tx.list_products() == []
        finally:
            await store.close()


class TestAdminRows:
    """Tests for admin account persistence."""

    @pytest.mark.asyncio
    async def test_add_and_find(self, store: OrderStore) -> None:
        """Test an admin is found by id and by email in any case."""
        admin = AdminUser(email="ops@example.com", password_hash="$2b$04$hash", role=AdminRole.SUPERADMIN)
        async with store.transaction() as tx:
            await tx.add_admin_user(admin)

        async with store.transaction() as tx:
            by_id = await tx.get_admin_user(admin.id)
            by_email = await tx.get_admin_user_by_email("Ops@Example.com")
            assert await tx.get_admin_user_by_email("nobody@example.com") is None

        assert by_id.id == by_email.id == admin.id
        assert by_email.role == AdminRole.SUPERADMIN
        assert by_email.password_hash == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, store: OrderStore) -> None:
        """Test a second account with the same email is a conflict."""
        async with store.transaction() as tx:
            await tx.add_admin_user(AdminUser(email="ops@example.com", password_hash="x"))

        with pytest.raises(ConflictError) as exc_info:
            async with store.transaction() as tx:
                await tx.add_admin_user(AdminUser(email="ops@example.com", password_hash="y"))

        assert exc_info.value.error_type == "admin_exists"


class TestSqliteWriteLock:
    """Tests for SQLite transactions taking the write lock when they begin."""

    @pytest.mark.asyncio
    async def test_second_transaction_waits_for_first(self, tmp_path: Path) -> None:
        """Test a concurrent transaction cannot read until the holder commits."""
        sql_store = SqlOrderStore(f"sqlite+aiosqlite:///{tmp_path}/locked.db")
        await sql_store.create_schema()
        product = _product()
        async with sql_store.transaction() as tx:
            await tx.add_product(product)

        async def _count_after_waiting() -> int:
            async with sql_store.transaction() as tx:
                return await tx.count_live_bookings(SLOT)

        try:
            async with sql_store.transaction() as tx:
                assert await tx.count_live_bookings(SLOT) == 0
                waiter = asyncio.create_task(_count_after_waiting())
                await asyncio.sleep(0.2)
                assert not waiter.done()
                order, items = _order(product)
                await tx.insert_order(order, items)

            assert await waiter == 1
        finally:
            await sql_store.close()

    def test_slot_lock_key(self) -> None:
        """Test slot lock keys are minutes since the epoch and differ per slot."""
        assert slot_lock_key(SLOT) == int(SLOT.timestamp()) // 60
        assert slot_lock_key(SLOT + timedelta(hours=1)) - slot_lock_key(SLOT) == 60
