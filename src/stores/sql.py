"""SQLAlchemy-backed order store (PostgreSQL via asyncpg, SQLite via aiosqlite)."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, event, func, make_url, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.errors import ConflictError, TransactionConflictError
from src.models.admin import AdminRole, AdminUser
from src.models.order import (
    INACTIVE_ORDER_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    ProductSnapshot,
    Refund,
)
from src.models.pickup import PickupDayRange
from src.models.product import Product, ProductCategory, ProductUnit
from src.services.pickup_slots import to_utc
from src.stores.base import OrderStore, StoreTransaction
from src.stores.tables import (
    AdminUserRow,
    Base,
    DailyOrderSequenceRow,
    OrderItemRow,
    OrderRow,
    PickupDayRangeRow,
    ProductRow,
    ReceiptRow,
    RefundRow,
    UnavailablePickupSlotRow,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
SERIALIZATION_FAILURE_CODES = frozenset({"40001", "40P01"})

_INACTIVE_STATUS_VALUES = [s.value for s in INACTIVE_ORDER_STATUSES]


def _product_from_row(row: ProductRow) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        category=ProductCategory(row.category),
        unit=ProductUnit(row.unit),
        price_cents=row.price_cents,
        stock_quantity=Decimal(row.stock_quantity),
        active=row.active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _order_from_row(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        requested_pickup_start=row.requested_pickup_start,
        requested_pickup_end=row.requested_pickup_end,
        pickup_slot_start=row.pickup_slot_start,
        pickup_slot_end=row.pickup_slot_end,
        estimated_pickup_start=row.estimated_pickup_start,
        estimated_pickup_end=row.estimated_pickup_end,
        total_delay_minutes=row.total_delay_minutes,
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        estimated_subtotal_cents=row.estimated_subtotal_cents,
        estimated_tax_cents=row.estimated_tax_cents,
        estimated_total_cents=row.estimated_total_cents,
        final_subtotal_cents=row.final_subtotal_cents,
        final_tax_cents=row.final_tax_cents,
        final_total_cents=row.final_total_cents,
        payment_provider=row.payment_provider,
        payment_intent_id=row.payment_intent_id,
        payment_client_secret=row.payment_client_secret,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _order_to_row(order: Order) -> OrderRow:
    return OrderRow(
        id=order.id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        requested_pickup_start=order.requested_pickup_start,
        requested_pickup_end=order.requested_pickup_end,
        pickup_slot_start=order.pickup_slot_start,
        pickup_slot_end=order.pickup_slot_end,
        estimated_pickup_start=order.estimated_pickup_start,
        estimated_pickup_end=order.estimated_pickup_end,
        total_delay_minutes=order.total_delay_minutes,
        status=order.status.value,
        payment_status=order.payment_status.value,
        estimated_subtotal_cents=order.estimated_subtotal_cents,
        estimated_tax_cents=order.estimated_tax_cents,
        estimated_total_cents=order.estimated_total_cents,
        final_subtotal_cents=order.final_subtotal_cents,
        final_tax_cents=order.final_tax_cents,
        final_total_cents=order.final_total_cents,
        payment_provider=order.payment_provider,
        payment_intent_id=order.payment_intent_id,
        payment_client_secret=order.payment_client_secret,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _item_from_row(row: OrderItemRow) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        snapshot=ProductSnapshot(
            name=row.product_name_snapshot,
            unit=ProductUnit(row.product_unit_snapshot),
            price_cents=row.unit_price_cents_snapshot,
        ),
        estimated_quantity=row.estimated_quantity,
        estimated_weight_lb=row.estimated_weight_lb,
        estimated_line_subtotal_cents=row.estimated_line_subtotal_cents,
        final_quantity=row.final_quantity,
        final_weight_lb=row.final_weight_lb,
        final_line_subtotal_cents=row.final_line_subtotal_cents,
        created_at=row.created_at,
    )


def _item_to_row(item: OrderItem) -> OrderItemRow:
    return OrderItemRow(
        id=item.id,
        order_id=item.order_id,
        product_id=item.product_id,
        product_name_snapshot=item.snapshot.name,
        product_unit_snapshot=item.snapshot.unit.value,
        unit_price_cents_snapshot=item.snapshot.price_cents,
        estimated_quantity=item.estimated_quantity,
        estimated_weight_lb=item.estimated_weight_lb,
        estimated_line_subtotal_cents=item.estimated_line_subtotal_cents,
        final_quantity=item.final_quantity,
        final_weight_lb=item.final_weight_lb,
        final_line_subtotal_cents=item.final_line_subtotal_cents,
        created_at=item.created_at,
    )


def _admin_from_row(row: AdminUserRow) -> AdminUser:
    return AdminUser(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        role=AdminRole(row.role),
        created_at=row.created_at,
    )


def slot_lock_key(slot_start: datetime) -> int:
    """Advisory lock key for a pickup slot: minutes since the Unix epoch."""
    return int(to_utc(slot_start).timestamp()) // 60


def is_serialization_failure(exc: DBAPIError) -> bool:
    """Check whether a database error means the transaction lost a race."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in SERIALIZATION_FAILURE_CODES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(orig)


def _begin_immediate(engine: AsyncEngine) -> None:
    """Have every SQLite transaction take the database write lock up front.

    The sqlite3 driver otherwise defers BEGIN until the first write.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SqlStoreTransaction(StoreTransaction):
    """Store operations bound to one SQLAlchemy session transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _insert(self, table: type[Base]) -> Any:
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(table)
        if dialect == "sqlite":
            return sqlite_insert(table)
        raise RuntimeError(f"Unsupported database dialect: {dialect}")

    async def get_product(self, product_id: UUID) -> Product | None:
        row = await self._session.get(ProductRow, product_id)
        return _product_from_row(row) if row else None

    async def list_products(
        self,
        category: ProductCategory | None = None,
        include_inactive: bool = False,
    ) -> list[Product]:
        query = select(ProductRow).order_by(ProductRow.name)
        if not include_inactive:
            query = query.where(ProductRow.active.is_(True))
        if category is not None:
            query = query.where(ProductRow.category == category.value)
        result = await self._session.scalars(query)
        return [_product_from_row(row) for row in result]

    async def add_product(self, product: Product) -> Product:
        self._session.add(
            ProductRow(
                id=product.id,
                name=product.name,
                description=product.description,
                category=product.category.value,
                unit=product.unit.value,
                price_cents=product.price_cents,
                stock_quantity=product.stock_quantity,
                active=product.active,
                created_at=product.created_at,
                updated_at=product.updated_at,
            )
        )
        await self._session.flush()
        return product

    async def update_product(self, product: Product) -> Product | None:
        row = await self._session.get(ProductRow, product.id)
        if row is None:
            return None
        row.name = product.name
        row.description = product.description
        row.category = product.category.value
        row.unit = product.unit.value
        row.price_cents = product.price_cents
        row.stock_quantity = product.stock_quantity
        row.active = product.active
        await self._session.flush()
        await self._session.refresh(row)
        return _product_from_row(row)

    async def set_product_stock(self, product_id: UUID, stock_quantity: Decimal) -> Product | None:
        row = await self._session.get(ProductRow, product_id)
        if row is None:
            return None
        row.stock_quantity = stock_quantity
        await self._session.flush()
        await self._session.refresh(row)
        return _product_from_row(row)

    async def decrement_stock(self, product_id: UUID, amount: Decimal) -> bool:
        result = await self._session.execute(
            update(ProductRow)
            .where(ProductRow.id == product_id, ProductRow.stock_quantity >= amount)
            .values(stock_quantity=ProductRow.stock_quantity - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_stock(self, product_id: UUID, amount: Decimal) -> None:
        await self._session.execute(
            update(ProductRow)
            .where(ProductRow.id == product_id)
            .values(stock_quantity=ProductRow.stock_quantity + amount)
            .execution_options(synchronize_session=False)
        )

    async def lock_slot(self, slot_start: datetime) -> None:
        # SQLite transactions start with BEGIN IMMEDIATE and already hold the write lock
        if self._session.get_bind().dialect.name == "postgresql":
            await self._session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": slot_lock_key(slot_start)}
            )

    async def count_live_bookings(self, slot_start: datetime) -> int:
        count = await self._session.scalar(
            select(func.count())
            .select_from(OrderRow)
            .where(
                OrderRow.pickup_slot_start == to_utc(slot_start),
                OrderRow.status.not_in(_INACTIVE_STATUS_VALUES),
            )
        )
        return count or 0

    async def live_booking_counts(self, start: datetime, end: datetime) -> dict[datetime, int]:
        result = await self._session.execute(
            select(OrderRow.pickup_slot_start, func.count())
            .where(
                OrderRow.pickup_slot_start >= to_utc(start),
                OrderRow.pickup_slot_start < to_utc(end),
                OrderRow.status.not_in(_INACTIVE_STATUS_VALUES),
            )
            .group_by(OrderRow.pickup_slot_start)
        )
        return {slot_start: count for slot_start, count in result.all()}

    async def get_day_range(self, service_date: date) -> PickupDayRange | None:
        row = await self._session.get(PickupDayRangeRow, service_date)
        if row is None:
            return None
        return PickupDayRange(service_date=row.service_date, open_hour=row.open_hour, close_hour=row.close_hour)

    async def upsert_day_range(self, day_range: PickupDayRange) -> PickupDayRange:
        await self._session.merge(
            PickupDayRangeRow(
                service_date=day_range.service_date,
                open_hour=day_range.open_hour,
                close_hour=day_range.close_hour,
            )
        )
        await self._session.flush()
        return day_range

    async def unavailable_slot_starts(self, start: datetime, end: datetime) -> set[datetime]:
        result = await self._session.scalars(
            select(UnavailablePickupSlotRow.slot_start).where(
                UnavailablePickupSlotRow.slot_start >= to_utc(start),
                UnavailablePickupSlotRow.slot_start < to_utc(end),
            )
        )
        return set(result)

    async def set_slot_unavailable(self, slot_start: datetime, unavailable: bool) -> None:
        slot_start = to_utc(slot_start)
        if unavailable:
            stmt = (
                self._insert(UnavailablePickupSlotRow)
                .values(slot_start=slot_start)
                .on_conflict_do_nothing(index_elements=["slot_start"])
            )
        else:
            stmt = delete(UnavailablePickupSlotRow).where(UnavailablePickupSlotRow.slot_start == slot_start)
        await self._session.execute(stmt)

    async def next_daily_sequence(self, order_date: date) -> int:
        stmt = self._insert(DailyOrderSequenceRow).values(order_date=order_date, last_value=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=["order_date"],
            set_={"last_value": DailyOrderSequenceRow.last_value + 1},
        ).returning(DailyOrderSequenceRow.last_value)
        return (await self._session.execute(stmt)).scalar_one()

    async def insert_order(self, order: Order, items: list[OrderItem]) -> None:
        self._session.add(_order_to_row(order))
        await self._session.flush()
        self._session.add_all([_item_to_row(item) for item in items])
        await self._session.flush()

    async def get_order(self, order_id: UUID, for_update: bool = False) -> Order | None:
        row = await self._session.get(OrderRow, order_id, with_for_update=for_update or None)
        return _order_from_row(row) if row else None

    async def get_order_by_number(self, order_number: str) -> Order | None:
        row = await self._session.scalar(select(OrderRow).where(OrderRow.order_number == order_number))
        return _order_from_row(row) if row else None

    async def get_order_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        row = await self._session.scalar(select(OrderRow).where(OrderRow.payment_intent_id == payment_intent_id))
        return _order_from_row(row) if row else None

    async def list_orders(self, status: OrderStatus | None = None, limit: int = 200) -> list[Order]:
        query = select(OrderRow).order_by(OrderRow.pickup_slot_start, OrderRow.created_at).limit(limit)
        if status is not None:
            query = query.where(OrderRow.status == status.value)
        result = await self._session.scalars(query)
        return [_order_from_row(row) for row in result]

    async def update_order(self, order: Order) -> None:
        await self._session.merge(_order_to_row(order))
        await self._session.flush()

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        result = await self._session.scalars(
            select(OrderItemRow).where(OrderItemRow.order_id == order_id).order_by(OrderItemRow.created_at)
        )
        return [_item_from_row(row) for row in result]

    async def update_order_item(self, item: OrderItem) -> None:
        await self._session.merge(_item_to_row(item))
        await self._session.flush()

    async def refunded_total(self, order_id: UUID) -> int:
        total = await self._session.scalar(
            select(func.coalesce(func.sum(RefundRow.amount_cents), 0)).where(RefundRow.order_id == order_id)
        )
        return int(total or 0)

    async def add_refund(self, refund: Refund) -> None:
        self._session.add(
            RefundRow(
                id=refund.id,
                order_id=refund.order_id,
                amount_cents=refund.amount_cents,
                reason=refund.reason,
                provider_ref=refund.provider_ref,
                created_at=refund.created_at,
            )
        )
        await self._session.flush()

    async def upsert_receipt(self, order_id: UUID, storage_key: str) -> None:
        await self._session.merge(ReceiptRow(order_id=order_id, storage_key=storage_key))
        await self._session.flush()

    async def get_receipt_key(self, order_id: UUID) -> str | None:
        row = await self._session.get(ReceiptRow, order_id)
        return row.storage_key if row else None

    async def get_admin_user(self, admin_id: UUID) -> AdminUser | None:
        row = await self._session.get(AdminUserRow, admin_id)
        return _admin_from_row(row) if row else None

    async def get_admin_user_by_email(self, email: str) -> AdminUser | None:
        row = await self._session.scalar(select(AdminUserRow).where(AdminUserRow.email == email.lower()))
        return _admin_from_row(row) if row else None

    async def add_admin_user(self, user: AdminUser) -> AdminUser:
        self._session.add(
            AdminUserRow(
                id=user.id,
                email=user.email.lower(),
                password_hash=user.password_hash,
                role=user.role.value,
                created_at=user.created_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ConflictError("Admin email already registered", error_type="admin_exists") from e
        return user


class SqlOrderStore(OrderStore):
    """Order store over a SQLAlchemy async engine.

    On PostgreSQL each transaction runs at the configured isolation level
    and slot locks are transaction-scoped advisory locks. On SQLite every
    transaction opens with BEGIN IMMEDIATE, so writers run one at a time.
    Losing a serialization race, or timing out on the SQLite write lock,
    raises TransactionConflictError after rollback.
    """

    def __init__(self, database_url: str, isolation_level: str = "SERIALIZABLE", echo: bool = False) -> None:
        if make_url(database_url).get_backend_name() == "sqlite":
            self._engine = create_async_engine(database_url, echo=echo)
            _begin_immediate(self._engine)
        else:
            self._engine = create_async_engine(database_url, echo=echo, isolation_level=isolation_level)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def create_schema(self) -> None:
        """Create any missing tables."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield SqlStoreTransaction(session)
            except DBAPIError as e:
                if is_serialization_failure(e):
                    logger.warning("Store transaction lost a serialization race: %s", e.orig)
                    raise TransactionConflictError() from e
                raise

    async def check_health(self) -> dict[str, Any]:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"healthy": True, "error": None}
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return {"healthy": False, "error": str(e)}

    async def close(self) -> None:
        await self._engine.dispose()
