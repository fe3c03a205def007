"""SQLAlchemy table definitions for the SQL order store."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always round-trips as UTC.

    SQLite drops tzinfo on the way back, so naive results are tagged UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


Quantity = Numeric(12, 3, asdecimal=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(8), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class AdminUserRow(Base):
    __tablename__ = "admin_users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class PickupDayRangeRow(Base):
    __tablename__ = "pickup_day_ranges"

    service_date: Mapped[date] = mapped_column(Date, primary_key=True)
    open_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    close_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class UnavailablePickupSlotRow(Base):
    __tablename__ = "unavailable_pickup_slots"

    slot_start: Mapped[datetime] = mapped_column(UTCDateTime, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class DailyOrderSequenceRow(Base):
    __tablename__ = "daily_order_sequences"

    order_date: Mapped[date] = mapped_column(Date, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False)


class OrderRow(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_slot_status", "pickup_slot_start", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)

    requested_pickup_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    requested_pickup_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    pickup_slot_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    pickup_slot_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    estimated_pickup_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    estimated_pickup_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    total_delay_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    payment_status: Mapped[str] = mapped_column(String(24), nullable=False)

    estimated_subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_tax_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    final_subtotal_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_tax_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_total_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    payment_provider: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    payment_client_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id"), nullable=False)

    product_name_snapshot: Mapped[str] = mapped_column(String(200), nullable=False)
    product_unit_snapshot: Mapped[str] = mapped_column(String(8), nullable=False)
    unit_price_cents_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)

    estimated_quantity: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    estimated_weight_lb: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    estimated_line_subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    final_quantity: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    final_weight_lb: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    final_line_subtotal_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class RefundRow(Base):
    __tablename__ = "refunds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    provider_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ReceiptRow(Base):
    __tablename__ = "receipts"

    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id"), primary_key=True)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
