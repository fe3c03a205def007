"""Domain model type definitions."""

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
from src.models.pickup import PickupDayRange, PickupSlot
from src.models.product import Product, ProductCategory, ProductUnit

__all__ = [
    "AdminRole",
    "AdminUser",
    "INACTIVE_ORDER_STATUSES",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "ProductSnapshot",
    "Refund",
    "PickupDayRange",
    "PickupSlot",
    "Product",
    "ProductCategory",
    "ProductUnit",
]
