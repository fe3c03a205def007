"""Product model type definitions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class ProductCategory(str, Enum):
    """Product category values."""

    HALAL_MEAT = "halal_meat"
    FRUITS = "fruits"
    VEGETABLES = "vegetables"
    GROCERY_OTHER = "grocery_other"


class ProductUnit(str, Enum):
    """How a product is sold: discrete units or by weight in pounds."""

    EACH = "each"
    LB = "lb"


@dataclass
class Product:
    """Catalog product row.

    Stock is owned by the catalog. Orders only reserve against it inside
    the booking transaction.
    """

    name: str
    unit: ProductUnit
    price_cents: int
    stock_quantity: Decimal
    category: ProductCategory = ProductCategory.GROCERY_OTHER
    description: str = ""
    active: bool = True
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_by_weight(self) -> bool:
        """Check if the product is priced per pound."""
        return self.unit == ProductUnit.LB
