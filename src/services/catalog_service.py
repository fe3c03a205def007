"""Service for catalog reads and operator product management."""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.core.errors import NotFoundError, ValidationError
from src.models.product import Product, ProductCategory, ProductUnit
from src.stores.base import OrderStore, retry_on_conflict

logger = logging.getLogger(__name__)

EDITABLE_PRODUCT_FIELDS = frozenset(
    {"name", "description", "category", "unit", "price_cents", "stock_quantity", "active"}
)


class CatalogService:
    """Service for reading and maintaining the product catalog."""

    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def list_products(
        self,
        category: ProductCategory | None = None,
        include_inactive: bool = False,
    ) -> list[Product]:
        """List products, optionally filtered by category.

        Args:
            category: Optional category filter.
            include_inactive: Include products hidden from shoppers.

        Returns:
            list[Product]: Products sorted by name.
        """
        async with self.store.transaction() as tx:
            return await tx.list_products(category=category, include_inactive=include_inactive)

    async def get_product(self, product_id: UUID, include_inactive: bool = False) -> Product:
        """Get a product by ID.

        Raises:
            NotFoundError: If the product does not exist or is hidden.
        """
        async with self.store.transaction() as tx:
            product = await tx.get_product(product_id)

        if product is None or (not product.active and not include_inactive):
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def create_product(
        self,
        name: str,
        unit: ProductUnit,
        price_cents: int,
        stock_quantity: Decimal,
        category: ProductCategory = ProductCategory.GROCERY_OTHER,
        description: str = "",
        active: bool = True,
    ) -> Product:
        """Add a product to the catalog."""
        name = name.strip()
        if not name:
            raise ValidationError("Product name is required")
        if price_cents < 0 or stock_quantity < 0:
            raise ValidationError("Price and stock must not be negative")

        product = Product(
            name=name,
            unit=unit,
            price_cents=price_cents,
            stock_quantity=stock_quantity,
            category=category,
            description=description,
            active=active,
        )
        async with self.store.transaction() as tx:
            await tx.add_product(product)

        logger.info("Created product %s (%s)", product.name, product.id)
        return product

    async def set_stock(self, product_id: UUID, stock_quantity: Decimal) -> Product:
        """Set a product's stock level.

        Raises:
            ValidationError: If the stock is negative.
            NotFoundError: If the product does not exist.
        """
        if stock_quantity < 0:
            raise ValidationError("Stock must not be negative")

        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    product = await tx.set_product_stock(product_id, stock_quantity)

        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        logger.info("Stock for %s set to %s", product.name, stock_quantity)
        return product

    async def update_product(self, product_id: UUID, changes: dict[str, Any]) -> Product:
        """Apply a partial edit to a product.

        Args:
            product_id: Product to edit.
            changes: Field name to new value, only for fields being changed.

        Raises:
            ValidationError: If a field is unknown or a value is out of range.
            NotFoundError: If the product does not exist.
        """
        if not changes:
            raise ValidationError("No product fields to update")
        unknown = set(changes) - EDITABLE_PRODUCT_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    product = await tx.get_product(product_id)
                    if product is None:
                        raise NotFoundError(f"Product {product_id} not found")

                    product = replace(product, **changes)
                    product.name = product.name.strip()
                    if not product.name:
                        raise ValidationError("Product name is required")
                    if product.price_cents < 0 or product.stock_quantity < 0:
                        raise ValidationError("Price and stock must not be negative")
                    product = await tx.update_product(product)

        logger.info("Updated product %s (%s): %s", product.name, product.id, ", ".join(sorted(changes)))
        return product
