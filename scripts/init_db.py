#!/usr/bin/env python
"""Script to create the order store schema and seed a demo catalog.

This script:
1. Creates any missing tables in DATABASE_URL
2. Adds a small demo catalog when the products table is empty

Usage:
    python scripts/init_db.py [--no-seed]

Requirements:
    - DATABASE_URL, ADMIN_JWT_SECRET and ADMIN_JWT_REFRESH_SECRET (or .env)
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import get_settings
from src.models.product import Product, ProductCategory, ProductUnit
from src.stores.sql import SqlOrderStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEMO_CATALOG = [
    Product(
        name="Halal Chicken Breast",
        category=ProductCategory.HALAL_MEAT,
        unit=ProductUnit.LB,
        price_cents=699,
        stock_quantity=Decimal("80"),
        description="Boneless, skinless. Priced per pound.",
    ),
    Product(
        name="Halal Ground Beef",
        category=ProductCategory.HALAL_MEAT,
        unit=ProductUnit.LB,
        price_cents=849,
        stock_quantity=Decimal("60"),
        description="85% lean. Priced per pound.",
    ),
    Product(
        name="Lamb Chops",
        category=ProductCategory.HALAL_MEAT,
        unit=ProductUnit.LB,
        price_cents=1499,
        stock_quantity=Decimal("25"),
    ),
    Product(
        name="Bananas",
        category=ProductCategory.FRUITS,
        unit=ProductUnit.LB,
        price_cents=69,
        stock_quantity=Decimal("120"),
    ),
    Product(
        name="Medjool Dates (1 lb box)",
        category=ProductCategory.FRUITS,
        unit=ProductUnit.EACH,
        price_cents=899,
        stock_quantity=Decimal("40"),
    ),
    Product(
        name="Roma Tomatoes",
        category=ProductCategory.VEGETABLES,
        unit=ProductUnit.LB,
        price_cents=149,
        stock_quantity=Decimal("90"),
    ),
    Product(
        name="Cilantro Bunch",
        category=ProductCategory.VEGETABLES,
        unit=ProductUnit.EACH,
        price_cents=99,
        stock_quantity=Decimal("50"),
    ),
    Product(
        name="Basmati Rice 10 lb",
        category=ProductCategory.GROCERY_OTHER,
        unit=ProductUnit.EACH,
        price_cents=1899,
        stock_quantity=Decimal("30"),
    ),
]


async def main(seed: bool) -> None:
    """Create tables and optionally seed the catalog."""
    settings = get_settings()
    store = SqlOrderStore(settings.database_url, isolation_level=settings.database_isolation_level)

    try:
        await store.create_schema()
        logger.info("Schema ready at %s", settings.database_url)

        if not seed:
            return

        async with store.transaction() as tx:
            existing = await tx.list_products(include_inactive=True)
            if existing:
                logger.info("Catalog already has %d products; skipping seed", len(existing))
                return
            for product in DEMO_CATALOG:
                await tx.add_product(product)

        logger.info("Seeded %d demo products", len(DEMO_CATALOG))
    finally:
        await store.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--no-seed", action="store_true", help="Only create tables")
    args = parser.parse_args()
    asyncio.run(main(seed=not args.no_seed))
