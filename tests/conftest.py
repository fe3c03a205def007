"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ADMIN_JWT_SECRET", "test-admin-jwt-secret-0123456789")
os.environ.setdefault("ADMIN_JWT_REFRESH_SECRET", "test-admin-refresh-secret-9876543210")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("ORDER_STORE_BACKEND", "memory")
os.environ.setdefault("PAYMENT_PROVIDER", "mock")
os.environ.setdefault("STORAGE_PROVIDER", "local")
os.environ.setdefault("STORE_TIMEZONE", "America/Chicago")
os.environ.setdefault("STORE_OPEN_HOUR", "9")
os.environ.setdefault("STORE_CLOSE_HOUR", "20")
os.environ.setdefault("SLOT_CAPACITY", "20")
os.environ.setdefault("LEAD_TIME_MINUTES", "60")
os.environ.setdefault("TAX_RATE_BPS", "0")

STORE_TZ = ZoneInfo("America/Chicago")

# 2026-02-11 09:00 in America/Chicago (CST, UTC-6)
FIXED_NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)
SERVICE_DATE = date(2026, 2, 11)


def local_slot(service_date: date, hour: int) -> datetime:
    """UTC start instant of a store-local hour."""
    return datetime(service_date.year, service_date.month, service_date.day, hour, tzinfo=STORE_TZ).astimezone(
        timezone.utc
    )


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Any]:
    """Build Settings with keyword overrides on top of the test environment."""
    from src.core.config import Settings

    def _make(**overrides: Any) -> Settings:
        return Settings(**overrides)

    return _make


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed clock at 09:00 store time on 2026-02-11."""
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store() -> Any:
    """Provide an empty in-memory order store."""
    from src.stores.memory import MemoryOrderStore

    return MemoryOrderStore()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[Any, None]:
    """Provide a SQL order store on a fresh SQLite file."""
    from src.stores.sql import SqlOrderStore

    store = SqlOrderStore(f"sqlite+aiosqlite:///{tmp_path}/orders.db")
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def mock_payments() -> Any:
    """Provide the deterministic mock payment provider."""
    from src.core.payments import MockPaymentProvider

    return MockPaymentProvider()


@pytest.fixture
def local_storage(tmp_path: Path) -> Any:
    """Provide local receipt storage rooted in a temp directory."""
    from src.core.receipt_storage import LocalReceiptStorage

    return LocalReceiptStorage(tmp_path / "storage", "http://testserver")


async def seed_products(store: Any) -> dict[str, Any]:
    """Add one by-weight and one discrete product to a store."""
    from src.models.product import Product, ProductCategory, ProductUnit

    chicken = Product(
        name="Halal Chicken Breast",
        category=ProductCategory.HALAL_MEAT,
        unit=ProductUnit.LB,
        price_cents=699,
        stock_quantity=Decimal("10"),
    )
    rice = Product(
        name="Basmati Rice",
        category=ProductCategory.GROCERY_OTHER,
        unit=ProductUnit.EACH,
        price_cents=1899,
        stock_quantity=Decimal("5"),
    )
    async with store.transaction() as tx:
        await tx.add_product(chicken)
        await tx.add_product(rice)

    return {"chicken": chicken, "rice": rice}


@pytest_asyncio.fixture
async def products(memory_store: Any) -> dict[str, Any]:
    """Seed the memory store with one by-weight and one discrete product."""
    return await seed_products(memory_store)


@pytest.fixture
def admin_token(test_settings: Any) -> str:
    """Provide a valid admin bearer token."""
    from src.api.middleware.auth import issue_admin_token

    return issue_admin_token(
        subject="ops@example.com",
        secret=test_settings.admin_jwt_secret,
        audience=test_settings.admin_jwt_audience,
        email="ops@example.com",
    )


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    """Provide Authorization headers for admin routes."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def client(test_settings: Any, memory_store: Any, mock_payments: Any, local_storage: Any) -> Generator[TestClient, None, None]:
    """Provide a test client backed by the memory store, mock payments and local storage.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import create_app

    app = create_app(store=memory_store, payments=mock_payments, receipt_storage=local_storage)

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def tomorrow() -> date:
    """Tomorrow in the store timezone (always editable and outside the lead time)."""
    return datetime.now(STORE_TZ).date() + timedelta(days=1)


@pytest.fixture
def catalog(client: TestClient, admin_headers: dict[str, str]) -> dict[str, dict[str, Any]]:
    """Create a small catalog through the admin API."""
    created = {}
    for key, body in {
        "chicken": {
            "name": "Halal Chicken Breast",
            "category": "halal_meat",
            "unit": "lb",
            "price_cents": 699,
            "stock_quantity": "10",
        },
        "rice": {
            "name": "Basmati Rice",
            "category": "grocery_other",
            "unit": "each",
            "price_cents": 1899,
            "stock_quantity": "5",
        },
        "dates": {
            "name": "Medjool Dates",
            "category": "fruits",
            "unit": "each",
            "price_cents": 899,
            "stock_quantity": "3",
            "active": False,
        },
    }.items():
        response = client.post("/api/v1/admin/products", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        created[key] = response.json()
    return created


@pytest.fixture
def place_order(client: TestClient, catalog: dict[str, dict[str, Any]], tomorrow: date) -> Callable[..., dict[str, Any]]:
    """Place an order for tomorrow through the shopper API."""

    def _place(hour: int = 14, items: list[dict[str, Any]] | None = None, phone: str = "(312) 555-0142") -> dict[str, Any]:
        body = {
            "customer_name": "Amina Yusuf",
            "customer_phone": phone,
            "pickup_slot_start": local_slot(tomorrow, hour).isoformat(),
            "items": items
            or [
                {"product_id": catalog["chicken"]["id"], "quantity": "2"},
                {"product_id": catalog["rice"]["id"], "quantity": "1"},
            ],
        }
        response = client.post("/api/v1/orders", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _place
