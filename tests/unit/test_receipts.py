"""Unit tests for receipt rendering and receipt storage."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from src.core.errors import DependencyError
from src.core.receipt_storage import (
    LocalReceiptStorage,
    SupabaseReceiptStorage,
    build_receipt_storage,
)
from src.models.order import Order, OrderItem, ProductSnapshot
from src.models.product import ProductUnit
from src.services.receipt_formatter import (
    FULL_CUT,
    INIT,
    build_escpos_receipt,
    item_amount,
    receipt_key,
    render_receipt_document,
)

TZ = ZoneInfo("America/Chicago")
SLOT = datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def order() -> Order:
    """A finalized order in the 14:00 local slot."""
    order = Order(
        order_number="OM-20260211-0042",
        customer_name="Amina Yusuf",
        customer_phone="3125550142",
        requested_pickup_start=SLOT,
        requested_pickup_end=SLOT + timedelta(hours=1),
        pickup_slot_start=SLOT,
        pickup_slot_end=SLOT + timedelta(hours=1),
        estimated_pickup_start=SLOT,
        estimated_pickup_end=SLOT + timedelta(hours=1),
        estimated_subtotal_cents=3297,
        estimated_tax_cents=0,
        estimated_total_cents=3297,
        payment_provider="mock",
    )
    order.set_final_totals(3577, 0, 3577)
    return order


@pytest.fixture
def items(order: Order) -> list[OrderItem]:
    """One weighed and one counted item."""
    return [
        OrderItem(
            order_id=order.id,
            product_id=order.id,
            snapshot=ProductSnapshot(name="Halal Chicken Breast", unit=ProductUnit.LB, price_cents=699),
            estimated_weight_lb=Decimal("2"),
            estimated_line_subtotal_cents=1398,
            final_weight_lb=Decimal("2.4"),
            final_line_subtotal_cents=1678,
        ),
        OrderItem(
            order_id=order.id,
            product_id=order.id,
            snapshot=ProductSnapshot(name="Basmati Rice", unit=ProductUnit.EACH, price_cents=1899),
            estimated_quantity=Decimal("1"),
            estimated_line_subtotal_cents=1899,
        ),
    ]


class TestReceiptFormatter:
    """Tests for receipt rendering."""

    def test_receipt_key(self, order: Order) -> None:
        """Test receipts are keyed by order number."""
        assert receipt_key(order) == "receipts/OM-20260211-0042.txt"

    def test_item_amount_prefers_final(self, items: list[OrderItem]) -> None:
        """Test the final amount wins over the estimate."""
        assert item_amount(items[0]) == Decimal("2.4")
        assert item_amount(items[1]) == Decimal("1")

    def test_document_contents(self, order: Order, items: list[OrderItem]) -> None:
        """Test the stored document lists the order, pickup time, lines and totals."""
        text = render_receipt_document(order, items, TZ).decode("utf-8")

        assert "OASIS MARKETS" in text
        assert "ORDER OM-20260211-0042" in text
        assert "AMINA YUSUF" in text
        assert "Pickup: 2026-02-11 14:00 - 15:00" in text
        assert "2.40 lb  $16.78" in text
        assert "1.00 each  $18.99" in text
        assert "Estimated Total: $32.97" in text
        assert "Final Total: $35.77" in text

    def test_escpos_framing(self, order: Order, items: list[OrderItem]) -> None:
        """Test the printer payload starts with init and ends with a cut."""
        payload = build_escpos_receipt(order, items, TZ)

        assert payload.startswith(INIT)
        assert payload.endswith(FULL_CUT)
        assert b"OASIS MARKETS" in payload
        assert b"FINAL TOTAL: $35.77" in payload


class TestLocalReceiptStorage:
    """Tests for local-disk storage."""

    @pytest.mark.asyncio
    async def test_put_and_url(self, tmp_path: Path) -> None:
        """Test objects are written and linked through the API route."""
        storage = LocalReceiptStorage(tmp_path, "http://localhost:8080/")

        key = await storage.put("receipts/OM-1.txt", b"hello", "text/plain")

        assert (tmp_path / "receipts" / "OM-1.txt").read_bytes() == b"hello"
        assert await storage.signed_url(key) == "http://localhost:8080/api/v1/storage/local/receipts/OM-1.txt"

    @pytest.mark.asyncio
    async def test_put_overwrites(self, tmp_path: Path) -> None:
        """Test writing the same key replaces the object."""
        storage = LocalReceiptStorage(tmp_path, "http://localhost")
        await storage.put("receipts/a.txt", b"one", "text/plain")
        await storage.put("receipts/a.txt", b"two", "text/plain")

        assert (tmp_path / "receipts" / "a.txt").read_bytes() == b"two"

    @pytest.mark.asyncio
    async def test_read(self, tmp_path: Path) -> None:
        """Test stored objects can be read back and missing ones are None."""
        storage = LocalReceiptStorage(tmp_path, "http://localhost")
        await storage.put("receipts/a.txt", b"hello", "text/plain")

        assert storage.serves_content is True
        assert await storage.read("receipts/a.txt") == b"hello"
        assert await storage.read("receipts/missing.txt") is None
        assert await storage.read("../escape.txt") is None

    def test_resolve_rejects_traversal(self, tmp_path: Path) -> None:
        """Test keys cannot escape the storage directory."""
        storage = LocalReceiptStorage(tmp_path / "store", "http://localhost")

        assert storage.resolve("../secret.txt") is None
        assert storage.resolve("receipts/a.txt") == (tmp_path / "store" / "receipts" / "a.txt").resolve()

    @pytest.mark.asyncio
    async def test_put_rejects_traversal(self, tmp_path: Path) -> None:
        """Test writing outside the directory fails."""
        storage = LocalReceiptStorage(tmp_path / "store", "http://localhost")

        with pytest.raises(DependencyError):
            await storage.put("../escape.txt", b"x", "text/plain")


class TestSupabaseReceiptStorage:
    """Tests for Supabase Storage."""

    @pytest.fixture
    def mock_supabase(self) -> MagicMock:
        """Create a mock Supabase client."""
        client = MagicMock()
        client.storage.from_.return_value.create_signed_url.return_value = {
            "signedURL": "https://test.supabase.co/storage/v1/object/sign/receipts/a.txt?token=t"
        }
        return client

    @pytest.mark.asyncio
    async def test_put_upserts(self, mock_supabase: MagicMock) -> None:
        """Test uploads target the bucket with upsert enabled."""
        storage = SupabaseReceiptStorage("receipts", 3600, client=mock_supabase)

        key = await storage.put("receipts/a.txt", b"data", "text/plain; charset=utf-8")

        assert key == "receipts/a.txt"
        mock_supabase.storage.from_.assert_called_with("receipts")
        mock_supabase.storage.from_.return_value.upload.assert_called_once_with(
            path="receipts/a.txt",
            file=b"data",
            file_options={"content-type": "text/plain; charset=utf-8", "upsert": "true"},
        )

    @pytest.mark.asyncio
    async def test_signed_url(self, mock_supabase: MagicMock) -> None:
        """Test signed URLs use the configured lifetime."""
        storage = SupabaseReceiptStorage("receipts", 3600, client=mock_supabase)

        url = await storage.signed_url("receipts/a.txt")

        assert url.startswith("https://test.supabase.co/")
        mock_supabase.storage.from_.return_value.create_signed_url.assert_called_once_with("receipts/a.txt", 3600)

    @pytest.mark.asyncio
    async def test_only_signed_urls(self, mock_supabase: MagicMock) -> None:
        """Test Supabase storage hands out links instead of content."""
        storage = SupabaseReceiptStorage("receipts", 3600, client=mock_supabase)

        assert storage.serves_content is False
        with pytest.raises(NotImplementedError):
            await storage.read("receipts/a.txt")

    @pytest.mark.asyncio
    async def test_upload_failure(self, mock_supabase: MagicMock) -> None:
        """Test storage errors become dependency errors."""
        mock_supabase.storage.from_.return_value.upload.side_effect = Exception("503")
        storage = SupabaseReceiptStorage("receipts", 3600, client=mock_supabase)

        with pytest.raises(DependencyError) as exc_info:
            await storage.put("receipts/a.txt", b"data", "text/plain")

        assert exc_info.value.service == "supabase_storage"

    @pytest.mark.asyncio
    async def test_health(self, mock_supabase: MagicMock) -> None:
        """Test the health check reads the bucket."""
        storage = SupabaseReceiptStorage("receipts", 3600, client=mock_supabase)

        assert (await storage.check_health())["healthy"] is True

        mock_supabase.storage.get_bucket.side_effect = Exception("no bucket")
        result = await storage.check_health()
        assert result["healthy"] is False
        assert result["error"] == "no bucket"


class TestBuildReceiptStorage:
    """Tests for storage selection."""

    def test_local(self, make_settings: Any, tmp_path: Path) -> None:
        """Test local storage is the default."""
        storage = build_receipt_storage(make_settings(storage_provider="local", local_storage_dir=str(tmp_path)))

        assert isinstance(storage, LocalReceiptStorage)

    def test_supabase(self, make_settings: Any) -> None:
        """Test Supabase storage is selected by setting."""
        storage = build_receipt_storage(make_settings(storage_provider="supabase", receipt_bucket="rcpt"))

        assert isinstance(storage, SupabaseReceiptStorage)
