"""Integration tests for shopper order routes."""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

from fastapi.testclient import TestClient

from src.core.config import get_settings
from tests.conftest import local_slot


class TestCreateOrder:
    """Tests for POST /api/v1/orders."""

    def test_places_order(self, client: TestClient, place_order: Any, tomorrow: date) -> None:
        """Test a valid order returns 201 with number, secret and total."""
        data = place_order()

        assert data["order_number"] == f"OM-{tomorrow:%Y%m%d}-0001"
        assert data["payment_client_secret"] == f"pi_mock_secret_{data['order_number']}"
        assert data["estimated_total_cents"] == 2 * 699 + 1899
        assert data["status"] == "placed"

    def test_decrements_stock(self, client: TestClient, place_order: Any, catalog: dict[str, Any]) -> None:
        """Test the reserved amounts leave stock."""
        place_order()

        product = client.get(f"/api/v1/products/{catalog['chicken']['id']}").json()
        assert Decimal(product["stock_quantity"]) == 8

    def test_invalid_slot_is_400(self, client: TestClient, catalog: dict[str, Any], tomorrow: date) -> None:
        """Test a start outside the schedule is rejected."""
        response = client.post(
            "/api/v1/orders",
            json={
                "customer_name": "Amina",
                "customer_phone": "3125550142",
                "pickup_slot_start": local_slot(tomorrow, 22).isoformat(),
                "items": [{"product_id": catalog["rice"]["id"], "quantity": "1"}],
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_slot"

    def test_inactive_product_is_400(self, client: TestClient, catalog: dict[str, Any], tomorrow: date) -> None:
        """Test ordering an inactive product is rejected."""
        response = client.post(
            "/api/v1/orders",
            json={
                "customer_name": "Amina",
                "customer_phone": "3125550142",
                "pickup_slot_start": local_slot(tomorrow, 12).isoformat(),
                "items": [{"product_id": catalog["dates"]["id"], "quantity": "1"}],
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "product_unavailable"

    def test_insufficient_stock_is_409(
        self, client: TestClient, catalog: dict[str, Any], tomorrow: date
    ) -> None:
        """Test ordering more than stock is a conflict."""
        response = client.post(
            "/api/v1/orders",
            json={
                "customer_name": "Amina",
                "customer_phone": "3125550142",
                "pickup_slot_start": local_slot(tomorrow, 12).isoformat(),
                "items": [{"product_id": catalog["rice"]["id"], "quantity": "6"}],
            },
        )

        assert response.status_code == 409
        assert response.json()["error"] == "insufficient_stock"

    def test_full_slot_is_409(
        self, client: TestClient, place_order: Any, catalog: dict[str, Any], make_settings: Any, tomorrow: date
    ) -> None:
        """Test a slot at capacity rejects another booking."""
        client.app.dependency_overrides[get_settings] = lambda: make_settings(slot_capacity=1)
        try:
            place_order(hour=15)
            response = client.post(
                "/api/v1/orders",
                json={
                    "customer_name": "Omar",
                    "customer_phone": "3125550199",
                    "pickup_slot_start": local_slot(tomorrow, 15).isoformat(),
                    "items": [{"product_id": catalog["rice"]["id"], "quantity": "1"}],
                },
            )
        finally:
            client.app.dependency_overrides.clear()

        assert response.status_code == 409
        assert response.json()["error"] == "slot_full"

    def test_empty_items_is_400(self, client: TestClient, tomorrow: date) -> None:
        """Test an order needs items."""
        response = client.post(
            "/api/v1/orders",
            json={
                "customer_name": "Amina",
                "customer_phone": "3125550142",
                "pickup_slot_start": local_slot(tomorrow, 12).isoformat(),
                "items": [],
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestLookupOrder:
    """Tests for GET /api/v1/orders/lookup."""

    def test_lookup(self, client: TestClient, place_order: Any) -> None:
        """Test an order is found by number and phone in any format."""
        placed = place_order(phone="(312) 555-0142")

        response = client.get(
            "/api/v1/orders/lookup",
            params={"order_number": placed["order_number"], "phone": "312.555.0142"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == placed["order_id"]
        assert len(data["items"]) == 2
        assert data["refunded_cents"] == 0
        assert data["receipt_url"] is None
        assert data["requested_pickup_start"] == data["pickup_slot_start"] == data["estimated_pickup_start"]

    def test_lookup_wrong_phone(self, client: TestClient, place_order: Any) -> None:
        """Test a phone mismatch is a 404."""
        placed = place_order()

        response = client.get(
            "/api/v1/orders/lookup",
            params={"order_number": placed["order_number"], "phone": "3125550000"},
        )

        assert response.status_code == 404

    def test_lookup_unknown_number(self, client: TestClient) -> None:
        """Test an unknown order number is a 404."""
        response = client.get(
            "/api/v1/orders/lookup",
            params={"order_number": f"OM-20260211-{uuid4().int % 10000:04d}", "phone": "3125550142"},
        )

        assert response.status_code == 404


class TestOrderReceipt:
    """Tests for GET /api/v1/orders/{id}/receipt."""

    def _fulfill(self, client: TestClient, order_id: str, headers: dict[str, str]) -> dict[str, Any]:
        status_url = f"/api/v1/admin/orders/{order_id}/status"
        client.patch(status_url, json={"status": "preparing"}, headers=headers)
        client.patch(status_url, json={"status": "ready"}, headers=headers)
        response = client.post(f"/api/v1/admin/orders/{order_id}/fulfill", headers=headers)
        assert response.status_code == 200, response.text
        return response.json()

    def test_serves_local_receipt(self, client: TestClient, place_order: Any, admin_headers: dict[str, str]) -> None:
        """Test a fulfilled order's receipt is served inline."""
        placed = place_order()
        self._fulfill(client, placed["order_id"], admin_headers)

        response = client.get(f"/api/v1/orders/{placed['order_id']}/receipt")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-disposition"] == f'inline; filename="{placed["order_number"]}.txt"'
        assert placed["order_number"] in response.text

    def test_redirects_to_signed_url(
        self, client: TestClient, place_order: Any, admin_headers: dict[str, str], local_storage: Any
    ) -> None:
        """Test storage without inline content redirects to the signed URL."""
        placed = place_order()
        fulfilled = self._fulfill(client, placed["order_id"], admin_headers)
        local_storage.serves_content = False

        response = client.get(f"/api/v1/orders/{placed['order_id']}/receipt", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == fulfilled["receipt_url"]

    def test_no_receipt_yet(self, client: TestClient, place_order: Any) -> None:
        """Test an unfulfilled order has no receipt to download."""
        placed = place_order()

        response = client.get(f"/api/v1/orders/{placed['order_id']}/receipt")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_order(self, client: TestClient) -> None:
        """Test a missing order is a 404."""
        response = client.get(f"/api/v1/orders/{uuid4()}/receipt")

        assert response.status_code == 404
