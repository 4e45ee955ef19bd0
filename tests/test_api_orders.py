"""Tests for the /api/order endpoints."""

import pytest

from conftest import (
    ADMIN_HEADERS,
    API_ADDRESS,
    BOOKSHELF,
    BUYER_HEADERS,
    DESK_CHAIR,
    GADGET_HUB,
    HOME_STORE,
    LAPTOP,
    OTHER_BUYER_HEADERS,
    OTHER_SELLER_HEADERS,
    OWNER_HEADERS,
    SELLER_HEADERS,
    TABLE_LAMP,
    place_order,
)
from services.order_service import OrderService


def stock(client, product_id):
    return client.get(f"/api/product/{product_id}").json()["product"]["stock"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestCreateOrder:
    def test_create_order(self, client):
        response = place_order(
            client,
            items=[{"productId": LAPTOP, "qty": 2}, {"productId": TABLE_LAMP, "qty": 1}],
            note="Call before delivery"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        order = data["order"]
        assert order["buyerId"] == "user-buyer-1"
        assert order["status"] == "Pending"
        assert order["totalAmount"] == pytest.approx(2039.97)
        assert order["sellerIds"] == [GADGET_HUB, HOME_STORE]
        assert order["note"] == "Call before delivery"
        assert order["items"][0] == {
            "productId": LAPTOP,
            "sellerId": GADGET_HUB,
            "name": "Laptop",
            "price": 999.99,
            "qty": 2,
            "subTotal": pytest.approx(1999.98),
        }
        assert order["payment"]["method"] == "COD"
        assert order["payment"]["status"] == "Pending"
        assert order["payment"]["paidAt"] is None
        assert order["shippingAddress"]["addressLine1"] == "12 Canal Road"
        assert stock(client, LAPTOP) == 48
        assert stock(client, TABLE_LAMP) == 119

    def test_requires_token(self, client):
        response = client.post("/api/order", json={"items": [], "shippingAddress": API_ADDRESS})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "No token, authorization denied"}

    def test_rejects_unknown_token(self, client):
        response = place_order(client, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token is not valid"

    def test_rejects_malformed_header(self, client):
        response = place_order(client, headers={"Authorization": "Token buyer-token-123"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid authorization header format"}

    def test_empty_items(self, client):
        response = place_order(client, items=[])

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "No items provided"}

    def test_invalid_item(self, client):
        response = place_order(client, items=[{"productId": LAPTOP, "qty": 1}, {"productId": LAPTOP, "qty": 0}])

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid item format at position 1"
        assert stock(client, LAPTOP) == 50

    def test_missing_shipping_address(self, client):
        response = client.post(
            "/api/order",
            json={"items": [{"productId": LAPTOP, "qty": 1}]},
            headers=BUYER_HEADERS
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert "shippingAddress" in [error["field"] for error in data["errors"]]

    def test_unknown_product(self, client):
        response = place_order(client, items=[{"productId": LAPTOP, "qty": 1}, {"productId": 999, "qty": 1}])

        assert response.status_code == 404
        assert response.json()["message"] == "Product 999 not found"
        assert stock(client, LAPTOP) == 50

    def test_insufficient_stock_rolls_back(self, client):
        response = place_order(
            client,
            items=[{"productId": LAPTOP, "qty": 2}, {"productId": BOOKSHELF, "qty": 26}]
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Not enough stock for Bookshelf"}
        assert stock(client, LAPTOP) == 50
        assert stock(client, BOOKSHELF) == 25
        assert client.get("/api/order/my", headers=BUYER_HEADERS).json()["orders"] == []

    def test_unexpected_failure_is_a_generic_500(self, client, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(OrderService, "place_order", explode)

        response = place_order(client)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Server error"}


class TestViewOrders:
    def test_buyer_seller_and_admin_can_view(self, client):
        order_id = place_order(client).json()["order"]["id"]

        for headers in (BUYER_HEADERS, SELLER_HEADERS, ADMIN_HEADERS, OWNER_HEADERS):
            response = client.get(f"/api/order/{order_id}", headers=headers)
            assert response.status_code == 200
            assert response.json()["order"]["id"] == order_id

    def test_other_buyer_cannot_view(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.get(f"/api/order/{order_id}", headers=OTHER_BUYER_HEADERS)

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Not authorized to view this order"}

    def test_seller_not_in_order_cannot_view(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.get(f"/api/order/{order_id}", headers=OTHER_SELLER_HEADERS)

        assert response.status_code == 403

    def test_missing_order(self, client):
        response = client.get("/api/order/404", headers=ADMIN_HEADERS)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Order not found"}

    def test_my_orders(self, client):
        first = place_order(client).json()["order"]["id"]
        second = place_order(client, items=[{"productId": TABLE_LAMP, "qty": 1}]).json()["order"]["id"]
        place_order(client, headers=OTHER_BUYER_HEADERS)

        response = client.get("/api/order/my", headers=BUYER_HEADERS)

        assert response.status_code == 200
        assert [o["id"] for o in response.json()["orders"]] == [second, first]

    def test_seller_orders(self, client):
        place_order(client, items=[{"productId": LAPTOP, "qty": 1}])
        home = place_order(client, items=[{"productId": DESK_CHAIR, "qty": 1}]).json()["order"]["id"]

        response = client.get("/api/order/seller/my", headers=OTHER_SELLER_HEADERS)

        assert response.status_code == 200
        assert [o["id"] for o in response.json()["orders"]] == [home]

    def test_seller_orders_requires_seller_account(self, client):
        response = client.get("/api/order/seller/my", headers=BUYER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Not a seller"

    def test_admin_listing(self, client):
        for _ in range(3):
            place_order(client)

        response = client.get("/api/order", params={"page": 2, "limit": 2}, headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["meta"] == {"total": 3, "page": 2, "limit": 2}
        assert len(data["orders"]) == 1

    def test_admin_listing_filters(self, client):
        place_order(client)
        paid = place_order(client, items=[{"productId": DESK_CHAIR, "qty": 1}]).json()["order"]["id"]
        client.put(f"/api/order/{paid}/status", json={"status": "Paid"}, headers=ADMIN_HEADERS)

        by_status = client.get("/api/order", params={"status": "Paid"}, headers=ADMIN_HEADERS).json()
        by_seller = client.get("/api/order", params={"sellerId": HOME_STORE}, headers=OWNER_HEADERS).json()

        assert [o["id"] for o in by_status["orders"]] == [paid]
        assert [o["id"] for o in by_seller["orders"]] == [paid]

    def test_admin_listing_denied_for_buyers(self, client):
        response = client.get("/api/order", headers=BUYER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Access denied"


class TestUpdateStatus:
    def test_seller_updates_status(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.put(f"/api/order/{order_id}/status", json={"status": "Shipped"}, headers=SELLER_HEADERS)

        assert response.status_code == 200
        assert response.json()["order"]["status"] == "Shipped"

    def test_buyer_cannot_update_status(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.put(f"/api/order/{order_id}/status", json={"status": "Delivered"}, headers=BUYER_HEADERS)

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Access denied"}

    def test_invalid_status(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.put(f"/api/order/{order_id}/status", json={"status": "Lost"}, headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid status"}

    def test_admin_marks_paid_with_provider_reference(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.put(
            f"/api/order/{order_id}/status",
            json={"status": "Paid", "providerReference": "JC-2024-0001"},
            headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        order = response.json()["order"]
        assert order["status"] == "Paid"
        assert order["payment"]["status"] == "Paid"
        assert order["payment"]["providerReference"] == "JC-2024-0001"
        assert order["payment"]["paidAt"] is not None

    def test_cancelled_via_status_releases_stock(self, client):
        order_id = place_order(client, items=[{"productId": LAPTOP, "qty": 5}]).json()["order"]["id"]

        response = client.put(f"/api/order/{order_id}/status", json={"status": "Cancelled"}, headers=SELLER_HEADERS)

        assert response.status_code == 200
        assert stock(client, LAPTOP) == 50


class TestCancelOrder:
    def test_buyer_cancels(self, client):
        order_id = place_order(client, items=[{"productId": LAPTOP, "qty": 3}]).json()["order"]["id"]

        response = client.delete(f"/api/order/{order_id}", headers=BUYER_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Order cancelled"
        assert data["order"]["status"] == "Cancelled"
        assert stock(client, LAPTOP) == 50

    def test_second_cancel_is_rejected(self, client):
        order_id = place_order(client, items=[{"productId": LAPTOP, "qty": 3}]).json()["order"]["id"]
        client.delete(f"/api/order/{order_id}", headers=BUYER_HEADERS)

        response = client.delete(f"/api/order/{order_id}", headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert stock(client, LAPTOP) == 50

    def test_buyer_cannot_cancel_shipped(self, client):
        order_id = place_order(client, items=[{"productId": LAPTOP, "qty": 3}]).json()["order"]["id"]
        client.put(f"/api/order/{order_id}/status", json={"status": "Shipped"}, headers=SELLER_HEADERS)

        response = client.delete(f"/api/order/{order_id}", headers=BUYER_HEADERS)

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Cannot cancel at this stage"}
        assert stock(client, LAPTOP) == 47

    def test_admin_cancels_shipped(self, client):
        order_id = place_order(client, items=[{"productId": LAPTOP, "qty": 3}]).json()["order"]["id"]
        client.put(f"/api/order/{order_id}/status", json={"status": "Shipped"}, headers=SELLER_HEADERS)

        response = client.delete(f"/api/order/{order_id}", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert stock(client, LAPTOP) == 50

    def test_other_buyer_cannot_cancel(self, client):
        order_id = place_order(client).json()["order"]["id"]

        response = client.delete(f"/api/order/{order_id}", headers=OTHER_BUYER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized"


class TestMemoryBackend:
    def test_order_flow_on_memory_store(self, memory_client, store):
        response = place_order(memory_client, items=[{"productId": BOOKSHELF, "qty": 5}])
        assert response.status_code == 201
        order_id = response.json()["order"]["id"]
        assert store.products[BOOKSHELF].stock == 20

        response = memory_client.delete(f"/api/order/{order_id}", headers=BUYER_HEADERS)

        assert response.status_code == 200
        assert store.products[BOOKSHELF].stock == 25
