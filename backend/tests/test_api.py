"""
HTTP API tests.

Verifies:
- Missing actor headers return 401
- Staff role denied admin-only operations (403)
- Domain errors are rendered as JSON with the right status code
- The full order -> approve -> dispatch -> arrival flow over HTTP
"""

import pytest

from wms.extensions import db
from wms.models import Item, ItemCategory

from conftest import DRIVER_ID


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without actor headers."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("POST", "/api/orders/1/approve-items"),
            ("POST", "/api/production-requests"),
            ("POST", "/api/production-requests/1/approve"),
            ("POST", "/api/shipments"),
            ("POST", "/api/shipments/1/arrival"),
            ("POST", "/api/shipments/returns"),
            ("GET", "/api/shipments/queue"),
            ("GET", "/api/stock/items/1"),
            ("POST", "/api/stock/adjustments"),
            ("GET", "/api/waste"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "AUTHENTICATION_REQUIRED"

    def test_unknown_role_rejected(self, client, db_session):
        resp = client.get("/api/waste", headers={"X-Actor-Id": "1", "X-Actor-Role": "JANITOR"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Unknown role: JANITOR"


# =============================================================================
# STAFF DENIED ADMIN OPERATIONS (403)
# =============================================================================


class TestStaffDenied:

    def test_cannot_approve_production(self, client, db_session, staff_headers):
        resp = client.post("/api/production-requests/1/approve", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "APPROVE_PRODUCTION"
        assert resp.get_json()["code"] == "PERMISSION_DENIED"

    def test_cannot_adjust_stock(self, client, db_session, staff_headers):
        resp = client.post(
            "/api/stock/adjustments",
            json={"item_id": 1, "quantity": 1, "direction": "IN", "reason": "x"},
            headers=staff_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ERROR RENDERING
# =============================================================================


class TestErrorRendering:

    def test_missing_order_is_404(self, client, db_session, admin_headers):
        resp = client.get("/api/orders/999", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_missing_production_request_is_404(self, client, db_session, admin_headers):
        resp = client.post("/api/production-requests/999/approve", headers=admin_headers)
        assert resp.status_code == 404

    def test_insufficient_stock_reports_shortfall(self, client, make_item, admin_headers):
        item = make_item(name="Bolt", current=3)

        resp = client.post(
            "/api/orders",
            json={"customer_name": "CV Abadi", "items": [{"item_id": item.id, "qty": 5}]},
            headers=admin_headers,
        )

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_AVAILABLE_STOCK"
        assert body["item_name"] == "Bolt"
        assert body["available"] == 3
        assert body["requested"] == 5

    def test_adjustment_requires_reason(self, client, make_item, admin_headers):
        item = make_item(current=3)
        resp = client.post(
            "/api/stock/adjustments",
            json={"item_id": item.id, "quantity": 1, "direction": "IN"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"


# =============================================================================
# END-TO-END FLOW
# =============================================================================


class TestOrderFlow:

    def test_order_to_delivery(self, client, make_item, staff_headers):
        item = make_item(name="Locker", current=20)

        resp = client.post(
            "/api/orders",
            json={
                "customer_name": "PT Sentosa",
                "deadline": "2026-11-01T00:00:00Z",
                "items": [{"item_id": item.id, "qty": 8, "fulfillment_method": "FROM_STOCK"}],
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201
        order = resp.get_json()["order"]
        order_item_id = order["items"][0]["id"]
        assert order["deadline"] == "2026-11-01T00:00:00Z"

        resp = client.get(f"/api/orders/{order['id']}/approval-check", headers=staff_headers)
        assert resp.get_json()["items"][0]["approvable_qty"] == 8

        resp = client.post(
            f"/api/orders/{order['id']}/approve-items",
            json={"approvals": [{"order_item_id": order_item_id, "qty": 8}]},
            headers=staff_headers,
        )
        assert resp.status_code == 200

        resp = client.post(
            "/api/shipments",
            json={
                "order_ids": [order["id"]],
                "driver_id": DRIVER_ID,
                "lines": [{"order_item_id": order_item_id, "qty": 8}],
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201
        shipment = resp.get_json()["shipment"]

        resp = client.get("/api/shipments/queue", headers=staff_headers)
        assert resp.get_json()["count"] == 1

        resp = client.post(
            f"/api/shipments/{shipment['id']}/arrival",
            json={"receiver_name": "Sari", "arrived_at": "2026-11-02T08:30:00+07:00"},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["order_statuses"][str(order["id"])] == "DONE"
        assert body["shipment"]["arrived_at"] == "2026-11-02T01:30:00Z"

        resp = client.get(f"/api/stock/items/{item.id}", headers=staff_headers)
        stock = resp.get_json()["item"]
        assert stock["current_stock"] == 12
        assert stock["reserved_stock"] == 0

        resp = client.get(f"/api/stock/items/{item.id}/history", headers=staff_headers)
        reasons = [h["reason"] for h in resp.get_json()["history"]]
        assert reasons[0].startswith("[FULFILL]")
        assert reasons[-1].startswith("[RESERVE]")

    def test_production_request_over_http(self, client, make_item, make_order, admin_headers, staff_headers):
        steel = make_item(name="Steel", current=10, unit="KG", category=ItemCategory.RAW_MATERIAL)
        order = make_order([{"name": "Custom cabinet", "qty": 2, "fulfillment_method": "PRODUCTION"}])

        resp = client.post(
            "/api/production-requests",
            json={"order_id": order.id, "memo": "Cabinet batch", "lines": [{"item_id": steel.id, "quantity": 10}]},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        request_id = resp.get_json()["production_request"]["id"]

        resp = client.post(f"/api/production-requests/{request_id}/approve", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(Item, steel.id).current_stock == 0

        resp = client.post(
            f"/api/orders/{order.id}/items/{order.items[0].id}/production-output",
            json={"additional_qty": 2},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["order_status"] == "READY_TO_SHIP"

    def test_return_and_waste_over_http(self, client, dispatched, admin_headers):
        _, order, shipment = dispatched

        resp = client.post(
            "/api/shipments/returns",
            json={"shipment_line_id": shipment["lines"][0]["id"], "qty": 4, "reason": "RECYCLE"},
            headers=admin_headers,
        )
        assert resp.status_code == 200

        resp = client.get(f"/api/waste?order_id={order.id}", headers=admin_headers)
        body = resp.get_json()
        assert body["count"] == 1
        assert body["total_quantity"] == 4

    def test_manual_adjustment(self, client, make_item, admin_headers):
        item = make_item(current=3)
        resp = client.post(
            "/api/stock/adjustments",
            json={"item_id": item.id, "quantity": 7, "direction": "IN", "reason": "Found in aisle 4", "price": 50},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["ledger"]["new_stock"] == 10


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_cors_header_for_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
