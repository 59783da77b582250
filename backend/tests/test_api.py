"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Role-gated routes return 403 with the required roles
- Domain failures map to status codes with a stable "code"
- A body that is not a JSON object is a 400, never a 500
- The product order and tailoring flows end to end over HTTP
- Tailors manage garment measurement templates over HTTP
"""

import pytest

from marketplace.models import Payout


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/orders/"),
            ("POST", "/api/orders/"),
            ("POST", "/api/orders/1/status"),
            ("POST", "/api/payments/"),
            ("POST", "/api/delivery/orders/1/assign"),
            ("GET", "/api/inventory/"),
            ("POST", "/api/tailoring/orders"),
            ("POST", "/api/tailoring/orders/1/quote"),
            ("POST", "/api/tailoring/measurement-heads"),
            ("POST", "/api/tailoring/measurement-options"),
            ("GET", "/api/tailoring/garments/1/measurement-heads"),
            ("POST", "/api/invoices/tailoring-orders/1"),
            ("GET", "/api/payouts/pending-settlements"),
            ("POST", "/api/payouts/"),
            ("GET", "/api/payouts/mine"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "unauthorized"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, customer, headers_for):
        headers = headers_for(customer)
        assert client.get("/api/auth/me", headers=headers).get_json()["user"]["id"] == customer.id
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


# =============================================================================
# ROLE GATES - 403
# =============================================================================


class TestRoleGates:

    def test_customer_cannot_create_payout(self, client, customer, headers_for):
        resp = client.post(
            "/api/payouts/", json={"source_type": "invoice", "source_ids": [1]}, headers=headers_for(customer),
        )
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["code"] == "forbidden"
        assert "admin" in body["required_roles"]

    def test_customer_cannot_manage_inventory(self, client, customer, headers_for):
        resp = client.post("/api/inventory/", json={"name": "x", "unit_price_cents": 1}, headers=headers_for(customer))
        assert resp.status_code == 403

    def test_supplier_cannot_quote(self, client, supplier, headers_for):
        resp = client.post(
            "/api/tailoring/orders/1/quote",
            json={"price_cents": 100, "delivery_date": "2025-12-01"},
            headers=headers_for(supplier),
        )
        assert resp.status_code == 403

    def test_delivery_partner_cannot_place_orders(self, client, delivery_partner, headers_for):
        resp = client.post("/api/orders/", json={}, headers=headers_for(delivery_partner))
        assert resp.status_code == 403

    def test_customer_cannot_define_measurements(self, client, customer, garment, headers_for):
        resp = client.post(
            "/api/tailoring/measurement-heads",
            json={"garment_id": garment.id, "label": "Chest", "field_type": "number"},
            headers=headers_for(customer),
        )
        assert resp.status_code == 403
        resp = client.get(f"/api/tailoring/garments/{garment.id}/measurement-heads", headers=headers_for(customer))
        assert resp.status_code == 403


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:

    def test_validation_error(self, client, customer, supplier, headers_for):
        resp = client.post("/api/orders/", json={"seller_id": supplier.id, "items": []}, headers=headers_for(customer))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"

    def test_not_found(self, client, customer, headers_for):
        resp = client.get("/api/orders/999", headers=headers_for(customer))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"

    def test_insufficient_stock_reports_available(self, client, customer, supplier, make_item, headers_for):
        item = make_item(supplier, stock=2)
        resp = client.post(
            "/api/orders/",
            json={"seller_id": supplier.id, "items": [{"inventory_item_id": item.id, "quantity": 3}]},
            headers=headers_for(customer),
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "insufficient_stock"
        assert body["available"] == 2
        assert body["requested"] == 3

    def test_payment_required(self, client, customer, supplier, make_item, headers_for):
        item = make_item(supplier, stock=2)
        order = client.post(
            "/api/orders/",
            json={"seller_id": supplier.id, "items": [{"inventory_item_id": item.id, "quantity": 1}]},
            headers=headers_for(customer),
        ).get_json()["order"]

        seller_headers = headers_for(supplier)
        assert client.post(
            f"/api/orders/{order['id']}/status", json={"status": "accepted"}, headers=seller_headers,
        ).status_code == 200
        resp = client.post(f"/api/orders/{order['id']}/status", json={"status": "dispatched"}, headers=seller_headers)
        assert resp.status_code == 402
        assert resp.get_json()["code"] == "payment_required"

    def test_invalid_transition(self, client, customer, supplier, make_item, headers_for):
        item = make_item(supplier, stock=2)
        order = client.post(
            "/api/orders/",
            json={"seller_id": supplier.id, "items": [{"inventory_item_id": item.id, "quantity": 1}]},
            headers=headers_for(customer),
        ).get_json()["order"]

        resp = client.post(
            f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=headers_for(supplier),
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "invalid_transition"
        assert resp.get_json()["current_status"] == "requested"

    def test_payment_without_order_id(self, client, customer, headers_for):
        resp = client.post("/api/payments/", json={"amount_cents": 100}, headers=headers_for(customer))
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "actor_name,path",
        [
            ("customer", "/api/orders/"),
            ("customer", "/api/payments/"),
            ("supplier", "/api/inventory/"),
            ("admin", "/api/payouts/"),
            ("tailor", "/api/tailoring/measurement-heads"),
        ],
    )
    @pytest.mark.parametrize("body", [[1], "text", 7])
    def test_non_object_body_rejected(self, request, client, headers_for, actor_name, path, body):
        actor = request.getfixturevalue(actor_name)
        resp = client.post(path, json=body, headers=headers_for(actor))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"


# =============================================================================
# END-TO-END FLOWS
# =============================================================================


class TestProductOrderFlow:

    def test_order_to_payout(self, client, db_session, admin, customer, supplier, delivery_partner, headers_for):
        supplier_headers = headers_for(supplier)
        customer_headers = headers_for(customer)

        item = client.post(
            "/api/inventory/",
            json={"name": "Khadi", "unit": "meter", "unit_price_cents": 50000, "stock_quantity": 5},
            headers=supplier_headers,
        ).get_json()["item"]

        resp = client.post(
            "/api/orders/",
            json={"seller_id": supplier.id, "items": [{"inventory_item_id": item["id"], "quantity": 2}]},
            headers=customer_headers,
        )
        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["total_amount_cents"] == 100000
        assert order["items"][0]["unit_price_cents"] == 50000

        resp = client.post(
            "/api/payments/",
            json={"order_id": order["id"], "amount_cents": 100000, "payment_mode": "UPI", "transaction_ref": "U-1"},
            headers=customer_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["replayed"] is False

        replay = client.post(
            "/api/payments/",
            json={"order_id": order["id"], "amount_cents": 100000, "transaction_ref": "U-1"},
            headers=customer_headers,
        )
        assert replay.status_code == 200
        assert replay.get_json()["replayed"] is True

        assert client.post(
            f"/api/delivery/orders/{order['id']}/assign",
            json={"delivery_partner_id": delivery_partner.id},
            headers=supplier_headers,
        ).status_code == 200

        for status in ("in_production", "dispatched", "delivered"):
            resp = client.post(f"/api/orders/{order['id']}/status", json={"status": status}, headers=supplier_headers)
            assert resp.status_code == 200, resp.get_json()

        mine = client.get("/api/payouts/mine", headers=supplier_headers).get_json()
        assert mine["count"] == 1
        payout = mine["payouts"][0]
        assert payout["payout_status"] == "pending"
        assert payout["platform_commission_cents"] == 5000
        assert payout["payable_amount_cents"] == 95000

        resp = client.post(f"/api/payouts/{payout['id']}/mark-paid", json={}, headers=headers_for(admin))
        assert resp.status_code == 200
        assert resp.get_json()["payout"]["payout_status"] == "paid"

        resp = client.post(f"/api/payouts/{payout['id']}/mark-paid", json={}, headers=headers_for(admin))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "payout_already_paid"

        low = client.get("/api/inventory/low-stock", headers=supplier_headers).get_json()
        assert [i["id"] for i in low["items"]] == [item["id"]]


class TestTailoringFlow:

    def test_tailoring_to_batch_payout(self, client, db_session, admin, customer, tailor, headers_for):
        tailor_headers = headers_for(tailor)
        customer_headers = headers_for(customer)

        garment = client.post("/api/tailoring/garments", json={"name": "Bandhgala"}, headers=tailor_headers)
        assert garment.status_code == 201
        garment_id = garment.get_json()["garment"]["id"]

        invoice_ids = []
        for price in (50000, 20000):
            order = client.post(
                "/api/tailoring/orders",
                json={"tailor_id": tailor.id, "garment_id": garment_id},
                headers=customer_headers,
            ).get_json()["tailoring_order"]
            base = f"/api/tailoring/orders/{order['id']}"

            assert client.post(
                f"{base}/quote", json={"price_cents": price, "delivery_date": "2025-12-01"}, headers=tailor_headers,
            ).status_code == 200
            assert client.post(f"{base}/confirm", headers=customer_headers).status_code == 200
            assert client.post(f"{base}/pay", json={"payment_mode": "UPI"}, headers=customer_headers).status_code == 200
            assert client.post(f"{base}/start", headers=tailor_headers).status_code == 200
            assert client.post(f"{base}/complete", headers=tailor_headers).status_code == 200
            assert client.post(f"{base}/confirm-delivery", headers=customer_headers).status_code == 200

            resp = client.post(f"/api/invoices/tailoring-orders/{order['id']}", headers=customer_headers)
            assert resp.status_code == 201
            invoice_ids.append(resp.get_json()["invoice"]["id"])

            dup = client.post(f"/api/invoices/tailoring-orders/{order['id']}", headers=customer_headers)
            assert dup.status_code == 409
            assert dup.get_json()["code"] == "duplicate_invoice"

        admin_headers = headers_for(admin)
        pending = client.get("/api/payouts/pending-settlements?source_type=invoice", headers=admin_headers).get_json()
        assert pending["count"] == 2

        resp = client.post(
            "/api/payouts/", json={"source_type": "invoice", "source_ids": invoice_ids}, headers=admin_headers,
        )
        assert resp.status_code == 201
        payout = resp.get_json()["payout"]
        assert payout["settlement_context"] == "tailor_batch"
        assert payout["gross_amount_cents"] == 70000
        assert payout["platform_commission_cents"] == 7000
        assert len(payout["sources"]) == 2

        again = client.post(
            "/api/payouts/", json={"source_type": "invoice", "source_ids": invoice_ids[:1]}, headers=admin_headers,
        )
        assert again.status_code == 409
        assert db_session.query(Payout).count() == 1

    def test_wrong_actor_step_is_forbidden(self, client, customer, other_customer, tailor, garment, headers_for):
        order = client.post(
            "/api/tailoring/orders",
            json={"tailor_id": tailor.id, "garment_id": garment.id},
            headers=headers_for(customer),
        ).get_json()["tailoring_order"]

        resp = client.post(f"/api/tailoring/orders/{order['id']}/cancel", headers=headers_for(other_customer))
        assert resp.status_code == 403

        resp = client.post(f"/api/tailoring/orders/{order['id']}/start", headers=headers_for(tailor))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "invalid_state"


class TestMeasurementTemplate:

    def test_heads_and_options(self, client, tailor, other_tailor, garment, headers_for):
        tailor_headers = headers_for(tailor)

        resp = client.post(
            "/api/tailoring/measurement-heads",
            json={"garment_id": garment.id, "label": "Collar Type", "field_type": "dropdown", "sort_order": 2},
            headers=tailor_headers,
        )
        assert resp.status_code == 201
        collar = resp.get_json()["measurement_head"]
        assert collar["is_required"] is False
        assert collar["options"] == []

        resp = client.post(
            "/api/tailoring/measurement-heads",
            json={"garment_id": garment.id, "label": "Chest", "field_type": "number", "unit": "inch",
                  "is_required": True, "sort_order": 1},
            headers=tailor_headers,
        )
        assert resp.status_code == 201

        resp = client.post(
            "/api/tailoring/measurement-options",
            json={"measurement_head_id": collar["id"], "value": "Round"},
            headers=tailor_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["measurement_option"]["value"] == "Round"

        resp = client.post(
            "/api/tailoring/measurement-options",
            json={"measurement_head_id": collar["id"], "value": "Round"},
            headers=tailor_headers,
        )
        assert resp.status_code == 409

        resp = client.get(f"/api/tailoring/garments/{garment.id}/measurement-heads", headers=tailor_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 2
        assert [h["label"] for h in body["measurement_heads"]] == ["Chest", "Collar Type"]
        assert [o["value"] for o in body["measurement_heads"][1]["options"]] == ["Round"]

        resp = client.get(
            f"/api/tailoring/garments/{garment.id}/measurement-heads", headers=headers_for(other_tailor),
        )
        assert resp.status_code == 404

    def test_missing_fields(self, client, tailor, garment, headers_for):
        resp = client.post(
            "/api/tailoring/measurement-heads", json={"garment_id": garment.id}, headers=headers_for(tailor),
        )
        assert resp.status_code == 400
        assert "field_type" in resp.get_json()["error"]


# =============================================================================
# SYSTEM
# =============================================================================


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"


def test_version(client):
    assert client.get("/version").get_json()["api_version"] == "1.0.0"
