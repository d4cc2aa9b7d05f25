# Overview: End-to-end coverage of the HTTP API through the Flask test client.

"""
API workflow tests.

Each test drives the blueprints with a bearer token and checks the JSON
contract plus the resulting stock and money state.
"""

from bizledger.models import FinancialTransaction


class TestHealth:

    def test_health_needs_no_token(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"


class TestProductsApi:

    def test_create_and_fetch_product(self, client, admin_headers):
        resp = client.post("/api/products", json={
            "name": "Keyboard",
            "sale_price_cents": 12000,
            "cost_price_cents": 8000,
            "commission_rate_bps": 250,
            "scan_code": "7891234567890",
            "initial_stock": 4,
        }, headers=admin_headers)
        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["quantity_on_hand"] == 4
        assert product["profit_margin_cents"] == 4000

        detail = client.get(f"/api/products/{product['id']}", headers=admin_headers).get_json()
        assert len(detail["movements"]) == 1

        scanned = client.get("/api/products/scan/7891234567890", headers=admin_headers)
        assert scanned.status_code == 200
        assert scanned.get_json()["product"]["id"] == product["id"]

    def test_validation_error_is_400(self, client, admin_headers):
        resp = client.post("/api/products", json={"sale_price_cents": 100}, headers=admin_headers)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_unknown_field_rejected(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "X", "quantity_on_hand": 50}, headers=admin_headers)
        assert resp.status_code == 400


class TestInventoryApi:

    def test_adjust_out_beyond_stock_reports_deficit(self, client, admin_headers, widget_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "out", "quantity": 12,
        }, headers=admin_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["details"]["deficit"] == 2

    def test_adjust_and_verify(self, client, admin_headers, widget_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "in", "quantity": 5, "note": "Found in back room",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity_on_hand"] == 15

        verify = client.get("/api/inventory/verify", headers=admin_headers).get_json()
        assert verify == {"ok": True, "mismatches": []}

        movements = client.get(f"/api/inventory/movements?product_id={widget_a.id}", headers=admin_headers)
        assert len(movements.get_json()["movements"]) == 2

    def test_zero_quantity_is_400(self, client, admin_headers, widget_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "in", "quantity": 0,
        }, headers=admin_headers)
        assert resp.status_code == 400


class TestEntriesApi:

    def test_receive_and_reverse(self, client, admin_headers, widget_a):
        resp = client.post("/api/entries", json={
            "supplier_name": "Distribuidora Sul",
            "invoice_number": "4411",
            "generate_expense": True,
            "lines": [{"product_id": widget_a.id, "quantity": 6, "unit_cost_cents": 480}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        entry = resp.get_json()["entry"]
        assert entry["total_cents"] == 2880

        expenses = client.get("/api/transactions?type=expense", headers=admin_headers).get_json()["transactions"]
        assert len(expenses) == 1
        assert expenses[0]["amount_cents"] == 2880

        deleted = client.delete(f"/api/entries/{entry['id']}", headers=admin_headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/entries/{entry['id']}", headers=admin_headers).status_code == 404

    def test_empty_entry_is_400(self, client, admin_headers):
        resp = client.post("/api/entries", json={"lines": []}, headers=admin_headers)
        assert resp.status_code == 400


class TestSalesApi:

    def test_checkout_flow(self, client, seller_headers, widget_a, db_session):
        resp = client.post("/api/sales/checkout", json={
            "lines": [{"product_id": widget_a.id, "quantity": 4}],
            "payment_method": "pix",
        }, headers=seller_headers)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["sale"]["status"] == "completed"
        assert body["sale"]["total_cents"] == 4000
        assert body["lines"][0]["commission_cents"] == 120

        assert widget_a.quantity_on_hand == 6
        assert db_session.query(FinancialTransaction).filter_by(type="income").count() == 1

    def test_checkout_insufficient_stock_is_409(self, client, seller_headers, gadget_a):
        resp = client.post("/api/sales/checkout", json={
            "lines": [{"product_id": gadget_a.id, "quantity": 4}],
        }, headers=seller_headers)
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available"] == 3

    def test_draft_flow_with_installments(self, client, seller_headers, widget_a):
        sale = client.post("/api/sales", json={}, headers=seller_headers).get_json()["sale"]

        added = client.post(f"/api/sales/{sale['id']}/items", json={
            "product_id": widget_a.id, "quantity": 2,
        }, headers=seller_headers)
        assert added.status_code == 201

        finished = client.post(f"/api/sales/{sale['id']}/finish", json={"installments": 2}, headers=seller_headers)
        assert finished.status_code == 200
        assert finished.get_json()["sale"]["installments"] == 2

        listed = client.get("/api/sales?status=completed", headers=seller_headers).get_json()["sales"]
        assert [s["id"] for s in listed] == [sale["id"]]

    def test_unknown_sale_is_404(self, client, seller_headers):
        assert client.get("/api/sales/9999", headers=seller_headers).status_code == 404


class TestPosApi:

    def test_open_sell_close(self, client, seller_headers, widget_a):
        opened = client.post("/api/pos/open", json={"opening_balance_cents": 5000}, headers=seller_headers)
        assert opened.status_code == 201

        status = client.get("/api/pos/status", headers=seller_headers).get_json()
        assert status["is_open"] is True

        again = client.post("/api/pos/open", json={}, headers=seller_headers)
        assert again.status_code == 409

        client.post("/api/sales/checkout", json={
            "lines": [{"product_id": widget_a.id, "quantity": 1}],
            "payment_method": "cash",
        }, headers=seller_headers)

        summary = client.get("/api/pos/summary", headers=seller_headers).get_json()
        assert summary["expected_balance_cents"] == 6000

        closed = client.post("/api/pos/close", json={"closing_balance_cents": 6000}, headers=seller_headers)
        assert closed.status_code == 200
        assert closed.get_json()["cash_session"]["difference_cents"] == 0

        history = client.get("/api/pos/history", headers=seller_headers).get_json()["cash_sessions"]
        assert len(history) == 1

    def test_close_without_session_is_409(self, client, seller_headers):
        assert client.post("/api/pos/close", json={}, headers=seller_headers).status_code == 409


class TestServiceOrdersApi:

    def test_lifecycle(self, client, technician_headers, widget_a, labor_a):
        created = client.post("/api/service-orders", json={
            "client_name": "Joana",
            "equipment": "Printer",
            "priority": "high",
            "items": [{"product_id": widget_a.id, "quantity": 1}],
        }, headers=technician_headers)
        assert created.status_code == 201
        order = created.get_json()["service_order"]
        assert order["total_cents"] == 1000

        client.post(f"/api/service-orders/{order['id']}/items", json={
            "product_id": labor_a.id, "quantity": 1,
        }, headers=technician_headers)

        done = client.patch(f"/api/service-orders/{order['id']}/status", json={"status": "completed"},
                            headers=technician_headers)
        assert done.status_code == 200
        body = done.get_json()
        assert body["service_order"]["status"] == "completed"
        assert body["service_order"]["total_cents"] == 9000
        assert widget_a.quantity_on_hand == 9

        reopen = client.patch(f"/api/service-orders/{order['id']}/status", json={"status": "open"},
                              headers=technician_headers)
        assert reopen.status_code == 409

    def test_missing_status_is_400(self, client, technician_headers):
        created = client.post("/api/service-orders", json={"client_name": "J", "equipment": "TV"},
                              headers=technician_headers).get_json()["service_order"]
        resp = client.patch(f"/api/service-orders/{created['id']}/status", json={}, headers=technician_headers)
        assert resp.status_code == 400


class TestProductionApi:

    def test_order_with_driver(self, client, admin_headers, product_factory, org_a):
        flour = product_factory(org_a, "Flour", qty=20, cost=400)
        bread = product_factory(org_a, "Bread", sale=900)

        driver = client.post("/api/production/cost-drivers", json={
            "name": "Oven", "unit": "hour", "default_value_cents": 600,
        }, headers=admin_headers)
        assert driver.status_code == 201
        driver_id = driver.get_json()["cost_driver"]["id"]

        created = client.post("/api/production/orders", json={
            "product_id": bread.id,
            "quantity": 6,
            "lines": [{"product_id": flour.id, "quantity": 3}],
            "costs": [{"cost_driver_id": driver_id}],
        }, headers=admin_headers)
        assert created.status_code == 201
        order = created.get_json()["production_order"]
        assert order["total_cost_cents"] == 1800
        assert order["unit_cost_cents"] == 300

        done = client.patch(f"/api/production/orders/{order['id']}/status", json={"status": "completed"},
                            headers=admin_headers)
        assert done.status_code == 200
        assert bread.quantity_on_hand == 6
        assert bread.cost_price_cents == 300
        assert flour.quantity_on_hand == 17


class TestQuotesApi:

    def test_convert_to_service_order(self, client, seller_headers, widget_a, labor_a):
        quote = client.post("/api/quotes", json={
            "client_name": "Paulo",
            "items": [
                {"product_id": widget_a.id, "quantity": 1},
                {"product_id": labor_a.id, "quantity": 2},
            ],
        }, headers=seller_headers).get_json()["quote"]
        assert quote["total_cents"] == 17000

        converted = client.post(f"/api/quotes/{quote['id']}/convert", json={"target": "service_order"},
                                headers=seller_headers)
        assert converted.status_code == 201
        body = converted.get_json()
        assert body["target"] == "service_order"
        assert body["created"]["total_cents"] == 17000
        assert widget_a.quantity_on_hand == 10

        twice = client.post(f"/api/quotes/{quote['id']}/convert", json={"target": "sale"}, headers=seller_headers)
        assert twice.status_code == 409


class TestSystemApi:

    def test_custom_fields_and_audit(self, client, admin_headers, widget_a):
        field = client.post("/api/custom-fields", json={
            "module": "production", "name": "Batch code", "field_type": "text",
        }, headers=admin_headers)
        assert field.status_code == 201

        listed = client.get("/api/custom-fields?module=production", headers=admin_headers).get_json()
        assert [f["name"] for f in listed["custom_fields"]] == ["Batch code"]

        client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "out", "quantity": 1,
        }, headers=admin_headers)
        events = client.get("/api/audit-events", headers=admin_headers).get_json()["events"]
        assert events[0]["action"] == "stock_adjusted"

    def test_low_stock_notification_can_be_read(self, client, admin_headers, widget_a):
        client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "out", "quantity": 10,
        }, headers=admin_headers)

        notes = client.get("/api/notifications?unread=1", headers=admin_headers).get_json()["notifications"]
        assert len(notes) == 1

        resp = client.post(f"/api/notifications/{notes[0]['id']}/read", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["notification"]["is_read"] is True

        missing = client.post("/api/notifications/9999/read", headers=admin_headers)
        assert missing.status_code == 404
        assert missing.get_json()["details"]["notification_id"] == 9999

    def test_clients(self, client, seller_headers):
        created = client.post("/api/clients", json={"name": "Loja Centro", "phone": "555-0100"}, headers=seller_headers)
        assert created.status_code == 201
        listed = client.get("/api/clients?search=centro", headers=seller_headers).get_json()["clients"]
        assert [c["name"] for c in listed] == ["Loja Centro"]
