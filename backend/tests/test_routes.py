"""
HTTP tests for the ledger blueprints.

Verifies:
- Request bodies reach the services
- Error classes map to 400 / 404 / 409 with a stable code
"""

import pytest

from conftest import get_bill, get_line


class TestSystemRoutes:

    def test_health(self, client, db_session):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"


class TestProductRoutes:

    def test_get_product(self, client, bill_b1):
        a = get_line("B1", "A-001")
        resp = client.get(f"/api/products/{a.id}")
        assert resp.status_code == 200
        assert resp.json["barcode"] == "A-001"
        assert resp.json["deal_amount_cents"] == 50000

    def test_unknown_product_is_404(self, client, db_session):
        resp = client.get("/api/products/999")
        assert resp.status_code == 404
        assert resp.json["code"] == "PRODUCT_NOT_FOUND"

    def test_get_by_barcode(self, client, bill_b1):
        resp = client.get("/api/products/barcode/B-001")
        assert resp.status_code == 200
        assert resp.json["name"] == "Product B"

    def test_bill_products(self, client, bill_b1):
        resp = client.get("/api/products/bills/B1")
        assert resp.status_code == 200
        assert resp.json["count"] == 2
        assert {p["deal_amount_cents"] for p in resp.json["items"]} == {50000}

    def test_dump(self, client, bill_b1):
        a = get_line("B1", "A-001")
        resp = client.post(f"/api/products/{a.id}/dump", json={"quantity": 2, "reason": "Broken"})
        assert resp.status_code == 200
        assert resp.json["quantity"] == 8


class TestSalesRoutes:

    def test_checkout(self, client, bill_b1):
        a = get_line("B1", "A-001")
        resp = client.post("/api/sales/checkout", json={
            "items": [{"product_id": a.id, "quantity": 2}],
            "vat_percent": 5,
            "discount_type": "fixed",
            "discount_value": 100,
            "shipping_cents": 50,
            "payment_method": "card",
        })
        assert resp.status_code == 201
        body = resp.json
        assert body["total_cents"] == 12000 + 600 + 50 - 100
        assert body["items"][0]["quantity"] == 2
        assert get_line("B1", "A-001").quantity == 8

        listed = client.get("/api/sales/")
        assert listed.json["count"] == 1
        assert client.get(f"/api/sales/{body['id']}").json["invoice_number"] == body["invoice_number"]

    def test_insufficient_stock(self, client, bill_b1):
        a = get_line("B1", "A-001")
        resp = client.post("/api/sales/checkout", json={"items": [{"product_id": a.id, "quantity": 11}]})
        assert resp.status_code == 400
        assert resp.json["code"] == "INSUFFICIENT_STOCK"
        assert resp.json["retryable"] is False
        assert resp.json["details"]["items"][0]["available_quantity"] == 10

    def test_missing_body(self, client, db_session):
        resp = client.post("/api/sales/checkout", data="not json", content_type="text/plain")
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_unknown_sale(self, client, db_session):
        resp = client.get("/api/sales/77")
        assert resp.status_code == 404
        assert resp.json["code"] == "RECORD_NOT_FOUND"


class TestAdjustmentRoutes:

    def test_create_edit_delete(self, client, supplier, bill_b1):
        resp = client.post("/api/adjustments/", json={
            "supplier_id": supplier.id,
            "bill_number": "B1",
            "barcode": "A-001",
            "quantity": 2,
            "type": "bill_reduction",
        })
        assert resp.status_code == 201
        adj_id = resp.json["id"]
        assert get_bill("B1").deal_amount_cents == 40000

        resp = client.patch(f"/api/adjustments/{adj_id}", json={"quantity": 4, "reason": "Recount"})
        assert resp.status_code == 200
        assert get_bill("B1").deal_amount_cents == 30000

        resp = client.delete(f"/api/adjustments/{adj_id}")
        assert resp.status_code == 400
        assert resp.json["code"] == "MISSING_REASON"

        resp = client.delete(f"/api/adjustments/{adj_id}", json={"reason": "Wrong bill", "actor": "u9"})
        assert resp.status_code == 200
        assert resp.json["deleted"]["id"] == adj_id
        assert get_bill("B1").deal_amount_cents == 50000
        assert get_line("B1", "A-001").quantity == 10

        traces = client.get("/api/suppliers/traces?table=supplier_adjustments")
        assert traces.json["count"] == 1
        assert traces.json["items"][0]["deleted_by"] == "u9"

    def test_edit_beyond_stock(self, client, supplier, bill_b1):
        resp = client.post("/api/adjustments/", json={
            "supplier_id": supplier.id, "bill_number": "B1", "barcode": "A-001",
            "quantity": 1, "type": "bill_reduction",
        })
        resp = client.patch(f"/api/adjustments/{resp.json['id']}", json={"quantity": 20, "reason": "x"})
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_ADJUSTMENT_QUANTITY"

    def test_list(self, client, supplier, bill_b1):
        client.post("/api/adjustments/", json={
            "supplier_id": supplier.id, "bill_number": "B1", "barcode": "B-001",
            "quantity": 1, "type": "return_replacement",
        })
        resp = client.get("/api/adjustments/?bill_number=B1")
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["type"] == "return_replacement"


class TestPaymentRoutes:

    def test_supplier_payment_flow(self, client, make_bill):
        make_bill("B1", 50000, paid_amount_cents=10000)

        resp = client.post("/api/payments/bills/B1", json={"amount_cents": 15000, "payment_method": "Cash"})
        assert resp.status_code == 201
        assert resp.json["balance"]["remaining_cents"] == 25000
        txn_id = resp.json["payment"]["id"]

        resp = client.post("/api/payments/bills/B1", json={"amount_cents": 25001, "payment_method": "Cash"})
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_PAYMENT_AMOUNT"

        resp = client.patch(f"/api/payments/supplier/{txn_id}", json={"amount_cents": 5000})
        assert resp.status_code == 200
        assert resp.json["balance"]["remaining_cents"] == 35000

        resp = client.get("/api/payments/bills/B1")
        assert resp.json["items"][0]["remaining_cents"] == 35000

        resp = client.delete("/api/payments/bills/B1", json={"reason": "Start over"})
        assert resp.status_code == 200
        assert resp.json["deleted_count"] == 1
        assert resp.json["balance"]["remaining_cents"] == 50000

    def test_unknown_bill_is_404(self, client, db_session):
        resp = client.get("/api/payments/bills/NOPE")
        assert resp.status_code == 404

    def test_customer_payment_flow(self, client, bill_b1):
        a = get_line("B1", "A-001")
        sale = client.post("/api/sales/checkout", json={
            "items": [{"product_id": a.id, "quantity": 1}],
            "payment_method": "due_sale",
            "customer_number": "0181",
        }).json

        resp = client.post("/api/payments/customers/0181", json={
            "sales_paid": [{"sale_id": sale["id"], "amount_cents": 2500}],
            "method": "Cash",
        })
        assert resp.status_code == 201
        assert resp.json["dues"]["total_remaining_cents"] == 3500

        txn_id = resp.json["payment"]["id"]
        resp = client.patch(f"/api/payments/customer/{txn_id}", json={"amount_cents": 6000})
        assert resp.status_code == 200
        assert client.get(f"/api/payments/sales/{sale['id']}").json["remaining_cents"] == 0

        resp = client.get("/api/payments/customers/0181?outstanding_only=true")
        assert resp.json["dues"]["sales"] == []
        assert len(resp.json["items"]) == 1


class TestSupplierRoutes:

    def test_create_and_list(self, client, db_session):
        resp = client.post("/api/suppliers/", json={"name": "Delta Foods", "phone": "0170"})
        assert resp.status_code == 201
        assert resp.json["supplier_code"] == 1
        assert client.get("/api/suppliers/").json["count"] == 1

    @pytest.mark.parametrize("body", [{}, {"name": ""}])
    def test_name_required(self, client, db_session, body):
        resp = client.post("/api/suppliers/", json=body)
        assert resp.status_code == 400

    def test_register_bill(self, client, supplier):
        resp = client.post(f"/api/suppliers/{supplier.id}/bills", json={
            "bill_number": "B7",
            "deal_amount_cents": 9000,
            "lines": [{"barcode": "Q", "name": "Q", "quantity": 3, "unit_price_cents": 3000}],
        })
        assert resp.status_code == 201
        assert resp.json["items"][0]["total_price_cents"] == 9000

        dup = client.post(f"/api/suppliers/{supplier.id}/bills", json={"bill_number": "B7", "deal_amount_cents": 1})
        assert dup.status_code == 409
        assert dup.json["code"] == "CONFLICT"

    def test_delete_with_products_is_409(self, client, supplier, bill_b1):
        resp = client.delete(f"/api/suppliers/{supplier.id}", json={"reason": "closing"})
        assert resp.status_code == 409
