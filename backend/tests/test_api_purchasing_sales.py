"""
API tests for suppliers, purchase orders, sales and returns.
"""

import pytest

from shopledger.services import ledger_service


@pytest.fixture
def supplier_id(client, manager_headers):
    resp = client.post("/api/suppliers", json={
        "name": "Acme Wholesale",
        "contact_person": "Ann Smith",
        "phone": "555-0100",
        "email": "orders@acme.test",
    }, headers=manager_headers)
    assert resp.status_code == 201
    return resp.get_json()["supplier"]["id"]


# =============================================================================
# SUPPLIERS
# =============================================================================


class TestSuppliersApi:

    def test_crud(self, client, manager_headers, supplier_id):
        listed = client.get("/api/suppliers?search=ann", headers=manager_headers).get_json()
        assert [s["id"] for s in listed["items"]] == [supplier_id]

        updated = client.put(f"/api/suppliers/{supplier_id}", json={"phone": "555-0199"}, headers=manager_headers)
        assert updated.get_json()["supplier"]["phone"] == "555-0199"

        assert client.delete(f"/api/suppliers/{supplier_id}", headers=manager_headers).status_code == 200
        assert client.get(f"/api/suppliers/{supplier_id}", headers=manager_headers).status_code == 404

    def test_duplicate_name(self, client, manager_headers, supplier_id):
        resp = client.post("/api/suppliers", json={
            "name": "ACME wholesale", "contact_person": "Bo", "phone": "1",
        }, headers=manager_headers)
        assert resp.status_code == 409

    def test_required_fields_and_email(self, client, manager_headers):
        missing = client.post("/api/suppliers", json={"name": "Solo"}, headers=manager_headers)
        assert missing.status_code == 400

        bad_email = client.post("/api/suppliers", json={
            "name": "Solo", "contact_person": "S", "phone": "1", "email": "nope",
        }, headers=manager_headers)
        assert bad_email.status_code == 400


# =============================================================================
# PURCHASE ORDERS
# =============================================================================


class TestPurchasesApi:

    @pytest.fixture
    def order(self, client, manager_headers, supplier_id, make_product):
        product = make_product(stock=2, purchase_price_cents=150)
        resp = client.post("/api/purchases", json={
            "supplier_id": supplier_id,
            "items": [{"product_id": product.id, "quantity": 20}],
            "expected_delivery_date": "2024-05-08T00:00:00Z",
        }, headers=manager_headers)
        assert resp.status_code == 201
        return resp.get_json()["purchase_order"], product

    def test_create(self, order):
        po, _ = order
        assert po["order_number"] == "PO-000001"
        assert po["status"] == "pending"
        assert po["total_cents"] == 3000
        assert po["expected_delivery_date"] == "2024-05-08T00:00:00Z"
        assert len(po["items"]) == 1

    def test_deliver_then_cancel(self, client, staff_headers, order):
        po, product = order
        url = f"/api/purchases/{po['id']}/status"

        delivered = client.patch(url, json={"status": "delivered"}, headers=staff_headers)
        assert delivered.status_code == 200
        body = delivered.get_json()
        assert body["changed"] is True
        assert body["order"]["status"] == "delivered"
        assert body["movements"][0]["movement"]["kind"] == "purchase"
        assert ledger_service.get_quantity(product.id) == 22

        cancelled = client.patch(url, json={"status": "cancelled"}, headers=staff_headers)
        assert cancelled.get_json()["previous_status"] == "delivered"
        assert ledger_service.get_quantity(product.id) == 2

    def test_repeat_status_is_noop(self, client, staff_headers, order):
        po, product = order
        url = f"/api/purchases/{po['id']}/status"
        client.patch(url, json={"status": "delivered"}, headers=staff_headers)

        again = client.patch(url, json={"status": "delivered"}, headers=staff_headers)

        assert again.status_code == 200
        assert again.get_json()["changed"] is False
        assert ledger_service.get_quantity(product.id) == 22

    def test_illegal_transition_is_409(self, client, staff_headers, order):
        po, product = order
        url = f"/api/purchases/{po['id']}/status"
        client.patch(url, json={"status": "cancelled"}, headers=staff_headers)

        resp = client.patch(url, json={"status": "delivered"}, headers=staff_headers)

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ILLEGAL_TRANSITION"
        assert ledger_service.get_quantity(product.id) == 2

    def test_bad_status_values(self, client, staff_headers, order):
        po, _ = order
        url = f"/api/purchases/{po['id']}/status"
        assert client.patch(url, json={}, headers=staff_headers).get_json()["code"] == "INVALID_STATUS"
        resp = client.patch(url, json={"status": "shipped"}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_STATUS"

    def test_missing_order(self, client, staff_headers):
        resp = client.patch("/api/purchases/9999/status", json={"status": "delivered"}, headers=staff_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ORDER_NOT_FOUND"
        assert client.get("/api/purchases/9999", headers=staff_headers).status_code == 404

    def test_list_and_items(self, client, staff_headers, order):
        po, product = order
        listed = client.get("/api/purchases?status=pending", headers=staff_headers).get_json()
        assert listed["items"][0]["item_count"] == 1
        assert listed["pagination"]["total"] == 1

        items = client.get(f"/api/purchases/{po['id']}/items", headers=staff_headers).get_json()["items"]
        assert items[0]["product_id"] == product.id
        assert items[0]["unit_price_cents"] == 150

    def test_empty_items_rejected(self, client, staff_headers, supplier_id):
        resp = client.post("/api/purchases", json={"supplier_id": supplier_id, "items": []}, headers=staff_headers)
        assert resp.status_code == 400

    def test_supplier_in_use(self, client, manager_headers, supplier_id, order):
        resp = client.delete(f"/api/suppliers/{supplier_id}", headers=manager_headers)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "SUPPLIER_IN_USE"


# =============================================================================
# SALES AND RETURNS
# =============================================================================


class TestSalesApi:

    def test_checkout(self, client, staff_headers, make_product):
        product = make_product(stock=5, selling_price_cents=300)

        resp = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 2}],
            "payment_method": "cash",
        }, headers=staff_headers)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["sale"]["invoice_number"] == "INV-000001"
        assert body["sale"]["final_cents"] == 600
        assert body["sale"]["seller_name"] == "Staff"
        assert body["movements"][0]["new_quantity"] == 3

    def test_insufficient_stock_rejects_whole_sale(self, client, staff_headers, make_product):
        a = make_product(stock=5)
        b = make_product(stock=1)

        resp = client.post("/api/sales", json={
            "items": [{"product_id": a.id, "quantity": 1}, {"product_id": b.id, "quantity": 2}],
        }, headers=staff_headers)

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["product_id"] == b.id
        assert ledger_service.get_quantity(a.id) == 5
        assert client.get("/api/sales", headers=staff_headers).get_json()["pagination"]["total"] == 0

    def test_bad_payment_method(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 1}], "payment_method": "barter",
        }, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "SALE_ERROR"

    def test_return_flow(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 3}],
        }, headers=staff_headers).get_json()["sale"]
        url = f"/api/sales/{sale['id']}/returns"

        ok = client.post(url, json={"product_id": product.id, "quantity": 2}, headers=staff_headers)
        assert ok.status_code == 201
        assert ok.get_json()["new_quantity"] == 4

        too_many = client.post(url, json={"product_id": product.id, "quantity": 2}, headers=staff_headers)
        assert too_many.status_code == 409
        assert too_many.get_json()["code"] == "RETURN_EXCEEDS_SALE"

        missing = client.post("/api/sales/9999/returns", json={"product_id": product.id, "quantity": 1},
                              headers=staff_headers)
        assert missing.status_code == 404

    def test_sale_detail_and_items(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 1}],
        }, headers=staff_headers).get_json()["sale"]

        detail = client.get(f"/api/sales/{sale['id']}", headers=staff_headers)
        assert detail.status_code == 200
        items = client.get(f"/api/sales/{sale['id']}/items", headers=staff_headers).get_json()["items"]
        assert items[0]["product_id"] == product.id
        assert client.get("/api/sales/9999", headers=staff_headers).status_code == 404
