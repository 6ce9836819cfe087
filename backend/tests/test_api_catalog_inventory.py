"""
API tests for auth, products, categories and inventory.

Verifies:
- Unauthenticated requests return 401
- Role restrictions return 403
- Stock changes through the API land in the ledger
"""

import pytest

from shopledger.services import inventory_service, ledger_service, settings_service

from conftest import auth_headers, get_auth_token


# =============================================================================
# AUTH
# =============================================================================


class TestAuthApi:

    def test_login_me_logout(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "staff", "password": "Password123"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["role"] == "staff"
        assert "CREATE_SALE" in body["permissions"]
        assert body["expires_at"].endswith("Z")
        headers = auth_headers(body["token"])

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["username"] == "staff"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "staff", "password": "nope12345"})
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_CREDENTIALS"

    def test_missing_credentials(self, client):
        resp = client.post("/api/auth/login", json={"username": "staff"})
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("GET", "/api/categories"),
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/inventory/movements"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/purchases"),
            ("GET", "/api/sales"),
            ("GET", "/api/reports/inventory-summary"),
            ("GET", "/api/dashboard/stats"),
            ("GET", "/api/settings"),
            ("GET", "/api/users"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "UNAUTHENTICATED"

    def test_garbage_token(self, client):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401


# =============================================================================
# PRODUCTS AND CATEGORIES
# =============================================================================


class TestProductsApi:

    def test_create_with_initial_stock(self, client, manager_headers):
        cat = client.post("/api/categories", json={"name": "Drinks"}, headers=manager_headers)
        assert cat.status_code == 201
        category_id = cat.get_json()["category"]["id"]

        resp = client.post("/api/products", json={
            "name": "Cola 330ml",
            "barcode": "5000112637922",
            "category_id": category_id,
            "purchase_price_cents": 45,
            "selling_price_cents": 99,
            "min_stock": 12,
            "initial_stock": 24,
        }, headers=manager_headers)

        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["quantity"] == 24
        assert product["category_name"] == "Drinks"
        movements = ledger_service.list_movements(product_id=product["id"])
        assert [(m.kind, m.quantity_delta, m.notes) for m in movements] == [
            ("adjustment", 24, "Initial stock"),
        ]

    def test_validation_errors(self, client, manager_headers):
        missing = client.post("/api/products", json={"name": "No price"}, headers=manager_headers)
        assert missing.status_code == 400

        negative = client.post("/api/products", json={
            "name": "Bad", "selling_price_cents": 10, "initial_stock": -1,
        }, headers=manager_headers)
        assert negative.status_code == 400

        unknown = client.post("/api/products", json={
            "name": "Bad", "selling_price_cents": 10, "quantity": 5,
        }, headers=manager_headers)
        assert unknown.status_code == 400

    def test_duplicate_barcode(self, client, manager_headers, make_product):
        make_product(barcode="123")
        resp = client.post("/api/products", json={
            "name": "Copy", "selling_price_cents": 10, "barcode": "123",
        }, headers=manager_headers)
        assert resp.status_code == 409

    def test_unknown_category(self, client, manager_headers):
        resp = client.post("/api/products", json={
            "name": "Orphan", "selling_price_cents": 10, "category_id": 9999,
        }, headers=manager_headers)
        assert resp.status_code == 404

    def test_update_never_touches_stock(self, client, manager_headers, make_product):
        product = make_product(stock=5)
        resp = client.put(f"/api/products/{product.id}", json={"selling_price_cents": 700}, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["product"]["selling_price_cents"] == 700
        assert resp.get_json()["product"]["quantity"] == 5

    def test_list_search_and_pagination(self, client, staff_headers, make_product):
        make_product("Green Tea")
        make_product("Black Tea")
        make_product("Coffee")

        resp = client.get("/api/products?search=tea&sort_by=name&sort_order=asc&limit=1", headers=staff_headers)

        body = resp.get_json()
        assert [p["name"] for p in body["items"]] == ["Black Tea"]
        assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "total_pages": 2}

    def test_bad_sort_column(self, client, staff_headers):
        resp = client.get("/api/products?sort_by=secret", headers=staff_headers)
        assert resp.status_code == 400

    def test_delete_is_soft_and_admin_only(self, client, manager_headers, admin_headers, make_product):
        product = make_product(stock=2)

        denied = client.delete(f"/api/products/{product.id}", headers=manager_headers)
        assert denied.status_code == 403
        assert denied.get_json()["code"] == "PERMISSION_DENIED"

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["product"]["status"] == "inactive"
        assert client.get(f"/api/products/{product.id}", headers=admin_headers).status_code == 200

    def test_staff_cannot_create(self, client, staff_headers):
        resp = client.post("/api/products", json={"name": "X", "selling_price_cents": 1}, headers=staff_headers)
        assert resp.status_code == 403

    def test_duplicate_category(self, client, manager_headers):
        client.post("/api/categories", json={"name": "Snacks"}, headers=manager_headers)
        resp = client.post("/api/categories", json={"name": "snacks"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_missing_product(self, client, staff_headers):
        assert client.get("/api/products/9999", headers=staff_headers).status_code == 404


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryApi:

    def test_adjust(self, client, staff_headers, staff_user, make_product):
        product = make_product(stock=5)

        resp = client.post("/api/inventory/adjust", json={
            "product_id": product.id, "quantity": -2, "notes": "broken",
        }, headers=staff_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["previous_quantity"] == 5
        assert body["adjusted_quantity"] == -2
        assert body["new_quantity"] == 3
        assert body["movement"]["kind"] == "adjustment"
        assert body["movement"]["actor_id"] == staff_user.id
        assert ledger_service.get_quantity(product.id) == 3

    def test_zero_adjust_is_400(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/inventory/adjust", json={"product_id": product.id, "quantity": 0}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_MOVEMENT"

    def test_adjust_below_zero_is_409(self, client, staff_headers, make_product):
        product = make_product(stock=1)
        resp = client.post("/api/inventory/adjust", json={"product_id": product.id, "quantity": -5}, headers=staff_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["current_quantity"] == 1
        assert ledger_service.get_quantity(product.id) == 1

    def test_adjust_unknown_product_is_404(self, client, staff_headers):
        resp = client.post("/api/inventory/adjust", json={"product_id": 9999, "quantity": 1}, headers=staff_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "UNKNOWN_PRODUCT"

    def test_adjust_rejects_decimal_quantity(self, client, staff_headers, make_product):
        product = make_product(stock=1)
        resp = client.post("/api/inventory/adjust", json={"product_id": product.id, "quantity": 1.5}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_stock_status_filters(self, client, staff_headers, make_product):
        make_product("Plenty", stock=50, min_stock=10)
        make_product("Low", stock=3, min_stock=10)
        make_product("Gone", stock=0, min_stock=10)

        def names(status):
            resp = client.get(f"/api/inventory?status={status}", headers=staff_headers)
            return [row["product_name"] for row in resp.get_json()["items"]]

        assert names("all") == ["Gone", "Low", "Plenty"]
        assert names("low") == ["Low"]
        assert names("out_of_stock") == ["Gone"]
        assert client.get("/api/inventory?status=weird", headers=staff_headers).status_code == 400

    def test_single_item_and_missing(self, client, staff_headers, make_product):
        product = make_product(stock=4, min_stock=5)
        resp = client.get(f"/api/inventory/{product.id}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["inventory"]["is_low_stock"] is True

        missing = client.get("/api/inventory/9999", headers=staff_headers)
        assert missing.status_code == 404

    def test_movement_history(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        client.post("/api/inventory/adjust", json={"product_id": product.id, "quantity": 1}, headers=staff_headers)

        resp = client.get(f"/api/inventory/movements?product_id={product.id}", headers=staff_headers)

        body = resp.get_json()
        assert body["count"] == 2
        assert [m["quantity_delta"] for m in body["items"]] == [1, 5]
        assert body["items"][0]["actor_name"] == "Staff"

    def test_movement_history_limit(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        inventory_service.adjust(product.id, 1, None)
        url = f"/api/inventory/movements?product_id={product.id}"

        assert client.get(f"{url}&limit=1", headers=staff_headers).get_json()["count"] == 1
        assert client.get(url, headers=staff_headers).get_json()["count"] == 2
        for bad in ("0", "-3"):
            resp = client.get(f"{url}&limit={bad}", headers=staff_headers)
            assert resp.status_code == 400
            assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_oversold_product_counts_as_out_of_stock(self, client, staff_headers, make_product):
        product = make_product("Oversold", stock=1)
        settings_service.update_settings({"pos": {"allow_negative_inventory": True}}, actor_id=None)
        inventory_service.sell(product.id, 3, None, None)

        resp = client.get("/api/inventory?status=out_of_stock", headers=staff_headers)

        assert [row["product_name"] for row in resp.get_json()["items"]] == ["Oversold"]

    def test_token_from_helper(self, client, staff_user):
        assert get_auth_token(client, "staff") is not None
