"""
Purchase order tests.

Verifies:
- order creation and PO numbering
- every status transition and its stock effect
- a failing line leaves the order and all stock untouched
"""

import pytest

from shopledger.extensions import db
from shopledger.models import PurchaseOrder, StockMovement
from shopledger.services import (
    inventory_service,
    ledger_service,
    purchase_service,
    settings_service,
    supplier_service,
)
from shopledger.services.ledger_service import IllegalTransitionError, UnknownProductError
from shopledger.services.purchase_service import InvalidStatusError, PurchaseOrderNotFoundError
from shopledger.services.supplier_service import SupplierNotFoundError, SupplierInUseError


@pytest.fixture
def supplier(db_session):
    return supplier_service.create_supplier({
        "name": "Acme Wholesale",
        "contact_person": "Ann Smith",
        "phone": "555-0100",
    })


@pytest.fixture
def make_order(supplier, admin_user):
    def _make(*lines):
        return purchase_service.create_purchase_order(
            supplier_id=supplier.id,
            items=[
                {"product_id": product.id, "quantity": qty, "unit_price_cents": None}
                for product, qty in lines
            ],
            actor_id=admin_user.id,
        )
    return _make


def _order_movements(order_id):
    return (
        db.session.query(StockMovement)
        .filter_by(reference_id=order_id)
        .filter(StockMovement.kind.in_(("purchase", "adjustment")))
        .order_by(StockMovement.id.asc())
        .all()
    )


# =============================================================================
# CREATION
# =============================================================================


class TestCreatePurchaseOrder:

    def test_create_uses_purchase_price_and_numbers_order(self, make_order, make_product):
        product = make_product(purchase_price_cents=150)

        order = make_order((product, 20))

        assert order.order_number == "PO-000001"
        assert order.status == "pending"
        assert order.total_cents == 3000
        assert [(i.product_id, i.quantity, i.unit_price_cents) for i in order.items] == [
            (product.id, 20, 150),
        ]
        # Creating an order never touches stock
        assert ledger_service.get_quantity(product.id) == 0

    def test_explicit_unit_price_wins(self, supplier, make_product):
        product = make_product(purchase_price_cents=150)
        order = purchase_service.create_purchase_order(
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": 2, "unit_price_cents": 99}],
            actor_id=None,
        )
        assert order.total_cents == 198

    def test_order_numbers_increase(self, make_order, make_product):
        product = make_product()
        first = make_order((product, 1))
        second = make_order((product, 1))
        assert (first.order_number, second.order_number) == ("PO-000001", "PO-000002")

    def test_failed_create_does_not_consume_number(self, supplier, make_order, make_product):
        with pytest.raises(UnknownProductError):
            purchase_service.create_purchase_order(
                supplier_id=supplier.id,
                items=[{"product_id": 9999, "quantity": 1, "unit_price_cents": None}],
                actor_id=None,
            )
        assert db.session.query(PurchaseOrder).count() == 0

        order = make_order((make_product(), 1))
        assert order.order_number == "PO-000001"

    def test_unknown_supplier(self, make_product):
        with pytest.raises(SupplierNotFoundError):
            purchase_service.create_purchase_order(
                supplier_id=9999,
                items=[{"product_id": make_product().id, "quantity": 1, "unit_price_cents": None}],
                actor_id=None,
            )


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================


class TestTransitions:

    def test_pending_to_delivered_receives_every_line(self, admin_user, make_order, make_product):
        a = make_product(stock=1)
        b = make_product()
        order = make_order((a, 20), (b, 5))

        result = purchase_service.transition_purchase_order(order.id, "delivered", admin_user.id)

        assert result.changed is True
        assert result.previous_status == "pending"
        assert result.order.status == "delivered"
        assert ledger_service.get_quantity(a.id) == 21
        assert ledger_service.get_quantity(b.id) == 5
        movements = _order_movements(order.id)
        assert [(m.product_id, m.kind, m.quantity_delta) for m in movements] == [
            (a.id, "purchase", 20),
            (b.id, "purchase", 5),
        ]
        assert movements[0].notes == "Purchase order received: PO-000001"

    def test_delivery_restocks_oversold_product(self, make_order, make_product):
        product = make_product()
        settings_service.update_settings({"pos": {"allow_negative_inventory": True}}, actor_id=None)
        inventory_service.sell(product.id, 4, None, None)
        order = make_order((product, 10))

        result = purchase_service.transition_purchase_order(order.id, "delivered", None)

        assert result.order.status == "delivered"
        assert ledger_service.get_quantity(product.id) == 6

    def test_delivered_to_cancelled_rolls_back(self, admin_user, make_order, make_product):
        product = make_product(stock=3)
        order = make_order((product, 20))
        purchase_service.transition_purchase_order(order.id, "delivered", admin_user.id)

        result = purchase_service.transition_purchase_order(order.id, "cancelled", admin_user.id)

        assert result.order.status == "cancelled"
        assert ledger_service.get_quantity(product.id) == 3
        rollback = [m for m in _order_movements(order.id) if m.kind == "adjustment"]
        assert len(rollback) == 1
        assert rollback[0].quantity_delta == -20
        assert rollback[0].notes.startswith(inventory_service.ROLLBACK_NOTE)

    def test_rollback_is_floored_when_goods_were_sold(self, make_order, make_product):
        product = make_product()
        order = make_order((product, 20))
        purchase_service.transition_purchase_order(order.id, "delivered", None)
        inventory_service.sell(product.id, 15, None, None)

        result = purchase_service.transition_purchase_order(order.id, "pending", None)

        assert result.order.status == "pending"
        assert ledger_service.get_quantity(product.id) == 0
        assert result.movements[0].movement.quantity_delta == -5
        assert ledger_service.verify_ledger() == []

    def test_pending_to_cancelled_has_no_stock_effect(self, make_order, make_product):
        product = make_product(stock=2)
        order = make_order((product, 20))

        result = purchase_service.transition_purchase_order(order.id, "cancelled", None)

        assert result.changed is True
        assert result.movements == []
        assert ledger_service.get_quantity(product.id) == 2

    def test_cancelled_can_be_reopened(self, make_order, make_product):
        product = make_product()
        order = make_order((product, 4))
        purchase_service.transition_purchase_order(order.id, "cancelled", None)

        result = purchase_service.transition_purchase_order(order.id, "pending", None)

        assert result.order.status == "pending"
        assert _order_movements(order.id) == []

    def test_same_status_is_noop(self, make_order, make_product):
        product = make_product()
        order = make_order((product, 4))
        purchase_service.transition_purchase_order(order.id, "delivered", None)

        result = purchase_service.transition_purchase_order(order.id, "delivered", None)

        assert result.changed is False
        assert result.movements == []
        assert ledger_service.get_quantity(product.id) == 4
        assert len(_order_movements(order.id)) == 1

    def test_cancelled_to_delivered_is_illegal(self, make_order, make_product):
        product = make_product()
        order = make_order((product, 4))
        purchase_service.transition_purchase_order(order.id, "cancelled", None)

        with pytest.raises(IllegalTransitionError) as exc:
            purchase_service.transition_purchase_order(order.id, "delivered", None)

        assert exc.value.details == {"order_id": order.id, "from": "cancelled", "to": "delivered"}
        assert purchase_service.get_purchase_order(order.id).status == "cancelled"
        assert ledger_service.get_quantity(product.id) == 0

    def test_unknown_status(self, make_order, make_product):
        order = make_order((make_product(), 1))
        with pytest.raises(InvalidStatusError):
            purchase_service.transition_purchase_order(order.id, "shipped", None)

    def test_missing_order(self):
        with pytest.raises(IllegalTransitionError) as exc:
            purchase_service.transition_purchase_order(9999, "delivered", None)
        assert exc.value.code == "ORDER_NOT_FOUND"

    def test_failure_mid_order_writes_nothing(self, monkeypatch, make_order, make_product):
        a = make_product(stock=1)
        b = make_product(stock=1)
        order = make_order((a, 10), (b, 10))

        original = inventory_service.receive_inner
        calls = {"n": 0}

        def flaky_receive(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise UnknownProductError("product vanished", details={"product_id": b.id})
            return original(*args, **kwargs)

        monkeypatch.setattr(inventory_service, "receive_inner", flaky_receive)

        with pytest.raises(UnknownProductError):
            purchase_service.transition_purchase_order(order.id, "delivered", None)

        assert calls["n"] == 2
        assert purchase_service.get_purchase_order(order.id).status == "pending"
        assert ledger_service.get_quantity(a.id) == 1
        assert ledger_service.get_quantity(b.id) == 1
        assert _order_movements(order.id) == []


# =============================================================================
# LISTING / SUPPLIERS
# =============================================================================


class TestListingAndSuppliers:

    def test_list_filters_by_status_and_counts_items(self, make_order, make_product):
        a = make_product()
        b = make_product()
        first = make_order((a, 1), (b, 2))
        make_order((a, 3))
        purchase_service.transition_purchase_order(first.id, "delivered", None)

        result = purchase_service.list_purchase_orders(status="delivered")

        assert result["total"] == 1
        assert result["items"][0]["order_number"] == first.order_number
        assert result["items"][0]["item_count"] == 2

    def test_list_search_by_supplier_name(self, make_order, make_product):
        make_order((make_product(), 1))
        assert purchase_service.list_purchase_orders(search="acme")["total"] == 1
        assert purchase_service.list_purchase_orders(search="nobody")["total"] == 0

    def test_get_missing_order(self):
        with pytest.raises(PurchaseOrderNotFoundError):
            purchase_service.get_purchase_order(9999)

    def test_supplier_with_orders_cannot_be_deleted(self, supplier, make_order, make_product):
        make_order((make_product(), 1))
        with pytest.raises(SupplierInUseError):
            supplier_service.delete_supplier(supplier.id)
