"""
Sales checkout and customer return tests.

A sale either books every line or nothing at all.
"""

from datetime import datetime

import pytest

from shopledger.extensions import db
from shopledger.models import Sale, SaleItem, StockMovement
from shopledger.services import ledger_service, sales_service, settings_service
from shopledger.services.ledger_service import InsufficientStockError, UnknownProductError
from shopledger.services.sales_service import ReturnQuantityError, SaleError, SaleNotFoundError


def _line(product, quantity, price=None):
    return {"product_id": product.id, "quantity": quantity, "unit_price_cents": price}


class TestCheckout:

    def test_sale_books_every_line(self, staff_user, make_product):
        a = make_product(stock=10, selling_price_cents=250)
        b = make_product(stock=3, selling_price_cents=1000)

        sale, movements = sales_service.create_sale(
            items=[_line(a, 4), _line(b, 1, price=900)],
            actor_id=staff_user.id,
            payment_method="card",
            discount_cents=100,
            customer_name="Walk-in",
        )

        assert sale.invoice_number == "INV-000001"
        assert sale.total_cents == 4 * 250 + 900
        assert sale.final_cents == 1800
        assert sale.payment_method == "card"
        assert sale.user_id == staff_user.id
        assert ledger_service.get_quantity(a.id) == 6
        assert ledger_service.get_quantity(b.id) == 2
        assert [(m.movement.kind, m.movement.reference_id) for m in movements] == [
            ("sale", sale.id),
            ("sale", sale.id),
        ]

    def test_discount_never_makes_total_negative(self, make_product):
        product = make_product(stock=1, selling_price_cents=100)
        sale, _ = sales_service.create_sale(items=[_line(product, 1)], actor_id=None, discount_cents=500)
        assert sale.final_cents == 0

    def test_one_short_line_rejects_the_whole_sale(self, make_product):
        plenty = make_product(stock=10)
        scarce = make_product(stock=1)

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.create_sale(items=[_line(plenty, 2), _line(scarce, 5)], actor_id=None)

        assert exc.value.details["product_id"] == scarce.id
        assert ledger_service.get_quantity(plenty.id) == 10
        assert ledger_service.get_quantity(scarce.id) == 1
        assert db.session.query(Sale).count() == 0
        assert db.session.query(SaleItem).count() == 0
        assert db.session.query(StockMovement).filter_by(kind="sale").count() == 0

    def test_rejected_sale_gives_back_invoice_number(self, make_product):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(items=[_line(product, 2)], actor_id=None)

        sale, _ = sales_service.create_sale(items=[_line(product, 1)], actor_id=None)
        assert sale.invoice_number == "INV-000001"

    def test_unknown_product(self, make_product):
        product = make_product(stock=5)
        with pytest.raises(UnknownProductError):
            sales_service.create_sale(
                items=[_line(product, 1), {"product_id": 9999, "quantity": 1, "unit_price_cents": None}],
                actor_id=None,
            )
        assert ledger_service.get_quantity(product.id) == 5

    def test_inactive_product_cannot_be_sold(self, make_product):
        product = make_product(stock=5)
        product.status = "inactive"
        db.session.commit()

        with pytest.raises(SaleError):
            sales_service.create_sale(items=[_line(product, 1)], actor_id=None)

    def test_bad_payment_method(self, make_product):
        with pytest.raises(SaleError):
            sales_service.create_sale(items=[_line(make_product(stock=1), 1)], actor_id=None, payment_method="iou")

    def test_customer_required_by_setting(self, make_product):
        product = make_product(stock=5)
        settings_service.update_settings({"pos": {"require_customer_for_sale": True}}, actor_id=None)

        with pytest.raises(SaleError):
            sales_service.create_sale(items=[_line(product, 1)], actor_id=None)

        sale, _ = sales_service.create_sale(items=[_line(product, 1)], actor_id=None, customer_name="Bea")
        assert sale.customer_name == "Bea"


class TestReturns:

    @pytest.fixture
    def sold(self, make_product):
        product = make_product(stock=10)
        sale, _ = sales_service.create_sale(items=[_line(product, 3)], actor_id=None)
        return sale, product

    def test_return_restocks_and_references_sale(self, sold):
        sale, product = sold

        result = sales_service.record_return(sale_id=sale.id, product_id=product.id, quantity=2, actor_id=None)

        assert result.new_quantity == 9
        assert result.movement.kind == "return"
        assert result.movement.reference_id == sale.id
        assert result.movement.notes == "Customer return: INV-000001"
        assert sales_service.returnable_quantity(sale.id, product.id) == 1

    def test_cannot_return_more_than_sold(self, sold):
        sale, product = sold
        sales_service.record_return(sale_id=sale.id, product_id=product.id, quantity=2, actor_id=None)

        with pytest.raises(ReturnQuantityError) as exc:
            sales_service.record_return(sale_id=sale.id, product_id=product.id, quantity=2, actor_id=None)

        assert exc.value.details["returnable"] == 1
        assert ledger_service.get_quantity(product.id) == 9

    def test_product_not_on_sale(self, sold, make_product):
        sale, _ = sold
        other = make_product(stock=1)
        with pytest.raises(ReturnQuantityError):
            sales_service.record_return(sale_id=sale.id, product_id=other.id, quantity=1, actor_id=None)

    def test_missing_sale(self, make_product):
        with pytest.raises(SaleNotFoundError):
            sales_service.record_return(sale_id=9999, product_id=make_product().id, quantity=1, actor_id=None)


class TestListSales:

    def test_filters_and_counts(self, make_product):
        product = make_product(stock=20)
        sales_service.create_sale(
            items=[_line(product, 2)], actor_id=None, payment_method="cash",
            sale_date=datetime(2024, 5, 1, 10, 0),
        )
        sales_service.create_sale(
            items=[_line(product, 3)], actor_id=None, payment_method="mobile",
            customer_name="Dana", sale_date=datetime(2024, 5, 2, 9, 30),
        )

        by_day = sales_service.list_sales(day=datetime(2024, 5, 1).date())
        assert by_day["total"] == 1
        assert by_day["items"][0]["unit_count"] == 2
        assert by_day["items"][0]["item_count"] == 1

        assert sales_service.list_sales(payment_method="mobile")["total"] == 1
        assert sales_service.list_sales(search="dana")["total"] == 1
        newest_first = [s["invoice_number"] for s in sales_service.list_sales()["items"]]
        assert newest_first == ["INV-000002", "INV-000001"]
