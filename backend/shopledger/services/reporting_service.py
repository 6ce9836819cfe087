# Overview: Read-only reports and dashboard figures over catalog, stock and sales.

from __future__ import annotations

from datetime import date

from sqlalchemy import case, func

from ..extensions import db
from ..models import Category, Product, Sale, SaleItem, StockLevel
from ..time_utils import day_bounds, start_of_month, start_of_today, utcnow


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _quantity():
    return func.coalesce(StockLevel.quantity, 0)


def _range(start_day: date | None, end_day: date | None):
    """Both ends inclusive, as whole UTC days."""
    if start_day is None or end_day is None:
        raise ReportError("start_date and end_date are required")
    if start_day > end_day:
        raise ReportError("start_date must not be after end_date")
    return day_bounds(start_day)[0], day_bounds(end_day)[1]


def inventory_summary() -> dict:
    """
    Per category: product count, stock value (selling price x on hand) and
    low stock count (on hand below min_stock). Uncategorised products are
    reported under category_id None.
    """
    quantity = _quantity()
    is_low = func.sum(case((quantity < Product.min_stock, 1), else_=0))

    rows = (
        db.session.query(
            Product.category_id,
            Category.name,
            func.count(Product.id),
            func.coalesce(func.sum(Product.selling_price_cents * quantity), 0),
            func.coalesce(is_low, 0),
        )
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .outerjoin(Category, Category.id == Product.category_id)
        .filter(Product.status == "active")
        .group_by(Product.category_id, Category.name)
        .order_by(Category.name.asc())
        .all()
    )

    categories = [
        {
            "category_id": category_id,
            "category_name": name or "Uncategorized",
            "product_count": int(count),
            "stock_value_cents": int(value),
            "low_stock_count": int(low),
        }
        for category_id, name, count, value, low in rows
    ]
    return {
        "categories": categories,
        "totals": {
            "product_count": sum(c["product_count"] for c in categories),
            "stock_value_cents": sum(c["stock_value_cents"] for c in categories),
            "low_stock_count": sum(c["low_stock_count"] for c in categories),
        },
    }


def sales_trends(*, start_day: date | None, end_day: date | None) -> dict:
    start_dt, end_dt = _range(start_day, end_day)
    period = func.strftime("%Y-%m-%d", Sale.sale_date)

    rows = (
        db.session.query(
            period.label("period"),
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.final_cents), 0),
        )
        .filter(Sale.sale_date >= start_dt, Sale.sale_date < end_dt)
        .group_by(period)
        .order_by(period.asc())
        .all()
    )

    days = [
        {"date": day, "sales_count": int(count), "amount_cents": int(amount)}
        for day, count, amount in rows
    ]
    return {
        "sales_by_date": days,
        "totals": {
            "sales_count": sum(d["sales_count"] for d in days),
            "amount_cents": sum(d["amount_cents"] for d in days),
        },
    }


def top_products(*, start_day: date | None, end_day: date | None, limit: int = 10) -> list[dict]:
    start_dt, end_dt = _range(start_day, end_day)
    qty = func.sum(SaleItem.quantity)

    rows = (
        db.session.query(
            SaleItem.product_id,
            Product.name,
            qty,
            func.coalesce(func.sum(SaleItem.total_cents), 0),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .filter(Sale.sale_date >= start_dt, Sale.sale_date < end_dt)
        .group_by(SaleItem.product_id, Product.name)
        .order_by(qty.desc(), SaleItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": product_id,
            "product_name": name,
            "quantity": int(quantity or 0),
            "amount_cents": int(amount),
        }
        for product_id, name, quantity, amount in rows
    ]


def top_categories(*, start_day: date | None, end_day: date | None, limit: int = 10) -> list[dict]:
    start_dt, end_dt = _range(start_day, end_day)
    amount = func.coalesce(func.sum(SaleItem.total_cents), 0)

    rows = (
        db.session.query(
            Category.id,
            Category.name,
            func.coalesce(func.sum(SaleItem.quantity), 0),
            amount,
        )
        .select_from(SaleItem)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .join(Category, Category.id == Product.category_id)
        .filter(Sale.sale_date >= start_dt, Sale.sale_date < end_dt)
        .group_by(Category.id, Category.name)
        .order_by(amount.desc(), Category.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "category_id": category_id,
            "category_name": name,
            "quantity": int(quantity),
            "amount_cents": int(total),
        }
        for category_id, name, quantity, total in rows
    ]


def _sales_total_since(since=None) -> int:
    query = db.session.query(func.coalesce(func.sum(Sale.final_cents), 0))
    if since is not None:
        query = query.filter(Sale.sale_date >= since)
    return int(query.scalar() or 0)


def dashboard_stats() -> dict:
    now = utcnow()
    quantity = _quantity()

    low_stock = (
        db.session.query(Product.id, Product.name, quantity, Product.min_stock)
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .filter(Product.status == "active", quantity < Product.min_stock)
        .order_by(quantity.asc(), Product.id.asc())
        .all()
    )

    qty = func.sum(SaleItem.quantity)
    top_sellers = (
        db.session.query(
            SaleItem.product_id,
            Product.name,
            qty,
            func.coalesce(func.sum(SaleItem.total_cents), 0),
        )
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .group_by(SaleItem.product_id, Product.name)
        .order_by(qty.desc(), SaleItem.product_id.asc())
        .limit(10)
        .all()
    )

    return {
        "total_products": db.session.query(func.count(Product.id)).filter(Product.status == "active").scalar(),
        "low_stock_products": len(low_stock),
        "low_stock_products_list": [
            {"id": pid, "name": name, "quantity": int(q), "min_stock": min_stock}
            for pid, name, q, min_stock in low_stock[:5]
        ],
        "today_sales_cents": _sales_total_since(start_of_today(now)),
        "monthly_sales_cents": _sales_total_since(start_of_month(now)),
        "total_sales_cents": _sales_total_since(),
        "top_selling_products": [
            {
                "product_id": product_id,
                "product_name": name,
                "quantity": int(quantity or 0),
                "amount_cents": int(amount),
            }
            for product_id, name, quantity, amount in top_sellers
        ],
    }


def recent_sales(limit: int = 5) -> list[Sale]:
    return (
        db.session.query(Sale)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
