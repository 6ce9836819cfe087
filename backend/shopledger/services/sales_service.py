"""
Sales Service - all-or-nothing checkout

WHY: A sale and the stock it consumes are one business fact. The sale row,
its items and one 'sale' movement per item are written in a single
transaction; if any line cannot be fulfilled (unknown product, not enough
stock) the whole checkout is rejected and nothing is persisted. There is no
partially-fulfilled sale.

Customer returns put stock back with a 'return' movement that references the
sale. Per product, returned quantity never exceeds sold quantity.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, Sale, SaleItem, StockMovement, PAYMENT_METHODS
from ..time_utils import day_bounds, utcnow
from . import document_service, inventory_service, settings_service
from .concurrency import atomic
from .ledger_service import DeltaResult, UnknownProductError


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleNotFoundError(SaleError):
    pass


class ReturnQuantityError(SaleError):
    """Return exceeds what is still returnable for the product on this sale."""
    pass


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def create_sale(
    *,
    items: list[dict],
    actor_id: int | None,
    payment_method: str = "cash",
    discount_cents: int = 0,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
    sale_date: datetime | None = None,
) -> tuple[Sale, list[DeltaResult]]:
    """
    Record a sale and decrement stock for every line, atomically.

    items: [{"product_id", "quantity", "unit_price_cents"}] as normalized by
    validation.enforce_rules_line_items; a missing unit price uses the
    product's selling price.

    Raises SaleError (bad input), UnknownProductError, InsufficientStockError.
    """
    if payment_method not in PAYMENT_METHODS:
        raise SaleError(
            f"payment_method must be one of {', '.join(PAYMENT_METHODS)}",
            details={"payment_method": payment_method},
        )
    if discount_cents < 0:
        raise SaleError("discount_cents must be >= 0")

    def _op():
        if settings_service.get_settings().pos.require_customer_for_sale and not customer_name:
            raise SaleError("customer_name is required for sales")

        # Resolve every product before writing anything
        priced = []
        for item in items:
            product = db.session.get(Product, item["product_id"])
            if product is None:
                raise UnknownProductError(
                    f"product {item['product_id']} does not exist",
                    details={"product_id": item["product_id"]},
                )
            if product.status != "active":
                raise SaleError(
                    f"product {product.id} is inactive",
                    details={"product_id": product.id},
                )
            unit_price = item.get("unit_price_cents")
            if unit_price is None:
                unit_price = product.selling_price_cents
            priced.append((product, item["quantity"], unit_price))

        total = sum(qty * price for _, qty, price in priced)
        sale = Sale(
            invoice_number=document_service.next_document_number(document_service.SALE),
            user_id=actor_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            sale_date=sale_date or utcnow(),
            total_cents=total,
            discount_cents=discount_cents,
            final_cents=max(0, total - discount_cents),
            payment_method=payment_method,
            notes=notes,
        )
        sale.items = [
            SaleItem(
                product_id=product.id,
                quantity=qty,
                unit_price_cents=price,
                total_cents=qty * price,
            )
            for product, qty, price in priced
        ]
        db.session.add(sale)
        db.session.flush()

        movements = [
            inventory_service.sell_inner(line.product_id, line.quantity, actor_id, sale.id)
            for line in sale.items
        ]
        return sale, movements

    return atomic(_op)


def returnable_quantity(sale_id: int, product_id: int) -> int:
    sold = (
        db.session.query(func.coalesce(func.sum(SaleItem.quantity), 0))
        .filter(SaleItem.sale_id == sale_id, SaleItem.product_id == product_id)
        .scalar()
    )
    returned = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity_delta), 0))
        .filter(
            StockMovement.kind == "return",
            StockMovement.reference_id == sale_id,
            StockMovement.product_id == product_id,
        )
        .scalar()
    )
    return int(sold or 0) - int(returned or 0)


def record_return(
    *,
    sale_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None,
    notes: str | None = None,
) -> DeltaResult:
    """Put returned goods back on hand. Commits."""
    def _op() -> DeltaResult:
        sale = get_sale(sale_id)
        remaining = returnable_quantity(sale.id, product_id)
        if quantity > remaining:
            raise ReturnQuantityError(
                f"cannot return {quantity}; only {remaining} returnable",
                details={
                    "sale_id": sale.id,
                    "product_id": product_id,
                    "requested": quantity,
                    "returnable": remaining,
                },
            )
        return inventory_service.return_inner(
            product_id,
            quantity,
            actor_id,
            sale.id,
            notes=notes or f"Customer return: {sale.invoice_number}",
        )

    return atomic(_op)


def list_sales(
    *,
    search: str | None = None,
    day=None,
    payment_method: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    query = db.session.query(Sale)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Sale.invoice_number.ilike(term),
            Sale.customer_name.ilike(term),
            Sale.customer_phone.ilike(term),
        ))
    if day is not None:
        start, end = day_bounds(day)
        query = query.filter(Sale.sale_date >= start, Sale.sale_date < end)
    if payment_method:
        if payment_method not in PAYMENT_METHODS:
            raise SaleError(f"payment must be one of {', '.join(PAYMENT_METHODS)}")
        query = query.filter(Sale.payment_method == payment_method)

    total = query.count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    counts = {}
    if sales:
        counts = {
            sale_id: (int(lines), int(units))
            for sale_id, lines, units in db.session.query(
                SaleItem.sale_id, func.count(SaleItem.id), func.sum(SaleItem.quantity)
            )
            .filter(SaleItem.sale_id.in_([s.id for s in sales]))
            .group_by(SaleItem.sale_id)
            .all()
        }

    items = []
    for sale in sales:
        row = sale.to_dict()
        lines, units = counts.get(sale.id, (0, 0))
        row["item_count"] = lines
        row["unit_count"] = units
        items.append(row)
    return {"items": items, "total": total}
