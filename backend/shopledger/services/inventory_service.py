# Overview: Movement engine; business rules for sale, receipt, adjustment, rollback and return movements.

"""
Movement rules (authoritative)

- sell:      quantity > 0, delta = -quantity, kind 'sale'. Rejects a negative
             result unless pos.allow_negative_inventory is on.
- receive:   quantity > 0, delta = +quantity, kind 'purchase'. Never rejected
             for stock reasons; stamps last_restocked_at.
- adjust:    delta != 0, kind 'adjustment'. Always strict about negatives.
- rollback_receipt: quantity > 0, kind 'adjustment', floored at zero
             (actual delta = -min(quantity, on hand)). Always records a row.
- return_to_stock: quantity > 0, kind 'return'.

Every *_inner function flushes without committing so a caller can compose
several movements into one transaction. The public functions run a single
movement in its own transaction via concurrency.atomic. Nothing here
retries business failures; only lock/version conflicts are retried.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product, StockLevel
from . import ledger_service, settings_service
from .concurrency import atomic
from .ledger_service import DeltaResult, InvalidMovementError

ROLLBACK_NOTE = "Purchase order rollback"


def _require_positive(quantity, operation: str) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidMovementError(
            f"{operation} quantity must be a positive integer",
            details={"quantity": quantity, "operation": operation},
        )
    return quantity


def sell_inner(product_id: int, quantity: int, actor_id: int | None, sale_id: int | None) -> DeltaResult:
    _require_positive(quantity, "sale")
    allow_negative = settings_service.get_settings().pos.allow_negative_inventory
    return ledger_service.apply_delta(
        product_id,
        -quantity,
        "sale",
        actor_id,
        reference_id=sale_id,
        allow_negative=allow_negative,
    )


def receive_inner(
    product_id: int,
    quantity: int,
    actor_id: int | None,
    purchase_order_id: int | None,
    *,
    notes: str | None = None,
) -> DeltaResult:
    _require_positive(quantity, "receipt")
    return ledger_service.apply_delta(
        product_id,
        quantity,
        "purchase",
        actor_id,
        reference_id=purchase_order_id,
        notes=notes,
    )


def adjust_inner(product_id: int, delta: int, actor_id: int | None, notes: str | None) -> DeltaResult:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidMovementError("adjustment quantity must be an integer", details={"delta": delta})
    if delta == 0:
        raise InvalidMovementError(
            "adjustment quantity cannot be zero",
            details={"product_id": product_id, "delta": 0},
        )
    return ledger_service.apply_delta(product_id, delta, "adjustment", actor_id, notes=notes)


def rollback_receipt_inner(
    product_id: int,
    quantity: int,
    actor_id: int | None,
    purchase_order_id: int | None,
    *,
    notes: str | None = None,
) -> DeltaResult:
    _require_positive(quantity, "rollback")
    return ledger_service.apply_delta(
        product_id,
        -quantity,
        "adjustment",
        actor_id,
        reference_id=purchase_order_id,
        notes=notes or ROLLBACK_NOTE,
        clamp_at_zero=True,
    )


def return_inner(
    product_id: int,
    quantity: int,
    actor_id: int | None,
    sale_id: int | None,
    *,
    notes: str | None = None,
) -> DeltaResult:
    _require_positive(quantity, "return")
    return ledger_service.apply_delta(
        product_id,
        quantity,
        "return",
        actor_id,
        reference_id=sale_id,
        notes=notes,
    )


def sell(product_id: int, quantity: int, actor_id: int | None, sale_id: int | None) -> DeltaResult:
    return atomic(lambda: sell_inner(product_id, quantity, actor_id, sale_id))


def receive(product_id: int, quantity: int, actor_id: int | None, purchase_order_id: int | None) -> DeltaResult:
    return atomic(lambda: receive_inner(product_id, quantity, actor_id, purchase_order_id))


def adjust(product_id: int, delta: int, actor_id: int | None, notes: str | None = None) -> DeltaResult:
    """Manual correction. Zero is rejected; a negative result is rejected."""
    return atomic(lambda: adjust_inner(product_id, delta, actor_id, notes))


def rollback_receipt(
    product_id: int,
    quantity: int,
    actor_id: int | None,
    purchase_order_id: int | None,
) -> DeltaResult:
    return atomic(lambda: rollback_receipt_inner(product_id, quantity, actor_id, purchase_order_id))


def return_to_stock(product_id: int, quantity: int, actor_id: int | None, sale_id: int | None) -> DeltaResult:
    return atomic(lambda: return_inner(product_id, quantity, actor_id, sale_id))


# Read side

def _stock_query():
    quantity = func.coalesce(StockLevel.quantity, 0)
    return (
        db.session.query(Product, StockLevel, quantity.label("quantity"))
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .outerjoin(Category, Category.id == Product.category_id)
    ), quantity


def _stock_row(product: Product, level: StockLevel | None, quantity: int) -> dict:
    quantity = int(quantity or 0)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "barcode": product.barcode,
        "category_id": product.category_id,
        "category_name": product.category.name if product.category else None,
        "unit": product.unit,
        "min_stock": product.min_stock,
        "selling_price_cents": product.selling_price_cents,
        "status": product.status,
        "quantity": quantity,
        "is_low_stock": 0 < quantity < product.min_stock,
        "is_out_of_stock": quantity <= 0,
        "last_restocked_at": level.to_dict()["last_restocked_at"] if level else None,
        "updated_at": level.to_dict()["updated_at"] if level else None,
    }


def list_inventory(
    *,
    search: str | None = None,
    category_id: int | None = None,
    stock_status: str = "all",
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Stock levels joined with products.

    stock_status: 'all', 'low' (0 < qty < min_stock) or 'out_of_stock' (qty <= 0).
    """
    if stock_status not in ("all", "low", "out_of_stock"):
        raise ValueError("status must be all, low or out_of_stock")

    query, quantity = _stock_query()
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(term), Product.barcode.ilike(term)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if stock_status == "low":
        query = query.filter(quantity > 0, quantity < Product.min_stock)
    elif stock_status == "out_of_stock":
        query = query.filter(quantity <= 0)

    total = query.count()
    rows = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [_stock_row(p, level, qty) for p, level, qty in rows],
        "total": total,
    }


def get_inventory_item(product_id: int) -> dict | None:
    query, _ = _stock_query()
    row = query.filter(Product.id == product_id).first()
    if row is None:
        return None
    product, level, qty = row
    return _stock_row(product, level, qty)
