# Overview: Catalog (categories and products). Stock is owned by the ledger, never written here.

"""
Products Service

- Creating a product also creates its zero StockLevel row. An initial_stock
  greater than zero is booked as one 'adjustment' movement ("Initial stock")
  in the same transaction.
- Updates never touch stock; stock changes go through inventory_service.
- Delete is soft (status -> inactive) so movements keep their product.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product, StockLevel
from ..validation import ConflictError
from . import inventory_service, ledger_service
from .concurrency import atomic

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "barcode",
    "description",
    "category_id",
    "purchase_price_cents",
    "selling_price_cents",
    "unit",
    "min_stock",
    "image_url",
    "status",
}

SORT_COLUMNS = {
    "id": Product.id,
    "name": Product.name,
    "price": Product.selling_price_cents,
    "category": Category.name,
}

INITIAL_STOCK_NOTE = "Initial stock"


class ProductNotFoundError(Exception):
    pass


class CategoryNotFoundError(Exception):
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_category(category_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise CategoryNotFoundError(f"Category {category_id} not found")


def _check_barcode(barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Barcode '{barcode}' is already used by another product.")


def _with_quantity(product: Product, quantity) -> dict:
    data = product.to_dict()
    data["quantity"] = int(quantity or 0)
    return data


# Categories

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(*, name: str, description: str | None = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValueError("name is required")
    exists = db.session.query(Category.id).filter(func.lower(Category.name) == name.lower()).first()
    if exists:
        raise ConflictError(f"Category '{name}' already exists.")

    category = Category(name=name, description=description)
    db.session.add(category)
    db.session.commit()
    return category


# Products

def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def get_product_dict(product_id: int) -> dict:
    product = get_product(product_id)
    return _with_quantity(product, ledger_service.get_quantity(product.id))


def list_products(
    *,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
    sort_by: str = "id",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> dict:
    if sort_by not in SORT_COLUMNS:
        raise ValueError(f"sort_by must be one of {', '.join(SORT_COLUMNS)}")
    if sort_order not in ("asc", "desc"):
        raise ValueError("sort_order must be asc or desc")

    quantity = func.coalesce(StockLevel.quantity, 0)
    query = (
        db.session.query(Product, quantity.label("quantity"))
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .outerjoin(Category, Category.id == Product.category_id)
    )
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(term),
            Product.barcode.ilike(term),
            Product.description.ilike(term),
        ))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if status:
        query = query.filter(Product.status == status)

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()

    total = query.count()
    rows = (
        query.order_by(ordering, Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": [_with_quantity(p, qty) for p, qty in rows], "total": total}


def create_product(*, patch: dict, actor_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    Raises CategoryNotFoundError, ConflictError (duplicate barcode).
    """
    initial_stock = patch.pop("initial_stock", None) or 0

    def _op() -> dict:
        _check_category(patch.get("category_id"))
        _check_barcode(patch.get("barcode"))

        p = Product()
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

        ledger_service.ensure_stock_level(p.id)
        if initial_stock > 0:
            inventory_service.adjust_inner(p.id, initial_stock, actor_id, INITIAL_STOCK_NOTE)

        return _with_quantity(p, ledger_service.get_quantity(p.id))

    return atomic(_op)


def update_product(*, product_id: int, patch: dict) -> dict:
    product = get_product(product_id)
    if "category_id" in patch:
        _check_category(patch["category_id"])
    if "barcode" in patch:
        _check_barcode(patch["barcode"], exclude_id=product.id)

    apply_product_patch(product, patch)
    db.session.commit()
    return _with_quantity(product, ledger_service.get_quantity(product.id))


def delete_product(*, product_id: int) -> dict:
    """Soft delete: the product stays referenced by its stock history."""
    product = get_product(product_id)
    product.status = "inactive"
    db.session.commit()
    return product.to_dict()
