# Overview: Supplier master data; purchase orders reference suppliers.

"""
Supplier Service

- Name is unique (case-insensitive); name, contact person and phone are required.
- A supplier with purchase orders cannot be deleted; orders keep their history.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import PurchaseOrder, Supplier


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


class SupplierValidationError(Exception):
    """Raised when supplier data fails validation."""
    pass


class SupplierConflictError(SupplierValidationError):
    """Raised when another supplier already has the name."""
    pass


class SupplierInUseError(Exception):
    """Raised when deleting a supplier that still has purchase orders."""
    pass


def _name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Supplier.id).filter(func.lower(Supplier.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    return query.first() is not None


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(*, search: str | None = None, page: int = 1, limit: int = 10) -> dict:
    query = db.session.query(Supplier)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Supplier.name.ilike(term),
            Supplier.contact_person.ilike(term),
            Supplier.phone.ilike(term),
        ))

    total = query.count()
    items = (
        query.order_by(Supplier.name.asc(), Supplier.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total}


def create_supplier(patch: dict) -> Supplier:
    """patch comes from validation.validate_payload (already normalized)."""
    for required in ("name", "contact_person", "phone"):
        if not patch.get(required):
            raise SupplierValidationError(f"{required} is required")

    if _name_taken(patch["name"]):
        raise SupplierConflictError(f"Supplier '{patch['name']}' already exists")

    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)

    if "name" in patch and _name_taken(patch["name"], exclude_id=supplier.id):
        raise SupplierConflictError(f"Supplier '{patch['name']}' already exists")

    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)

    order_count = (
        db.session.query(func.count(PurchaseOrder.id))
        .filter(PurchaseOrder.supplier_id == supplier.id)
        .scalar()
    )
    if order_count:
        raise SupplierInUseError(
            f"Supplier has {order_count} purchase order(s) and cannot be deleted"
        )

    db.session.delete(supplier)
    db.session.commit()
