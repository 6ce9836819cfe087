# Overview: Purchase orders and their status state machine.

"""
Purchase Order State Machine (authoritative)

    pending   -> delivered : receive every line ('purchase', +qty)
    pending   -> cancelled : no stock effect
    delivered -> pending   : roll back every line ('adjustment', -qty, floored at 0)
    delivered -> cancelled : roll back every line
    cancelled -> pending   : no stock effect (re-opens the order)
    X         -> X         : no-op, reports success, writes nothing

Anything else (cancelled -> delivered) is an IllegalTransitionError.

The status change and every line's movement commit as ONE unit of work.
If a single line fails, nothing is written. PurchaseOrder carries a version
column, so two concurrent transitions of the same order cannot both apply:
the loser is retried and then sees the new status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderItem, Supplier, PURCHASE_ORDER_STATUSES
from ..time_utils import day_bounds, utcnow
from . import document_service, inventory_service
from .concurrency import atomic, lock_for_update
from .ledger_service import DeltaResult, IllegalTransitionError, UnknownProductError
from .supplier_service import SupplierNotFoundError


RECEIVE = "receive"
ROLLBACK = "rollback"

TRANSITIONS: dict[tuple[str, str], str | None] = {
    ("pending", "delivered"): RECEIVE,
    ("pending", "cancelled"): None,
    ("delivered", "pending"): ROLLBACK,
    ("delivered", "cancelled"): ROLLBACK,
    ("cancelled", "pending"): None,
}


class PurchaseOrderError(Exception):
    code = "PURCHASE_ORDER_ERROR"


class InvalidStatusError(PurchaseOrderError):
    """Requested status is not one of pending / delivered / cancelled."""
    code = "INVALID_STATUS"


class PurchaseOrderNotFoundError(PurchaseOrderError):
    code = "ORDER_NOT_FOUND"


@dataclass
class TransitionResult:
    order: PurchaseOrder
    previous_status: str
    changed: bool
    movements: list[DeltaResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(include_items=True),
            "previous_status": self.previous_status,
            "changed": self.changed,
            "movements": [m.to_dict() for m in self.movements],
        }


def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise PurchaseOrderNotFoundError(f"Purchase order {order_id} not found")
    return order


def create_purchase_order(
    *,
    supplier_id: int,
    items: list[dict],
    actor_id: int | None,
    order_date: datetime | None = None,
    expected_delivery_date: datetime | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    """
    Create a pending order. items: [{"product_id", "quantity", "unit_price_cents"}]
    as normalized by validation.enforce_rules_line_items. A missing unit price
    falls back to the product's purchase price. Stock is not touched.
    """
    def _op() -> PurchaseOrder:
        if db.session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(f"Supplier {supplier_id} not found")

        lines = []
        total = 0
        for item in items:
            product = db.session.get(Product, item["product_id"])
            if product is None:
                raise UnknownProductError(
                    f"product {item['product_id']} does not exist",
                    details={"product_id": item["product_id"]},
                )
            unit_price = item.get("unit_price_cents")
            if unit_price is None:
                unit_price = product.purchase_price_cents
            line_total = unit_price * item["quantity"]
            total += line_total
            lines.append(PurchaseOrderItem(
                product_id=product.id,
                quantity=item["quantity"],
                unit_price_cents=unit_price,
                total_cents=line_total,
            ))

        order = PurchaseOrder(
            order_number=document_service.next_document_number(document_service.PURCHASE_ORDER),
            supplier_id=supplier_id,
            created_by_user_id=actor_id,
            order_date=order_date or utcnow(),
            expected_delivery_date=expected_delivery_date,
            status="pending",
            total_cents=total,
            notes=notes,
        )
        order.items = lines
        db.session.add(order)
        db.session.flush()
        return order

    return atomic(_op)


def transition_purchase_order(order_id: int, new_status: str, actor_id: int | None) -> TransitionResult:
    """
    Move an order to new_status and apply the matching stock movements.

    Raises InvalidStatusError, IllegalTransitionError (code ORDER_NOT_FOUND
    for a missing order) and any ledger error from a line; in every failure
    case nothing is persisted.
    """
    if new_status not in PURCHASE_ORDER_STATUSES:
        raise InvalidStatusError(
            f"status must be one of {', '.join(PURCHASE_ORDER_STATUSES)}"
        )

    def _op() -> TransitionResult:
        order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
        if order is None:
            raise IllegalTransitionError(
                f"Purchase order {order_id} not found",
                code="ORDER_NOT_FOUND",
                details={"order_id": order_id},
            )

        previous = order.status
        if previous == new_status:
            return TransitionResult(order=order, previous_status=previous, changed=False)

        key = (previous, new_status)
        if key not in TRANSITIONS:
            raise IllegalTransitionError(
                f"cannot move purchase order from {previous} to {new_status}",
                details={"order_id": order_id, "from": previous, "to": new_status},
            )

        effect = TRANSITIONS[key]
        movements: list[DeltaResult] = []
        for item in order.items:
            if effect == RECEIVE:
                movements.append(inventory_service.receive_inner(
                    item.product_id,
                    item.quantity,
                    actor_id,
                    order.id,
                    notes=f"Purchase order received: {order.order_number}",
                ))
            elif effect == ROLLBACK:
                movements.append(inventory_service.rollback_receipt_inner(
                    item.product_id,
                    item.quantity,
                    actor_id,
                    order.id,
                    notes=f"{inventory_service.ROLLBACK_NOTE}: {order.order_number}",
                ))

        order.status = new_status
        order.updated_at = utcnow()
        db.session.flush()
        return TransitionResult(order=order, previous_status=previous, changed=True, movements=movements)

    return atomic(_op)


def list_purchase_orders(
    *,
    search: str | None = None,
    status: str | None = None,
    day=None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    query = db.session.query(PurchaseOrder).outerjoin(Supplier, Supplier.id == PurchaseOrder.supplier_id)

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(PurchaseOrder.order_number.ilike(term), Supplier.name.ilike(term)))
    if status:
        if status not in PURCHASE_ORDER_STATUSES:
            raise InvalidStatusError(f"status must be one of {', '.join(PURCHASE_ORDER_STATUSES)}")
        query = query.filter(PurchaseOrder.status == status)
    if day is not None:
        start, end = day_bounds(day)
        query = query.filter(PurchaseOrder.order_date >= start, PurchaseOrder.order_date < end)

    total = query.count()
    orders = (
        query.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    counts = {}
    if orders:
        counts = dict(
            db.session.query(PurchaseOrderItem.purchase_order_id, func.count(PurchaseOrderItem.id))
            .filter(PurchaseOrderItem.purchase_order_id.in_([o.id for o in orders]))
            .group_by(PurchaseOrderItem.purchase_order_id)
            .all()
        )

    items = []
    for order in orders:
        row = order.to_dict()
        row["item_count"] = int(counts.get(order.id, 0))
        items.append(row)
    return {"items": items, "total": total}
