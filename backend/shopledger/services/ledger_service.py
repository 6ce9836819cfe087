# Overview: Stock ledger store; the single writer of stock_levels and stock_movements.

"""
Stock Ledger Invariants (authoritative)

- StockLevel holds the current on-hand quantity, one row per product.
- StockMovement is append-only; every apply_delta call writes exactly one
  movement row and one StockLevel update in the same unit of work.
- sum(StockMovement.quantity_delta) per product == StockLevel.quantity.
- Under the default policy a decrease never takes quantity below zero.
  Increases are never rejected.
- History order is commit order: movements are listed by created_at then id.

This module never commits. Callers wrap it in concurrency.atomic so the
stock row and the movement row commit together or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, StockLevel, StockMovement, MOVEMENT_KINDS
from ..time_utils import utcnow
from .concurrency import ConcurrentInsertError, lock_for_update


class LedgerError(Exception):
    """Base for recoverable ledger failures. Carries a machine code and details."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class UnknownProductError(LedgerError):
    code = "UNKNOWN_PRODUCT"


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"


class InvalidMovementError(LedgerError):
    code = "INVALID_MOVEMENT"


class IllegalTransitionError(LedgerError):
    code = "ILLEGAL_TRANSITION"


@dataclass
class DeltaResult:
    product_id: int
    previous_quantity: int
    new_quantity: int
    movement: StockMovement

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "movement": self.movement.to_dict(),
        }


def get_quantity(product_id: int) -> int:
    """On-hand quantity; 0 when the product has no stock row (or does not exist)."""
    qty = (
        db.session.query(StockLevel.quantity)
        .filter(StockLevel.product_id == product_id)
        .scalar()
    )
    return int(qty or 0)


def get_stock_level(product_id: int) -> StockLevel | None:
    return db.session.query(StockLevel).filter_by(product_id=product_id).first()


def _lock_stock_level(product_id: int) -> StockLevel:
    """Fetch the product's StockLevel under lock, creating a zero row if absent."""
    query = lock_for_update(db.session.query(StockLevel).filter_by(product_id=product_id))
    level = query.first()
    if level is not None:
        return level

    # A concurrent creator makes this flush fail on uq_stock_levels_product;
    # the caller's unit of work rolls back and run_with_retry starts it over.
    level = StockLevel(product_id=product_id, quantity=0, updated_at=utcnow())
    db.session.add(level)
    try:
        db.session.flush()
    except IntegrityError as e:
        raise ConcurrentInsertError(f"stock row for product {product_id} created concurrently") from e
    return level


def ensure_stock_level(product_id: int) -> StockLevel:
    """Create the zero-quantity row for a new product. No movement is written."""
    return _lock_stock_level(product_id)


def apply_delta(
    product_id: int,
    delta: int,
    kind: str,
    actor_id: int | None,
    *,
    reference_id: int | None = None,
    notes: str | None = None,
    allow_negative: bool = False,
    clamp_at_zero: bool = False,
) -> DeltaResult:
    """
    Read-modify-write one product's stock and append the matching movement.

    clamp_at_zero: a decrease larger than the stock on hand is shrunk so the
    result lands on zero instead of failing. The recorded movement carries
    the delta actually applied.

    Raises UnknownProductError, InvalidMovementError, InsufficientStockError.
    Flushes but does not commit.
    """
    if kind not in MOVEMENT_KINDS:
        raise InvalidMovementError(
            f"unknown movement kind: {kind}",
            details={"kind": kind, "allowed": list(MOVEMENT_KINDS)},
        )
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidMovementError("quantity delta must be an integer", details={"delta": delta})

    product = db.session.get(Product, product_id)
    if product is None:
        raise UnknownProductError(
            f"product {product_id} does not exist",
            details={"product_id": product_id},
        )

    level = _lock_stock_level(product_id)
    previous = level.quantity

    if clamp_at_zero and delta < 0:
        delta = -min(-delta, max(previous, 0))

    new_quantity = previous + delta
    # Increases always apply, even to a product already oversold below zero
    if delta < 0 and new_quantity < 0 and not allow_negative:
        raise InsufficientStockError(
            f"insufficient stock for product {product_id}: have {previous}, change {delta}",
            details={
                "product_id": product_id,
                "product_name": product.name,
                "current_quantity": previous,
                "requested_delta": delta,
            },
        )

    now = utcnow()
    level.quantity = new_quantity
    level.updated_at = now
    if kind == "purchase" and delta > 0:
        level.last_restocked_at = now

    movement = StockMovement(
        product_id=product_id,
        quantity_delta=delta,
        kind=kind,
        reference_id=reference_id,
        actor_id=actor_id,
        notes=notes,
        created_at=now,
    )
    db.session.add(movement)
    db.session.flush()

    return DeltaResult(
        product_id=product_id,
        previous_quantity=previous,
        new_quantity=new_quantity,
        movement=movement,
    )


def list_movements(
    *,
    product_id: int | None = None,
    kind: str | None = None,
    reference_id: int | None = None,
    limit: int = 50,
) -> list[StockMovement]:
    """Newest first; ties on created_at are broken by insertion id."""
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if kind is not None:
        query = query.filter(StockMovement.kind == kind)
    if reference_id is not None:
        query = query.filter(StockMovement.reference_id == reference_id)
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def verify_ledger() -> list[dict]:
    """
    Compare every StockLevel against the sum of its movements.

    Returns one entry per mismatching product; an empty list means the
    ledger is consistent.
    """
    sums = dict(
        db.session.query(
            StockMovement.product_id,
            func.coalesce(func.sum(StockMovement.quantity_delta), 0),
        )
        .group_by(StockMovement.product_id)
        .all()
    )

    mismatches = []
    seen = set()
    for level in db.session.query(StockLevel).order_by(StockLevel.product_id).all():
        seen.add(level.product_id)
        expected = int(sums.get(level.product_id, 0))
        if expected != level.quantity:
            mismatches.append({
                "product_id": level.product_id,
                "stock_quantity": level.quantity,
                "movement_sum": expected,
            })

    for product_id, total in sorted(sums.items()):
        if product_id not in seen and total:
            mismatches.append({
                "product_id": product_id,
                "stock_quantity": None,
                "movement_sum": int(total),
            })
    return mismatches
