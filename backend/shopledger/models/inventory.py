from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

MOVEMENT_KINDS = ("purchase", "sale", "adjustment", "return")


class StockLevel(db.Model):
    """
    Current on-hand quantity, one row per product.

    WRITE PATH: only ledger_service.apply_delta mutates this table.
    version_id gives optimistic locking; a concurrent writer that loses the
    race gets StaleDataError and the whole unit of work is retried.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_stock_levels_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("stock_level", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockLevel product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock history.

    INVARIANT: for every product, sum(quantity_delta) == StockLevel.quantity.
    Rows are never updated or deleted. reference_id points at the purchase
    order or sale that caused the movement; it is a lookup, not a foreign key.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "kind IN ('purchase', 'sale', 'adjustment', 'return')",
            name="ck_stock_movements_kind",
        ),
        db.Index("ix_stock_movements_product_time", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    kind = db.Column(db.String(16), nullable=False)
    reference_id = db.Column(db.Integer, nullable=True)
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    product = db.relationship("Product")
    actor = db.relationship("User")

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} "
            f"kind={self.kind} delta={self.quantity_delta}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity_delta": self.quantity_delta,
            "kind": self.kind,
            "reference_id": self.reference_id,
            "actor_id": self.actor_id,
            "actor_name": self.actor.name if self.actor else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
