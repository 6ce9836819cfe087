# Overview: SQLAlchemy models package; re-exports every model class.

from .auth import User, SessionToken
from .catalog import Category, Product
from .inventory import StockLevel, StockMovement, MOVEMENT_KINDS
from .purchasing import Supplier, PurchaseOrder, PurchaseOrderItem, PURCHASE_ORDER_STATUSES
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .settings import SystemSettingsRecord
from .documents import DocumentSequence

__all__ = [
    "User",
    "SessionToken",
    "Category",
    "Product",
    "StockLevel",
    "StockMovement",
    "MOVEMENT_KINDS",
    "Supplier",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PURCHASE_ORDER_STATUSES",
    "Sale",
    "SaleItem",
    "PAYMENT_METHODS",
    "SystemSettingsRecord",
    "DocumentSequence",
]
