# Overview: Flask API routes for purchase orders and their status transitions.

"""
Purchase order routes.

SECURITY: All routes require authentication.
- View operations require VIEW_PURCHASES
- Create and status changes require MANAGE_PURCHASES

PATCH /<id>/status drives the purchase order state machine; the status
change and all of its stock movements commit together.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..validation import (
    ValidationError,
    coerce_int,
    enforce_rules_line_items,
    parse_day_arg,
    parse_pagination,
    pagination_dict,
)
from ..time_utils import parse_iso_datetime
from ..services import purchase_service
from ..services.purchase_service import InvalidStatusError, PurchaseOrderNotFoundError
from ..services.supplier_service import SupplierNotFoundError
from ..services.ledger_service import LedgerError
from ..responses import error_response, ledger_error_response, internal_error
from ..decorators import require_auth, require_permission


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _optional_datetime(payload: dict, key: str):
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


@purchases_bp.get("")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_purchases_route():
    """Query parameters: search (order number / supplier), status, date (YYYY-MM-DD), page, limit."""
    try:
        page, limit = parse_pagination(request.args)
        result = purchase_service.list_purchase_orders(
            search=request.args.get("search"),
            status=request.args.get("status") or None,
            day=parse_day_arg(request.args, "date"),
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    except InvalidStatusError as e:
        return error_response(str(e), 400, code=e.code)

    return jsonify({
        "items": result["items"],
        "pagination": pagination_dict(page, limit, result["total"]),
    })


@purchases_bp.post("")
@require_auth
@require_permission("MANAGE_PURCHASES")
def create_purchase_route():
    """
    Body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 3, "quantity": 20, "unit_price_cents": 150}],
        "order_date": "2024-05-01T00:00:00Z",            // optional
        "expected_delivery_date": "2024-05-08T00:00:00Z", // optional
        "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("supplier_id") is None:
            raise ValidationError("supplier_id is required")
        supplier_id = coerce_int("supplier_id", payload["supplier_id"])
        items = enforce_rules_line_items(payload.get("items"), price_key="unit_price_cents")
        order_date = _optional_datetime(payload, "order_date")
        expected = _optional_datetime(payload, "expected_delivery_date")
        notes = payload.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    try:
        order = purchase_service.create_purchase_order(
            supplier_id=supplier_id,
            items=items,
            actor_id=g.current_user.id,
            order_date=order_date,
            expected_delivery_date=expected,
            notes=notes,
        )
    except SupplierNotFoundError as e:
        return error_response(str(e), 404, code="SUPPLIER_NOT_FOUND")
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return internal_error()

    current_app.logger.info(
        "Purchase order created: order=%s supplier_id=%s lines=%s actor=%s",
        order.order_number, supplier_id, len(items), g.current_user.id,
    )
    return jsonify({"purchase_order": order.to_dict(include_items=True)}), 201


@purchases_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_route(order_id: int):
    try:
        order = purchase_service.get_purchase_order(order_id)
    except PurchaseOrderNotFoundError as e:
        return error_response(str(e), 404, code=e.code)
    return jsonify({"purchase_order": order.to_dict(include_items=True)})


@purchases_bp.get("/<int:order_id>/items")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_items_route(order_id: int):
    try:
        order = purchase_service.get_purchase_order(order_id)
    except PurchaseOrderNotFoundError as e:
        return error_response(str(e), 404, code=e.code)
    return jsonify({"items": [item.to_dict() for item in order.items]})


@purchases_bp.patch("/<int:order_id>/status")
@require_auth
@require_permission("MANAGE_PURCHASES")
def update_purchase_status_route(order_id: int):
    """Body: {"status": "pending" | "delivered" | "cancelled"}"""
    payload = request.get_json(silent=True) or {}
    new_status = payload.get("status")
    if not isinstance(new_status, str) or not new_status:
        return error_response("status is required", 400, code="INVALID_STATUS")

    actor_id = g.current_user.id
    try:
        result = purchase_service.transition_purchase_order(order_id, new_status, actor_id)
    except InvalidStatusError as e:
        return error_response(str(e), 400, code=e.code)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase order status")
        return internal_error()

    if result.changed:
        current_app.logger.info(
            "Purchase order %s: %s -> %s, %s movement(s), actor=%s",
            result.order.order_number, result.previous_status, new_status,
            len(result.movements), actor_id,
        )
    return jsonify(result.to_dict())
