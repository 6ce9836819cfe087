# Overview: Flask API routes for stock levels, manual adjustments and movement history.

"""
Inventory routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY
- Adjust requires ADJUST_INVENTORY

Every stock change goes through the movement engine; these handlers never
touch stock_levels directly.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..validation import (
    ValidationError,
    coerce_int,
    parse_pagination,
    parse_optional_int_arg,
    pagination_dict,
)
from ..services import inventory_service, ledger_service
from ..services.ledger_service import LedgerError
from ..responses import error_response, ledger_error_response, internal_error
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MAX_MOVEMENTS = 500


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory_route():
    """Query parameters: search, category_id, status (all|low|out_of_stock), page, limit."""
    try:
        page, limit = parse_pagination(request.args)
        result = inventory_service.list_inventory(
            search=request.args.get("search"),
            category_id=parse_optional_int_arg(request.args, "category_id"),
            stock_status=request.args.get("status") or "all",
            page=page,
            limit=limit,
        )
    except ValueError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    return jsonify({
        "items": result["items"],
        "pagination": pagination_dict(page, limit, result["total"]),
    })


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_inventory_route():
    """
    Manual stock correction.

    Body: {"product_id": int, "quantity": signed int != 0, "notes": str}
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("product_id") is None or payload.get("quantity") is None:
            raise ValidationError("product_id and quantity are required")
        product_id = coerce_int("product_id", payload["product_id"])
        delta = coerce_int("quantity", payload["quantity"])
        notes = payload.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    actor_id = g.current_user.id
    try:
        result = inventory_service.adjust(product_id, delta, actor_id, notes)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return internal_error()

    current_app.logger.info(
        "Stock adjusted: product_id=%s delta=%s kind=adjustment actor=%s new_quantity=%s",
        product_id, delta, actor_id, result.new_quantity,
    )
    return jsonify({
        "product_id": product_id,
        "previous_quantity": result.previous_quantity,
        "adjusted_quantity": delta,
        "new_quantity": result.new_quantity,
        "movement": result.movement.to_dict(),
    })


@inventory_bp.get("/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    """Newest first. Query parameters: product_id, kind, limit (default 50)."""
    try:
        product_id = parse_optional_int_arg(request.args, "product_id")
        limit = parse_optional_int_arg(request.args, "limit")
        if limit is None:
            limit = 50
        elif limit < 1:
            raise ValidationError("limit must be >= 1")
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    kind = request.args.get("kind") or None
    movements = ledger_service.list_movements(
        product_id=product_id,
        kind=kind,
        limit=min(limit, MAX_MOVEMENTS),
    )
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)})


@inventory_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_inventory_route(product_id: int):
    item = inventory_service.get_inventory_item(product_id)
    if item is None:
        return error_response(
            f"product {product_id} does not exist", 404,
            code="UNKNOWN_PRODUCT", details={"product_id": product_id},
        )
    return jsonify({"inventory": item})
