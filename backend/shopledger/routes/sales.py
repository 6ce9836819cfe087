# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, current_app, g

from ..validation import (
    ValidationError,
    coerce_int,
    enforce_rules_line_items,
    parse_day_arg,
    parse_pagination,
    pagination_dict,
)
from ..services import sales_service
from ..services.sales_service import SaleError, SaleNotFoundError, ReturnQuantityError
from ..services.ledger_service import LedgerError
from ..responses import error_response, ledger_error_response, internal_error
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """Query parameters: search, date (YYYY-MM-DD), payment, page, limit."""
    try:
        page, limit = parse_pagination(request.args)
        result = sales_service.list_sales(
            search=request.args.get("search"),
            day=parse_day_arg(request.args, "date"),
            payment_method=request.args.get("payment") or None,
            page=page,
            limit=limit,
        )
    except (ValidationError, SaleError) as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    return jsonify({
        "items": result["items"],
        "pagination": pagination_dict(page, limit, result["total"]),
    })


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Check out a sale. All lines succeed or the sale is rejected.

    Body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 500}],
        "payment_method": "cash" | "card" | "mobile",
        "discount_cents": 0,
        "customer_name": "...", "customer_phone": "...", "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        items = enforce_rules_line_items(payload.get("items"), price_key="unit_price_cents")
        discount = coerce_int("discount_cents", payload.get("discount_cents", 0) or 0)
        payment_method = payload.get("payment_method", "cash")
        customer_name = _optional_str(payload, "customer_name")
        customer_phone = _optional_str(payload, "customer_phone")
        notes = _optional_str(payload, "notes")
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    actor_id = g.current_user.id
    try:
        sale, movements = sales_service.create_sale(
            items=items,
            actor_id=actor_id,
            payment_method=payment_method,
            discount_cents=discount,
            customer_name=customer_name,
            customer_phone=customer_phone,
            notes=notes,
        )
    except LedgerError as e:
        return ledger_error_response(e)
    except SaleError as e:
        return error_response(str(e), 400, code="SALE_ERROR", details=e.details)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error()

    current_app.logger.info(
        "Sale recorded: invoice=%s lines=%s final_cents=%s actor=%s",
        sale.invoice_number, len(movements), sale.final_cents, actor_id,
    )
    return jsonify({
        "sale": sale.to_dict(include_items=True),
        "movements": [m.to_dict() for m in movements],
    }), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    return jsonify({"sale": sale.to_dict(include_items=True)})


@sales_bp.get("/<int:sale_id>/items")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_items_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    return jsonify({"items": [item.to_dict() for item in sale.items]})


@sales_bp.post("/<int:sale_id>/returns")
@require_auth
@require_permission("CREATE_SALE")
def create_return_route(sale_id: int):
    """Body: {"product_id": int, "quantity": int > 0, "notes": str}"""
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("product_id") is None or payload.get("quantity") is None:
            raise ValidationError("product_id and quantity are required")
        product_id = coerce_int("product_id", payload["product_id"])
        quantity = coerce_int("quantity", payload["quantity"])
        notes = _optional_str(payload, "notes")
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    actor_id = g.current_user.id
    try:
        result = sales_service.record_return(
            sale_id=sale_id,
            product_id=product_id,
            quantity=quantity,
            actor_id=actor_id,
            notes=notes,
        )
    except SaleNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    except ReturnQuantityError as e:
        current_app.logger.warning("Return rejected: sale_id=%s %s", sale_id, e)
        return error_response(str(e), 409, code="RETURN_EXCEEDS_SALE", details=e.details)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record return")
        return internal_error()

    current_app.logger.info(
        "Stock returned: product_id=%s delta=%s kind=return sale_id=%s actor=%s",
        product_id, quantity, sale_id, actor_id,
    )
    return jsonify(result.to_dict()), 201
