# Overview: Flask API routes for products; parses input and returns JSON responses.

"""
Product routes.

SECURITY: All routes require authentication.
- Reads require VIEW_PRODUCTS
- Create/update require MANAGE_PRODUCTS
- Delete (deactivate) requires DELETE_PRODUCTS

Stock is never edited here: initial_stock on create is booked as a ledger
adjustment, later changes go through /api/inventory/adjust.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    enforce_rules_product,
    parse_pagination,
    parse_optional_int_arg,
    pagination_dict,
)
from ..services import products_service
from ..services.products_service import ProductNotFoundError, CategoryNotFoundError
from ..services.ledger_service import LedgerError
from ..responses import error_response, ledger_error_response, internal_error
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_FIELDS = {
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

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS,
    required_on_create={"name", "selling_price_cents"},
    extra_fields={"initial_stock"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_FIELDS)


def _normalize_barcode(patch: dict) -> None:
    if "barcode" in patch and patch["barcode"] == "":
        patch["barcode"] = None


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """
    Query parameters: search, category_id, status, sort_by (id|name|price|category),
    sort_order (asc|desc), page, limit.
    """
    try:
        page, limit = parse_pagination(request.args)
        category_id = parse_optional_int_arg(request.args, "category_id")
        result = products_service.list_products(
            search=request.args.get("search"),
            category_id=category_id,
            status=request.args.get("status") or None,
            sort_by=request.args.get("sort_by", "id"),
            sort_order=request.args.get("sort_order", "desc"),
            page=page,
            limit=limit,
        )
    except ValueError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    return jsonify({
        "items": result["items"],
        "pagination": pagination_dict(page, limit, result["total"]),
    })


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Product,
            payload=payload,
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        _normalize_barcode(patch)
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    try:
        product = products_service.create_product(patch=patch, actor_id=g.current_user.id)
    except CategoryNotFoundError as e:
        return error_response(str(e), 404, code="CATEGORY_NOT_FOUND")
    except ConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()

    current_app.logger.info(
        "Product created: product_id=%s initial_stock=%s actor=%s",
        product["id"], product["quantity"], g.current_user.id,
    )
    return jsonify({"product": product}), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product_dict(product_id)
    except ProductNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    return jsonify({"product": product})


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Product,
            payload=payload,
            policy=PRODUCT_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_product(patch)
        _normalize_barcode(patch)
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    try:
        product = products_service.update_product(product_id=product_id, patch=patch)
    except ProductNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    except CategoryNotFoundError as e:
        return error_response(str(e), 404, code="CATEGORY_NOT_FOUND")
    except ConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error()

    return jsonify({"product": product})


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete; the product keeps its stock history."""
    try:
        product = products_service.delete_product(product_id=product_id)
    except ProductNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error()

    return jsonify({"product": product, "message": "Product deactivated"})
