# Overview: Flask API routes for product categories.

from flask import Blueprint, request, jsonify, current_app

from ..validation import ConflictError
from ..services import products_service
from ..responses import error_response, internal_error
from ..decorators import require_auth, require_permission


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    return jsonify({"items": [c.to_dict() for c in products_service.list_categories()]})


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_category_route():
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    description = data.get("description")
    if not isinstance(name, str) or not name.strip():
        return error_response("name is required", 400, code="VALIDATION_ERROR")
    if description is not None and not isinstance(description, str):
        return error_response("description must be a string", 400, code="VALIDATION_ERROR")

    try:
        category = products_service.create_category(name=name, description=description)
    except ConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except Exception:
        current_app.logger.exception("Failed to create category")
        return internal_error()

    return jsonify({"category": category.to_dict()}), 201
