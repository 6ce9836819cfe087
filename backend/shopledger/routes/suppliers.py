# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: All routes require authentication.
- View operations require VIEW_SUPPLIERS
- Create/update/delete require MANAGE_SUPPLIERS
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Supplier
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_supplier,
    parse_pagination,
    pagination_dict,
)
from ..services import supplier_service
from ..services.supplier_service import (
    SupplierNotFoundError,
    SupplierValidationError,
    SupplierConflictError,
    SupplierInUseError,
)
from ..responses import error_response, internal_error
from ..decorators import require_auth, require_permission


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

SUPPLIER_FIELDS = {"name", "contact_person", "phone", "email", "address", "notes", "status"}

SUPPLIER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=SUPPLIER_FIELDS,
    required_on_create={"name", "contact_person", "phone"},
)
SUPPLIER_UPDATE_POLICY = ModelValidationPolicy(writable_fields=SUPPLIER_FIELDS)


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers_route():
    """Query parameters: search (name, contact person, phone), page, limit."""
    try:
        page, limit = parse_pagination(request.args)
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    result = supplier_service.list_suppliers(
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "items": [s.to_dict() for s in result["items"]],
        "pagination": pagination_dict(page, limit, result["total"]),
    })


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Supplier,
            payload=payload,
            policy=SUPPLIER_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_supplier(patch)
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    try:
        supplier = supplier_service.create_supplier(patch)
    except SupplierConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except SupplierValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return internal_error()

    return jsonify({"supplier": supplier.to_dict()}), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except SupplierNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    return jsonify({"supplier": supplier.to_dict()})


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Supplier,
            payload=payload,
            policy=SUPPLIER_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_supplier(patch)
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")

    try:
        supplier = supplier_service.update_supplier(supplier_id, patch)
    except SupplierNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    except SupplierConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except SupplierValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return internal_error()

    return jsonify({"supplier": supplier.to_dict()})


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id)
    except SupplierNotFoundError as e:
        return error_response(str(e), 404, code="NOT_FOUND")
    except SupplierInUseError as e:
        return error_response(str(e), 409, code="SUPPLIER_IN_USE")
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return internal_error()

    return jsonify({"message": "Supplier deleted"})
