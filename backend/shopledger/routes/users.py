# Overview: Flask API routes for user administration.

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..services.auth_service import PasswordValidationError, UserValidationError, UserConflictError
from ..responses import error_response, internal_error
from ..decorators import require_auth, require_permission


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    return jsonify({"items": [u.to_dict() for u in auth_service.list_users()]})


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """Body: {"username", "password", "name", "role", "email", "phone"}"""
    data = request.get_json(silent=True) or {}
    for key in ("username", "password", "name", "role", "email", "phone"):
        if data.get(key) is not None and not isinstance(data[key], str):
            return error_response(f"{key} must be a string", 400, code="VALIDATION_ERROR")

    try:
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            name=data.get("name"),
            role=data.get("role") or "staff",
            email=data.get("email"),
            phone=data.get("phone"),
        )
    except PasswordValidationError as e:
        return error_response(str(e), 400, code="WEAK_PASSWORD")
    except UserConflictError as e:
        return error_response(str(e), 409, code="CONFLICT")
    except UserValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    except Exception:
        current_app.logger.exception("Failed to create user")
        return internal_error()

    current_app.logger.info("User created: user_id=%s role=%s", user.id, user.role)
    return jsonify({"user": user.to_dict()}), 201
