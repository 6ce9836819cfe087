# Overview: Flask API routes for business settings.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import settings_service
from ..services.settings_service import SettingsValidationError
from ..responses import error_response, internal_error
from ..decorators import require_auth, require_permission


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_permission("MANAGE_SETTINGS")
def get_settings_route():
    return jsonify({"settings": settings_service.get_settings().to_dict()})


@settings_bp.put("")
@require_auth
@require_permission("MANAGE_SETTINGS")
def update_settings_route():
    """Body: {"settings": {section: {key: value}}}; omitted keys keep their values."""
    payload = request.get_json(silent=True) or {}
    if "settings" not in payload:
        return error_response("settings is required", 400, code="VALIDATION_ERROR")

    try:
        updated = settings_service.update_settings(payload["settings"], g.current_user.id)
    except SettingsValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return internal_error()

    current_app.logger.info("Settings updated by user_id=%s", g.current_user.id)
    return jsonify({"settings": updated.to_dict()})
