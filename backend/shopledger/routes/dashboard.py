# Overview: Flask API routes for the dashboard widgets.

from flask import Blueprint, request, jsonify

from ..validation import ValidationError, parse_optional_int_arg
from ..services import reporting_service
from ..responses import error_response
from ..decorators import require_auth, require_permission


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_permission("VIEW_REPORTS")
def stats_route():
    return jsonify(reporting_service.dashboard_stats())


@dashboard_bp.get("/recent-sales")
@require_auth
@require_permission("VIEW_SALES")
def recent_sales_route():
    try:
        limit = parse_optional_int_arg(request.args, "limit") or 5
    except ValidationError as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    sales = reporting_service.recent_sales(limit=max(1, min(limit, 50)))
    return jsonify({"items": [s.to_dict() for s in sales]})
