# Overview: Flask API routes for read-only reports.

from flask import Blueprint, request, jsonify

from ..validation import ValidationError, parse_day_arg, parse_optional_int_arg
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..responses import error_response
from ..decorators import require_auth, require_permission


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _range_args():
    start_day = parse_day_arg(request.args, "start_date")
    end_day = parse_day_arg(request.args, "end_date")
    return start_day, end_day


def _limit_arg(default: int = 10) -> int:
    limit = parse_optional_int_arg(request.args, "limit") or default
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return min(limit, 100)


@reports_bp.get("/inventory-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def inventory_summary_route():
    return jsonify(reporting_service.inventory_summary())


@reports_bp.get("/sales-trends")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_trends_route():
    """Query parameters: start_date, end_date (YYYY-MM-DD, inclusive)."""
    try:
        start_day, end_day = _range_args()
        report = reporting_service.sales_trends(start_day=start_day, end_day=end_day)
    except (ValidationError, ReportError) as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    return jsonify(report)


@reports_bp.get("/top-products")
@require_auth
@require_permission("VIEW_REPORTS")
def top_products_route():
    try:
        start_day, end_day = _range_args()
        items = reporting_service.top_products(start_day=start_day, end_day=end_day, limit=_limit_arg())
    except (ValidationError, ReportError) as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    return jsonify({"items": items})


@reports_bp.get("/top-categories")
@require_auth
@require_permission("VIEW_REPORTS")
def top_categories_route():
    try:
        start_day, end_day = _range_args()
        items = reporting_service.top_categories(start_day=start_day, end_day=end_day, limit=_limit_arg())
    except (ValidationError, ReportError) as e:
        return error_response(str(e), 400, code="VALIDATION_ERROR")
    return jsonify({"items": items})
