# Overview: JSON error bodies shared by the route modules.

from __future__ import annotations

from flask import current_app, jsonify

from .services.ledger_service import (
    IllegalTransitionError,
    InsufficientStockError,
    InvalidMovementError,
    LedgerError,
    UnknownProductError,
)

LEDGER_STATUS = {
    InvalidMovementError: 400,
    UnknownProductError: 404,
    InsufficientStockError: 409,
    IllegalTransitionError: 409,
}


def error_response(message: str, status: int, *, code: str | None = None, details: dict | None = None):
    body = {"error": message}
    if code:
        body["code"] = code
    body["details"] = details or {}
    return jsonify(body), status


def ledger_error_response(exc: LedgerError):
    """Map a ledger failure to its HTTP status and log the rejection."""
    status = LEDGER_STATUS.get(type(exc), 400)
    if exc.code == "ORDER_NOT_FOUND":
        status = 404
    current_app.logger.warning("Ledger operation rejected: code=%s %s details=%s", exc.code, exc, exc.details)
    return jsonify(exc.to_dict()), status


def internal_error():
    return jsonify({"error": "Internal server error"}), 500
