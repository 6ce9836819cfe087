# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login   -> opaque session token
- POST /api/auth/logout  -> revoke the presented token
- GET  /api/auth/me      -> current user and effective permissions

Self-registration does not exist; users are created by an admin
(POST /api/users or `flask users create`).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, session_service, permission_service
from ..decorators import require_auth
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        return jsonify({"error": "username and password required", "code": "VALIDATION_ERROR"}), 400

    try:
        user = auth_service.authenticate(username.strip(), password)
        if not user:
            current_app.logger.warning("Failed login for username=%s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials", "code": "INVALID_CREDENTIALS"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("User logged in: user_id=%s", user.id)
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "permissions": sorted(permission_service.get_user_permissions(user)),
    })


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
    })
