# Overview: Capability policy; answers "may this user perform this action?".

"""
Permission Checking

WHY: Route handlers never inspect roles directly. They ask
can_perform(user, action) (or use the require_permission decorator) and the
role -> permission mapping lives in one place (permissions.roles).

DESIGN PRINCIPLES:
- Fail closed: unknown roles, unknown codes and inactive users get nothing
- Log denials only: grants are not logged
"""

from __future__ import annotations

from flask import current_app, has_app_context

from ..models import User
from ..permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    get_permission_definition,
    validate_permission_code,
)


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user: User | None) -> set[str]:
    if user is None or not user.is_active:
        return set()
    return set(DEFAULT_ROLE_PERMISSIONS.get(user.role, ()))


def can_perform(user: User | None, action: str) -> bool:
    """True when the user's role grants the permission code `action`."""
    if not validate_permission_code(action):
        return False
    return action in get_user_permissions(user)


def require_permission(user: User | None, permission_code: str, *, resource: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless can_perform(user, permission_code).

    Denials are logged at WARNING with user, permission and resource.
    """
    if can_perform(user, permission_code):
        return

    if has_app_context():
        current_app.logger.warning(
            "Permission denied: user_id=%s role=%s permission=%s resource=%s",
            user.id if user else None,
            user.role if user else None,
            permission_code,
            resource,
        )

    definition = get_permission_definition(permission_code)
    label = definition["name"] if definition else permission_code
    raise PermissionDeniedError(f"Missing permission: {label}")
