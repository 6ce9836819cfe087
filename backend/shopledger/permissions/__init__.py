# Overview: Permission system package.
# Re-exports the public API so callers import from shopledger.permissions.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CATALOG_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    PURCHASING_PERMISSIONS,
    SALES_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, ROLES
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CATALOG_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "PURCHASING_PERMISSIONS",
    "SALES_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLES",
    "get_all_permission_codes",
    "get_permission_definition",
    "validate_permission_code",
]
