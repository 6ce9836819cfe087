# Overview: Role to permission mapping. Roles are fixed; a user has exactly one.

from .definitions import PERMISSION_DEFINITIONS

ROLES = ("admin", "manager", "staff")

_ALL = [perm[0] for perm in PERMISSION_DEFINITIONS]

DEFAULT_ROLE_PERMISSIONS = {
    "admin": list(_ALL),
    "manager": [
        code for code in _ALL
        if code not in {"DELETE_PRODUCTS", "MANAGE_SETTINGS", "MANAGE_USERS"}
    ],
    "staff": [code for code in _ALL if code.startswith("VIEW_")] + [
        "CREATE_SALE",
        "ADJUST_INVENTORY",
        "MANAGE_PURCHASES",
        "MANAGE_SUPPLIERS",
    ],
}
