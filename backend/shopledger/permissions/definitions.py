# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "Browse products and categories",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create and edit products and categories",
        PermissionCategory.CATALOG,
    ),
    (
        "DELETE_PRODUCTS",
        "Delete Products",
        "Deactivate products",
        PermissionCategory.CATALOG,
    ),
]

# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and movement history",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Record manual stock adjustments",
        PermissionCategory.INVENTORY,
    ),
]

# -- PURCHASING --

PURCHASING_PERMISSIONS = [
    (
        "VIEW_PURCHASES",
        "View Purchase Orders",
        "View purchase orders and their items",
        PermissionCategory.PURCHASING,
    ),
    (
        "MANAGE_PURCHASES",
        "Manage Purchase Orders",
        "Create purchase orders and change their status",
        PermissionCategory.PURCHASING,
    ),
    (
        "VIEW_SUPPLIERS",
        "View Suppliers",
        "View supplier records",
        PermissionCategory.PURCHASING,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create, edit and delete suppliers",
        PermissionCategory.PURCHASING,
    ),
]

# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sales and invoices",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Check out sales and record customer returns",
        PermissionCategory.SALES,
    ),
]

# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View reports and the dashboard",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "View and change business settings",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "List and create user accounts",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + PURCHASING_PERMISSIONS
    + SALES_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
