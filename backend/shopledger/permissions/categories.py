# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for grouping and UI display."""
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    PURCHASING = "PURCHASING"
    SALES = "SALES"
    SYSTEM = "SYSTEM"
