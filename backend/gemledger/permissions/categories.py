# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for grouping and display."""
    SHOP = "SHOP"
    USERS = "USERS"
    INVENTORY = "INVENTORY"
    CATALOG = "CATALOG"
    SALES = "SALES"
    CUSTOMERS = "CUSTOMERS"
    SUPPLIERS = "SUPPLIERS"
    PURCHASES = "PURCHASES"
    EXPENSES = "EXPENSES"
    BUDGETS = "BUDGETS"
    WORKSHOPS = "WORKSHOPS"
    REMINDERS = "REMINDERS"
    SYSTEM = "SYSTEM"
