# Overview: Default role templates and their permission sets.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLES = [
    ("owner", "Full shop access"),
    ("manager", "Day-to-day operations and approvals"),
    ("salesperson", "POS sales and customer service"),
    ("accountant", "Expenses, budgets and supplier accounts"),
]

_ALL_CODES = [perm[0] for perm in PERMISSION_DEFINITIONS]

_OWNER_ONLY = {
    "SYSTEM_ADMIN",
    "MANAGE_SHOP_SETTINGS",
    "MANAGE_PERMISSIONS",
    "VIEW_AUDIT_LOG",
}

DEFAULT_ROLE_PERMISSIONS = {
    "owner": list(_ALL_CODES),
    "manager": [code for code in _ALL_CODES if code not in _OWNER_ONLY],
    "salesperson": [
        "VIEW_SHOP_SETTINGS",
        "VIEW_INVENTORY",
        "VIEW_CATALOG",
        "VIEW_SALES",
        "CREATE_SALE",
        "RECORD_SALE_PAYMENT",
        "COMPLETE_SALE",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "VIEW_REMINDERS",
    ],
    "accountant": [
        "VIEW_SHOP_SETTINGS",
        "VIEW_INVENTORY",
        "VIEW_CATALOG",
        "VIEW_SALES",
        "VIEW_CUSTOMERS",
        "VIEW_SUPPLIERS",
        "MANAGE_SUPPLIERS",
        "VIEW_PURCHASES",
        "MANAGE_PURCHASES",
        "VIEW_EXPENSES",
        "MANAGE_EXPENSES",
        "APPROVE_EXPENSES",
        "VIEW_BUDGETS",
        "MANAGE_BUDGETS",
        "VIEW_WORKSHOPS",
        "VIEW_REMINDERS",
        "MANAGE_REMINDERS",
        "VIEW_ACTIVITY_LOG",
    ],
}
