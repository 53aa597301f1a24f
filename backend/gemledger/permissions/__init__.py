# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    SHOP_PERMISSIONS,
    USER_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    SALES_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SUPPLIER_PERMISSIONS,
    EXPENSE_PERMISSIONS,
    BUDGET_PERMISSIONS,
    WORKSHOP_PERMISSIONS,
    REMINDER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
    validate_permission_code,
    group_permissions_by_category,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "SHOP_PERMISSIONS",
    "USER_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "SALES_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "SUPPLIER_PERMISSIONS",
    "EXPENSE_PERMISSIONS",
    "BUDGET_PERMISSIONS",
    "WORKSHOP_PERMISSIONS",
    "REMINDER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permission_definition",
    "validate_permission_code",
    "group_permissions_by_category",
]
