# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- SHOP --

SHOP_PERMISSIONS = [
    (
        "VIEW_SHOP_SETTINGS",
        "View Shop Settings",
        "View currency, timezone, language and invoice settings",
        PermissionCategory.SHOP,
    ),
    (
        "MANAGE_SHOP_SETTINGS",
        "Manage Shop Settings",
        "Change shop name, currency, timezone, language, invoice prefix and tax rate",
        PermissionCategory.SHOP,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View team members and their roles",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create users and assign roles",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_PERMISSIONS",
        "Manage Permissions",
        "Grant or deny per-user permission overrides",
        PermissionCategory.USERS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View items, stones and certifications",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Create and edit items, stones and certifications",
        PermissionCategory.INVENTORY,
    ),
    (
        "CHANGE_ITEM_STATUS",
        "Change Item Status",
        "Move items between statuses (damaged, transferred, ...)",
        PermissionCategory.INVENTORY,
    ),
    (
        "DELETE_INVENTORY",
        "Delete Inventory",
        "Delete unsold inventory items",
        PermissionCategory.INVENTORY,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_CATALOG",
        "View Catalog",
        "View metals, purities, stones, sizes and metal prices",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_CATALOG",
        "Manage Catalog",
        "Edit catalog lists and record daily metal prices",
        PermissionCategory.CATALOG,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sales, line items and payments",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Create sales and run the POS checkout",
        PermissionCategory.SALES,
    ),
    (
        "RECORD_SALE_PAYMENT",
        "Record Sale Payment",
        "Record payments and refunds against sales",
        PermissionCategory.SALES,
    ),
    (
        "COMPLETE_SALE",
        "Complete Sale",
        "Finalize a sale and charge the customer account",
        PermissionCategory.SALES,
    ),
    (
        "VOID_SALE",
        "Void Sale",
        "Void pending sales and release their items",
        PermissionCategory.SALES,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "View customers and their account ledger",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create and edit customers, post account adjustments",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- SUPPLIERS --

SUPPLIER_PERMISSIONS = [
    (
        "VIEW_SUPPLIERS",
        "View Suppliers",
        "View suppliers and their account ledger",
        PermissionCategory.SUPPLIERS,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create and edit suppliers, record purchases and payments",
        PermissionCategory.SUPPLIERS,
    ),
]


# -- PURCHASES --

PURCHASE_PERMISSIONS = [
    (
        "VIEW_PURCHASES",
        "View Purchases",
        "View purchase orders and their payments",
        PermissionCategory.PURCHASES,
    ),
    (
        "MANAGE_PURCHASES",
        "Manage Purchases",
        "Create, pay, cancel and delete purchase orders",
        PermissionCategory.PURCHASES,
    ),
]


# -- EXPENSES --

EXPENSE_PERMISSIONS = [
    (
        "VIEW_EXPENSES",
        "View Expenses",
        "View expenses, categories and recurring templates",
        PermissionCategory.EXPENSES,
    ),
    (
        "MANAGE_EXPENSES",
        "Manage Expenses",
        "Create, edit and pay expenses and recurring templates",
        PermissionCategory.EXPENSES,
    ),
    (
        "APPROVE_EXPENSES",
        "Approve Expenses",
        "Approve or reject pending expenses",
        PermissionCategory.EXPENSES,
    ),
]


# -- BUDGETS --

BUDGET_PERMISSIONS = [
    (
        "VIEW_BUDGETS",
        "View Budgets",
        "View budget categories, allocations and reports",
        PermissionCategory.BUDGETS,
    ),
    (
        "MANAGE_BUDGETS",
        "Manage Budgets",
        "Allocate, adjust and transfer budget",
        PermissionCategory.BUDGETS,
    ),
]


# -- WORKSHOPS --

WORKSHOP_PERMISSIONS = [
    (
        "VIEW_WORKSHOPS",
        "View Workshops",
        "View workshops, orders and ledgers",
        PermissionCategory.WORKSHOPS,
    ),
    (
        "MANAGE_WORKSHOPS",
        "Manage Workshops",
        "Create workshops and orders, record workshop payments",
        PermissionCategory.WORKSHOPS,
    ),
]


# -- REMINDERS --

REMINDER_PERMISSIONS = [
    (
        "VIEW_REMINDERS",
        "View Reminders",
        "View payment reminders",
        PermissionCategory.REMINDERS,
    ),
    (
        "MANAGE_REMINDERS",
        "Manage Reminders",
        "Create, complete and snooze payment reminders",
        PermissionCategory.REMINDERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full shop administration",
        PermissionCategory.SYSTEM,
    ),
    (
        "VIEW_ACTIVITY_LOG",
        "View Activity Log",
        "Read the shop activity ledger",
        PermissionCategory.SYSTEM,
    ),
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "Read security events for the shop",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    SHOP_PERMISSIONS
    + USER_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + CATALOG_PERMISSIONS
    + SALES_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SUPPLIER_PERMISSIONS
    + PURCHASE_PERMISSIONS
    + EXPENSE_PERMISSIONS
    + BUDGET_PERMISSIONS
    + WORKSHOP_PERMISSIONS
    + REMINDER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
