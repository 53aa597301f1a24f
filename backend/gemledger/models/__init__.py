from .tenancy import Shop
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken, UserPermissionOverride
from .security import SecurityEvent
from .ledger import ActivityEvent, DocumentSequence
from .customers import Customer, CustomerTransaction
from .suppliers import Supplier, SupplierTransaction
from .inventory import InventoryItem, ItemStone, ItemCertification
from .sales import Sale, SaleItem, SalePayment, CheckoutSession
from .expenses import ExpenseCategory, Expense, ExpensePayment, RecurringExpense
from .budgets import BudgetCategory, BudgetAllocation, BudgetTransaction
from .workshops import Workshop, WorkshopOrder, WorkshopTransaction
from .reminders import PaymentReminder
from .purchases import Purchase, PurchasePayment
from .catalog import MetalType, MetalPurity, StoneType, ProductSize, MetalPrice

__all__ = [
    'Shop',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission',
    'SessionToken', 'UserPermissionOverride', 'SecurityEvent',
    'ActivityEvent', 'DocumentSequence',
    'Customer', 'CustomerTransaction',
    'Supplier', 'SupplierTransaction',
    'InventoryItem', 'ItemStone', 'ItemCertification',
    'Sale', 'SaleItem', 'SalePayment', 'CheckoutSession',
    'ExpenseCategory', 'Expense', 'ExpensePayment', 'RecurringExpense',
    'BudgetCategory', 'BudgetAllocation', 'BudgetTransaction',
    'Workshop', 'WorkshopOrder', 'WorkshopTransaction',
    'PaymentReminder',
    'Purchase', 'PurchasePayment',
    'MetalType', 'MetalPurity', 'StoneType', 'ProductSize', 'MetalPrice',
]
