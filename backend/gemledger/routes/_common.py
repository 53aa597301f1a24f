# Overview: Shared helpers for API routes (pagination, error-to-response mapping).

from flask import current_app, jsonify, request

from ..extensions import db
from ..services.budget_service import BudgetError
from ..services.catalog_service import CatalogError
from ..services.checkout_flow import CheckoutError
from ..services.customer_service import CustomerError
from ..services.expense_service import ExpenseError
from ..services.inventory_service import InventoryError
from ..services.purchase_service import PurchaseError
from ..services.reminder_service import ReminderError
from ..services.sales_service import SaleError
from ..services.shop_service import ShopError
from ..services.supplier_service import SupplierError
from ..services.tenant_service import TenantAccessError
from ..services.workshop_service import WorkshopError
from ..validation import ConflictError, ValidationError


DOMAIN_ERRORS = (
    BudgetError,
    CatalogError,
    CheckoutError,
    CustomerError,
    ExpenseError,
    InventoryError,
    PurchaseError,
    ReminderError,
    SaleError,
    ShopError,
    SupplierError,
    WorkshopError,
)


def page_args(default_limit: int = 100) -> tuple[int, int]:
    """limit clamped to 1..500, offset >= 0"""
    limit = request.args.get("limit", default=default_limit, type=int)
    offset = request.args.get("offset", default=0, type=int)
    return max(1, min(limit, 500)), max(0, offset)


def paged(items: list, total: int, limit: int, offset: int) -> dict:
    return {"items": items, "count": total, "limit": limit, "offset": offset}


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def error_response(exc: Exception, action: str):
    """
    Map a service exception to a JSON error response.

    TenantAccessError -> 404 (same answer for missing and foreign rows),
    ConflictError -> 409, ValidationError and domain errors -> 400,
    anything else is logged and answered with 500.
    """
    db.session.rollback()

    if isinstance(exc, TenantAccessError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, DOMAIN_ERRORS):
        return jsonify({"error": str(exc), "details": exc.details if hasattr(exc, "details") else {}}), 400

    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
