"""
Multi-Tenant Service: tenant validation and scoping helpers

WHY: Every request is scoped to one shop, and cross-shop access must be
explicitly denied and logged.

SECURITY INVARIANTS:
1. Every authenticated request has g.shop_id set
2. Ids from client input are resolved with require_in_shop before use
3. List queries start from scoped_query(model, shop_id)
4. Cross-tenant access attempts are logged as security events and
   answered exactly like a missing row

USAGE:
    from gemledger.services.tenant_service import require_in_shop, scoped_query

    supplier = require_in_shop(Supplier, supplier_id, g.shop_id)
    items = scoped_query(InventoryItem, g.shop_id).filter_by(status="available")
"""

from flask import g, has_request_context, request

from ..extensions import db
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when an entity is missing or belongs to another shop."""
    pass


def get_current_shop_id() -> int:
    """
    Current tenant from Flask g.

    Raises TenantAccessError if no tenant context was established.
    """
    shop_id = getattr(g, "shop_id", None)
    if shop_id is None:
        raise TenantAccessError("Tenant context not established")
    return shop_id


def scoped_query(model, shop_id: int | None = None):
    """Base query for a shop-owned model, filtered to one tenant."""
    if shop_id is None:
        shop_id = get_current_shop_id()
    return db.session.query(model).filter(model.shop_id == shop_id)


def require_in_shop(model, entity_id, shop_id: int, *, label: str | None = None):
    """
    Load an entity by id, insisting it belongs to shop_id.

    Raises TenantAccessError with the same "<Label> not found" message
    whether the row is missing or owned by another shop.
    """
    label = label or model.__name__
    entity = db.session.get(model, entity_id) if entity_id is not None else None

    if entity is None:
        raise TenantAccessError(f"{label} not found")

    if entity.shop_id != shop_id:
        _log_cross_tenant_attempt(
            f"{model.__name__} {entity_id} belongs to shop {entity.shop_id}, not {shop_id}",
            shop_id=shop_id,
        )
        raise TenantAccessError(f"{label} not found")

    return entity


def _log_cross_tenant_attempt(reason: str, shop_id: int | None = None) -> None:
    user = getattr(g, "current_user", None) if has_request_context() else None

    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if has_request_context() else None,
        action=request.method if has_request_context() else None,
        reason=reason,
        ip_address=request.remote_addr if has_request_context() else None,
        user_agent=request.headers.get("User-Agent") if has_request_context() else None,
        shop_id=shop_id,
    )
