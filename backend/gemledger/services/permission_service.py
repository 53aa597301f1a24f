# Overview: Permission resolution and security event logging.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and keep an audit trail of denials.

MULTI-TENANT: Roles belong to a shop, so resolution only ever walks the
user's own shop roles. Security events carry shop_id for per-tenant review.

DESIGN PRINCIPLES:
- Fail closed: deny by default, require an explicit grant
- Log denials only: grants are not logged
- DENY overrides beat role grants; protected codes ignore overrides
"""

from ..extensions import db
from ..models import (
    Permission,
    Role,
    RolePermission,
    SecurityEvent,
    User,
    UserPermissionOverride,
    UserRole,
)
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS, validate_permission_code
from ..time_utils import utcnow


# Owner-level permissions come only from roles, never from overrides
PROTECTED_PERMISSIONS = {
    "SYSTEM_ADMIN",
    "MANAGE_PERMISSIONS",
}


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    shop_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to the audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - TENANT_CONTEXT_MISSING
    - CROSS_TENANT_ACCESS_DENIED

    Commits immediately so the event survives a rollback of the request's
    own transaction.
    """
    event = SecurityEvent(
        user_id=user_id,
        shop_id=shop_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Effective permission codes for a user.

    Union of the permissions of the user's roles (restricted to roles of the
    user's own shop), then per-user GRANT/DENY overrides.
    """
    user = db.session.get(User, user_id)
    if not user:
        return set()

    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(Role, Role.id == RolePermission.role_id)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id, Role.shop_id == user.shop_id)
        .all()
    )
    permission_codes = {code for (code,) in rows}

    overrides = db.session.query(UserPermissionOverride).filter_by(
        user_id=user_id,
        is_active=True,
    ).all()

    for override in overrides:
        if override.permission_code in PROTECTED_PERMISSIONS:
            continue
        if override.override_type == "GRANT":
            permission_codes.add(override.permission_code)
        elif override.override_type == "DENY":
            permission_codes.discard(override.permission_code)

    return permission_codes


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    shop_id: int | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are written to security_events with the shop context.
    """
    if user_has_permission(user_id, permission_code):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        shop_id=shop_id,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")


def grant_permission_override(
    *,
    user_id: int,
    permission_code: str,
    granted_by_user_id: int | None,
    override_type: str,
    reason: str | None = None,
) -> UserPermissionOverride:
    """
    Grant or deny a permission via per-user override.

    override_type must be "GRANT" or "DENY".
    """
    if permission_code in PROTECTED_PERMISSIONS:
        raise ValueError("Permission overrides cannot modify owner permissions")
    if override_type not in {"GRANT", "DENY"}:
        raise ValueError("override_type must be GRANT or DENY")
    if not validate_permission_code(permission_code):
        raise ValueError(f"Permission '{permission_code}' not found")

    override = db.session.query(UserPermissionOverride).filter_by(
        user_id=user_id,
        permission_code=permission_code,
    ).first()

    if override:
        override.override_type = override_type
        override.granted_by_user_id = granted_by_user_id
        override.granted_at = utcnow()
        override.reason = reason
        override.is_active = True
        override.revoked_at = None
    else:
        override = UserPermissionOverride(
            user_id=user_id,
            permission_code=permission_code,
            override_type=override_type,
            granted_by_user_id=granted_by_user_id,
            granted_at=utcnow(),
            reason=reason,
            is_active=True,
        )
        db.session.add(override)

    db.session.commit()
    return override


def revoke_permission_override(*, user_id: int, permission_code: str) -> UserPermissionOverride | None:
    override = db.session.query(UserPermissionOverride).filter_by(
        user_id=user_id,
        permission_code=permission_code,
        is_active=True,
    ).first()

    if not override:
        return None

    override.is_active = False
    override.revoked_at = utcnow()
    db.session.commit()
    return override


def get_user_role_names(user_id: int) -> list[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def initialize_permissions() -> int:
    """
    Create Permission rows for every code in PERMISSION_DEFINITIONS.

    Idempotent: existing codes are left untouched.
    """
    existing = {code for (code,) in db.session.query(Permission.code).all()}
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        if code in existing:
            continue
        db.session.add(Permission(code=code, name=name, description=description, category=category))
        created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions(shop_id: int) -> int:
    """
    Link a shop's default roles to their template permission sets.

    Idempotent: skips links that already exist, and roles or codes that
    don't exist yet.
    """
    permissions = {p.code: p for p in db.session.query(Permission).all()}
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(shop_id=shop_id, name=role_name).first()
        if not role:
            continue

        linked = {
            rp.permission_id
            for rp in db.session.query(RolePermission).filter_by(role_id=role.id).all()
        }
        for code in permission_codes:
            permission = permissions.get(code)
            if not permission or permission.id in linked:
                continue
            db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
            created_count += 1

    db.session.commit()
    return created_count


def _get_shop_role(shop_id: int, role_name: str) -> Role:
    role = db.session.query(Role).filter_by(shop_id=shop_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")
    return role


def grant_permission_to_role(shop_id: int, role_name: str, permission_code: str) -> RolePermission:
    role = _get_shop_role(shop_id, role_name)

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()
    if existing:
        return existing

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    db.session.commit()
    return role_permission


def revoke_permission_from_role(shop_id: int, role_name: str, permission_code: str) -> bool:
    role = _get_shop_role(shop_id, role_name)

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()

    if not role_permission:
        return False

    db.session.delete(role_permission)
    db.session.commit()
    return True
