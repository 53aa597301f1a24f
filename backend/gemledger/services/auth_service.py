# Overview: Password hashing, user creation, authentication and role assignment.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for password hashing
and enforces password strength at creation time.

MULTI-TENANT: Users belong to exactly one shop. Username/email uniqueness
is shop-scoped, and authentication refuses users of inactive shops.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens are handled separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import Role, Shop, User, UserRole
from ..permissions import DEFAULT_ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError naming the first unmet rule.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt cost 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    shop_id: int,
    full_name: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: shop missing/inactive or username/email already taken in the shop
        PasswordValidationError: password doesn't meet requirements
    """
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise ValueError("Shop not found")
    if not shop.is_active:
        raise ValueError("Shop is not active")

    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValueError("username and email are required")

    existing = db.session.query(User).filter(
        User.shop_id == shop_id,
        db.or_(User.username == username, User.email == email),
    ).first()
    if existing:
        raise ValueError("Username or email already exists in this shop")

    user = User(
        shop_id=shop_id,
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str, shop_id: int | None = None) -> User | None:
    """
    Authenticate by username or email.

    Pass shop_id to scope the lookup when usernames repeat across shops.
    Returns the User and stamps last_login_at on success, else None.
    """
    query = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == (identifier or "").lower()),
        User.is_active.is_(True),
    )
    if shop_id is not None:
        query = query.filter(User.shop_id == shop_id)

    for user in query.all():
        shop = db.session.get(Shop, user.shop_id)
        if not shop or not shop.is_active:
            continue
        if verify_password(password, user.password_hash):
            user.last_login_at = utcnow()
            db.session.commit()
            return user

    return None


def create_default_roles(shop_id: int) -> list[Role]:
    """Create the standard roles for a shop if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(shop_id=shop_id, name=name).first()
        if not role:
            role = Role(shop_id=shop_id, name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign one of the user's shop roles to the user."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    role = db.session.query(Role).filter_by(shop_id=user.shop_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(user_role)
    db.session.commit()
    return user_role
