# Overview: Shop (tenant) lifecycle and shop-level settings.

"""
Shop Service

WHY: A shop is the tenant root. Creating one must also seed its default
roles and their permissions, otherwise its first user can do nothing.

DESIGN:
- Settings live on the Shop row (currency, timezone, language,
  invoice_prefix, tax_rate)
- Updates validate against the supported catalogs below
"""

import re

from ..extensions import db
from ..models import Shop
from ..validation import (
    SUPPORTED_CURRENCIES,
    ValidationError,
    ConflictError,
    parse_currency,
    parse_name,
    parse_percentage,
)
from .auth_service import create_default_roles
from .permission_service import assign_default_role_permissions, initialize_permissions
from .ledger_service import append_activity_event


SUPPORTED_TIMEZONES = (
    "UTC",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Europe/Madrid",
    "Europe/Amsterdam",
    "Europe/Istanbul",
    "Europe/Moscow",
    "Asia/Dubai",
    "Asia/Riyadh",
    "Asia/Kuwait",
    "Asia/Qatar",
    "Asia/Kolkata",
    "Asia/Karachi",
    "Asia/Shanghai",
    "Asia/Hong_Kong",
    "Asia/Singapore",
    "Asia/Tokyo",
    "Asia/Bangkok",
    "Asia/Kuala_Lumpur",
    "Asia/Jakarta",
    "Africa/Cairo",
    "Africa/Casablanca",
    "Africa/Johannesburg",
    "Africa/Lagos",
    "Africa/Nairobi",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Toronto",
    "America/Mexico_City",
    "America/Sao_Paulo",
    "Australia/Sydney",
)

SUPPORTED_LANGUAGES = ("en", "fr", "es", "nl", "ar")

INVOICE_PREFIX_RE = re.compile(r"^[A-Za-z0-9_-]{1,10}$")
SHOP_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{2,32}$")

SETTINGS_FIELDS = ("name", "currency", "timezone", "language", "invoice_prefix", "tax_rate")


class ShopError(Exception):
    """Raised for shop operation errors."""
    pass


def _parse_timezone(value) -> str:
    if value not in SUPPORTED_TIMEZONES:
        raise ValidationError(f"Unsupported timezone: {value}")
    return value


def _parse_language(value) -> str:
    if value not in SUPPORTED_LANGUAGES:
        raise ValidationError(f"Unsupported language: {value}")
    return value


def _parse_invoice_prefix(value) -> str:
    if not isinstance(value, str) or not INVOICE_PREFIX_RE.match(value):
        raise ValidationError("invoice_prefix must be 1-10 characters of letters, digits, '-' or '_'")
    return value


def _clean_settings(patch: dict) -> dict:
    unknown = set(patch) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    cleaned = {}
    if "name" in patch:
        cleaned["name"] = parse_name("name", patch["name"])
    if "currency" in patch:
        cleaned["currency"] = parse_currency("currency", patch["currency"])
    if "timezone" in patch:
        cleaned["timezone"] = _parse_timezone(patch["timezone"])
    if "language" in patch:
        cleaned["language"] = _parse_language(patch["language"])
    if "invoice_prefix" in patch:
        cleaned["invoice_prefix"] = _parse_invoice_prefix(patch["invoice_prefix"])
    if "tax_rate" in patch:
        cleaned["tax_rate"] = parse_percentage("tax_rate", patch["tax_rate"])
    return cleaned


def create_shop(
    name: str,
    code: str | None = None,
    currency: str = "USD",
    timezone: str = "UTC",
    language: str = "en",
) -> Shop:
    """
    Create a shop and seed its default roles.

    Raises:
        ValidationError: invalid name/code/currency/timezone/language
        ConflictError: code already in use
    """
    settings = _clean_settings({
        "name": name,
        "currency": currency,
        "timezone": timezone,
        "language": language,
    })

    if code is not None:
        code = code.strip().upper()
        if not SHOP_CODE_RE.match(code):
            raise ValidationError("code must be 2-32 characters of letters, digits, '-' or '_'")
        if db.session.query(Shop).filter_by(code=code).first():
            raise ConflictError(f"Shop code '{code}' already exists")

    shop = Shop(code=code, **settings)
    db.session.add(shop)
    db.session.commit()

    initialize_permissions()
    create_default_roles(shop.id)
    assign_default_role_permissions(shop.id)

    append_activity_event(
        shop_id=shop.id,
        event_type="shop.created",
        entity_type="shop",
        entity_id=shop.id,
        note=f"Shop {shop.name} created",
    )
    db.session.commit()
    return shop


def get_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise ShopError("Shop not found")
    return shop


def list_shops() -> list[Shop]:
    return db.session.query(Shop).order_by(Shop.id.asc()).all()


def get_shop_settings(shop_id: int) -> dict:
    shop = get_shop(shop_id)
    return {key: shop.to_dict()[key] for key in SETTINGS_FIELDS}


def update_shop_settings(shop_id: int, patch: dict, actor_user_id: int | None = None) -> Shop:
    """
    Apply a partial settings update.

    Only SETTINGS_FIELDS may be changed; each value is checked against the
    supported catalogs.
    """
    if not isinstance(patch, dict) or not patch:
        raise ValidationError("No settings provided")

    cleaned = _clean_settings(patch)
    shop = get_shop(shop_id)

    for key, value in cleaned.items():
        setattr(shop, key, value)

    append_activity_event(
        shop_id=shop.id,
        event_type="shop.settings_updated",
        entity_type="shop",
        entity_id=shop.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(cleaned)},
    )
    db.session.commit()
    return shop


def supported_options() -> dict:
    return {
        "currencies": list(SUPPORTED_CURRENCIES),
        "timezones": list(SUPPORTED_TIMEZONES),
        "languages": list(SUPPORTED_LANGUAGES),
    }
