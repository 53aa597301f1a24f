from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import (
    MAX_MONEY,
    MAX_WEIGHT,
    HUNDRED,
    ZERO,
    q_money,
    q_percent,
    q_weight,
)
from .time_utils import parse_iso_datetime


MAX_QUANTITY = 999_999
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 255

SUPPORTED_CURRENCIES = (
    "USD", "EUR", "GBP", "TRY", "AED", "SAR", "INR", "CNY", "JPY", "CHF",
    "CAD", "AUD", "SGD", "HKD", "KWD", "BHD", "QAR", "OMR", "EGP", "MAD",
    "ZAR", "BRL", "MXN", "RUB", "THB", "MYR", "IDR", "PKR", "NGN", "KES",
)

# Non-breaking, en, em and zero-width spaces are folded into plain spaces
_SPECIAL_SPACES = ("\u00a0", "\u2002", "\u2003", "\u200b")
_WHITESPACE_RUN = re.compile(r"\s+")
_NAME_PUNCTUATION = {"'", "-", "."}

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[1-9][0-9]{1,14}$")
_PHONE_STRIP_RE = re.compile(r"[\s\-()]")
_CODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_NUMBER_RE = re.compile(r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


FieldRule = Callable[[str, Any], Any]


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - field_rules: per-field parsers that replace column-type coercion
      (money precision, Unicode names, enums, ...)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    field_rules: dict[str, FieldRule] = field(default_factory=dict)


# -- String normalization --

def normalize_whitespace(value: str) -> str:
    for special in _SPECIAL_SPACES:
        value = value.replace(special, " ")
    return _WHITESPACE_RUN.sub(" ", value).strip()


def _is_name_char(ch: str) -> bool:
    if ch.isspace() or ch in _NAME_PUNCTUATION:
        return True
    # Letters (L*) and combining marks (M*) from any script
    return unicodedata.category(ch)[0] in ("L", "M")


def parse_name(field_name: str, value: Any) -> str:
    """Person/business name: letters and marks from any script, spaces, ' - ."""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    name = normalize_whitespace(value)
    if len(name) < NAME_MIN_LENGTH:
        raise ValidationError(f"{field_name} must be at least {NAME_MIN_LENGTH} characters")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"{field_name} must be at most {NAME_MAX_LENGTH} characters")
    if not all(_is_name_char(ch) for ch in name):
        raise ValidationError(f"{field_name} contains invalid characters")
    return name


def text_rule(min_length: int = 0, max_length: int | None = None) -> FieldRule:
    def _parse(field_name: str, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")
        text = normalize_whitespace(value)
        if len(text) < min_length:
            if min_length <= 1:
                raise ValidationError(f"{field_name} is required")
            raise ValidationError(f"{field_name} must be at least {min_length} characters")
        if max_length is not None and len(text) > max_length:
            raise ValidationError(f"{field_name} must be at most {max_length} characters")
        return text
    return _parse


def optional_text_rule(max_length: int | None = None) -> FieldRule:
    def _parse(field_name: str, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")
        text = normalize_whitespace(value)
        if not text:
            return None
        if max_length is not None and len(text) > max_length:
            raise ValidationError(f"{field_name} must be at most {max_length} characters")
        return text
    return _parse


def enum_rule(allowed: tuple[str, ...]) -> FieldRule:
    def _parse(field_name: str, value: Any) -> str:
        if not isinstance(value, str) or value not in allowed:
            raise ValidationError(f"{field_name} must be one of: {', '.join(allowed)}")
        return value
    return _parse


# -- Numbers --

def _to_decimal(field_name: str, value: Any, *, strip: str = ",") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip()
        for ch in strip:
            cleaned = cleaned.replace(ch, "")
        if not _NUMBER_RE.match(cleaned):
            raise ValidationError(f"{field_name} must be a number")
        result = Decimal(cleaned)
    else:
        raise ValidationError(f"{field_name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def parse_money(field_name: str, value: Any) -> Decimal:
    """Non-negative amount, 4 decimal places, thousands separators allowed."""
    amount = _to_decimal(field_name, value)
    if amount < ZERO:
        raise ValidationError(f"{field_name} cannot be negative")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field_name} cannot exceed {MAX_MONEY:,}")
    return q_money(amount)


def parse_positive_money(field_name: str, value: Any) -> Decimal:
    amount = parse_money(field_name, value)
    if amount <= ZERO:
        raise ValidationError(f"{field_name} must be greater than 0")
    return amount


def parse_signed_money(field_name: str, value: Any) -> Decimal:
    amount = _to_decimal(field_name, value)
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field_name} must be within ±{MAX_MONEY:,}")
    return q_money(amount)


def bounded_money_rule(maximum: Decimal) -> FieldRule:
    def _parse(field_name: str, value: Any) -> Decimal:
        amount = parse_money(field_name, value)
        if amount > maximum:
            raise ValidationError(f"{field_name} cannot exceed {maximum:,}")
        return amount
    return _parse


def parse_weight_grams(field_name: str, value: Any) -> Decimal:
    weight = _to_decimal(field_name, value)
    if weight <= ZERO:
        raise ValidationError(f"{field_name} must be greater than 0")
    if weight > MAX_WEIGHT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_WEIGHT:,}")
    return q_weight(weight)


def parse_weight_or_zero(field_name: str, value: Any) -> Decimal:
    weight = _to_decimal(field_name, value)
    if weight < ZERO:
        raise ValidationError(f"{field_name} cannot be negative")
    if weight > MAX_WEIGHT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_WEIGHT:,}")
    return q_weight(weight)


def parse_positive_carats(field_name: str, value: Any) -> Decimal:
    weight = parse_weight_or_zero(field_name, value)
    if weight <= ZERO:
        raise ValidationError(f"{field_name} must be greater than 0")
    return weight


def parse_percentage(field_name: str, value: Any) -> Decimal:
    pct = _to_decimal(field_name, value, strip=",%")
    if pct < ZERO or pct > HUNDRED:
        raise ValidationError(f"{field_name} must be between 0 and 100")
    return q_percent(pct)


def parse_strict_int(field_name: str, value: Any) -> int:
    # Rejects bools, floats, "12.5" and scientific notation
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        if not _INT_RE.match(stripped):
            raise ValidationError(f"{field_name} must be an integer")
        return int(stripped)
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    raise ValidationError(f"{field_name} must be an integer")


def decimal_range_rule(minimum: Decimal, maximum: Decimal) -> FieldRule:
    def _parse(field_name: str, value: Any) -> Decimal:
        number = _to_decimal(field_name, value)
        if number < minimum or number > maximum:
            raise ValidationError(f"{field_name} must be between {minimum} and {maximum}")
        return number
    return _parse


def int_range_rule(minimum: int, maximum: int) -> FieldRule:
    def _parse(field_name: str, value: Any) -> int:
        number = parse_strict_int(field_name, value)
        if number < minimum or number > maximum:
            raise ValidationError(f"{field_name} must be between {minimum} and {maximum}")
        return number
    return _parse


def parse_quantity(field_name: str, value: Any) -> int:
    number = parse_strict_int(field_name, value)
    if number <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    if number > MAX_QUANTITY:
        raise ValidationError(f"{field_name} cannot exceed {MAX_QUANTITY:,}")
    return number


# -- Contact details and codes --

def parse_optional_email(field_name: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    email = value.strip()
    if not email:
        return None
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"{field_name} must be a valid email address")
    return email.lower()


def parse_optional_phone(field_name: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    phone = _PHONE_STRIP_RE.sub("", value)
    if not phone:
        return None
    if not _PHONE_RE.match(phone):
        raise ValidationError(f"{field_name} must be a valid phone number")
    return phone


def parse_currency(field_name: str, value: Any) -> str:
    if not isinstance(value, str) or len(value.strip()) != 3:
        raise ValidationError(f"{field_name} must be a 3-letter currency code")
    code = value.strip().upper()
    if code not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"{field_name} '{code}' is not a supported currency")
    return code


def parse_code(field_name: str, value: Any) -> str:
    """SKU / barcode: letters, digits, underscore and hyphen."""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    code = value.strip()
    if not code:
        raise ValidationError(f"{field_name} is required")
    if len(code) > 100:
        raise ValidationError(f"{field_name} must be at most 100 characters")
    if not _CODE_RE.match(code):
        raise ValidationError(
            f"{field_name} may only contain letters, numbers, hyphens and underscores"
        )
    return code


def parse_optional_code(field_name: str, value: Any) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_code(field_name, value)


def parse_date(field_name: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid calendar date")


def parse_optional_date(field_name: str, value: Any) -> date | None:
    if value is None or value == "":
        return None
    return parse_date(field_name, value)


# -- Model payload validation --

def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_strict_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, Numeric):
        return q_money(_to_decimal(col.key, value))

    # DateTime is checked before Date because it is not a Date subclass
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return parse_date(col.key, value)

    if isinstance(coltype, (String, Text)):
        return normalize_whitespace(str(value))

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - per-field rules from the policy
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]
        rule = policy.field_rules.get(k)

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = rule(k, raw) if rule else _coerce_value(col, raw)

        if val is None and not col.nullable:
            raise ValidationError(f"{k} cannot be blank")

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# -- Cross-field business rules --

def enforce_rules_certification(patch: dict, existing=None) -> None:
    issue = patch.get("issue_date", getattr(existing, "issue_date", None))
    expiry = patch.get("expiry_date", getattr(existing, "expiry_date", None))
    if issue and expiry and issue > expiry:
        raise ValidationError("issue_date must be on or before expiry_date")

    appraised = patch.get("appraised_value", getattr(existing, "appraised_value", None))
    currency = patch.get("currency", getattr(existing, "currency", None))
    if appraised is not None and not currency:
        raise ValidationError("currency is required when appraised_value is provided")


def enforce_rules_recurring(patch: dict, existing=None) -> None:
    frequency = patch.get("frequency", getattr(existing, "frequency", None))
    day_of_month = patch.get("day_of_month", getattr(existing, "day_of_month", None))
    day_of_week = patch.get("day_of_week", getattr(existing, "day_of_week", None))

    if frequency in ("monthly", "yearly") and day_of_month is None:
        raise ValidationError(f"day_of_month is required for {frequency} expenses")
    if frequency == "weekly" and day_of_week is None:
        raise ValidationError("day_of_week is required for weekly expenses")

    start = patch.get("start_date", getattr(existing, "start_date", None))
    end = patch.get("end_date", getattr(existing, "end_date", None))
    if start and end and end < start:
        raise ValidationError("end_date must be on or after start_date")


def enforce_rules_payment(payment_type: str | None, cheque_number: str | None) -> None:
    if payment_type == "cheque" and not (cheque_number or "").strip():
        raise ValidationError("cheque_number is required for cheque payments")


def enforce_rules_range(
    *,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> None:
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValidationError("min_amount must be less than or equal to max_amount")
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
