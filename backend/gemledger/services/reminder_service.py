# Overview: Payment reminders for supplier, workshop and customer balances.

"""
Reminder Service

WHY: Balances owed in either direction need follow-up. A reminder points at
a supplier, workshop or customer of the shop, carries a due date, and keeps
a running note trail of completions and snoozes.

DESIGN:
- status: pending -> snoozed (repeatable) -> completed
- Completed reminders are final: no snooze, no second completion
- Notes are appended as "[timestamp] ..." lines, never overwritten
"""

from datetime import date, timedelta

from ..extensions import db
from ..models import Customer, PaymentReminder, Supplier, Workshop
from ..time_utils import utc_today, utcnow
from ..validation import ValidationError, parse_strict_int
from .concurrency import check_version
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


ENTITY_MODELS = {
    "supplier": Supplier,
    "workshop": Workshop,
    "customer": Customer,
}
REMINDER_TYPES = ("payment_due", "follow_up", "overdue", "scheduled")
REMINDER_STATUSES = ("pending", "completed", "snoozed")

NOTE_MAX_LENGTH = 500


class ReminderError(Exception):
    """Raised for reminder operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _check_entity(shop_id: int, entity_type: str, entity_id: int) -> None:
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(f"entity_type must be one of: {', '.join(ENTITY_MODELS)}")
    require_in_shop(model, entity_id, shop_id, label=entity_type.capitalize())


def _append_note(reminder: PaymentReminder, line: str) -> None:
    stamp = utcnow().strftime("%Y-%m-%d %H:%M")
    entry = f"[{stamp}] {line}"
    reminder.notes = f"{reminder.notes}\n{entry}" if reminder.notes else entry


def _bounded_int(field_name: str, value, default: int, minimum: int, maximum: int) -> int:
    if value in (None, ""):
        return default
    number = parse_strict_int(field_name, value)
    if number < minimum or number > maximum:
        raise ValidationError(f"{field_name} must be between {minimum} and {maximum}")
    return number


def create_reminder(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> PaymentReminder:
    _check_entity(shop_id, patch["entity_type"], patch["entity_id"])

    reminder = PaymentReminder(
        shop_id=shop_id,
        status="pending",
        reminder_count=0,
        created_by_user_id=actor_user_id,
        **patch,
    )
    db.session.add(reminder)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="reminder.created",
        entity_type="reminder",
        entity_id=reminder.id,
        actor_user_id=actor_user_id,
        payload={"entity_type": reminder.entity_type, "entity_id": reminder.entity_id},
    )
    db.session.commit()
    return reminder


def get_reminder(*, shop_id: int, reminder_id: int) -> PaymentReminder:
    return require_in_shop(PaymentReminder, reminder_id, shop_id, label="Reminder")


def update_reminder(
    *,
    shop_id: int,
    reminder_id: int,
    patch: dict,
    expected_version: int | None = None,
) -> PaymentReminder:
    reminder = get_reminder(shop_id=shop_id, reminder_id=reminder_id)
    check_version(reminder, expected_version)
    if reminder.status == "completed":
        raise ReminderError("Cannot edit a completed reminder")

    entity_type = patch.get("entity_type", reminder.entity_type)
    entity_id = patch.get("entity_id", reminder.entity_id)
    if "entity_type" in patch or "entity_id" in patch:
        _check_entity(shop_id, entity_type, entity_id)

    for key, value in patch.items():
        setattr(reminder, key, value)
    db.session.commit()
    return reminder


def delete_reminder(*, shop_id: int, reminder_id: int) -> None:
    reminder = get_reminder(shop_id=shop_id, reminder_id=reminder_id)
    db.session.delete(reminder)
    db.session.commit()


def mark_completed(
    *,
    shop_id: int,
    reminder_id: int,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> PaymentReminder:
    reminder = get_reminder(shop_id=shop_id, reminder_id=reminder_id)
    if reminder.status == "completed":
        raise ReminderError("Reminder is already completed")

    text = (notes or "").strip()[:NOTE_MAX_LENGTH]
    _append_note(reminder, f"Completed: {text}" if text else "Completed")
    reminder.status = "completed"
    reminder.completed_at = utcnow()

    append_activity_event(
        shop_id=shop_id,
        event_type="reminder.completed",
        entity_type="reminder",
        entity_id=reminder.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return reminder


def snooze(
    *,
    shop_id: int,
    reminder_id: int,
    days=None,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> PaymentReminder:
    """Push the due date out by days (1-365, default 7)."""
    days = _bounded_int("days", days, 7, 1, 365)
    reminder = get_reminder(shop_id=shop_id, reminder_id=reminder_id)
    if reminder.status == "completed":
        raise ReminderError("Cannot snooze a completed reminder")

    reminder.due_date = reminder.due_date + timedelta(days=days)
    reminder.status = "snoozed"
    reminder.reminder_count = (reminder.reminder_count or 0) + 1

    text = (reason or "").strip()[:NOTE_MAX_LENGTH]
    _append_note(reminder, f"Snoozed {days} days: {text}" if text else f"Snoozed {days} days")

    append_activity_event(
        shop_id=shop_id,
        event_type="reminder.snoozed",
        entity_type="reminder",
        entity_id=reminder.id,
        actor_user_id=actor_user_id,
        payload={"days": days},
    )
    db.session.commit()
    return reminder


def list_reminders(
    *,
    shop_id: int,
    status: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PaymentReminder], int]:
    query = db.session.query(PaymentReminder).filter(PaymentReminder.shop_id == shop_id)
    if status:
        if status not in REMINDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(REMINDER_STATUSES)}")
        query = query.filter(PaymentReminder.status == status)
    if entity_type:
        query = query.filter(PaymentReminder.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(PaymentReminder.entity_id == entity_id)
    total = query.count()
    rows = query.order_by(PaymentReminder.due_date.asc(), PaymentReminder.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def upcoming(*, shop_id: int, days=None, limit=None, today: date | None = None) -> list[PaymentReminder]:
    """Open reminders due between today and today + days (inclusive)."""
    days = _bounded_int("days", days, 7, 1, 90)
    limit = _bounded_int("limit", limit, 10, 1, 50)
    today = today or utc_today()

    return (
        db.session.query(PaymentReminder)
        .filter(
            PaymentReminder.shop_id == shop_id,
            PaymentReminder.status != "completed",
            PaymentReminder.due_date >= today,
            PaymentReminder.due_date <= today + timedelta(days=days),
        )
        .order_by(PaymentReminder.due_date.asc(), PaymentReminder.id.asc())
        .limit(limit)
        .all()
    )


def overdue(*, shop_id: int | None = None, today: date | None = None) -> list[PaymentReminder]:
    """Open reminders past their due date. shop_id None spans all shops (CLI)."""
    today = today or utc_today()
    query = db.session.query(PaymentReminder).filter(
        PaymentReminder.status != "completed",
        PaymentReminder.due_date < today,
    )
    if shop_id is not None:
        query = query.filter(PaymentReminder.shop_id == shop_id)
    return query.order_by(PaymentReminder.due_date.asc(), PaymentReminder.id.asc()).all()


def days_until_due(reminder: PaymentReminder, today: date | None = None) -> int:
    """Negative when overdue."""
    today = today or utc_today()
    return (reminder.due_date - today).days
