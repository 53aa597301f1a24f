# Overview: Expense categories, expenses, approvals, payments and recurring expense generation.

"""
Expense Service

WHY: Shop running costs (rent, salaries, tools, utilities) need approval
before they count against a budget, and partial payments must be tracked
until the expense is settled.

LIFECYCLE:
- approval_status: pending -> approved | rejected (only from pending)
- payment_status: unpaid -> partial -> paid (from recorded payments)
- Approved expenses are frozen for edits and consume a budget allocation

RECURRING:
- A RecurringExpense produces one Expense per due date
- next_due_date advances by its frequency; month and year steps clamp to
  the last day of the target month (Jan 31 -> Feb 28)
- generate_due_recurring() is what the CLI runs from cron
"""

import calendar
from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Expense, ExpenseCategory, ExpensePayment, RecurringExpense, Supplier
from ..money import ZERO, payment_status_for, q_money, to_decimal
from ..time_utils import utc_today, utcnow
from ..validation import (
    ConflictError,
    ValidationError,
    enforce_rules_payment,
    enforce_rules_range,
    enforce_rules_recurring,
    parse_money,
    parse_optional_date,
    parse_positive_money,
)
from . import budget_service
from .concurrency import check_version, lock_for_update, run_with_retry
from .document_service import next_document_number
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


PAYMENT_TYPES = ("cash", "card", "bank_transfer", "cheque", "other")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
PAYMENT_STATUSES = ("unpaid", "partial", "paid")
FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
RECURRING_STATUSES = ("active", "paused", "completed", "cancelled")


class ExpenseError(Exception):
    """Raised for expense operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# -- Categories --

def _check_category_name(shop_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ExpenseCategory).filter(
        ExpenseCategory.shop_id == shop_id,
        db.func.lower(ExpenseCategory.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(ExpenseCategory.id != exclude_id)
    if query.first():
        raise ConflictError(f"Expense category '{name}' already exists")


def create_category(*, shop_id: int, patch: dict) -> ExpenseCategory:
    _check_category_name(shop_id, patch["name"])
    category = ExpenseCategory(shop_id=shop_id, **patch)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Expense category '{patch['name']}' already exists")
    return category


def update_category(*, shop_id: int, category_id: int, patch: dict) -> ExpenseCategory:
    category = require_in_shop(ExpenseCategory, category_id, shop_id, label="Expense category")
    if "name" in patch:
        _check_category_name(shop_id, patch["name"], exclude_id=category.id)
    for key, value in patch.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def deactivate_category(*, shop_id: int, category_id: int) -> ExpenseCategory:
    category = require_in_shop(ExpenseCategory, category_id, shop_id, label="Expense category")
    category.is_active = False
    db.session.commit()
    return category


def list_categories(*, shop_id: int, include_inactive: bool = False) -> list[ExpenseCategory]:
    query = db.session.query(ExpenseCategory).filter(ExpenseCategory.shop_id == shop_id)
    if not include_inactive:
        query = query.filter(ExpenseCategory.is_active.is_(True))
    return query.order_by(ExpenseCategory.name.asc()).all()


def _active_category(shop_id: int, category_id: int) -> ExpenseCategory:
    category = require_in_shop(ExpenseCategory, category_id, shop_id, label="Expense category")
    if not category.is_active:
        raise ExpenseError("Expense category is not active")
    return category


# -- Expenses --

def get_expense(*, shop_id: int, expense_id: int) -> Expense:
    return require_in_shop(Expense, expense_id, shop_id, label="Expense")


def _locked_expense(shop_id: int, expense_id: int) -> Expense:
    expense = lock_for_update(
        db.session.query(Expense).filter_by(id=expense_id, shop_id=shop_id)
    ).first()
    if not expense:
        raise ExpenseError("Expense not found")
    return expense


def create_expense(
    *,
    shop_id: int,
    patch: dict,
    actor_user_id: int | None = None,
    commit: bool = True,
) -> Expense:
    """Create an unpaid, pending expense with the next EXP-###### number."""
    _active_category(shop_id, patch["category_id"])
    if patch.get("supplier_id") is not None:
        require_in_shop(Supplier, patch["supplier_id"], shop_id, label="Supplier")

    expense_number = next_document_number(
        shop_id=shop_id,
        document_type="EXPENSE",
        prefix="EXP-",
        pad=6,
    )

    expense = Expense(
        shop_id=shop_id,
        expense_number=expense_number,
        payment_status="unpaid",
        paid_amount=ZERO,
        approval_status="pending",
        created_by_user_id=actor_user_id,
        **patch,
    )
    db.session.add(expense)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="expense.created",
        entity_type="expense",
        entity_id=expense.id,
        actor_user_id=actor_user_id,
        payload={"amount": expense.amount},
    )
    if commit:
        db.session.commit()
    return expense


def update_expense(
    *,
    shop_id: int,
    expense_id: int,
    patch: dict,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> Expense:
    expense = get_expense(shop_id=shop_id, expense_id=expense_id)
    check_version(expense, expected_version)

    if expense.approval_status == "approved":
        raise ExpenseError("Cannot edit an approved expense")
    if "category_id" in patch:
        _active_category(shop_id, patch["category_id"])
    if patch.get("supplier_id") is not None:
        require_in_shop(Supplier, patch["supplier_id"], shop_id, label="Supplier")
    if "amount" in patch and to_decimal(patch["amount"]) < to_decimal(expense.paid_amount):
        raise ExpenseError("amount cannot be less than the amount already paid")

    for key, value in patch.items():
        setattr(expense, key, value)
    expense.payment_status = payment_status_for(expense.paid_amount, expense.amount)

    append_activity_event(
        shop_id=shop_id,
        event_type="expense.updated",
        entity_type="expense",
        entity_id=expense.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return expense


def delete_expense(*, shop_id: int, expense_id: int, actor_user_id: int | None = None) -> None:
    expense = get_expense(shop_id=shop_id, expense_id=expense_id)

    if expense.payment_status == "paid" or expense.payments:
        raise ExpenseError("Cannot delete an expense with payments")

    if expense.approval_status == "approved":
        budget_service.release_expense(expense, actor_user_id=actor_user_id)

    append_activity_event(
        shop_id=shop_id,
        event_type="expense.deleted",
        entity_type="expense",
        entity_id=expense.id,
        actor_user_id=actor_user_id,
        note=f"Expense {expense.expense_number} deleted",
    )
    db.session.delete(expense)
    db.session.commit()


def approve_expense(*, shop_id: int, expense_id: int, actor_user_id: int | None = None) -> Expense:
    """pending -> approved, consuming the matching budget allocation."""
    get_expense(shop_id=shop_id, expense_id=expense_id)

    def _op():
        expense = _locked_expense(shop_id, expense_id)
        if expense.approval_status != "pending":
            raise ExpenseError(f"Only pending expenses can be approved (current: {expense.approval_status})")
        _mark_approved(expense, actor_user_id)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def _mark_approved(expense: Expense, actor_user_id: int | None) -> None:
    expense.approval_status = "approved"
    expense.approved_by_user_id = actor_user_id
    expense.approved_at = utcnow()
    expense.rejected_by_user_id = None
    expense.rejected_at = None
    expense.rejection_reason = None

    budget_service.record_expense(expense, actor_user_id=actor_user_id)

    append_activity_event(
        shop_id=expense.shop_id,
        event_type="expense.approved",
        entity_type="expense",
        entity_id=expense.id,
        actor_user_id=actor_user_id,
    )


def reject_expense(
    *,
    shop_id: int,
    expense_id: int,
    reason: str,
    actor_user_id: int | None = None,
) -> Expense:
    if not (reason or "").strip():
        raise ValidationError("reason is required")
    get_expense(shop_id=shop_id, expense_id=expense_id)

    def _op():
        expense = _locked_expense(shop_id, expense_id)
        if expense.approval_status != "pending":
            raise ExpenseError(f"Only pending expenses can be rejected (current: {expense.approval_status})")

        expense.approval_status = "rejected"
        expense.rejected_by_user_id = actor_user_id
        expense.rejected_at = utcnow()
        expense.rejection_reason = reason.strip()
        expense.approved_by_user_id = None
        expense.approved_at = None

        append_activity_event(
            shop_id=shop_id,
            event_type="expense.rejected",
            entity_type="expense",
            entity_id=expense.id,
            actor_user_id=actor_user_id,
            note=reason.strip(),
        )
        db.session.commit()
        return expense

    return run_with_retry(_op)


def record_expense_payment(
    *,
    shop_id: int,
    expense_id: int,
    amount,
    payment_type: str,
    payment_date=None,
    cheque_number: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> ExpensePayment:
    """Record a payment; the total paid may not exceed the expense amount."""
    amount = parse_positive_money("amount", amount)
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    enforce_rules_payment(payment_type, cheque_number)
    paid_on = parse_optional_date("payment_date", payment_date) or utc_today()
    get_expense(shop_id=shop_id, expense_id=expense_id)

    def _op():
        expense = _locked_expense(shop_id, expense_id)
        if expense.approval_status == "rejected":
            raise ExpenseError("Cannot pay a rejected expense")

        new_paid = q_money(to_decimal(expense.paid_amount) + amount)
        if new_paid > to_decimal(expense.amount):
            raise ExpenseError(
                "Payment exceeds the outstanding amount",
                details={"outstanding": str(q_money(to_decimal(expense.amount) - to_decimal(expense.paid_amount)))},
            )

        payment = ExpensePayment(
            shop_id=shop_id,
            expense_id=expense.id,
            amount=amount,
            payment_type=payment_type,
            payment_date=paid_on,
            cheque_number=cheque_number.strip() if cheque_number else None,
            reference=reference,
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        db.session.add(payment)

        expense.paid_amount = new_paid
        expense.payment_status = payment_status_for(new_paid, expense.amount)

        append_activity_event(
            shop_id=shop_id,
            event_type="expense.payment_recorded",
            entity_type="expense",
            entity_id=expense.id,
            actor_user_id=actor_user_id,
            payload={"amount": amount, "payment_type": payment_type},
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


def list_expenses(
    *,
    shop_id: int,
    category_id: int | None = None,
    approval_status: str | None = None,
    payment_status: str | None = None,
    start_date=None,
    end_date=None,
    min_amount=None,
    max_amount=None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Expense], int]:
    start = parse_optional_date("start_date", start_date)
    end = parse_optional_date("end_date", end_date)
    low = parse_money("min_amount", min_amount) if min_amount not in (None, "") else None
    high = parse_money("max_amount", max_amount) if max_amount not in (None, "") else None
    enforce_rules_range(min_amount=low, max_amount=high, start_date=start, end_date=end)

    query = db.session.query(Expense).filter(Expense.shop_id == shop_id)

    if category_id is not None:
        query = query.filter(Expense.category_id == category_id)
    if approval_status:
        if approval_status not in APPROVAL_STATUSES:
            raise ValidationError(f"approval_status must be one of: {', '.join(APPROVAL_STATUSES)}")
        query = query.filter(Expense.approval_status == approval_status)
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
        query = query.filter(Expense.payment_status == payment_status)
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    if low is not None:
        query = query.filter(Expense.amount >= low)
    if high is not None:
        query = query.filter(Expense.amount <= high)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Expense.description.ilike(term),
                Expense.vendor_name.ilike(term),
                Expense.expense_number.ilike(term),
            )
        )

    total = query.count()
    rows = query.order_by(Expense.expense_date.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def expense_summary(*, shop_id: int, start_date=None, end_date=None) -> dict:
    """Totals (excluding rejected expenses) with a per-category breakdown."""
    start = parse_optional_date("start_date", start_date)
    end = parse_optional_date("end_date", end_date)
    enforce_rules_range(start_date=start, end_date=end)

    query = db.session.query(Expense).filter(
        Expense.shop_id == shop_id,
        Expense.approval_status != "rejected",
    )
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)

    total = ZERO
    paid = ZERO
    by_category: dict[int, dict] = {}
    for expense in query.all():
        amount = to_decimal(expense.amount)
        total += amount
        paid += to_decimal(expense.paid_amount)
        bucket = by_category.setdefault(expense.category_id, {
            "category_id": expense.category_id,
            "category_name": expense.category.name if expense.category else None,
            "total": ZERO,
            "count": 0,
        })
        bucket["total"] += amount
        bucket["count"] += 1

    categories = sorted(by_category.values(), key=lambda b: b["total"], reverse=True)
    for bucket in categories:
        bucket["total"] = str(q_money(bucket["total"]))

    return {
        "start_date": start.isoformat() if start else None,
        "end_date": end.isoformat() if end else None,
        "total_amount": str(q_money(total)),
        "paid_amount": str(q_money(paid)),
        "unpaid_amount": str(q_money(total - paid)),
        "by_category": categories,
    }


# -- Recurring expenses --

def _add_months(day: date, months: int, anchor_day: int | None = None) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day or day.day, last_day))


def next_due_after(current: date, frequency: str, day_of_month: int | None = None) -> date:
    """Advance a due date by one period, clamping to the end of short months."""
    if frequency == "daily":
        return current + timedelta(days=1)
    if frequency == "weekly":
        return current + timedelta(weeks=1)
    if frequency == "monthly":
        return _add_months(current, 1, day_of_month)
    if frequency == "yearly":
        return _add_months(current, 12, day_of_month)
    raise ValidationError(f"frequency must be one of: {', '.join(FREQUENCIES)}")


def get_recurring(*, shop_id: int, recurring_id: int) -> RecurringExpense:
    return require_in_shop(RecurringExpense, recurring_id, shop_id, label="Recurring expense")


def create_recurring(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> RecurringExpense:
    enforce_rules_recurring(patch)
    _active_category(shop_id, patch["category_id"])

    recurring = RecurringExpense(
        shop_id=shop_id,
        status="active",
        next_due_date=patch["start_date"],
        created_by_user_id=actor_user_id,
        **patch,
    )
    db.session.add(recurring)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="recurring_expense.created",
        entity_type="recurring_expense",
        entity_id=recurring.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return recurring


def update_recurring(*, shop_id: int, recurring_id: int, patch: dict) -> RecurringExpense:
    recurring = get_recurring(shop_id=shop_id, recurring_id=recurring_id)
    if recurring.status in ("completed", "cancelled"):
        raise ExpenseError(f"Cannot edit a {recurring.status} recurring expense")
    enforce_rules_recurring(patch, existing=recurring)
    if "category_id" in patch:
        _active_category(shop_id, patch["category_id"])

    for key, value in patch.items():
        setattr(recurring, key, value)
    if "start_date" in patch and recurring.last_generated_at is None:
        recurring.next_due_date = patch["start_date"]

    db.session.commit()
    return recurring


def pause_recurring(*, shop_id: int, recurring_id: int) -> RecurringExpense:
    recurring = get_recurring(shop_id=shop_id, recurring_id=recurring_id)
    if recurring.status != "active":
        raise ExpenseError("Only active recurring expenses can be paused")
    recurring.status = "paused"
    db.session.commit()
    return recurring


def resume_recurring(*, shop_id: int, recurring_id: int, today: date | None = None) -> RecurringExpense:
    """paused -> active; a past next_due_date is rolled forward from today."""
    recurring = get_recurring(shop_id=shop_id, recurring_id=recurring_id)
    if recurring.status != "paused":
        raise ExpenseError("Only paused recurring expenses can be resumed")

    today = today or utc_today()
    if recurring.next_due_date < today:
        recurring.next_due_date = next_due_after(today, recurring.frequency, recurring.day_of_month)
    recurring.status = "active"
    db.session.commit()
    return recurring


def cancel_recurring(*, shop_id: int, recurring_id: int) -> RecurringExpense:
    recurring = get_recurring(shop_id=shop_id, recurring_id=recurring_id)
    if recurring.status == "cancelled":
        raise ExpenseError("Recurring expense is already cancelled")
    recurring.status = "cancelled"
    db.session.commit()
    return recurring


def delete_recurring(*, shop_id: int, recurring_id: int) -> None:
    """Delete a template; expenses already generated keep their numbers but lose the link."""
    recurring = get_recurring(shop_id=shop_id, recurring_id=recurring_id)
    db.session.query(Expense).filter_by(recurring_expense_id=recurring.id).update(
        {"recurring_expense_id": None},
        synchronize_session=False,
    )
    db.session.delete(recurring)
    db.session.commit()


def list_recurring(*, shop_id: int, status: str | None = None) -> list[RecurringExpense]:
    query = db.session.query(RecurringExpense).filter(RecurringExpense.shop_id == shop_id)
    if status:
        if status not in RECURRING_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(RECURRING_STATUSES)}")
        query = query.filter(RecurringExpense.status == status)
    return query.order_by(RecurringExpense.next_due_date.asc()).all()


def _generate_locked(recurring: RecurringExpense, expense_date: date, actor_user_id: int | None) -> Expense:
    if recurring.status != "active":
        raise ExpenseError(f"Recurring expense is {recurring.status}")
    if recurring.end_date and expense_date > recurring.end_date:
        raise ExpenseError("Recurring expense has ended")

    expense = create_expense(
        shop_id=recurring.shop_id,
        patch={
            "category_id": recurring.category_id,
            "description": recurring.description,
            "amount": recurring.amount,
            "expense_date": expense_date,
            "vendor_name": recurring.vendor_name,
            "recurring_expense_id": recurring.id,
            "notes": "Generated from recurring expense",
        },
        actor_user_id=actor_user_id,
        commit=False,
    )
    if recurring.auto_approve:
        _mark_approved(expense, actor_user_id)

    recurring.last_generated_at = utcnow()
    recurring.next_due_date = next_due_after(expense_date, recurring.frequency, recurring.day_of_month)
    if recurring.end_date and recurring.next_due_date > recurring.end_date:
        recurring.status = "completed"
    return expense


def generate_from_recurring(
    *,
    shop_id: int,
    recurring_id: int,
    expense_date=None,
    actor_user_id: int | None = None,
) -> Expense:
    """Create the expense for the next due date (or an explicit date)."""
    on_date = parse_optional_date("expense_date", expense_date)
    get_recurring(shop_id=shop_id, recurring_id=recurring_id)

    def _op():
        recurring = lock_for_update(
            db.session.query(RecurringExpense).filter_by(id=recurring_id, shop_id=shop_id)
        ).first()
        expense = _generate_locked(recurring, on_date or recurring.next_due_date, actor_user_id)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def generate_due_recurring(*, shop_id: int | None = None, as_of: date | None = None) -> list[Expense]:
    """
    Generate every active recurring expense due on or before as_of.

    Each template catches up one period at a time until it is no longer
    due, so a job that skipped days still creates every missed expense.
    A template that cannot generate (e.g. its category was deactivated) is
    logged and skipped; the others still run.
    """
    as_of = as_of or utc_today()
    query = db.session.query(RecurringExpense.id).filter(
        RecurringExpense.status == "active",
        RecurringExpense.next_due_date <= as_of,
    )
    if shop_id is not None:
        query = query.filter(RecurringExpense.shop_id == shop_id)

    generated: list[Expense] = []
    for (recurring_id,) in query.order_by(RecurringExpense.id.asc()).all():
        while True:
            recurring = db.session.get(RecurringExpense, recurring_id)
            if recurring.status != "active" or recurring.next_due_date > as_of:
                break
            if recurring.end_date and recurring.next_due_date > recurring.end_date:
                recurring.status = "completed"
                db.session.commit()
                break
            try:
                expense = _generate_locked(recurring, recurring.next_due_date, None)
                db.session.commit()
            except (ExpenseError, ValueError) as e:
                db.session.rollback()
                current_app.logger.warning("Skipped recurring expense %s: %s", recurring_id, e)
                break
            generated.append(expense)

    current_app.logger.info("Generated %s recurring expenses (as of %s)", len(generated), as_of.isoformat())
    return generated
