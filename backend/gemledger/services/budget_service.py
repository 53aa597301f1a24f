# Overview: Budget categories, period allocations, transfers and budget-vs-actual reporting.

"""
Budget Service

WHY: Owners set spending caps per category and period (a budget
allocation). Approved expenses consume the matching allocation so the shop
can see what is left and where it overspent.

DESIGN:
- remaining = allocated + rollover - used, kept on the row
- Every change writes a BudgetTransaction (allocation, expense, adjustment,
  rollover, refund, transfer_in, transfer_out)
- Allocations of one category may not overlap unless cancelled
- remaining may go negative: an over-budget allocation is still valid
"""

from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BudgetAllocation, BudgetCategory, BudgetTransaction, Expense, ExpenseCategory
from ..money import HUNDRED, ZERO, q_money, q_percent, to_decimal
from ..validation import ConflictError, ValidationError, parse_date, parse_money, parse_positive_money, parse_signed_money
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


BUDGET_TYPES = ("operational", "capital", "marketing", "salary", "inventory", "maintenance", "other")
ALLOCATION_STATUSES = ("active", "closed", "cancelled")


class BudgetError(Exception):
    """Raised for budget operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _recompute_remaining(allocation: BudgetAllocation) -> None:
    allocation.remaining_amount = q_money(
        to_decimal(allocation.allocated_amount)
        + to_decimal(allocation.rollover_amount)
        - to_decimal(allocation.used_amount)
    )


def _write_transaction(
    allocation: BudgetAllocation,
    transaction_type: str,
    amount: Decimal,
    *,
    expense_id: int | None = None,
    description: str | None = None,
    actor_user_id: int | None = None,
) -> BudgetTransaction:
    tx = BudgetTransaction(
        shop_id=allocation.shop_id,
        allocation_id=allocation.id,
        transaction_type=transaction_type,
        amount=q_money(amount),
        expense_id=expense_id,
        description=description[:500] if description else None,
        created_by_user_id=actor_user_id,
    )
    db.session.add(tx)
    return tx


# -- Categories --

def _check_category_name(shop_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(BudgetCategory).filter(
        BudgetCategory.shop_id == shop_id,
        db.func.lower(BudgetCategory.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(BudgetCategory.id != exclude_id)
    if query.first():
        raise ConflictError(f"Budget category '{name}' already exists")


def create_category(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> BudgetCategory:
    _check_category_name(shop_id, patch["name"])
    if patch.get("expense_category_id") is not None:
        require_in_shop(ExpenseCategory, patch["expense_category_id"], shop_id, label="Expense category")

    category = BudgetCategory(shop_id=shop_id, **patch)
    db.session.add(category)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Budget category '{patch['name']}' already exists")

    append_activity_event(
        shop_id=shop_id,
        event_type="budget.category_created",
        entity_type="budget_category",
        entity_id=category.id,
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return category


def update_category(*, shop_id: int, category_id: int, patch: dict) -> BudgetCategory:
    category = require_in_shop(BudgetCategory, category_id, shop_id, label="Budget category")
    if "name" in patch:
        _check_category_name(shop_id, patch["name"], exclude_id=category.id)
    if patch.get("expense_category_id") is not None:
        require_in_shop(ExpenseCategory, patch["expense_category_id"], shop_id, label="Expense category")

    for key, value in patch.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def list_categories(*, shop_id: int, include_inactive: bool = False) -> list[BudgetCategory]:
    query = db.session.query(BudgetCategory).filter(BudgetCategory.shop_id == shop_id)
    if not include_inactive:
        query = query.filter(BudgetCategory.is_active.is_(True))
    return query.order_by(BudgetCategory.sort_order.asc(), BudgetCategory.name.asc()).all()


# -- Allocations --

def get_allocation(*, shop_id: int, allocation_id: int) -> BudgetAllocation:
    return require_in_shop(BudgetAllocation, allocation_id, shop_id, label="Budget allocation")


def _locked_allocation(shop_id: int, allocation_id: int) -> BudgetAllocation:
    allocation = lock_for_update(
        db.session.query(BudgetAllocation).filter_by(id=allocation_id, shop_id=shop_id)
    ).first()
    if not allocation:
        raise BudgetError("Budget allocation not found")
    return allocation


def allocate(
    *,
    shop_id: int,
    budget_category_id: int,
    period_start,
    period_end,
    allocated_amount,
    rollover_amount=None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> BudgetAllocation:
    """
    Create a period allocation for a category.

    Raises BudgetError("overlapping_allocation") when the period overlaps a
    non-cancelled allocation of the same category.
    """
    start = parse_date("period_start", period_start)
    end = parse_date("period_end", period_end)
    if start > end:
        raise ValidationError("period_start must be on or before period_end")
    amount = parse_money("allocated_amount", allocated_amount)
    rollover = parse_money("rollover_amount", rollover_amount) if rollover_amount not in (None, "") else ZERO

    category = require_in_shop(BudgetCategory, budget_category_id, shop_id, label="Budget category")
    if not category.is_active:
        raise BudgetError("Budget category is not active")

    def _op():
        overlapping = db.session.query(BudgetAllocation).filter(
            BudgetAllocation.shop_id == shop_id,
            BudgetAllocation.budget_category_id == category.id,
            BudgetAllocation.status != "cancelled",
            BudgetAllocation.period_start <= end,
            BudgetAllocation.period_end >= start,
        ).first()
        if overlapping:
            raise BudgetError(
                "overlapping_allocation",
                details={"allocation_id": overlapping.id},
            )

        allocation = BudgetAllocation(
            shop_id=shop_id,
            budget_category_id=category.id,
            period_start=start,
            period_end=end,
            allocated_amount=amount,
            rollover_amount=rollover,
            used_amount=ZERO,
            status="active",
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        _recompute_remaining(allocation)
        db.session.add(allocation)
        db.session.flush()

        _write_transaction(
            allocation,
            "allocation",
            amount,
            description=f"Allocation for {start.isoformat()} to {end.isoformat()}",
            actor_user_id=actor_user_id,
        )
        if rollover > ZERO:
            _write_transaction(allocation, "rollover", rollover, description="Rollover", actor_user_id=actor_user_id)

        append_activity_event(
            shop_id=shop_id,
            event_type="budget.allocated",
            entity_type="budget_allocation",
            entity_id=allocation.id,
            actor_user_id=actor_user_id,
            payload={"amount": amount, "category_id": category.id},
        )
        db.session.commit()
        return allocation

    return run_with_retry(_op)


def adjust(
    *,
    shop_id: int,
    allocation_id: int,
    amount,
    reason: str,
    actor_user_id: int | None = None,
) -> BudgetAllocation:
    """Increase (amount > 0) or decrease (amount < 0) an active allocation."""
    delta = parse_signed_money("amount", amount)
    if delta == ZERO:
        raise ValidationError("amount cannot be zero")
    if not (reason or "").strip():
        raise ValidationError("reason is required")
    get_allocation(shop_id=shop_id, allocation_id=allocation_id)

    def _op():
        allocation = _locked_allocation(shop_id, allocation_id)
        if allocation.status != "active":
            raise BudgetError(f"Cannot adjust a {allocation.status} allocation")

        new_allocated = q_money(to_decimal(allocation.allocated_amount) + delta)
        if new_allocated < ZERO:
            raise BudgetError(
                "Adjustment would make the allocated amount negative",
                details={"allocated_amount": str(q_money(allocation.allocated_amount))},
            )

        allocation.allocated_amount = new_allocated
        _recompute_remaining(allocation)

        label = "Increase" if delta > ZERO else "Decrease"
        _write_transaction(
            allocation,
            "adjustment",
            delta,
            description=f"{label}: {reason.strip()}",
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return allocation

    return run_with_retry(_op)


def transfer(
    *,
    shop_id: int,
    from_allocation_id: int,
    to_allocation_id: int,
    amount,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> tuple[BudgetAllocation, BudgetAllocation]:
    """Move unspent budget between two active allocations."""
    amount = parse_positive_money("amount", amount)
    if from_allocation_id == to_allocation_id:
        raise BudgetError("Cannot transfer to the same allocation")
    get_allocation(shop_id=shop_id, allocation_id=from_allocation_id)
    get_allocation(shop_id=shop_id, allocation_id=to_allocation_id)

    def _op():
        # Lock in id order so concurrent opposite transfers can't deadlock
        first_id, second_id = sorted((from_allocation_id, to_allocation_id))
        locked = {
            first_id: _locked_allocation(shop_id, first_id),
            second_id: _locked_allocation(shop_id, second_id),
        }
        source = locked[from_allocation_id]
        target = locked[to_allocation_id]

        if source.status != "active" or target.status != "active":
            raise BudgetError("Both allocations must be active")
        if to_decimal(source.remaining_amount) < amount:
            raise BudgetError(
                "Insufficient budget",
                details={"remaining_amount": str(q_money(source.remaining_amount))},
            )

        source.allocated_amount = q_money(to_decimal(source.allocated_amount) - amount)
        target.allocated_amount = q_money(to_decimal(target.allocated_amount) + amount)
        _recompute_remaining(source)
        _recompute_remaining(target)

        note = (reason or "").strip()
        _write_transaction(
            source,
            "transfer_out",
            amount,
            description=f"Transfer to allocation {target.id}" + (f": {note}" if note else ""),
            actor_user_id=actor_user_id,
        )
        _write_transaction(
            target,
            "transfer_in",
            amount,
            description=f"Transfer from allocation {source.id}" + (f": {note}" if note else ""),
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return source, target

    return run_with_retry(_op)


def _set_status(shop_id: int, allocation_id: int, new_status: str, actor_user_id: int | None) -> BudgetAllocation:
    get_allocation(shop_id=shop_id, allocation_id=allocation_id)

    def _op():
        allocation = _locked_allocation(shop_id, allocation_id)
        if allocation.status != "active":
            raise BudgetError(f"Only active allocations can be {new_status}")
        allocation.status = new_status
        append_activity_event(
            shop_id=shop_id,
            event_type=f"budget.allocation_{new_status}",
            entity_type="budget_allocation",
            entity_id=allocation.id,
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return allocation

    return run_with_retry(_op)


def close_allocation(*, shop_id: int, allocation_id: int, actor_user_id: int | None = None) -> BudgetAllocation:
    return _set_status(shop_id, allocation_id, "closed", actor_user_id)


def cancel_allocation(*, shop_id: int, allocation_id: int, actor_user_id: int | None = None) -> BudgetAllocation:
    return _set_status(shop_id, allocation_id, "cancelled", actor_user_id)


def list_allocations(
    *,
    shop_id: int,
    budget_category_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[BudgetAllocation], int]:
    query = db.session.query(BudgetAllocation).filter(BudgetAllocation.shop_id == shop_id)
    if budget_category_id is not None:
        query = query.filter(BudgetAllocation.budget_category_id == budget_category_id)
    if status:
        if status not in ALLOCATION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ALLOCATION_STATUSES)}")
        query = query.filter(BudgetAllocation.status == status)

    total = query.count()
    rows = query.order_by(BudgetAllocation.period_start.desc(), BudgetAllocation.id.desc()).offset(offset).limit(limit).all()
    return rows, total


# -- Expense consumption --

def find_allocation_for_expense(expense: Expense) -> BudgetAllocation | None:
    return (
        db.session.query(BudgetAllocation)
        .join(BudgetCategory, BudgetCategory.id == BudgetAllocation.budget_category_id)
        .filter(
            BudgetAllocation.shop_id == expense.shop_id,
            BudgetAllocation.status == "active",
            BudgetCategory.expense_category_id == expense.category_id,
            BudgetAllocation.period_start <= expense.expense_date,
            BudgetAllocation.period_end >= expense.expense_date,
        )
        .order_by(BudgetAllocation.id.asc())
        .first()
    )


def record_expense(expense: Expense, actor_user_id: int | None = None) -> BudgetTransaction | None:
    """
    Consume the matching allocation for an approved expense.

    Runs inside the caller's transaction (no commit). Returns None when no
    allocation covers the expense.
    """
    match = find_allocation_for_expense(expense)
    if match is None:
        return None

    allocation = _locked_allocation(expense.shop_id, match.id)
    amount = to_decimal(expense.amount)
    allocation.used_amount = q_money(to_decimal(allocation.used_amount) + amount)
    _recompute_remaining(allocation)

    tx = _write_transaction(
        allocation,
        "expense",
        amount,
        expense_id=expense.id,
        description=f"Expense {expense.expense_number}",
        actor_user_id=actor_user_id,
    )

    current_app.logger.info(
        "Budget allocation %s consumed %s by expense %s",
        allocation.id, q_money(amount), expense.expense_number,
    )
    if to_decimal(allocation.remaining_amount) < ZERO:
        current_app.logger.warning("Budget allocation %s is over budget", allocation.id)
    return tx


def release_expense(expense: Expense, actor_user_id: int | None = None) -> list[BudgetTransaction]:
    """
    Give back what an expense consumed before it is deleted.

    Writes a refund on every allocation the expense drew from and detaches
    the expense's budget transactions so the history survives the delete.
    Runs inside the caller's transaction (no commit).
    """
    consumed = (
        db.session.query(BudgetTransaction)
        .filter_by(shop_id=expense.shop_id, expense_id=expense.id)
        .order_by(BudgetTransaction.id.asc())
        .all()
    )
    per_allocation: dict[int, Decimal] = {}
    for tx in consumed:
        sign = -1 if tx.transaction_type == "refund" else 1
        per_allocation[tx.allocation_id] = per_allocation.get(tx.allocation_id, ZERO) + sign * to_decimal(tx.amount)
        tx.expense_id = None

    refunds = []
    for allocation_id, amount in per_allocation.items():
        if amount <= ZERO:
            continue
        allocation = _locked_allocation(expense.shop_id, allocation_id)
        allocation.used_amount = q_money(to_decimal(allocation.used_amount) - amount)
        _recompute_remaining(allocation)
        refunds.append(_write_transaction(
            allocation,
            "refund",
            amount,
            description=f"Expense {expense.expense_number} deleted",
            actor_user_id=actor_user_id,
        ))
        current_app.logger.info(
            "Budget allocation %s refunded %s for deleted expense %s",
            allocation.id, q_money(amount), expense.expense_number,
        )
    return refunds


# -- Reporting --

def _allocations_in_range(shop_id: int, start: date, end: date, budget_category_id: int | None):
    query = db.session.query(BudgetAllocation).filter(
        BudgetAllocation.shop_id == shop_id,
        BudgetAllocation.status != "cancelled",
        BudgetAllocation.period_start <= end,
        BudgetAllocation.period_end >= start,
    )
    if budget_category_id is not None:
        query = query.filter(BudgetAllocation.budget_category_id == budget_category_id)
    return query.order_by(BudgetAllocation.period_start.asc(), BudgetAllocation.id.asc()).all()


def _parse_period(period_start, period_end) -> tuple[date, date]:
    start = parse_date("period_start", period_start)
    end = parse_date("period_end", period_end)
    if start > end:
        raise ValidationError("period_start must be on or before period_end")
    return start, end


def summary(
    *,
    shop_id: int,
    period_start,
    period_end,
    budget_category_id: int | None = None,
) -> dict:
    start, end = _parse_period(period_start, period_end)
    allocations = _allocations_in_range(shop_id, start, end, budget_category_id)

    total_allocated = sum((to_decimal(a.allocated_amount) for a in allocations), ZERO)
    total_used = sum((to_decimal(a.used_amount) for a in allocations), ZERO)
    total_remaining = sum((to_decimal(a.remaining_amount) for a in allocations), ZERO)
    over = sum(1 for a in allocations if to_decimal(a.remaining_amount) < ZERO)

    utilization = q_percent(total_used / total_allocated * HUNDRED) if total_allocated > ZERO else q_percent(ZERO)

    return {
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "total_allocated": str(q_money(total_allocated)),
        "total_used": str(q_money(total_used)),
        "total_remaining": str(q_money(total_remaining)),
        "overall_variance": str(q_money(total_allocated - total_used)),
        "utilization_pct": str(utilization),
        "category_count": len({a.budget_category_id for a in allocations}),
        "over_budget_count": over,
        "under_budget_count": len(allocations) - over,
    }


def budget_vs_actual(*, shop_id: int, period_start, period_end) -> list[dict]:
    start, end = _parse_period(period_start, period_end)
    rows = []
    for allocation in _allocations_in_range(shop_id, start, end, None):
        allocated = to_decimal(allocation.allocated_amount)
        actual = to_decimal(allocation.used_amount)
        variance = allocated - actual
        variance_pct = q_percent(variance / allocated * HUNDRED) if allocated > ZERO else q_percent(ZERO)
        rows.append({
            "allocation_id": allocation.id,
            "budget_category_id": allocation.budget_category_id,
            "category_name": allocation.category.name if allocation.category else None,
            "period_start": allocation.period_start.isoformat(),
            "period_end": allocation.period_end.isoformat(),
            "allocated": str(q_money(allocated)),
            "actual": str(q_money(actual)),
            "variance": str(q_money(variance)),
            "variance_pct": str(variance_pct),
            "is_over_budget": actual > allocated,
        })
    return rows
