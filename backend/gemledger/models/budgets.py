from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class BudgetCategory(db.Model):
    """
    Budget line (e.g. "Marketing", "Workshop maintenance").

    expense_category_id links the budget line to the expense category whose
    approved expenses consume its allocations.
    """
    __tablename__ = "budget_categories"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_budget_categories_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    budget_type = db.Column(db.String(16), nullable=False, default="operational")
    expense_category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=True, index=True)

    default_amount = db.Column(db.Numeric(15, 4), nullable=True)
    default_frequency = db.Column(db.String(16), nullable=True)  # monthly, quarterly, yearly
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    approval_threshold = db.Column(db.Numeric(15, 4), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "budget_type": self.budget_type,
            "expense_category_id": self.expense_category_id,
            "default_amount": money_str(self.default_amount),
            "default_frequency": self.default_frequency,
            "requires_approval": self.requires_approval,
            "approval_threshold": money_str(self.approval_threshold),
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }


class BudgetAllocation(db.Model):
    """
    Period-scoped spending cap for one budget category.

    INVARIANT: remaining_amount = allocated_amount + rollover_amount - used_amount.
    Non-cancelled allocations of one category never overlap in time.
    """
    __tablename__ = "budget_allocations"
    __table_args__ = (
        db.Index("ix_budget_allocations_category_period", "budget_category_id", "period_start", "period_end"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    budget_category_id = db.Column(db.Integer, db.ForeignKey("budget_categories.id"), nullable=False)

    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    allocated_amount = db.Column(db.Numeric(15, 4), nullable=False)
    rollover_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    used_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    remaining_amount = db.Column(db.Numeric(15, 4), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="active")  # active, closed, cancelled
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("BudgetCategory", backref=db.backref("allocations", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "budget_category_id": self.budget_category_id,
            "period_start": to_iso_date(self.period_start),
            "period_end": to_iso_date(self.period_end),
            "allocated_amount": money_str(self.allocated_amount),
            "rollover_amount": money_str(self.rollover_amount),
            "used_amount": money_str(self.used_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "status": self.status,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class BudgetTransaction(db.Model):
    """Movement on a budget allocation (append-only)."""
    __tablename__ = "budget_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    allocation_id = db.Column(db.Integer, db.ForeignKey("budget_allocations.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False)  # allocation, expense, adjustment, rollover, refund, transfer_in, transfer_out
    amount = db.Column(db.Numeric(15, 4), nullable=False)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True)
    description = db.Column(db.String(500), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    allocation = db.relationship("BudgetAllocation", backref=db.backref("transactions", lazy=True, order_by="BudgetTransaction.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "allocation_id": self.allocation_id,
            "transaction_type": self.transaction_type,
            "amount": money_str(self.amount),
            "expense_id": self.expense_id,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
