from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class ExpenseCategory(db.Model):
    """Shop-defined expense category (rent, utilities, casting, ...)."""
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_expense_categories_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """
    Operating expense.

    Two independent state axes:
    - approval_status: pending -> approved | rejected (terminal)
    - payment_status: unpaid -> partial -> paid, driven by ExpensePayment rows

    Approved expenses are immutable and count against the budget allocation
    covering their date.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "expense_number", name="uq_expenses_shop_number"),
        db.Index("ix_expenses_shop_date", "shop_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    expense_number = db.Column(db.String(32), nullable=False)

    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False, index=True)
    description = db.Column(db.String(1000), nullable=False)
    amount = db.Column(db.Numeric(15, 4), nullable=False)
    expense_date = db.Column(db.Date, nullable=False)

    vendor_name = db.Column(db.String(255), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    paid_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)

    approval_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    recurring_expense_id = db.Column(db.Integer, db.ForeignKey("recurring_expenses.id"), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("ExpenseCategory", backref=db.backref("expenses", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "expense_number": self.expense_number,
            "category_id": self.category_id,
            "description": self.description,
            "amount": money_str(self.amount),
            "expense_date": to_iso_date(self.expense_date),
            "vendor_name": self.vendor_name,
            "supplier_id": self.supplier_id,
            "payment_status": self.payment_status,
            "paid_amount": money_str(self.paid_amount),
            "approval_status": self.approval_status,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "recurring_expense_id": self.recurring_expense_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class ExpensePayment(db.Model):
    __tablename__ = "expense_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(15, 4), nullable=False)
    payment_type = db.Column(db.String(16), nullable=False)  # cash, card, bank_transfer, cheque, other
    payment_date = db.Column(db.Date, nullable=False)
    cheque_number = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    expense = db.relationship("Expense", backref=db.backref("payments", lazy=True, order_by="ExpensePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "amount": money_str(self.amount),
            "payment_type": self.payment_type,
            "payment_date": to_iso_date(self.payment_date),
            "cheque_number": self.cheque_number,
            "reference": self.reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class RecurringExpense(db.Model):
    """
    Template that generates expenses on a schedule.

    next_due_date is the date of the next expense to generate. It advances
    by frequency each time an expense is generated; the template completes
    once next_due_date passes end_date.
    """
    __tablename__ = "recurring_expenses"
    __table_args__ = (
        db.Index("ix_recurring_expenses_shop_due", "shop_id", "status", "next_due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False)

    description = db.Column(db.String(1000), nullable=False)
    amount = db.Column(db.Numeric(15, 4), nullable=False)
    vendor_name = db.Column(db.String(255), nullable=True)

    frequency = db.Column(db.String(16), nullable=False)  # daily, weekly, monthly, yearly
    day_of_month = db.Column(db.Integer, nullable=True)
    day_of_week = db.Column(db.Integer, nullable=True)  # 0 = Monday

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    next_due_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="active")  # active, paused, completed, cancelled
    auto_approve = db.Column(db.Boolean, nullable=False, default=False)
    last_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("ExpenseCategory")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "category_id": self.category_id,
            "description": self.description,
            "amount": money_str(self.amount),
            "vendor_name": self.vendor_name,
            "frequency": self.frequency,
            "day_of_month": self.day_of_month,
            "day_of_week": self.day_of_week,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "next_due_date": to_iso_date(self.next_due_date),
            "status": self.status,
            "auto_approve": self.auto_approve,
            "last_generated_at": to_utc_z(self.last_generated_at),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
