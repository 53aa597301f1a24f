from __future__ import annotations

from ..extensions import db
from ..money import money_str, percent_str
from ..time_utils import to_iso_date, to_utc_z


class Sale(db.Model):
    """
    POS sale document.

    LIFECYCLE:
    1. pending: items can be added/removed, discount applied, payments taken
    2. completed: items sold, customer account charged
    3. returned: voided while pending (items released) or fully returned
    4. partial_return: some items returned after completion

    Totals are stored (not derived on read) and recomputed by
    sales_service whenever a line or the discount changes.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sale_number", name="uq_sales_shop_number"),
        db.Index("ix_sales_shop_status_date", "shop_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    sale_number = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    sale_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, completed, returned, partial_return
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")  # unpaid, partial, paid

    subtotal = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)  # percentage, fixed
    discount_value = db.Column(db.Numeric(15, 4), nullable=True)
    discount_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "sale_date": to_iso_date(self.sale_date),
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal": money_str(self.subtotal),
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "discount_amount": money_str(self.discount_amount),
            "tax_rate": percent_str(self.tax_rate),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "paid_amount": money_str(self.paid_amount),
            "currency": self.currency,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [i.to_dict() for i in self.items]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SaleItem(db.Model):
    """Line item: one inventory piece on a sale."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "inventory_item_id", name="uq_sale_items_sale_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    unit_price = db.Column(db.Numeric(15, 4), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(15, 4), nullable=True)
    discount_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    total_price = db.Column(db.Numeric(15, 4), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "inventory_item_id": self.inventory_item_id,
            "unit_price": money_str(self.unit_price),
            "quantity": self.quantity,
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "discount_amount": money_str(self.discount_amount),
            "total_price": money_str(self.total_price),
        }


class SalePayment(db.Model):
    """
    Payment tender recorded against a sale.

    Cheques carry their own clearing status; a refund row reduces the
    sale's paid amount.
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    payment_type = db.Column(db.String(16), nullable=False)  # cash, card, bank_transfer, cheque, mixed, refund
    amount = db.Column(db.Numeric(15, 4), nullable=False)

    cheque_number = db.Column(db.String(64), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)
    cheque_bank = db.Column(db.String(100), nullable=True)
    cheque_status = db.Column(db.String(16), nullable=True)  # pending, cleared, bounced

    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="SalePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "payment_type": self.payment_type,
            "amount": money_str(self.amount),
            "cheque_number": self.cheque_number,
            "cheque_date": to_iso_date(self.cheque_date),
            "cheque_bank": self.cheque_bank,
            "cheque_status": self.cheque_status,
            "reference": self.reference,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class CheckoutSession(db.Model):
    """
    Server-held state of a POS checkout flow.

    step is one of review, customer, payment, processing, complete, error.
    The sale it drives is created when the checkout starts.
    """
    __tablename__ = "checkout_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    step = db.Column(db.String(16), nullable=False, default="review")
    error_message = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "step": self.step,
            "error_message": self.error_message,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
