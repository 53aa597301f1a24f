from __future__ import annotations

from ..extensions import db
from ..money import money_str, weight_str
from ..time_utils import to_iso_date, to_utc_z


class Purchase(db.Model):
    """
    Purchase order from a supplier (PO-YYYYMMDD-NNNN).

    Creating one debits the supplier account by total_amount; each
    PurchasePayment credits it. payment_status follows paid_amount against
    total_amount. Cancelling reverses the debit and freezes the order.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "purchase_number", name="uq_purchases_shop_number"),
        db.Index("ix_purchases_shop_date", "shop_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    purchase_number = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(100), nullable=True)
    purchase_date = db.Column(db.Date, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_weight_grams = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 4), nullable=False)
    paid_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")  # unpaid, partial, paid

    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, cancelled
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "purchase_number": self.purchase_number,
            "supplier_id": self.supplier_id,
            "invoice_number": self.invoice_number,
            "purchase_date": to_iso_date(self.purchase_date),
            "currency": self.currency,
            "total_items": self.total_items,
            "total_weight_grams": weight_str(self.total_weight_grams),
            "total_amount": money_str(self.total_amount),
            "paid_amount": money_str(self.paid_amount),
            "payment_status": self.payment_status,
            "status": self.status,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class PurchasePayment(db.Model):
    """Payment against a purchase; mirrors one supplier ledger credit."""
    __tablename__ = "purchase_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    supplier_transaction_id = db.Column(db.Integer, db.ForeignKey("supplier_transactions.id"), nullable=True)

    amount = db.Column(db.Numeric(15, 4), nullable=False)
    payment_type = db.Column(db.String(16), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    cheque_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", backref=db.backref("payments", lazy=True, order_by="PurchasePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "supplier_transaction_id": self.supplier_transaction_id,
            "amount": money_str(self.amount),
            "payment_type": self.payment_type,
            "payment_date": to_iso_date(self.payment_date),
            "cheque_number": self.cheque_number,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
