from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Supplier(db.Model):
    """
    Metal, stone and findings supplier.

    current_balance > 0 means the shop owes the supplier. Purchases debit,
    payments credit; every movement is mirrored in SupplierTransaction.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "company_name", name="uq_suppliers_shop_company"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    company_name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    current_balance = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, inactive

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "company_name": self.company_name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "payment_terms": self.payment_terms,
            "notes": self.notes,
            "current_balance": money_str(self.current_balance),
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SupplierTransaction(db.Model):
    """Supplier account ledger row (append-only)."""
    __tablename__ = "supplier_transactions"
    __table_args__ = (
        db.Index("ix_supplier_transactions_supplier", "supplier_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)

    transaction_type = db.Column(db.String(32), nullable=False)  # purchase, payment, adjustment, refund, opening_balance
    debit = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    credit = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    balance_after = db.Column(db.Numeric(15, 4), nullable=False)

    payment_type = db.Column(db.String(16), nullable=True)
    cheque_number = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(100), nullable=True)
    description = db.Column(db.String(500), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "transaction_type": self.transaction_type,
            "debit": money_str(self.debit),
            "credit": money_str(self.credit),
            "balance_after": money_str(self.balance_after),
            "payment_type": self.payment_type,
            "cheque_number": self.cheque_number,
            "reference": self.reference,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
