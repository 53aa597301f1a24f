from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class Workshop(db.Model):
    """
    Bench or external workshop doing repairs and custom work.

    current_balance > 0 means the shop owes the workshop.
    """
    __tablename__ = "workshops"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "workshop_name", name="uq_workshops_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    workshop_name = db.Column(db.String(255), nullable=False)
    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    specialization = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")  # active, inactive
    current_balance = db.Column(db.Numeric(15, 4), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "workshop_name": self.workshop_name,
            "is_internal": self.is_internal,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "specialization": self.specialization,
            "notes": self.notes,
            "status": self.status,
            "current_balance": money_str(self.current_balance),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class WorkshopOrder(db.Model):
    """
    Job sent to a workshop.

    LIFECYCLE: pending -> in_progress -> completed, with cancelled reachable
    from pending/in_progress and reopenable back to pending. completed is
    terminal.
    """
    __tablename__ = "workshop_orders"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "order_number", name="uq_workshop_orders_shop_number"),
        db.Index("ix_workshop_orders_workshop_status", "workshop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)
    workshop_id = db.Column(db.Integer, db.ForeignKey("workshops.id"), nullable=False)

    order_type = db.Column(db.String(16), nullable=False)  # repair, custom, resize, polish, engrave, other
    item_source = db.Column(db.String(16), nullable=False, default="customer")  # customer, inventory, supplied
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    received_date = db.Column(db.Date, nullable=True)
    promised_date = db.Column(db.Date, nullable=True)
    completed_date = db.Column(db.Date, nullable=True)

    estimated_cost = db.Column(db.Numeric(15, 4), nullable=True)
    actual_cost = db.Column(db.Numeric(15, 4), nullable=True)
    labor_cost = db.Column(db.Numeric(15, 4), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    paid_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    workshop = db.relationship("Workshop", backref=db.backref("orders", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "order_number": self.order_number,
            "workshop_id": self.workshop_id,
            "order_type": self.order_type,
            "item_source": self.item_source,
            "inventory_item_id": self.inventory_item_id,
            "customer_id": self.customer_id,
            "description": self.description,
            "status": self.status,
            "received_date": to_iso_date(self.received_date),
            "promised_date": to_iso_date(self.promised_date),
            "completed_date": to_iso_date(self.completed_date),
            "estimated_cost": money_str(self.estimated_cost),
            "actual_cost": money_str(self.actual_cost),
            "labor_cost": money_str(self.labor_cost),
            "payment_status": self.payment_status,
            "paid_amount": money_str(self.paid_amount),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class WorkshopTransaction(db.Model):
    """Workshop account ledger row (append-only)."""
    __tablename__ = "workshop_transactions"
    __table_args__ = (
        db.Index("ix_workshop_transactions_workshop", "workshop_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    workshop_id = db.Column(db.Integer, db.ForeignKey("workshops.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("workshop_orders.id"), nullable=True)

    transaction_type = db.Column(db.String(32), nullable=False)
    debit = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    credit = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    balance_after = db.Column(db.Numeric(15, 4), nullable=False)

    payment_type = db.Column(db.String(16), nullable=True)
    description = db.Column(db.String(500), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workshop_id": self.workshop_id,
            "order_id": self.order_id,
            "transaction_type": self.transaction_type,
            "debit": money_str(self.debit),
            "credit": money_str(self.credit),
            "balance_after": money_str(self.balance_after),
            "payment_type": self.payment_type,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
