from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class PaymentReminder(db.Model):
    """
    Reminder to pay (or chase) a supplier, workshop or customer balance.

    entity_type/entity_id is a polymorphic reference validated by the
    service against the owning shop.
    """
    __tablename__ = "payment_reminders"
    __table_args__ = (
        db.Index("ix_payment_reminders_shop_due", "shop_id", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(16), nullable=False)  # supplier, workshop, customer
    entity_id = db.Column(db.Integer, nullable=False)
    reminder_type = db.Column(db.String(16), nullable=False)  # payment_due, follow_up, overdue, scheduled
    amount = db.Column(db.Numeric(15, 4), nullable=True)
    due_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, completed, snoozed
    reminder_count = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "reminder_type": self.reminder_type,
            "amount": money_str(self.amount),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "reminder_count": self.reminder_count,
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
