from __future__ import annotations

from ..extensions import db
from ..money import percent_str
from ..time_utils import to_utc_z


class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    All users, stock, sales, ledgers and settings belong to exactly one shop.
    No data may cross shop boundaries.

    DESIGN:
    - Shops are the tenant boundary
    - Every business table carries shop_id (FK) and is queried through it
    - Shop-level settings (currency, timezone, language, invoice prefix,
      tax rate) live on the row itself; there is no separate settings table
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    currency = db.Column(db.String(3), nullable=False, default="USD")
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    language = db.Column(db.String(8), nullable=False, default="en")
    invoice_prefix = db.Column(db.String(10), nullable=False, default="INV-")
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # Percent, e.g. 5.00

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "currency": self.currency,
            "timezone": self.timezone,
            "language": self.language,
            "invoice_prefix": self.invoice_prefix,
            "tax_rate": percent_str(self.tax_rate),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
