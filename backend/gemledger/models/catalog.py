from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import money_str, percent_str
from ..time_utils import to_iso_date, to_utc_z


class MetalType(db.Model):
    """Shop-defined metal (Gold, Silver, Platinum, ...)."""
    __tablename__ = "metal_types"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_metal_types_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }


class MetalPurity(db.Model):
    """
    Purity grade of a metal type (18K = 75.00% / 750 fineness).

    name is what inventory items carry in their purity column.
    """
    __tablename__ = "metal_purities"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "metal_type_id", "name", name="uq_metal_purities_shop_metal_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    metal_type_id = db.Column(db.Integer, db.ForeignKey("metal_types.id"), nullable=False, index=True)
    name = db.Column(db.String(20), nullable=False)
    purity_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    fineness = db.Column(db.Integer, nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    metal_type = db.relationship("MetalType", backref=db.backref("purities", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "metal_type_id": self.metal_type_id,
            "name": self.name,
            "purity_percentage": percent_str(self.purity_percentage),
            "fineness": self.fineness,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }


class StoneType(db.Model):
    __tablename__ = "stone_types"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_stone_types_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False)
    category = db.Column(db.String(100), nullable=True)  # precious, semi-precious, organic, ...
    mohs_hardness = db.Column(db.Numeric(3, 1), nullable=True)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "category": self.category,
            "mohs_hardness": (
                str(Decimal(self.mohs_hardness).quantize(Decimal("0.1")))
                if self.mohs_hardness is not None else None
            ),
            "description": self.description,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }


class ProductSize(db.Model):
    """Size chart entry for a product category (ring sizes, chain lengths)."""
    __tablename__ = "product_sizes"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "category", "size_name", name="uq_product_sizes_shop_category_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=False)
    size_name = db.Column(db.String(20), nullable=False)
    size_value = db.Column(db.String(50), nullable=True)
    size_system = db.Column(db.String(50), nullable=True)  # US, EU, UK, cm, ...
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "category": self.category,
            "size_name": self.size_name,
            "size_value": self.size_value,
            "size_system": self.size_system,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }


class MetalPrice(db.Model):
    """
    Daily price per gram for a metal type, optionally for one purity.

    Append-only history: at most one row per (metal type, purity, date).
    """
    __tablename__ = "metal_prices"
    __table_args__ = (
        db.Index("ix_metal_prices_lookup", "shop_id", "metal_type_id", "metal_purity_id", "price_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    metal_type_id = db.Column(db.Integer, db.ForeignKey("metal_types.id"), nullable=False)
    metal_purity_id = db.Column(db.Integer, db.ForeignKey("metal_purities.id"), nullable=True)

    price_date = db.Column(db.Date, nullable=False)
    price_per_gram = db.Column(db.Numeric(15, 4), nullable=False)
    buy_price_per_gram = db.Column(db.Numeric(15, 4), nullable=True)
    sell_price_per_gram = db.Column(db.Numeric(15, 4), nullable=True)
    currency = db.Column(db.String(3), nullable=False)
    source = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "metal_type_id": self.metal_type_id,
            "metal_purity_id": self.metal_purity_id,
            "price_date": to_iso_date(self.price_date),
            "price_per_gram": money_str(self.price_per_gram),
            "buy_price_per_gram": money_str(self.buy_price_per_gram),
            "sell_price_per_gram": money_str(self.sell_price_per_gram),
            "currency": self.currency,
            "source": self.source,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
