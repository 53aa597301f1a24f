from __future__ import annotations

from ..extensions import db
from ..money import money_str, weight_str
from ..time_utils import to_iso_date, to_utc_z


class InventoryItem(db.Model):
    """
    A single serialized piece of stock (ring, chain, loose stone lot, ...).

    WHY: Jewelry stock is tracked per piece, not per quantity. Each item has
    its own weight, stones, certificates and price, and moves through a
    status lifecycle (available -> reserved -> sold, workshop, ...).

    DESIGN:
    - sku and barcode are unique within a shop
    - status only changes through inventory_service.change_status or the
      sale/workshop services, which enforce the transition table
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sku", name="uq_inventory_items_shop_sku"),
        db.UniqueConstraint("shop_id", "barcode", name="uq_inventory_items_shop_barcode"),
        db.Index("ix_inventory_items_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)

    item_type = db.Column(db.String(16), nullable=False, default="finished")  # raw_material, component, finished
    ownership_type = db.Column(db.String(16), nullable=False, default="owned")  # owned, consignment, memo
    source_type = db.Column(db.String(16), nullable=False, default="purchase")  # purchase, recycled
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    metal_type = db.Column(db.String(50), nullable=True)
    purity = db.Column(db.String(20), nullable=True)  # e.g. 18K, 925
    gold_color = db.Column(db.String(8), nullable=True)  # yellow, white, rose
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)
    size = db.Column(db.String(20), nullable=True)

    purchase_price = db.Column(db.Numeric(15, 4), nullable=True)
    sale_price = db.Column(db.Numeric(15, 4), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    sku = db.Column(db.String(100), nullable=False)
    barcode = db.Column(db.String(100), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="available")

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("items", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "item_name": self.item_name,
            "description": self.description,
            "category": self.category,
            "item_type": self.item_type,
            "ownership_type": self.ownership_type,
            "source_type": self.source_type,
            "supplier_id": self.supplier_id,
            "metal_type": self.metal_type,
            "purity": self.purity,
            "gold_color": self.gold_color,
            "weight_grams": weight_str(self.weight_grams),
            "size": self.size,
            "purchase_price": money_str(self.purchase_price),
            "sale_price": money_str(self.sale_price),
            "currency": self.currency,
            "sku": self.sku,
            "barcode": self.barcode,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_details:
            data["stones"] = [s.to_dict() for s in self.stones]
            data["certifications"] = [c.to_dict() for c in self.certifications]
        return data


class ItemStone(db.Model):
    """Stone set in an inventory item."""
    __tablename__ = "item_stones"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    stone_type = db.Column(db.String(50), nullable=False)
    weight_carats = db.Column(db.Numeric(10, 3), nullable=False)
    stone_count = db.Column(db.Integer, nullable=False, default=1)
    position = db.Column(db.String(50), nullable=True)
    clarity = db.Column(db.String(20), nullable=True)
    color = db.Column(db.String(20), nullable=True)
    cut = db.Column(db.String(50), nullable=True)
    estimated_value = db.Column(db.Numeric(15, 4), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship(
        "InventoryItem",
        backref=db.backref("stones", lazy=True, cascade="all, delete-orphan", order_by="ItemStone.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "stone_type": self.stone_type,
            "weight_carats": weight_str(self.weight_carats),
            "stone_count": self.stone_count,
            "position": self.position,
            "clarity": self.clarity,
            "color": self.color,
            "cut": self.cut,
            "estimated_value": money_str(self.estimated_value),
            "notes": self.notes,
        }


class ItemCertification(db.Model):
    """Grading report or appraisal attached to an inventory item."""
    __tablename__ = "item_certifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    certification_type = db.Column(db.String(16), nullable=False)  # diamond, gemstone, metal, appraisal
    certificate_number = db.Column(db.String(100), nullable=False)
    issuing_authority = db.Column(db.String(255), nullable=False)
    issue_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    appraised_value = db.Column(db.Numeric(15, 4), nullable=True)
    currency = db.Column(db.String(3), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship(
        "InventoryItem",
        backref=db.backref("certifications", lazy=True, cascade="all, delete-orphan", order_by="ItemCertification.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "certification_type": self.certification_type,
            "certificate_number": self.certificate_number,
            "issuing_authority": self.issuing_authority,
            "issue_date": to_iso_date(self.issue_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "appraised_value": money_str(self.appraised_value),
            "currency": self.currency,
            "notes": self.notes,
        }
