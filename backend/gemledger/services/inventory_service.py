# Overview: Inventory items, their stones and certifications, and the item status lifecycle.

"""
Inventory Service

WHY: Jewelry stock is serialized. Each piece has its own SKU, weight, stones
and certificates, and its status decides whether it can be sold, sent to a
workshop, or returned.

MULTI-TENANT: sku and barcode are unique per shop; supplier references must
belong to the same shop.

DESIGN:
- Status changes go through ALLOWED_TRANSITIONS (staying put is allowed)
- Sales and workshop orders move items with transition_item_status(),
  inside their own transaction
- Bulk status updates are all-or-nothing
"""

import random
import re
import string
import time

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryItem, ItemCertification, ItemStone, SaleItem, Shop, Supplier
from ..validation import ConflictError, ValidationError, enforce_rules_certification
from .concurrency import check_version, lock_for_update, run_with_retry
from .document_service import next_sequence_value
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


ITEM_STATUSES = ("available", "reserved", "sold", "workshop", "transferred", "damaged", "returned")

ALLOWED_TRANSITIONS = {
    "available": {"reserved", "sold", "workshop", "transferred", "damaged"},
    "reserved": {"available", "sold"},
    "sold": {"returned"},
    "workshop": {"available", "damaged"},
    "transferred": {"available"},
    "damaged": {"available", "returned"},
    "returned": {"available", "damaged"},
}

_SKU_ALPHABET = string.ascii_uppercase + string.digits


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def can_transition(current: str, new_status: str) -> bool:
    if current == new_status:
        return True
    return new_status in ALLOWED_TRANSITIONS.get(current, set())


# -- Identifiers --

def _letters_prefix(value: str | None, length: int, fallback: str) -> str:
    letters = re.sub(r"[^A-Z]", "X", (value or "").upper())[:length]
    if not letters.strip("X"):
        return fallback
    return letters.ljust(length, "X")


def generate_sku(shop: Shop, category: str | None = None) -> str:
    """
    SSS-CCC-TTTTTT-RRRR

    SSS: shop name letters, CCC: category letters (ITM when missing),
    TTTTTT: last 6 digits of epoch ms, RRRR: random [A-Z0-9].
    """
    shop_part = _letters_prefix(shop.name, 3, "SHP")
    category_part = _letters_prefix(category, 3, "ITM")
    time_part = str(int(time.time() * 1000))[-6:]
    random_part = "".join(random.choices(_SKU_ALPHABET, k=4))
    return f"{shop_part}-{category_part}-{time_part}-{random_part}"


def generate_barcode(shop: Shop) -> str:
    """SHOPXX-<epoch ms>-<per-shop sequence, 4 digits>"""
    prefix = re.sub(r"[^A-Z0-9]", "", (shop.name or "").upper())[:6].ljust(6, "X")
    seq = next_sequence_value(shop_id=shop.id, sequence_key="BARCODE")
    return f"{prefix}-{int(time.time() * 1000)}-{seq:04d}"


def issue_barcode(*, shop_id: int) -> str:
    """Allocate a barcode for later use on an item and commit its sequence number."""
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise InventoryError("Shop not found")
    barcode = generate_barcode(shop)
    db.session.commit()
    return barcode


def _ensure_unique_codes(shop_id: int, *, sku: str | None, barcode: str | None, exclude_id: int | None = None) -> None:
    if sku:
        query = db.session.query(InventoryItem.id).filter_by(shop_id=shop_id, sku=sku)
        if exclude_id is not None:
            query = query.filter(InventoryItem.id != exclude_id)
        if query.first():
            raise ConflictError(f"SKU '{sku}' already exists")
    if barcode:
        query = db.session.query(InventoryItem.id).filter_by(shop_id=shop_id, barcode=barcode)
        if exclude_id is not None:
            query = query.filter(InventoryItem.id != exclude_id)
        if query.first():
            raise ConflictError(f"Barcode '{barcode}' already exists")


def _resolve_supplier(shop_id: int, supplier_id: int | None) -> None:
    if supplier_id is not None:
        require_in_shop(Supplier, supplier_id, shop_id, label="Supplier")


# -- Items --

def create_item(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> InventoryItem:
    """
    Create an inventory item.

    The SKU is generated when missing. Status always starts as available.

    Raises:
        ConflictError: SKU or barcode already used in this shop
        TenantAccessError: supplier_id not in this shop
    """
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise InventoryError("Shop not found")
    patch = dict(patch)
    patch.pop("status", None)

    _resolve_supplier(shop_id, patch.get("supplier_id"))

    if not patch.get("sku"):
        patch["sku"] = generate_sku(shop, patch.get("category"))
    if not patch.get("currency"):
        patch["currency"] = shop.currency

    _ensure_unique_codes(shop_id, sku=patch["sku"], barcode=patch.get("barcode"))

    item = InventoryItem(shop_id=shop_id, status="available", created_by_user_id=actor_user_id, **patch)
    db.session.add(item)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists")

    append_activity_event(
        shop_id=shop_id,
        event_type="inventory.item_created",
        entity_type="inventory_item",
        entity_id=item.id,
        actor_user_id=actor_user_id,
        note=f"Item {item.sku} created",
    )
    db.session.commit()
    return item


def get_item(*, shop_id: int, item_id: int) -> InventoryItem:
    return require_in_shop(InventoryItem, item_id, shop_id, label="Item")


def update_item(
    *,
    shop_id: int,
    item_id: int,
    patch: dict,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> InventoryItem:
    """Update item fields. Status is not editable here (use change_status)."""
    if "status" in patch:
        raise ValidationError("status cannot be changed here; use the status endpoint")

    item = get_item(shop_id=shop_id, item_id=item_id)
    check_version(item, expected_version)

    if "sku" in patch and not patch["sku"]:
        raise ValidationError("sku cannot be blank")
    _ensure_unique_codes(shop_id, sku=patch.get("sku"), barcode=patch.get("barcode"), exclude_id=item.id)
    if "supplier_id" in patch:
        _resolve_supplier(shop_id, patch["supplier_id"])

    for key, value in patch.items():
        setattr(item, key, value)

    append_activity_event(
        shop_id=shop_id,
        event_type="inventory.item_updated",
        entity_type="inventory_item",
        entity_id=item.id,
        actor_user_id=actor_user_id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return item


def transition_item_status(
    item: InventoryItem,
    new_status: str,
    *,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> InventoryItem:
    """
    Move a (locked) item to new_status without committing.

    Raises InventoryError for transitions outside ALLOWED_TRANSITIONS.
    """
    if new_status not in ITEM_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ITEM_STATUSES)}")

    old_status = item.status
    if not can_transition(old_status, new_status):
        raise InventoryError(
            f"Cannot change status from {old_status} to {new_status}",
            details={"item_id": item.id, "from": old_status, "to": new_status},
        )
    if old_status == new_status:
        return item

    item.status = new_status
    append_activity_event(
        shop_id=item.shop_id,
        event_type="inventory.status_changed",
        entity_type="inventory_item",
        entity_id=item.id,
        actor_user_id=actor_user_id,
        note=reason,
        payload={"from": old_status, "to": new_status},
    )
    return item


def change_status(
    *,
    shop_id: int,
    item_id: int,
    new_status: str,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> InventoryItem:
    get_item(shop_id=shop_id, item_id=item_id)

    def _op():
        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=item_id, shop_id=shop_id)
        ).first()
        transition_item_status(item, new_status, reason=reason, actor_user_id=actor_user_id)
        db.session.commit()
        return item

    return run_with_retry(_op)


def bulk_update_status(
    *,
    shop_id: int,
    item_ids: list[int],
    new_status: str,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> list[InventoryItem]:
    """
    Change the status of several items at once.

    All-or-nothing: if any item is missing or can't make the transition,
    nothing changes and InventoryError lists every failing item.
    """
    if not item_ids:
        raise ValidationError("item_ids must be a non-empty list")
    if new_status not in ITEM_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ITEM_STATUSES)}")

    unique_ids = list(dict.fromkeys(item_ids))

    def _op():
        items = lock_for_update(
            db.session.query(InventoryItem).filter(
                InventoryItem.shop_id == shop_id,
                InventoryItem.id.in_(unique_ids),
            )
        ).all()
        by_id = {item.id: item for item in items}

        failures = []
        for item_id in unique_ids:
            item = by_id.get(item_id)
            if item is None:
                failures.append({"item_id": item_id, "error": "Item not found"})
            elif not can_transition(item.status, new_status):
                failures.append({
                    "item_id": item_id,
                    "error": f"Cannot change status from {item.status} to {new_status}",
                })

        if failures:
            db.session.rollback()
            raise InventoryError("Bulk status update failed", details={"failures": failures})

        for item_id in unique_ids:
            transition_item_status(by_id[item_id], new_status, reason=reason, actor_user_id=actor_user_id)

        db.session.commit()
        return [by_id[item_id] for item_id in unique_ids]

    return run_with_retry(_op)


def list_items(
    *,
    shop_id: int,
    status: str | None = None,
    item_type: str | None = None,
    category: str | None = None,
    supplier_id: int | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryItem], int]:
    query = db.session.query(InventoryItem).filter(InventoryItem.shop_id == shop_id)

    if status:
        query = query.filter(InventoryItem.status == status)
    if item_type:
        query = query.filter(InventoryItem.item_type == item_type)
    if category:
        query = query.filter(InventoryItem.category == category)
    if supplier_id is not None:
        query = query.filter(InventoryItem.supplier_id == supplier_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                InventoryItem.item_name.ilike(term),
                InventoryItem.sku.ilike(term),
                InventoryItem.barcode.ilike(term),
                InventoryItem.description.ilike(term),
            )
        )

    total = query.count()
    items = query.order_by(InventoryItem.id.desc()).offset(offset).limit(limit).all()
    return items, total


def delete_item(*, shop_id: int, item_id: int, actor_user_id: int | None = None) -> None:
    """Delete an item that is available and was never put on a sale."""
    item = get_item(shop_id=shop_id, item_id=item_id)

    if item.status != "available":
        raise InventoryError(f"Only available items can be deleted (current status: {item.status})")

    on_sale = db.session.query(SaleItem.id).filter_by(inventory_item_id=item.id).first()
    if on_sale:
        raise InventoryError("Item is referenced by a sale and cannot be deleted")

    append_activity_event(
        shop_id=shop_id,
        event_type="inventory.item_deleted",
        entity_type="inventory_item",
        entity_id=item.id,
        actor_user_id=actor_user_id,
        note=f"Item {item.sku} deleted",
    )
    db.session.delete(item)
    db.session.commit()


# -- Stones --

def add_stone(*, shop_id: int, item_id: int, patch: dict) -> ItemStone:
    item = get_item(shop_id=shop_id, item_id=item_id)
    stone = ItemStone(shop_id=shop_id, item_id=item.id, **patch)
    if stone.stone_count is None:
        stone.stone_count = 1
    db.session.add(stone)
    db.session.commit()
    return stone


def _get_stone(shop_id: int, item_id: int, stone_id: int) -> ItemStone:
    stone = require_in_shop(ItemStone, stone_id, shop_id, label="Stone")
    if stone.item_id != item_id:
        raise InventoryError("Stone does not belong to this item")
    return stone


def update_stone(*, shop_id: int, item_id: int, stone_id: int, patch: dict) -> ItemStone:
    stone = _get_stone(shop_id, item_id, stone_id)
    for key, value in patch.items():
        setattr(stone, key, value)
    db.session.commit()
    return stone


def remove_stone(*, shop_id: int, item_id: int, stone_id: int) -> None:
    stone = _get_stone(shop_id, item_id, stone_id)
    db.session.delete(stone)
    db.session.commit()


# -- Certifications --

def add_certification(*, shop_id: int, item_id: int, patch: dict) -> ItemCertification:
    item = get_item(shop_id=shop_id, item_id=item_id)
    enforce_rules_certification(patch)
    cert = ItemCertification(shop_id=shop_id, item_id=item.id, **patch)
    db.session.add(cert)
    db.session.commit()
    return cert


def _get_certification(shop_id: int, item_id: int, cert_id: int) -> ItemCertification:
    cert = require_in_shop(ItemCertification, cert_id, shop_id, label="Certification")
    if cert.item_id != item_id:
        raise InventoryError("Certification does not belong to this item")
    return cert


def update_certification(*, shop_id: int, item_id: int, cert_id: int, patch: dict) -> ItemCertification:
    cert = _get_certification(shop_id, item_id, cert_id)
    enforce_rules_certification(patch, existing=cert)
    for key, value in patch.items():
        setattr(cert, key, value)
    db.session.commit()
    return cert


def remove_certification(*, shop_id: int, item_id: int, cert_id: int) -> None:
    cert = _get_certification(shop_id, item_id, cert_id)
    db.session.delete(cert)
    db.session.commit()
