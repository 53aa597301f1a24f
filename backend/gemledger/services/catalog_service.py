# Overview: Shop catalog of metals, purities, stones, size charts and daily metal prices.

"""
Catalog Service

WHY: Staff pick metals, purities, stones and sizes from lists the shop
maintains instead of typing them, and price gold-weighted pieces from the
day's metal price.

MULTI-TENANT: every catalog row belongs to one shop; names are unique per
shop (purities per metal type, sizes per product category), compared
case-insensitively.

IN USE: inventory items store catalog names as text. Metal types, purities
and stone types cannot be deleted while an item (or a price row, or a
purity under the metal) still refers to them.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    InventoryItem,
    ItemStone,
    MetalPrice,
    MetalPurity,
    MetalType,
    ProductSize,
    Shop,
    StoneType,
)
from ..validation import ConflictError, enforce_rules_range, parse_optional_date
from .ledger_service import append_activity_event
from .tenant_service import require_in_shop


class CatalogError(Exception):
    """Raised for catalog operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _ensure_unique(query, column, value: str, label: str) -> None:
    if query.filter(db.func.lower(column) == value.lower()).first():
        raise ConflictError(f"{label} '{value}' already exists")


def _add_and_commit(entity, label: str, name: str):
    db.session.add(entity)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{label} '{name}' already exists")
    return entity


def _apply(entity, patch: dict, label: str, name: str | None):
    for key, value in patch.items():
        setattr(entity, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{label} '{name}' already exists")
    return entity


def _in_use(count: int, what: str, action: str) -> None:
    if count:
        raise CatalogError(
            f"Cannot {action}: {count} {what} still use it",
            details={"in_use": count},
        )


# -- Metal types --

def list_metal_types(*, shop_id: int) -> list[MetalType]:
    return (
        db.session.query(MetalType)
        .filter(MetalType.shop_id == shop_id)
        .order_by(MetalType.sort_order.asc(), MetalType.name.asc())
        .all()
    )


def get_metal_type(*, shop_id: int, metal_type_id: int) -> MetalType:
    return require_in_shop(MetalType, metal_type_id, shop_id, label="Metal type")


def create_metal_type(*, shop_id: int, patch: dict) -> MetalType:
    _ensure_unique(
        db.session.query(MetalType).filter(MetalType.shop_id == shop_id),
        MetalType.name, patch["name"], "Metal type",
    )
    return _add_and_commit(MetalType(shop_id=shop_id, **patch), "Metal type", patch["name"])


def update_metal_type(*, shop_id: int, metal_type_id: int, patch: dict) -> MetalType:
    metal = get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)
    if "name" in patch and patch["name"].lower() != metal.name.lower():
        _ensure_unique(
            db.session.query(MetalType).filter(MetalType.shop_id == shop_id, MetalType.id != metal.id),
            MetalType.name, patch["name"], "Metal type",
        )
        _in_use(_items_with_metal(shop_id, metal.name), "inventory items", "rename metal type")
    return _apply(metal, patch, "Metal type", patch.get("name"))


def _items_with_metal(shop_id: int, name: str) -> int:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.shop_id == shop_id, db.func.lower(InventoryItem.metal_type) == name.lower())
        .count()
    )


def delete_metal_type(*, shop_id: int, metal_type_id: int) -> None:
    metal = get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)

    _in_use(_items_with_metal(shop_id, metal.name), "inventory items", "delete metal type")
    purities = db.session.query(MetalPurity).filter_by(shop_id=shop_id, metal_type_id=metal.id).count()
    _in_use(purities, "purity levels", "delete metal type")
    prices = db.session.query(MetalPrice).filter_by(shop_id=shop_id, metal_type_id=metal.id).count()
    _in_use(prices, "price records", "delete metal type")

    db.session.delete(metal)
    db.session.commit()


# -- Metal purities --

def list_purities(*, shop_id: int, metal_type_id: int | None = None) -> list[MetalPurity]:
    query = db.session.query(MetalPurity).filter(MetalPurity.shop_id == shop_id)
    if metal_type_id is not None:
        get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)
        query = query.filter(MetalPurity.metal_type_id == metal_type_id)
    return query.order_by(MetalPurity.sort_order.asc(), MetalPurity.fineness.desc()).all()


def get_purity(*, shop_id: int, purity_id: int) -> MetalPurity:
    return require_in_shop(MetalPurity, purity_id, shop_id, label="Metal purity")


def _purity_scope(shop_id: int, metal_type_id: int):
    return db.session.query(MetalPurity).filter(
        MetalPurity.shop_id == shop_id,
        MetalPurity.metal_type_id == metal_type_id,
    )


def create_purity(*, shop_id: int, patch: dict) -> MetalPurity:
    get_metal_type(shop_id=shop_id, metal_type_id=patch["metal_type_id"])
    _ensure_unique(_purity_scope(shop_id, patch["metal_type_id"]), MetalPurity.name, patch["name"], "Metal purity")
    return _add_and_commit(MetalPurity(shop_id=shop_id, **patch), "Metal purity", patch["name"])


def update_purity(*, shop_id: int, purity_id: int, patch: dict) -> MetalPurity:
    purity = get_purity(shop_id=shop_id, purity_id=purity_id)
    metal_type_id = patch.get("metal_type_id", purity.metal_type_id)
    if "metal_type_id" in patch:
        get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)
    name = patch.get("name", purity.name)
    if name.lower() != purity.name.lower() or metal_type_id != purity.metal_type_id:
        _ensure_unique(
            _purity_scope(shop_id, metal_type_id).filter(MetalPurity.id != purity.id),
            MetalPurity.name, name, "Metal purity",
        )
        _in_use(_items_with_purity(purity), "inventory items", "rename metal purity")
    return _apply(purity, patch, "Metal purity", name)


def _items_with_purity(purity: MetalPurity) -> int:
    return (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.shop_id == purity.shop_id,
            db.func.lower(InventoryItem.metal_type) == purity.metal_type.name.lower(),
            db.func.lower(InventoryItem.purity) == purity.name.lower(),
        )
        .count()
    )


def delete_purity(*, shop_id: int, purity_id: int) -> None:
    purity = get_purity(shop_id=shop_id, purity_id=purity_id)

    _in_use(_items_with_purity(purity), "inventory items", "delete metal purity")
    prices = db.session.query(MetalPrice).filter_by(shop_id=shop_id, metal_purity_id=purity.id).count()
    _in_use(prices, "price records", "delete metal purity")

    db.session.delete(purity)
    db.session.commit()


# -- Stone types --

def list_stone_types(*, shop_id: int, category: str | None = None) -> list[StoneType]:
    query = db.session.query(StoneType).filter(StoneType.shop_id == shop_id)
    if category:
        query = query.filter(db.func.lower(StoneType.category) == category.strip().lower())
    return query.order_by(StoneType.sort_order.asc(), StoneType.name.asc()).all()


def get_stone_type(*, shop_id: int, stone_type_id: int) -> StoneType:
    return require_in_shop(StoneType, stone_type_id, shop_id, label="Stone type")


def create_stone_type(*, shop_id: int, patch: dict) -> StoneType:
    _ensure_unique(
        db.session.query(StoneType).filter(StoneType.shop_id == shop_id),
        StoneType.name, patch["name"], "Stone type",
    )
    return _add_and_commit(StoneType(shop_id=shop_id, **patch), "Stone type", patch["name"])


def update_stone_type(*, shop_id: int, stone_type_id: int, patch: dict) -> StoneType:
    stone = get_stone_type(shop_id=shop_id, stone_type_id=stone_type_id)
    if "name" in patch and patch["name"].lower() != stone.name.lower():
        _ensure_unique(
            db.session.query(StoneType).filter(StoneType.shop_id == shop_id, StoneType.id != stone.id),
            StoneType.name, patch["name"], "Stone type",
        )
        _in_use(_stones_of_type(shop_id, stone.name), "set stones", "rename stone type")
    return _apply(stone, patch, "Stone type", patch.get("name"))


def _stones_of_type(shop_id: int, name: str) -> int:
    return (
        db.session.query(ItemStone)
        .filter(ItemStone.shop_id == shop_id, db.func.lower(ItemStone.stone_type) == name.lower())
        .count()
    )


def delete_stone_type(*, shop_id: int, stone_type_id: int) -> None:
    stone = get_stone_type(shop_id=shop_id, stone_type_id=stone_type_id)
    _in_use(_stones_of_type(shop_id, stone.name), "set stones", "delete stone type")
    db.session.delete(stone)
    db.session.commit()


# -- Product sizes --

def list_sizes(*, shop_id: int, category: str | None = None) -> list[ProductSize]:
    query = db.session.query(ProductSize).filter(ProductSize.shop_id == shop_id)
    if category:
        query = query.filter(db.func.lower(ProductSize.category) == category.strip().lower())
    return query.order_by(ProductSize.category.asc(), ProductSize.sort_order.asc(), ProductSize.id.asc()).all()


def create_size(*, shop_id: int, patch: dict) -> ProductSize:
    scope = db.session.query(ProductSize).filter(
        ProductSize.shop_id == shop_id,
        db.func.lower(ProductSize.category) == patch["category"].lower(),
    )
    _ensure_unique(scope, ProductSize.size_name, patch["size_name"], f"Size for {patch['category']}")
    return _add_and_commit(ProductSize(shop_id=shop_id, **patch), "Size", patch["size_name"])


def delete_size(*, shop_id: int, size_id: int) -> None:
    size = require_in_shop(ProductSize, size_id, shop_id, label="Product size")
    db.session.delete(size)
    db.session.commit()


# -- Metal prices --

def _price_scope(shop_id: int, metal_type_id: int, metal_purity_id: int | None):
    query = db.session.query(MetalPrice).filter(
        MetalPrice.shop_id == shop_id,
        MetalPrice.metal_type_id == metal_type_id,
    )
    if metal_purity_id is None:
        return query.filter(MetalPrice.metal_purity_id.is_(None))
    return query.filter(MetalPrice.metal_purity_id == metal_purity_id)


def _check_purity_of(shop_id: int, metal_type_id: int, metal_purity_id: int | None) -> None:
    if metal_purity_id is None:
        return
    purity = get_purity(shop_id=shop_id, purity_id=metal_purity_id)
    if purity.metal_type_id != metal_type_id:
        raise CatalogError(
            "Metal purity does not belong to the metal type",
            details={"metal_type_id": metal_type_id, "metal_purity_id": metal_purity_id},
        )


def record_metal_price(*, shop_id: int, patch: dict, actor_user_id: int | None = None) -> MetalPrice:
    """
    Record the price per gram for a metal (and optionally a purity) on a date.

    Raises:
        ConflictError: a price already exists for that metal, purity and date
        CatalogError: the purity belongs to another metal type
    """
    metal_type_id = patch["metal_type_id"]
    metal_purity_id = patch.get("metal_purity_id")
    get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)
    _check_purity_of(shop_id, metal_type_id, metal_purity_id)

    if _price_scope(shop_id, metal_type_id, metal_purity_id).filter(
        MetalPrice.price_date == patch["price_date"]
    ).first():
        raise ConflictError("A price already exists for this metal and purity on this date")

    if not patch.get("currency"):
        patch = {**patch, "currency": db.session.get(Shop, shop_id).currency}

    price = MetalPrice(shop_id=shop_id, created_by_user_id=actor_user_id, **patch)
    db.session.add(price)
    db.session.flush()

    append_activity_event(
        shop_id=shop_id,
        event_type="metal_price.recorded",
        entity_type="metal_price",
        entity_id=price.id,
        actor_user_id=actor_user_id,
        payload={"metal_type_id": metal_type_id, "price_per_gram": price.price_per_gram},
    )
    db.session.commit()
    return price


def latest_metal_price(
    *,
    shop_id: int,
    metal_type_id: int,
    metal_purity_id: int | None = None,
    as_of: date | None = None,
) -> MetalPrice:
    """Most recent price on or before as_of (default: any date)."""
    get_metal_type(shop_id=shop_id, metal_type_id=metal_type_id)
    _check_purity_of(shop_id, metal_type_id, metal_purity_id)

    query = _price_scope(shop_id, metal_type_id, metal_purity_id)
    if as_of is not None:
        query = query.filter(MetalPrice.price_date <= as_of)
    price = query.order_by(MetalPrice.price_date.desc(), MetalPrice.id.desc()).first()
    if price is None:
        raise CatalogError("No price found for this metal", details={"metal_type_id": metal_type_id})
    return price


def list_metal_prices(
    *,
    shop_id: int,
    metal_type_id: int | None = None,
    start_date=None,
    end_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[MetalPrice], int]:
    start = parse_optional_date("start_date", start_date)
    end = parse_optional_date("end_date", end_date)
    enforce_rules_range(start_date=start, end_date=end)

    query = db.session.query(MetalPrice).filter(MetalPrice.shop_id == shop_id)
    if metal_type_id is not None:
        query = query.filter(MetalPrice.metal_type_id == metal_type_id)
    if start:
        query = query.filter(MetalPrice.price_date >= start)
    if end:
        query = query.filter(MetalPrice.price_date <= end)

    total = query.count()
    rows = query.order_by(MetalPrice.price_date.desc(), MetalPrice.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def delete_metal_price(*, shop_id: int, price_id: int, actor_user_id: int | None = None) -> None:
    price = require_in_shop(MetalPrice, price_id, shop_id, label="Metal price")
    append_activity_event(
        shop_id=shop_id,
        event_type="metal_price.deleted",
        entity_type="metal_price",
        entity_id=price.id,
        actor_user_id=actor_user_id,
        note=f"Price for {price.price_date.isoformat()} deleted",
    )
    db.session.delete(price)
    db.session.commit()
