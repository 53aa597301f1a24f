# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory routes: items, status changes, stones and certifications.

MULTI-TENANT: every item, stone and certification is scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_INVENTORY
- Item/stone/certification writes require MANAGE_INVENTORY
- Status changes require CHANGE_ITEM_STATUS
- Deletes require DELETE_INVENTORY
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import InventoryItem, ItemCertification, ItemStone
from ..services import inventory_service, shop_service
from ..services.inventory_service import ITEM_STATUSES
from ..validation import (
    ModelValidationPolicy,
    enum_rule,
    optional_text_rule,
    parse_currency,
    parse_money,
    parse_optional_code,
    parse_optional_date,
    parse_positive_carats,
    parse_quantity,
    parse_weight_grams,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "item_name", "description", "category", "item_type", "ownership_type",
        "source_type", "supplier_id", "metal_type", "purity", "gold_color",
        "weight_grams", "size", "purchase_price", "sale_price", "currency",
        "sku", "barcode",
    },
    required_on_create={"item_name"},
    field_rules={
        "item_name": text_rule(2, 255),
        "description": optional_text_rule(5000),
        "category": optional_text_rule(100),
        "item_type": enum_rule(("raw_material", "component", "finished")),
        "ownership_type": enum_rule(("owned", "consignment", "memo")),
        "source_type": enum_rule(("purchase", "recycled")),
        "metal_type": optional_text_rule(50),
        "purity": optional_text_rule(20),
        "gold_color": enum_rule(("yellow", "white", "rose")),
        "weight_grams": parse_weight_grams,
        "size": optional_text_rule(20),
        "purchase_price": parse_money,
        "sale_price": parse_money,
        "currency": parse_currency,
        "sku": parse_optional_code,
        "barcode": parse_optional_code,
    },
)

STONE_POLICY = ModelValidationPolicy(
    writable_fields={
        "stone_type", "weight_carats", "stone_count", "position",
        "clarity", "color", "cut", "estimated_value", "notes",
    },
    required_on_create={"stone_type", "weight_carats"},
    field_rules={
        "stone_type": text_rule(1, 50),
        "weight_carats": parse_positive_carats,
        "stone_count": parse_quantity,
        "position": optional_text_rule(50),
        "clarity": optional_text_rule(20),
        "color": optional_text_rule(20),
        "cut": optional_text_rule(50),
        "estimated_value": parse_money,
        "notes": optional_text_rule(2000),
    },
)

CERTIFICATION_POLICY = ModelValidationPolicy(
    writable_fields={
        "certification_type", "certificate_number", "issuing_authority",
        "issue_date", "expiry_date", "appraised_value", "currency", "notes",
    },
    required_on_create={"certification_type", "certificate_number", "issuing_authority"},
    field_rules={
        "certification_type": enum_rule(("diamond", "gemstone", "metal", "appraisal")),
        "certificate_number": text_rule(1, 100),
        "issuing_authority": text_rule(1, 255),
        "issue_date": parse_optional_date,
        "expiry_date": parse_optional_date,
        "appraised_value": parse_money,
        "currency": parse_currency,
        "notes": optional_text_rule(2000),
    },
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


# -- Items --

@inventory_bp.get("/items")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    """
    Query params: status, item_type, category, supplier_id, search, limit, offset
    """
    limit, offset = page_args()
    try:
        rows, total = inventory_service.list_items(
            shop_id=g.shop_id,
            status=request.args.get("status"),
            item_type=request.args.get("item_type"),
            category=request.args.get("category"),
            supplier_id=request.args.get("supplier_id", type=int),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list inventory items")
    return jsonify(paged([i.to_dict() for i in rows], total, limit, offset)), 200


@inventory_bp.post("/items")
@require_auth
@require_permission("MANAGE_INVENTORY")
def create_item_route():
    """
    Create an item. sku is generated when omitted; status always starts
    as available.
    """
    try:
        patch = validate_payload(model=InventoryItem, payload=json_body(), policy=ITEM_POLICY, partial=False)
        item = inventory_service.create_item(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create inventory item")
    return jsonify(item.to_dict(include_details=True)), 201


@inventory_bp.get("/items/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(shop_id=g.shop_id, item_id=item_id)
    except Exception as e:
        return error_response(e, "load inventory item")
    return jsonify(item.to_dict(include_details=True)), 200


@inventory_bp.patch("/items/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_item_route(item_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    if "status" in payload:
        return jsonify({"error": "status cannot be changed here; use the status endpoint"}), 400
    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=True)
        item = inventory_service.update_item(
            shop_id=g.shop_id,
            item_id=item_id,
            patch=patch,
            expected_version=expected_version,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update inventory item")
    return jsonify(item.to_dict(include_details=True)), 200


@inventory_bp.delete("/items/<int:item_id>")
@require_auth
@require_permission("DELETE_INVENTORY")
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(shop_id=g.shop_id, item_id=item_id, actor_user_id=g.current_user.id)
    except Exception as e:
        return error_response(e, "delete inventory item")
    return jsonify({"deleted": True, "id": item_id}), 200


@inventory_bp.post("/items/<int:item_id>/status")
@require_auth
@require_permission("CHANGE_ITEM_STATUS")
def change_status_route(item_id: int):
    """Body: {"status", "reason"?}"""
    data = json_body()
    try:
        new_status = enum_rule(ITEM_STATUSES)("status", data.get("status"))
        item = inventory_service.change_status(
            shop_id=g.shop_id,
            item_id=item_id,
            new_status=new_status,
            reason=data.get("reason"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "change item status")
    return jsonify(item.to_dict()), 200


@inventory_bp.post("/items/bulk-status")
@require_auth
@require_permission("CHANGE_ITEM_STATUS")
def bulk_status_route():
    """
    Body: {"item_ids": [int, ...], "status", "reason"?}

    All-or-nothing. On failure, details.failures lists each failing item.
    """
    data = json_body()
    item_ids = data.get("item_ids")
    if not isinstance(item_ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in item_ids):
        return jsonify({"error": "item_ids must be a list of integers"}), 400
    try:
        items = inventory_service.bulk_update_status(
            shop_id=g.shop_id,
            item_ids=item_ids,
            new_status=data.get("status"),
            reason=data.get("reason"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "bulk update item status")
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@inventory_bp.post("/generate-sku")
@require_auth
@require_permission("MANAGE_INVENTORY")
def generate_sku_route():
    """Preview a SKU for a category without creating an item."""
    data = json_body()
    try:
        shop = shop_service.get_shop(g.shop_id)
        sku = inventory_service.generate_sku(shop, data.get("category"))
    except Exception as e:
        return error_response(e, "generate sku")
    return jsonify({"sku": sku}), 200


@inventory_bp.post("/generate-barcode")
@require_auth
@require_permission("MANAGE_INVENTORY")
def generate_barcode_route():
    """Allocate a barcode; the per-shop sequence number is consumed."""
    try:
        barcode = inventory_service.issue_barcode(shop_id=g.shop_id)
    except Exception as e:
        return error_response(e, "generate barcode")
    return jsonify({"barcode": barcode}), 200


# -- Stones --

@inventory_bp.post("/items/<int:item_id>/stones")
@require_auth
@require_permission("MANAGE_INVENTORY")
def add_stone_route(item_id: int):
    try:
        patch = validate_payload(model=ItemStone, payload=json_body(), policy=STONE_POLICY, partial=False)
        stone = inventory_service.add_stone(shop_id=g.shop_id, item_id=item_id, patch=patch)
    except Exception as e:
        return error_response(e, "add stone")
    return jsonify(stone.to_dict()), 201


@inventory_bp.patch("/items/<int:item_id>/stones/<int:stone_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_stone_route(item_id: int, stone_id: int):
    try:
        patch = validate_payload(model=ItemStone, payload=json_body(), policy=STONE_POLICY, partial=True)
        stone = inventory_service.update_stone(shop_id=g.shop_id, item_id=item_id, stone_id=stone_id, patch=patch)
    except Exception as e:
        return error_response(e, "update stone")
    return jsonify(stone.to_dict()), 200


@inventory_bp.delete("/items/<int:item_id>/stones/<int:stone_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def remove_stone_route(item_id: int, stone_id: int):
    try:
        inventory_service.remove_stone(shop_id=g.shop_id, item_id=item_id, stone_id=stone_id)
    except Exception as e:
        return error_response(e, "remove stone")
    return jsonify({"deleted": True, "id": stone_id}), 200


# -- Certifications --

@inventory_bp.post("/items/<int:item_id>/certifications")
@require_auth
@require_permission("MANAGE_INVENTORY")
def add_certification_route(item_id: int):
    try:
        patch = validate_payload(
            model=ItemCertification, payload=json_body(), policy=CERTIFICATION_POLICY, partial=False
        )
        cert = inventory_service.add_certification(shop_id=g.shop_id, item_id=item_id, patch=patch)
    except Exception as e:
        return error_response(e, "add certification")
    return jsonify(cert.to_dict()), 201


@inventory_bp.patch("/items/<int:item_id>/certifications/<int:cert_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_certification_route(item_id: int, cert_id: int):
    try:
        patch = validate_payload(
            model=ItemCertification, payload=json_body(), policy=CERTIFICATION_POLICY, partial=True
        )
        cert = inventory_service.update_certification(
            shop_id=g.shop_id, item_id=item_id, cert_id=cert_id, patch=patch
        )
    except Exception as e:
        return error_response(e, "update certification")
    return jsonify(cert.to_dict()), 200


@inventory_bp.delete("/items/<int:item_id>/certifications/<int:cert_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def remove_certification_route(item_id: int, cert_id: int):
    try:
        inventory_service.remove_certification(shop_id=g.shop_id, item_id=item_id, cert_id=cert_id)
    except Exception as e:
        return error_response(e, "remove certification")
    return jsonify({"deleted": True, "id": cert_id}), 200
