# Overview: Flask API routes for the shop catalog (metals, purities, stones, sizes, metal prices).

"""
Catalog routes.

MULTI-TENANT: every catalog list is scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_CATALOG
- Catalog edits and metal price entry require MANAGE_CATALOG
"""

from decimal import Decimal

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import MetalPrice, MetalPurity, MetalType, ProductSize, StoneType
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    decimal_range_rule,
    int_range_rule,
    optional_text_rule,
    parse_currency,
    parse_date,
    parse_money,
    parse_optional_date,
    parse_percentage,
    parse_positive_money,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


parse_sort_order = int_range_rule(0, 10000)

METAL_TYPE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "sort_order"},
    required_on_create={"name"},
    field_rules={
        "name": text_rule(2, 100),
        "description": optional_text_rule(1000),
        "sort_order": parse_sort_order,
    },
)

PURITY_POLICY = ModelValidationPolicy(
    writable_fields={"metal_type_id", "name", "purity_percentage", "fineness", "sort_order"},
    required_on_create={"metal_type_id", "name", "purity_percentage", "fineness"},
    field_rules={
        "name": text_rule(1, 20),
        "purity_percentage": parse_percentage,
        "fineness": int_range_rule(0, 1000),
        "sort_order": parse_sort_order,
    },
)

STONE_TYPE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "mohs_hardness", "description", "sort_order"},
    required_on_create={"name"},
    field_rules={
        "name": text_rule(2, 50),
        "category": optional_text_rule(100),
        "mohs_hardness": decimal_range_rule(Decimal("0"), Decimal("10")),
        "description": optional_text_rule(1000),
        "sort_order": parse_sort_order,
    },
)

SIZE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "size_name", "size_value", "size_system", "sort_order"},
    required_on_create={"category", "size_name"},
    field_rules={
        "category": text_rule(1, 100),
        "size_name": text_rule(1, 20),
        "size_value": optional_text_rule(50),
        "size_system": optional_text_rule(50),
        "sort_order": parse_sort_order,
    },
)

METAL_PRICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "metal_type_id", "metal_purity_id", "price_date", "price_per_gram",
        "buy_price_per_gram", "sell_price_per_gram", "currency", "source", "notes",
    },
    required_on_create={"metal_type_id", "price_date", "price_per_gram"},
    field_rules={
        "price_date": parse_date,
        "price_per_gram": parse_positive_money,
        "buy_price_per_gram": parse_money,
        "sell_price_per_gram": parse_money,
        "currency": parse_currency,
        "source": optional_text_rule(255),
        "notes": optional_text_rule(1000),
    },
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _items(rows) -> dict:
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


# -- Metal types --

@catalog_bp.get("/metals")
@require_auth
@require_permission("VIEW_CATALOG")
def list_metal_types_route():
    return jsonify(_items(catalog_service.list_metal_types(shop_id=g.shop_id))), 200


@catalog_bp.post("/metals")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_metal_type_route():
    try:
        patch = validate_payload(model=MetalType, payload=json_body(), policy=METAL_TYPE_POLICY, partial=False)
        metal = catalog_service.create_metal_type(shop_id=g.shop_id, patch=patch)
    except Exception as e:
        return error_response(e, "create metal type")
    return jsonify(metal.to_dict()), 201


@catalog_bp.patch("/metals/<int:metal_type_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_metal_type_route(metal_type_id: int):
    try:
        patch = validate_payload(model=MetalType, payload=json_body(), policy=METAL_TYPE_POLICY, partial=True)
        metal = catalog_service.update_metal_type(shop_id=g.shop_id, metal_type_id=metal_type_id, patch=patch)
    except Exception as e:
        return error_response(e, "update metal type")
    return jsonify(metal.to_dict()), 200


@catalog_bp.delete("/metals/<int:metal_type_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_metal_type_route(metal_type_id: int):
    try:
        catalog_service.delete_metal_type(shop_id=g.shop_id, metal_type_id=metal_type_id)
    except Exception as e:
        return error_response(e, "delete metal type")
    return jsonify({"deleted": True, "id": metal_type_id}), 200


# -- Purities --

@catalog_bp.get("/purities")
@require_auth
@require_permission("VIEW_CATALOG")
def list_purities_route():
    try:
        rows = catalog_service.list_purities(
            shop_id=g.shop_id,
            metal_type_id=request.args.get("metal_type_id", type=int),
        )
    except Exception as e:
        return error_response(e, "list metal purities")
    return jsonify(_items(rows)), 200


@catalog_bp.post("/purities")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_purity_route():
    try:
        patch = validate_payload(model=MetalPurity, payload=json_body(), policy=PURITY_POLICY, partial=False)
        purity = catalog_service.create_purity(shop_id=g.shop_id, patch=patch)
    except Exception as e:
        return error_response(e, "create metal purity")
    return jsonify(purity.to_dict()), 201


@catalog_bp.patch("/purities/<int:purity_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_purity_route(purity_id: int):
    try:
        patch = validate_payload(model=MetalPurity, payload=json_body(), policy=PURITY_POLICY, partial=True)
        purity = catalog_service.update_purity(shop_id=g.shop_id, purity_id=purity_id, patch=patch)
    except Exception as e:
        return error_response(e, "update metal purity")
    return jsonify(purity.to_dict()), 200


@catalog_bp.delete("/purities/<int:purity_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_purity_route(purity_id: int):
    try:
        catalog_service.delete_purity(shop_id=g.shop_id, purity_id=purity_id)
    except Exception as e:
        return error_response(e, "delete metal purity")
    return jsonify({"deleted": True, "id": purity_id}), 200


# -- Stone types --

@catalog_bp.get("/stones")
@require_auth
@require_permission("VIEW_CATALOG")
def list_stone_types_route():
    rows = catalog_service.list_stone_types(shop_id=g.shop_id, category=request.args.get("category"))
    return jsonify(_items(rows)), 200


@catalog_bp.post("/stones")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_stone_type_route():
    try:
        patch = validate_payload(model=StoneType, payload=json_body(), policy=STONE_TYPE_POLICY, partial=False)
        stone = catalog_service.create_stone_type(shop_id=g.shop_id, patch=patch)
    except Exception as e:
        return error_response(e, "create stone type")
    return jsonify(stone.to_dict()), 201


@catalog_bp.patch("/stones/<int:stone_type_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_stone_type_route(stone_type_id: int):
    try:
        patch = validate_payload(model=StoneType, payload=json_body(), policy=STONE_TYPE_POLICY, partial=True)
        stone = catalog_service.update_stone_type(shop_id=g.shop_id, stone_type_id=stone_type_id, patch=patch)
    except Exception as e:
        return error_response(e, "update stone type")
    return jsonify(stone.to_dict()), 200


@catalog_bp.delete("/stones/<int:stone_type_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_stone_type_route(stone_type_id: int):
    try:
        catalog_service.delete_stone_type(shop_id=g.shop_id, stone_type_id=stone_type_id)
    except Exception as e:
        return error_response(e, "delete stone type")
    return jsonify({"deleted": True, "id": stone_type_id}), 200


# -- Sizes --

@catalog_bp.get("/sizes")
@require_auth
@require_permission("VIEW_CATALOG")
def list_sizes_route():
    rows = catalog_service.list_sizes(shop_id=g.shop_id, category=request.args.get("category"))
    return jsonify(_items(rows)), 200


@catalog_bp.post("/sizes")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_size_route():
    try:
        patch = validate_payload(model=ProductSize, payload=json_body(), policy=SIZE_POLICY, partial=False)
        size = catalog_service.create_size(shop_id=g.shop_id, patch=patch)
    except Exception as e:
        return error_response(e, "create product size")
    return jsonify(size.to_dict()), 201


@catalog_bp.delete("/sizes/<int:size_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_size_route(size_id: int):
    try:
        catalog_service.delete_size(shop_id=g.shop_id, size_id=size_id)
    except Exception as e:
        return error_response(e, "delete product size")
    return jsonify({"deleted": True, "id": size_id}), 200


# -- Metal prices --

@catalog_bp.get("/prices")
@require_auth
@require_permission("VIEW_CATALOG")
def list_metal_prices_route():
    """Query params: metal_type_id, start_date, end_date, limit, offset"""
    limit, offset = page_args()
    try:
        rows, total = catalog_service.list_metal_prices(
            shop_id=g.shop_id,
            metal_type_id=request.args.get("metal_type_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list metal prices")
    return jsonify(paged([p.to_dict() for p in rows], total, limit, offset)), 200


@catalog_bp.get("/prices/latest")
@require_auth
@require_permission("VIEW_CATALOG")
def latest_metal_price_route():
    """Query params: metal_type_id (required), metal_purity_id, as_of"""
    args = request.args
    try:
        metal_type_id = args.get("metal_type_id", type=int)
        if metal_type_id is None:
            return jsonify({"error": "metal_type_id is required"}), 400
        price = catalog_service.latest_metal_price(
            shop_id=g.shop_id,
            metal_type_id=metal_type_id,
            metal_purity_id=args.get("metal_purity_id", type=int),
            as_of=parse_optional_date("as_of", args.get("as_of")),
        )
    except Exception as e:
        return error_response(e, "load latest metal price")
    return jsonify(price.to_dict()), 200


@catalog_bp.post("/prices")
@require_auth
@require_permission("MANAGE_CATALOG")
def record_metal_price_route():
    try:
        patch = validate_payload(model=MetalPrice, payload=json_body(), policy=METAL_PRICE_POLICY, partial=False)
        price = catalog_service.record_metal_price(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record metal price")
    return jsonify(price.to_dict()), 201


@catalog_bp.delete("/prices/<int:price_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_metal_price_route(price_id: int):
    try:
        catalog_service.delete_metal_price(
            shop_id=g.shop_id,
            price_id=price_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "delete metal price")
    return jsonify({"deleted": True, "id": price_id}), 200
