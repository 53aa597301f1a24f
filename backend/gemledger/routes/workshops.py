# Overview: Flask API routes for workshops, work orders and workshop accounts.

"""
Workshop routes.

MULTI-TENANT: workshops and orders are scoped to g.shop_id; an order's
inventory item and customer must belong to the same shop.

SECURITY:
- Read operations require VIEW_WORKSHOPS
- Writes, status changes and payments require MANAGE_WORKSHOPS
"""

from decimal import Decimal

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Workshop, WorkshopOrder
from ..services import workshop_service
from ..validation import (
    ModelValidationPolicy,
    bounded_money_rule,
    enum_rule,
    optional_text_rule,
    parse_optional_date,
    parse_optional_email,
    parse_optional_phone,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


WORKSHOP_POLICY = ModelValidationPolicy(
    writable_fields={
        "workshop_name", "is_internal", "contact_person", "phone", "email",
        "address", "specialization", "notes", "status",
    },
    required_on_create={"workshop_name"},
    field_rules={
        "workshop_name": text_rule(2, 255),
        "contact_person": optional_text_rule(255),
        "phone": parse_optional_phone,
        "email": parse_optional_email,
        "address": optional_text_rule(1000),
        "specialization": optional_text_rule(255),
        "notes": optional_text_rule(2000),
        "status": enum_rule(("active", "inactive")),
    },
)

parse_order_cost = bounded_money_rule(Decimal("99999999.9999"))

ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "workshop_id", "order_type", "item_source", "inventory_item_id", "customer_id",
        "description", "received_date", "promised_date", "estimated_cost",
        "actual_cost", "labor_cost", "notes",
    },
    required_on_create={"workshop_id", "order_type"},
    field_rules={
        "order_type": enum_rule(("repair", "custom", "resize", "polish", "engrave", "other")),
        "item_source": enum_rule(("customer", "inventory", "supplied")),
        "description": optional_text_rule(5000),
        "received_date": parse_optional_date,
        "promised_date": parse_optional_date,
        "estimated_cost": parse_order_cost,
        "actual_cost": parse_order_cost,
        "labor_cost": parse_order_cost,
        "notes": optional_text_rule(2000),
    },
)

workshops_bp = Blueprint("workshops", __name__, url_prefix="/api/workshops")


# -- Workshops --

@workshops_bp.get("")
@require_auth
@require_permission("VIEW_WORKSHOPS")
def list_workshops_route():
    limit, offset = page_args()
    try:
        rows, total = workshop_service.list_workshops(
            shop_id=g.shop_id,
            status=request.args.get("status"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list workshops")
    return jsonify(paged([w.to_dict() for w in rows], total, limit, offset)), 200


@workshops_bp.post("")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def create_workshop_route():
    try:
        patch = validate_payload(model=Workshop, payload=json_body(), policy=WORKSHOP_POLICY, partial=False)
        workshop = workshop_service.create_workshop(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create workshop")
    return jsonify(workshop.to_dict()), 201


@workshops_bp.get("/<int:workshop_id>")
@require_auth
@require_permission("VIEW_WORKSHOPS")
def get_workshop_route(workshop_id: int):
    try:
        workshop = workshop_service.get_workshop(shop_id=g.shop_id, workshop_id=workshop_id)
    except Exception as e:
        return error_response(e, "load workshop")
    return jsonify(workshop.to_dict()), 200


@workshops_bp.patch("/<int:workshop_id>")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def update_workshop_route(workshop_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=Workshop, payload=payload, policy=WORKSHOP_POLICY, partial=True)
        workshop = workshop_service.update_workshop(
            shop_id=g.shop_id,
            workshop_id=workshop_id,
            patch=patch,
            expected_version=expected_version,
        )
    except Exception as e:
        return error_response(e, "update workshop")
    return jsonify(workshop.to_dict()), 200


@workshops_bp.get("/<int:workshop_id>/ledger")
@require_auth
@require_permission("VIEW_WORKSHOPS")
def workshop_ledger_route(workshop_id: int):
    limit, offset = page_args()
    try:
        rows, total = workshop_service.get_workshop_ledger(
            shop_id=g.shop_id,
            workshop_id=workshop_id,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "load workshop ledger")
    return jsonify(paged([t.to_dict() for t in rows], total, limit, offset)), 200


@workshops_bp.post("/<int:workshop_id>/payments")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def workshop_payment_route(workshop_id: int):
    """Body: {"amount", "payment_type"?, "order_id"?, "description"?}"""
    data = json_body()
    try:
        entry = workshop_service.record_workshop_payment(
            shop_id=g.shop_id,
            workshop_id=workshop_id,
            amount=data.get("amount"),
            payment_type=data.get("payment_type") or "cash",
            order_id=data.get("order_id"),
            description=data.get("description"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record workshop payment")
    return jsonify(entry.to_dict()), 201


# -- Orders --

@workshops_bp.get("/orders")
@require_auth
@require_permission("VIEW_WORKSHOPS")
def list_orders_route():
    limit, offset = page_args()
    try:
        rows, total = workshop_service.list_orders(
            shop_id=g.shop_id,
            workshop_id=request.args.get("workshop_id", type=int),
            status=request.args.get("status"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list workshop orders")
    return jsonify(paged([o.to_dict() for o in rows], total, limit, offset)), 200


@workshops_bp.post("/orders")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def create_order_route():
    try:
        patch = validate_payload(model=WorkshopOrder, payload=json_body(), policy=ORDER_POLICY, partial=False)
        order = workshop_service.create_order(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create workshop order")
    return jsonify(order.to_dict()), 201


@workshops_bp.get("/orders/<int:order_id>")
@require_auth
@require_permission("VIEW_WORKSHOPS")
def get_order_route(order_id: int):
    try:
        order = workshop_service.get_order(shop_id=g.shop_id, order_id=order_id)
    except Exception as e:
        return error_response(e, "load workshop order")
    return jsonify(order.to_dict()), 200


@workshops_bp.patch("/orders/<int:order_id>")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def update_order_route(order_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    for locked in ("status", "workshop_id", "item_source", "inventory_item_id"):
        if locked in payload:
            return jsonify({"error": f"{locked} cannot be changed here"}), 400
    try:
        patch = validate_payload(model=WorkshopOrder, payload=payload, policy=ORDER_POLICY, partial=True)
        order = workshop_service.update_order(
            shop_id=g.shop_id,
            order_id=order_id,
            patch=patch,
            expected_version=expected_version,
        )
    except Exception as e:
        return error_response(e, "update workshop order")
    return jsonify(order.to_dict()), 200


@workshops_bp.post("/orders/<int:order_id>/status")
@require_auth
@require_permission("MANAGE_WORKSHOPS")
def change_order_status_route(order_id: int):
    """Body: {"status"}"""
    data = json_body()
    try:
        order = workshop_service.change_order_status(
            shop_id=g.shop_id,
            order_id=order_id,
            new_status=data.get("status"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "change workshop order status")
    return jsonify(order.to_dict()), 200
