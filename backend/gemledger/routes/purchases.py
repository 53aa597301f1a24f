# Overview: Flask API routes for supplier purchase orders and their payments.

"""
Purchase routes.

MULTI-TENANT: purchases and the suppliers they reference are scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_PURCHASES
- Create, edit, pay, cancel and delete require MANAGE_PURCHASES
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Purchase
from ..services import purchase_service
from ..validation import (
    ModelValidationPolicy,
    int_range_rule,
    optional_text_rule,
    parse_currency,
    parse_date,
    parse_positive_money,
    parse_weight_or_zero,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={
        "supplier_id", "invoice_number", "purchase_date", "currency",
        "total_items", "total_weight_grams", "total_amount", "notes",
    },
    required_on_create={"supplier_id", "purchase_date", "total_amount"},
    field_rules={
        "invoice_number": optional_text_rule(100),
        "purchase_date": parse_date,
        "currency": parse_currency,
        "total_items": int_range_rule(0, 100000),
        "total_weight_grams": parse_weight_or_zero,
        "total_amount": parse_positive_money,
        "notes": optional_text_rule(2000),
    },
)

# The supplier of an existing order is fixed; its ledger entries are already posted
UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PURCHASE_POLICY.writable_fields - {"supplier_id", "currency"},
    required_on_create=set(),
    field_rules=PURCHASE_POLICY.field_rules,
)

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_purchases_route():
    """Query params: supplier_id, payment_status, status, start_date, end_date, search, limit, offset"""
    limit, offset = page_args()
    args = request.args
    try:
        rows, total = purchase_service.list_purchases(
            shop_id=g.shop_id,
            supplier_id=args.get("supplier_id", type=int),
            payment_status=args.get("payment_status"),
            status=args.get("status"),
            start_date=args.get("start_date"),
            end_date=args.get("end_date"),
            search=args.get("search"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list purchases")
    return jsonify(paged([p.to_dict() for p in rows], total, limit, offset)), 200


@purchases_bp.post("")
@require_auth
@require_permission("MANAGE_PURCHASES")
def create_purchase_route():
    try:
        patch = validate_payload(model=Purchase, payload=json_body(), policy=PURCHASE_POLICY, partial=False)
        purchase = purchase_service.create_purchase(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create purchase")
    return jsonify(purchase.to_dict()), 201


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(shop_id=g.shop_id, purchase_id=purchase_id)
    except Exception as e:
        return error_response(e, "load purchase")
    return jsonify(purchase.to_dict(include_payments=True)), 200


@purchases_bp.patch("/<int:purchase_id>")
@require_auth
@require_permission("MANAGE_PURCHASES")
def update_purchase_route(purchase_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=Purchase, payload=payload, policy=UPDATE_POLICY, partial=True)
        purchase = purchase_service.update_purchase(
            shop_id=g.shop_id,
            purchase_id=purchase_id,
            patch=patch,
            expected_version=expected_version,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update purchase")
    return jsonify(purchase.to_dict()), 200


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_permission("MANAGE_PURCHASES")
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(
            shop_id=g.shop_id,
            purchase_id=purchase_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "delete purchase")
    return jsonify({"deleted": True, "id": purchase_id}), 200


@purchases_bp.post("/<int:purchase_id>/payments")
@require_auth
@require_permission("MANAGE_PURCHASES")
def purchase_payment_route(purchase_id: int):
    """Body: {"amount", "payment_type"?, "payment_date"?, "cheque_number"?, "notes"?}"""
    data = json_body()
    try:
        payment = purchase_service.record_purchase_payment(
            shop_id=g.shop_id,
            purchase_id=purchase_id,
            amount=data.get("amount"),
            payment_type=data.get("payment_type") or "cash",
            payment_date=data.get("payment_date"),
            cheque_number=data.get("cheque_number"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record purchase payment")
    return jsonify(payment.to_dict()), 201


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_auth
@require_permission("MANAGE_PURCHASES")
def cancel_purchase_route(purchase_id: int):
    """Body: {"reason"}"""
    try:
        purchase = purchase_service.cancel_purchase(
            shop_id=g.shop_id,
            purchase_id=purchase_id,
            reason=json_body().get("reason"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "cancel purchase")
    return jsonify(purchase.to_dict()), 200


@purchases_bp.get("/suppliers/<int:supplier_id>/outstanding")
@require_auth
@require_permission("VIEW_PURCHASES")
def supplier_outstanding_route(supplier_id: int):
    try:
        outstanding = purchase_service.supplier_outstanding(shop_id=g.shop_id, supplier_id=supplier_id)
    except Exception as e:
        return error_response(e, "load supplier outstanding")
    return jsonify({"supplier_id": supplier_id, "outstanding": str(outstanding)}), 200
