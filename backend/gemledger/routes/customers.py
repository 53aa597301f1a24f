# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

"""
Customer routes.

MULTI-TENANT: every query is scoped to g.shop_id; a customer id from
another shop answers 404 exactly like a missing one.

SECURITY:
- Read operations require VIEW_CUSTOMERS
- Write operations (including manual ledger entries) require MANAGE_CUSTOMERS
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Customer
from ..services import customer_service
from ..validation import (
    ModelValidationPolicy,
    optional_text_rule,
    parse_name,
    parse_optional_email,
    parse_optional_phone,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "email", "address", "notes"},
    required_on_create={"full_name"},
    field_rules={
        "full_name": parse_name,
        "phone": parse_optional_phone,
        "email": parse_optional_email,
        "address": optional_text_rule(1000),
        "notes": optional_text_rule(2000),
    },
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers_route():
    """
    Query params:
    - search: matches name, phone or email
    - include_inactive: "true" to include deactivated customers
    - limit, offset
    """
    limit, offset = page_args()
    include_inactive = (request.args.get("include_inactive") or "").lower() == "true"
    try:
        rows, total = customer_service.list_customers(
            shop_id=g.shop_id,
            search=request.args.get("search"),
            include_inactive=include_inactive,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list customers")
    return jsonify(paged([c.to_dict() for c in rows], total, limit, offset)), 200


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    try:
        patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create customer")
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(shop_id=g.shop_id, customer_id=customer_id)
    except Exception as e:
        return error_response(e, "load customer")
    return jsonify(customer.to_dict()), 200


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    """
    Partial update. Send version_id to guard against lost updates; a stale
    version answers 409.
    """
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(
            shop_id=g.shop_id,
            customer_id=customer_id,
            patch=patch,
            expected_version=expected_version,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update customer")
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def deactivate_customer_route(customer_id: int):
    """Soft delete: the customer keeps its ledger and sales history."""
    try:
        customer = customer_service.deactivate_customer(
            shop_id=g.shop_id,
            customer_id=customer_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "deactivate customer")
    return jsonify(customer.to_dict()), 200


@customers_bp.get("/<int:customer_id>/ledger")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def customer_ledger_route(customer_id: int):
    limit, offset = page_args()
    try:
        rows, total = customer_service.get_customer_ledger(
            shop_id=g.shop_id,
            customer_id=customer_id,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "load customer ledger")
    return jsonify(paged([t.to_dict() for t in rows], total, limit, offset)), 200


@customers_bp.post("/<int:customer_id>/charges")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def customer_charge_route(customer_id: int):
    """Manual debit (adjustment). Body: {"amount", "description"?}"""
    data = json_body()
    try:
        entry = customer_service.record_customer_charge(
            shop_id=g.shop_id,
            customer_id=customer_id,
            amount=data.get("amount"),
            transaction_type="adjustment",
            description=data.get("description"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "charge customer")
    return jsonify(entry.to_dict()), 201


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def customer_payment_route(customer_id: int):
    """Account payment (credit). Body: {"amount", "description"?}"""
    data = json_body()
    try:
        entry = customer_service.record_customer_credit(
            shop_id=g.shop_id,
            customer_id=customer_id,
            amount=data.get("amount"),
            transaction_type="payment",
            description=data.get("description"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record customer payment")
    return jsonify(entry.to_dict()), 201
