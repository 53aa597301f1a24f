# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier routes.

MULTI-TENANT: all suppliers are scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_SUPPLIERS
- Write operations require MANAGE_SUPPLIERS
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Supplier
from ..services import supplier_service
from ..validation import (
    ModelValidationPolicy,
    enum_rule,
    optional_text_rule,
    parse_optional_email,
    parse_optional_phone,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_name", "contact_person", "phone", "email",
        "address", "payment_terms", "notes", "status",
    },
    required_on_create={"company_name"},
    field_rules={
        "company_name": text_rule(2, 255),
        "contact_person": optional_text_rule(255),
        "phone": parse_optional_phone,
        "email": parse_optional_email,
        "address": optional_text_rule(1000),
        "payment_terms": optional_text_rule(255),
        "notes": optional_text_rule(2000),
        "status": enum_rule(("active", "inactive")),
    },
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers_route():
    limit, offset = page_args()
    try:
        rows, total = supplier_service.list_suppliers(
            shop_id=g.shop_id,
            search=request.args.get("search"),
            status=request.args.get("status"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list suppliers")
    return jsonify(paged([s.to_dict() for s in rows], total, limit, offset)), 200


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    """
    Create a supplier.

    opening_balance (optional, signed) is not a column: it is posted as the
    first ledger entry.
    """
    payload = json_body()
    opening_balance = payload.pop("opening_balance", None)
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        supplier = supplier_service.create_supplier(
            shop_id=g.shop_id,
            patch=patch,
            opening_balance=opening_balance,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create supplier")
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(shop_id=g.shop_id, supplier_id=supplier_id)
    except Exception as e:
        return error_response(e, "load supplier")
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = supplier_service.update_supplier(
            shop_id=g.shop_id,
            supplier_id=supplier_id,
            patch=patch,
            expected_version=expected_version,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update supplier")
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.get("/<int:supplier_id>/ledger")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def supplier_ledger_route(supplier_id: int):
    limit, offset = page_args()
    try:
        rows, total = supplier_service.get_supplier_ledger(
            shop_id=g.shop_id,
            supplier_id=supplier_id,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "load supplier ledger")
    return jsonify(paged([t.to_dict() for t in rows], total, limit, offset)), 200


@suppliers_bp.post("/<int:supplier_id>/purchases")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def supplier_purchase_route(supplier_id: int):
    """Body: {"amount", "reference"?, "description"?}"""
    data = json_body()
    try:
        entry = supplier_service.record_supplier_purchase(
            shop_id=g.shop_id,
            supplier_id=supplier_id,
            amount=data.get("amount"),
            reference=data.get("reference"),
            description=data.get("description"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record supplier purchase")
    return jsonify(entry.to_dict()), 201


@suppliers_bp.post("/<int:supplier_id>/payments")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def supplier_payment_route(supplier_id: int):
    """Body: {"amount", "payment_type", "cheque_number"?, "reference"?, "notes"?}"""
    data = json_body()
    try:
        entry = supplier_service.record_supplier_payment(
            shop_id=g.shop_id,
            supplier_id=supplier_id,
            amount=data.get("amount"),
            payment_type=data.get("payment_type") or "cash",
            cheque_number=data.get("cheque_number"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "record supplier payment")
    return jsonify(entry.to_dict()), 201
