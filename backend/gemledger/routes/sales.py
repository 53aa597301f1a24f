# Overview: Flask API routes for sales (POS) operations; parses input and returns JSON responses.

"""
Sales routes.

MULTI-TENANT: all sales are scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_SALES
- Building a pending sale (lines, discounts) requires CREATE_SALE
- Payments require RECORD_SALE_PAYMENT
- Completion requires COMPLETE_SALE, voiding requires VOID_SALE

Amounts are accepted as strings or numbers and parsed by the service
layer; responses carry fixed-precision decimal strings.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import sales_service
from ..validation import optional_text_rule
from ._common import error_response, json_body, page_args, paged


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_response(sale_id: int, status: int = 200):
    sale = sales_service.get_sale(shop_id=g.shop_id, sale_id=sale_id)
    return jsonify({
        "sale": sale.to_dict(include_lines=True),
        "totals": sales_service.totals_for(sale).to_dict(),
    }), status


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """Query params: status, customer_id, start_date, end_date, limit, offset"""
    limit, offset = page_args()
    try:
        rows, total = sales_service.list_sales(
            shop_id=g.shop_id,
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list sales")
    return jsonify(paged([s.to_dict() for s in rows], total, limit, offset)), 200


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """Body: {"customer_id"?, "notes"?}. Omit customer_id for a walk-in sale."""
    data = json_body()
    try:
        notes = optional_text_rule(2000)("notes", data.get("notes"))
        sale = sales_service.create_sale(
            shop_id=g.shop_id,
            customer_id=data.get("customer_id"),
            notes=notes,
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale.id, 201)
    except Exception as e:
        return error_response(e, "create sale")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "load sale")


@sales_bp.post("/<int:sale_id>/items")
@require_auth
@require_permission("CREATE_SALE")
def add_sale_item_route(sale_id: int):
    """
    Body: {"inventory_item_id", "unit_price"?, "quantity"?, "discount_type"?, "discount_value"?}

    unit_price defaults to the item's sale_price. The item is reserved.
    """
    data = json_body()
    try:
        sales_service.add_item(
            shop_id=g.shop_id,
            sale_id=sale_id,
            inventory_item_id=data.get("inventory_item_id"),
            unit_price=data.get("unit_price"),
            quantity=data.get("quantity", 1),
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id, 201)
    except Exception as e:
        return error_response(e, "add sale item")


@sales_bp.patch("/<int:sale_id>/items/<int:sale_item_id>")
@require_auth
@require_permission("CREATE_SALE")
def update_sale_item_route(sale_id: int, sale_item_id: int):
    """Body: any of unit_price, quantity, discount_type, discount_value. discount_type null clears it."""
    data = json_body()
    try:
        sales_service.update_item(
            shop_id=g.shop_id,
            sale_id=sale_id,
            sale_item_id=sale_item_id,
            unit_price=data.get("unit_price"),
            quantity=data.get("quantity"),
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            clear_discount="discount_type" in data and data["discount_type"] is None,
        )
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "update sale item")


@sales_bp.delete("/<int:sale_id>/items/<int:sale_item_id>")
@require_auth
@require_permission("CREATE_SALE")
def remove_sale_item_route(sale_id: int, sale_item_id: int):
    try:
        sales_service.remove_item(
            shop_id=g.shop_id,
            sale_id=sale_id,
            sale_item_id=sale_item_id,
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "remove sale item")


@sales_bp.post("/<int:sale_id>/discount")
@require_auth
@require_permission("CREATE_SALE")
def apply_discount_route(sale_id: int):
    """Body: {"discount_type": "percentage" | "fixed" | null, "discount_value"}"""
    data = json_body()
    try:
        sales_service.apply_discount(
            shop_id=g.shop_id,
            sale_id=sale_id,
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "apply sale discount")


@sales_bp.post("/<int:sale_id>/payments")
@require_auth
@require_permission("RECORD_SALE_PAYMENT")
def record_payment_route(sale_id: int):
    """
    Body: {"payment_type", "amount", "cheque_number"?, "cheque_date"?,
           "cheque_bank"?, "reference"?, "notes"?}
    """
    data = json_body()
    try:
        sales_service.record_payment(
            shop_id=g.shop_id,
            sale_id=sale_id,
            payment_type=data.get("payment_type"),
            amount=data.get("amount"),
            cheque_number=data.get("cheque_number"),
            cheque_date=data.get("cheque_date"),
            cheque_bank=data.get("cheque_bank"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id, 201)
    except Exception as e:
        return error_response(e, "record sale payment")


@sales_bp.post("/<int:sale_id>/complete")
@require_auth
@require_permission("COMPLETE_SALE")
def complete_sale_route(sale_id: int):
    """Body: {"version_id"?}. A stale version answers 400 concurrent_modification."""
    data = json_body()
    try:
        sales_service.complete_sale(
            shop_id=g.shop_id,
            sale_id=sale_id,
            expected_version=data.get("version_id"),
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "complete sale")


@sales_bp.post("/<int:sale_id>/void")
@require_auth
@require_permission("VOID_SALE")
def void_sale_route(sale_id: int):
    """Body: {"reason"?}"""
    data = json_body()
    try:
        sales_service.void_sale(
            shop_id=g.shop_id,
            sale_id=sale_id,
            reason=data.get("reason"),
            actor_user_id=g.current_user.id,
        )
        return _sale_response(sale_id)
    except Exception as e:
        return error_response(e, "void sale")
