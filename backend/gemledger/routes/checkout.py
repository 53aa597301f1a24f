# Overview: Flask API routes for the checkout flow; parses input and returns JSON responses.

"""
Checkout routes.

A checkout is a persisted session that walks a sale through
review -> customer -> payment -> processing -> complete. Every response
carries the full checkout description (step, progress, sale, totals,
can_proceed / can_go_back) so clients never compute flow state.

SECURITY:
- Starting and navigating requires CREATE_SALE
- Adding payments requires RECORD_SALE_PAYMENT
- Finalizing requires COMPLETE_SALE
- Cancelling voids the sale, so it requires VOID_SALE
"""

from flask import Blueprint, g, jsonify

from ..decorators import require_auth, require_permission
from ..services import checkout_service
from ._common import error_response, json_body


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _checkout_response(session, status: int = 200):
    return jsonify(checkout_service.describe_checkout(session)), status


@checkout_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def start_checkout_route():
    """
    Body: {
        "lines": [{"inventory_item_id", "unit_price"?, "quantity"?,
                   "discount_type"?, "discount_value"?}, ...],
        "customer_id"?, "discount_type"?, "discount_value"?
    }
    """
    data = json_body()
    try:
        session = checkout_service.start_checkout(
            shop_id=g.shop_id,
            lines=data.get("lines"),
            customer_id=data.get("customer_id"),
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "start checkout")
    return _checkout_response(session, 201)


@checkout_bp.get("/<int:checkout_id>")
@require_auth
@require_permission("CREATE_SALE")
def get_checkout_route(checkout_id: int):
    try:
        session = checkout_service.get_session(shop_id=g.shop_id, checkout_id=checkout_id)
    except Exception as e:
        return error_response(e, "load checkout")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/next")
@require_auth
@require_permission("CREATE_SALE")
def next_step_route(checkout_id: int):
    try:
        session = checkout_service.advance(shop_id=g.shop_id, checkout_id=checkout_id)
    except Exception as e:
        return error_response(e, "advance checkout")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/back")
@require_auth
@require_permission("CREATE_SALE")
def back_step_route(checkout_id: int):
    try:
        session = checkout_service.go_back(shop_id=g.shop_id, checkout_id=checkout_id)
    except Exception as e:
        return error_response(e, "move checkout back")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/goto")
@require_auth
@require_permission("CREATE_SALE")
def go_to_step_route(checkout_id: int):
    """Body: {"step"}. Only earlier steps are reachable."""
    data = json_body()
    try:
        session = checkout_service.go_to_step(
            shop_id=g.shop_id,
            checkout_id=checkout_id,
            step=data.get("step"),
        )
    except Exception as e:
        return error_response(e, "jump checkout step")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/customer")
@require_auth
@require_permission("CREATE_SALE")
def set_customer_route(checkout_id: int):
    """Body: {"customer_id": int | null}. null means walk-in."""
    data = json_body()
    try:
        session = checkout_service.set_customer(
            shop_id=g.shop_id,
            checkout_id=checkout_id,
            customer_id=data.get("customer_id"),
        )
    except Exception as e:
        return error_response(e, "set checkout customer")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/payments")
@require_auth
@require_permission("RECORD_SALE_PAYMENT")
def add_payment_route(checkout_id: int):
    """Body: {"payments": [{"payment_type", "amount", ...}, ...]}"""
    data = json_body()
    try:
        session = checkout_service.add_payment(
            shop_id=g.shop_id,
            checkout_id=checkout_id,
            payments=data.get("payments"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "add checkout payment")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/finalize")
@require_auth
@require_permission("COMPLETE_SALE")
def finalize_route(checkout_id: int):
    """
    Complete the sale. On failure the checkout enters the error step and
    the response is 400 with the failure message.
    """
    try:
        session = checkout_service.finalize(
            shop_id=g.shop_id,
            checkout_id=checkout_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "finalize checkout")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/retry")
@require_auth
@require_permission("CREATE_SALE")
def retry_route(checkout_id: int):
    try:
        session = checkout_service.retry(shop_id=g.shop_id, checkout_id=checkout_id)
    except Exception as e:
        return error_response(e, "retry checkout")
    return _checkout_response(session)


@checkout_bp.post("/<int:checkout_id>/cancel")
@require_auth
@require_permission("VOID_SALE")
def cancel_route(checkout_id: int):
    try:
        session = checkout_service.cancel(
            shop_id=g.shop_id,
            checkout_id=checkout_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "cancel checkout")
    return _checkout_response(session)
