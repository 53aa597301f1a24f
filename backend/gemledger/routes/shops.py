# Overview: Flask API routes for shop settings; parses input and returns JSON responses.

"""
Shop settings routes.

MULTI-TENANT: the shop is always the caller's own (g.shop_id); there is
no way to address another shop through this blueprint.
"""

from flask import Blueprint, g, jsonify

from ..decorators import require_auth, require_permission
from ..services import shop_service
from ._common import error_response, json_body


shops_bp = Blueprint("shops", __name__, url_prefix="/api/shop")


@shops_bp.get("")
@require_auth
def get_current_shop():
    try:
        shop = shop_service.get_shop(g.shop_id)
    except Exception as e:
        return error_response(e, "load shop")
    return jsonify({"shop": shop.to_dict()}), 200


@shops_bp.get("/settings")
@require_auth
@require_permission("VIEW_SHOP_SETTINGS")
def get_settings():
    try:
        settings = shop_service.get_shop_settings(g.shop_id)
    except Exception as e:
        return error_response(e, "load shop settings")
    return jsonify({"settings": settings}), 200


@shops_bp.patch("/settings")
@require_auth
@require_permission("MANAGE_SHOP_SETTINGS")
def update_settings():
    """
    Partial update of shop settings.

    Body may contain any of: name, currency, timezone, language,
    invoice_prefix, tax_rate.
    """
    try:
        shop = shop_service.update_shop_settings(
            g.shop_id,
            json_body(),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update shop settings")
    return jsonify({"settings": shop_service.get_shop_settings(shop.id)}), 200


@shops_bp.get("/options")
@require_auth
def get_options():
    """Supported currencies, timezones and languages for settings forms."""
    return jsonify(shop_service.supported_options()), 200
