# Overview: Flask API routes for budget categories, allocations and budget reports.

"""
Budget routes.

MULTI-TENANT: everything is scoped to g.shop_id.

SECURITY:
- Read operations and reports require VIEW_BUDGETS
- Category and allocation writes require MANAGE_BUDGETS
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import BudgetCategory
from ..services import budget_service
from ..services.budget_service import BUDGET_TYPES
from ..validation import (
    ModelValidationPolicy,
    enum_rule,
    optional_text_rule,
    parse_money,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


BUDGET_CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "budget_type", "expense_category_id", "default_amount",
        "default_frequency", "requires_approval", "approval_threshold", "is_active", "sort_order",
    },
    required_on_create={"name"},
    field_rules={
        "name": text_rule(2, 100),
        "description": optional_text_rule(1000),
        "budget_type": enum_rule(BUDGET_TYPES),
        "default_amount": parse_money,
        "default_frequency": enum_rule(("monthly", "quarterly", "yearly")),
        "approval_threshold": parse_money,
    },
)

budgets_bp = Blueprint("budgets", __name__, url_prefix="/api/budgets")


# -- Categories --

@budgets_bp.get("/categories")
@require_auth
@require_permission("VIEW_BUDGETS")
def list_budget_categories_route():
    include_inactive = (request.args.get("include_inactive") or "").lower() == "true"
    rows = budget_service.list_categories(shop_id=g.shop_id, include_inactive=include_inactive)
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)}), 200


@budgets_bp.post("/categories")
@require_auth
@require_permission("MANAGE_BUDGETS")
def create_budget_category_route():
    try:
        patch = validate_payload(
            model=BudgetCategory, payload=json_body(), policy=BUDGET_CATEGORY_POLICY, partial=False
        )
        category = budget_service.create_category(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create budget category")
    return jsonify(category.to_dict()), 201


@budgets_bp.patch("/categories/<int:category_id>")
@require_auth
@require_permission("MANAGE_BUDGETS")
def update_budget_category_route(category_id: int):
    try:
        patch = validate_payload(
            model=BudgetCategory, payload=json_body(), policy=BUDGET_CATEGORY_POLICY, partial=True
        )
        category = budget_service.update_category(shop_id=g.shop_id, category_id=category_id, patch=patch)
    except Exception as e:
        return error_response(e, "update budget category")
    return jsonify(category.to_dict()), 200


# -- Allocations --

@budgets_bp.get("/allocations")
@require_auth
@require_permission("VIEW_BUDGETS")
def list_allocations_route():
    limit, offset = page_args()
    try:
        rows, total = budget_service.list_allocations(
            shop_id=g.shop_id,
            budget_category_id=request.args.get("budget_category_id", type=int),
            status=request.args.get("status"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list budget allocations")
    return jsonify(paged([a.to_dict() for a in rows], total, limit, offset)), 200


@budgets_bp.post("/allocations")
@require_auth
@require_permission("MANAGE_BUDGETS")
def allocate_route():
    """
    Body: {"budget_category_id", "period_start", "period_end",
           "allocated_amount", "rollover_amount"?, "notes"?}

    Overlapping periods for the same category are rejected.
    """
    data = json_body()
    try:
        allocation = budget_service.allocate(
            shop_id=g.shop_id,
            budget_category_id=data.get("budget_category_id"),
            period_start=data.get("period_start"),
            period_end=data.get("period_end"),
            allocated_amount=data.get("allocated_amount"),
            rollover_amount=data.get("rollover_amount"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "allocate budget")
    return jsonify(allocation.to_dict()), 201


@budgets_bp.get("/allocations/<int:allocation_id>")
@require_auth
@require_permission("VIEW_BUDGETS")
def get_allocation_route(allocation_id: int):
    try:
        allocation = budget_service.get_allocation(shop_id=g.shop_id, allocation_id=allocation_id)
    except Exception as e:
        return error_response(e, "load budget allocation")
    data = allocation.to_dict()
    data["transactions"] = [t.to_dict() for t in allocation.transactions]
    return jsonify(data), 200


@budgets_bp.post("/allocations/<int:allocation_id>/adjust")
@require_auth
@require_permission("MANAGE_BUDGETS")
def adjust_allocation_route(allocation_id: int):
    """Body: {"amount" (signed, non-zero), "reason"}"""
    data = json_body()
    try:
        allocation = budget_service.adjust(
            shop_id=g.shop_id,
            allocation_id=allocation_id,
            amount=data.get("amount"),
            reason=data.get("reason") or "",
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "adjust budget allocation")
    return jsonify(allocation.to_dict()), 200


@budgets_bp.post("/transfers")
@require_auth
@require_permission("MANAGE_BUDGETS")
def transfer_route():
    """Body: {"from_allocation_id", "to_allocation_id", "amount", "reason"?}"""
    data = json_body()
    try:
        source, target = budget_service.transfer(
            shop_id=g.shop_id,
            from_allocation_id=data.get("from_allocation_id"),
            to_allocation_id=data.get("to_allocation_id"),
            amount=data.get("amount"),
            reason=data.get("reason"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "transfer budget")
    return jsonify({"from": source.to_dict(), "to": target.to_dict()}), 200


@budgets_bp.post("/allocations/<int:allocation_id>/close")
@require_auth
@require_permission("MANAGE_BUDGETS")
def close_allocation_route(allocation_id: int):
    try:
        allocation = budget_service.close_allocation(
            shop_id=g.shop_id,
            allocation_id=allocation_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "close budget allocation")
    return jsonify(allocation.to_dict()), 200


@budgets_bp.post("/allocations/<int:allocation_id>/cancel")
@require_auth
@require_permission("MANAGE_BUDGETS")
def cancel_allocation_route(allocation_id: int):
    try:
        allocation = budget_service.cancel_allocation(
            shop_id=g.shop_id,
            allocation_id=allocation_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "cancel budget allocation")
    return jsonify(allocation.to_dict()), 200


# -- Reports --

@budgets_bp.get("/summary")
@require_auth
@require_permission("VIEW_BUDGETS")
def budget_summary_route():
    """Query params: period_start, period_end (required), budget_category_id"""
    try:
        result = budget_service.summary(
            shop_id=g.shop_id,
            period_start=request.args.get("period_start"),
            period_end=request.args.get("period_end"),
            budget_category_id=request.args.get("budget_category_id", type=int),
        )
    except Exception as e:
        return error_response(e, "summarize budgets")
    return jsonify(result), 200


@budgets_bp.get("/vs-actual")
@require_auth
@require_permission("VIEW_BUDGETS")
def budget_vs_actual_route():
    try:
        rows = budget_service.budget_vs_actual(
            shop_id=g.shop_id,
            period_start=request.args.get("period_start"),
            period_end=request.args.get("period_end"),
        )
    except Exception as e:
        return error_response(e, "compare budget vs actual")
    return jsonify({"items": rows, "count": len(rows)}), 200
