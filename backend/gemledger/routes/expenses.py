# Overview: Flask API routes for expenses, expense categories and recurring expenses.

"""
Expense routes.

MULTI-TENANT: everything is scoped to g.shop_id.

SECURITY:
- Read operations require VIEW_EXPENSES
- Writes (categories, expenses, payments, recurring templates) require MANAGE_EXPENSES
- Approve/reject requires APPROVE_EXPENSES

Approval consumes the matching budget allocation, if any.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Expense, ExpenseCategory, RecurringExpense
from ..services import expense_service
from ..services.expense_service import FREQUENCIES
from ..validation import (
    ModelValidationPolicy,
    enum_rule,
    int_range_rule,
    optional_text_rule,
    parse_date,
    parse_optional_date,
    parse_positive_money,
    text_rule,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
    field_rules={
        "name": text_rule(2, 100),
        "description": optional_text_rule(1000),
    },
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id", "description", "amount", "expense_date",
        "vendor_name", "supplier_id", "notes",
    },
    required_on_create={"category_id", "description", "amount", "expense_date"},
    field_rules={
        "description": text_rule(3, 1000),
        "amount": parse_positive_money,
        "expense_date": parse_date,
        "vendor_name": optional_text_rule(255),
        "notes": optional_text_rule(2000),
    },
)

RECURRING_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id", "description", "amount", "vendor_name", "frequency",
        "day_of_month", "day_of_week", "start_date", "end_date", "auto_approve", "notes",
    },
    required_on_create={"category_id", "description", "amount", "frequency", "start_date"},
    field_rules={
        "description": text_rule(3, 1000),
        "amount": parse_positive_money,
        "vendor_name": optional_text_rule(255),
        "frequency": enum_rule(FREQUENCIES),
        "day_of_month": int_range_rule(1, 31),
        "day_of_week": int_range_rule(0, 6),
        "start_date": parse_date,
        "end_date": parse_optional_date,
        "notes": optional_text_rule(2000),
    },
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


# -- Categories --

@expenses_bp.get("/categories")
@require_auth
@require_permission("VIEW_EXPENSES")
def list_categories_route():
    include_inactive = (request.args.get("include_inactive") or "").lower() == "true"
    rows = expense_service.list_categories(shop_id=g.shop_id, include_inactive=include_inactive)
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)}), 200


@expenses_bp.post("/categories")
@require_auth
@require_permission("MANAGE_EXPENSES")
def create_category_route():
    try:
        patch = validate_payload(model=ExpenseCategory, payload=json_body(), policy=CATEGORY_POLICY, partial=False)
        category = expense_service.create_category(shop_id=g.shop_id, patch=patch)
    except Exception as e:
        return error_response(e, "create expense category")
    return jsonify(category.to_dict()), 201


@expenses_bp.patch("/categories/<int:category_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def update_category_route(category_id: int):
    try:
        patch = validate_payload(model=ExpenseCategory, payload=json_body(), policy=CATEGORY_POLICY, partial=True)
        category = expense_service.update_category(shop_id=g.shop_id, category_id=category_id, patch=patch)
    except Exception as e:
        return error_response(e, "update expense category")
    return jsonify(category.to_dict()), 200


@expenses_bp.delete("/categories/<int:category_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def deactivate_category_route(category_id: int):
    try:
        category = expense_service.deactivate_category(shop_id=g.shop_id, category_id=category_id)
    except Exception as e:
        return error_response(e, "deactivate expense category")
    return jsonify(category.to_dict()), 200


# -- Expenses --

@expenses_bp.get("")
@require_auth
@require_permission("VIEW_EXPENSES")
def list_expenses_route():
    """
    Query params: category_id, approval_status, payment_status, start_date,
    end_date, min_amount, max_amount, search, limit, offset
    """
    limit, offset = page_args()
    args = request.args
    try:
        rows, total = expense_service.list_expenses(
            shop_id=g.shop_id,
            category_id=args.get("category_id", type=int),
            approval_status=args.get("approval_status"),
            payment_status=args.get("payment_status"),
            start_date=args.get("start_date"),
            end_date=args.get("end_date"),
            min_amount=args.get("min_amount"),
            max_amount=args.get("max_amount"),
            search=args.get("search"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list expenses")
    return jsonify(paged([x.to_dict() for x in rows], total, limit, offset)), 200


@expenses_bp.get("/summary")
@require_auth
@require_permission("VIEW_EXPENSES")
def expense_summary_route():
    try:
        summary = expense_service.expense_summary(
            shop_id=g.shop_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
    except Exception as e:
        return error_response(e, "summarize expenses")
    return jsonify(summary), 200


@expenses_bp.post("")
@require_auth
@require_permission("MANAGE_EXPENSES")
def create_expense_route():
    try:
        patch = validate_payload(model=Expense, payload=json_body(), policy=EXPENSE_POLICY, partial=False)
        expense = expense_service.create_expense(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create expense")
    return jsonify(expense.to_dict()), 201


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_permission("VIEW_EXPENSES")
def get_expense_route(expense_id: int):
    try:
        expense = expense_service.get_expense(shop_id=g.shop_id, expense_id=expense_id)
    except Exception as e:
        return error_response(e, "load expense")
    data = expense.to_dict()
    data["payments"] = [p.to_dict() for p in expense.payments]
    return jsonify(data), 200


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def update_expense_route(expense_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        expense = expense_service.update_expense(
            shop_id=g.shop_id,
            expense_id=expense_id,
            patch=patch,
            expected_version=expected_version,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "update expense")
    return jsonify(expense.to_dict()), 200


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(shop_id=g.shop_id, expense_id=expense_id, actor_user_id=g.current_user.id)
    except Exception as e:
        return error_response(e, "delete expense")
    return jsonify({"deleted": True, "id": expense_id}), 200


@expenses_bp.post("/<int:expense_id>/approve")
@require_auth
@require_permission("APPROVE_EXPENSES")
def approve_expense_route(expense_id: int):
    try:
        expense = expense_service.approve_expense(
            shop_id=g.shop_id,
            expense_id=expense_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "approve expense")
    return jsonify(expense.to_dict()), 200


@expenses_bp.post("/<int:expense_id>/reject")
@require_auth
@require_permission("APPROVE_EXPENSES")
def reject_expense_route(expense_id: int):
    """Body: {"reason"} (required)"""
    data = json_body()
    try:
        expense = expense_service.reject_expense(
            shop_id=g.shop_id,
            expense_id=expense_id,
            reason=data.get("reason") or "",
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "reject expense")
    return jsonify(expense.to_dict()), 200


@expenses_bp.post("/<int:expense_id>/payments")
@require_auth
@require_permission("MANAGE_EXPENSES")
def record_expense_payment_route(expense_id: int):
    """Body: {"amount", "payment_type", "payment_date"?, "cheque_number"?, "reference"?, "notes"?}"""
    data = json_body()
    try:
        payment = expense_service.record_expense_payment(
            shop_id=g.shop_id,
            expense_id=expense_id,
            amount=data.get("amount"),
            payment_type=data.get("payment_type"),
            payment_date=data.get("payment_date"),
            cheque_number=data.get("cheque_number"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
        expense = expense_service.get_expense(shop_id=g.shop_id, expense_id=expense_id)
    except Exception as e:
        return error_response(e, "record expense payment")
    return jsonify({"payment": payment.to_dict(), "expense": expense.to_dict()}), 201


# -- Recurring expenses --

@expenses_bp.get("/recurring")
@require_auth
@require_permission("VIEW_EXPENSES")
def list_recurring_route():
    try:
        rows = expense_service.list_recurring(shop_id=g.shop_id, status=request.args.get("status"))
    except Exception as e:
        return error_response(e, "list recurring expenses")
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200


@expenses_bp.post("/recurring")
@require_auth
@require_permission("MANAGE_EXPENSES")
def create_recurring_route():
    try:
        patch = validate_payload(model=RecurringExpense, payload=json_body(), policy=RECURRING_POLICY, partial=False)
        recurring = expense_service.create_recurring(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create recurring expense")
    return jsonify(recurring.to_dict()), 201


@expenses_bp.get("/recurring/<int:recurring_id>")
@require_auth
@require_permission("VIEW_EXPENSES")
def get_recurring_route(recurring_id: int):
    try:
        recurring = expense_service.get_recurring(shop_id=g.shop_id, recurring_id=recurring_id)
    except Exception as e:
        return error_response(e, "load recurring expense")
    return jsonify(recurring.to_dict()), 200


@expenses_bp.patch("/recurring/<int:recurring_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def update_recurring_route(recurring_id: int):
    try:
        patch = validate_payload(model=RecurringExpense, payload=json_body(), policy=RECURRING_POLICY, partial=True)
        recurring = expense_service.update_recurring(shop_id=g.shop_id, recurring_id=recurring_id, patch=patch)
    except Exception as e:
        return error_response(e, "update recurring expense")
    return jsonify(recurring.to_dict()), 200


@expenses_bp.delete("/recurring/<int:recurring_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
def delete_recurring_route(recurring_id: int):
    """Generated expenses are kept and unlinked."""
    try:
        expense_service.delete_recurring(shop_id=g.shop_id, recurring_id=recurring_id)
    except Exception as e:
        return error_response(e, "delete recurring expense")
    return jsonify({"deleted": True, "id": recurring_id}), 200


@expenses_bp.post("/recurring/<int:recurring_id>/pause")
@require_auth
@require_permission("MANAGE_EXPENSES")
def pause_recurring_route(recurring_id: int):
    try:
        recurring = expense_service.pause_recurring(shop_id=g.shop_id, recurring_id=recurring_id)
    except Exception as e:
        return error_response(e, "pause recurring expense")
    return jsonify(recurring.to_dict()), 200


@expenses_bp.post("/recurring/<int:recurring_id>/resume")
@require_auth
@require_permission("MANAGE_EXPENSES")
def resume_recurring_route(recurring_id: int):
    try:
        recurring = expense_service.resume_recurring(shop_id=g.shop_id, recurring_id=recurring_id)
    except Exception as e:
        return error_response(e, "resume recurring expense")
    return jsonify(recurring.to_dict()), 200


@expenses_bp.post("/recurring/<int:recurring_id>/cancel")
@require_auth
@require_permission("MANAGE_EXPENSES")
def cancel_recurring_route(recurring_id: int):
    try:
        recurring = expense_service.cancel_recurring(shop_id=g.shop_id, recurring_id=recurring_id)
    except Exception as e:
        return error_response(e, "cancel recurring expense")
    return jsonify(recurring.to_dict()), 200


@expenses_bp.post("/recurring/<int:recurring_id>/generate")
@require_auth
@require_permission("MANAGE_EXPENSES")
def generate_recurring_route(recurring_id: int):
    """Body: {"expense_date"?}. Defaults to the template's next_due_date."""
    data = json_body()
    try:
        expense = expense_service.generate_from_recurring(
            shop_id=g.shop_id,
            recurring_id=recurring_id,
            expense_date=data.get("expense_date"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "generate recurring expense")
    return jsonify(expense.to_dict()), 201
