# Overview: Flask API routes for payment reminders; parses input and returns JSON responses.

"""
Payment reminder routes.

MULTI-TENANT: reminders and the supplier/workshop/customer they point to
must belong to g.shop_id.

SECURITY:
- Read operations require VIEW_REMINDERS
- Writes (including complete and snooze) require MANAGE_REMINDERS
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import PaymentReminder
from ..services import reminder_service
from ..services.reminder_service import ENTITY_MODELS, REMINDER_TYPES
from ..validation import (
    ModelValidationPolicy,
    enum_rule,
    optional_text_rule,
    parse_date,
    parse_positive_money,
    validate_payload,
)
from ._common import error_response, json_body, page_args, paged


REMINDER_POLICY = ModelValidationPolicy(
    writable_fields={"entity_type", "entity_id", "reminder_type", "amount", "due_date", "notes"},
    required_on_create={"entity_type", "entity_id", "reminder_type", "due_date"},
    field_rules={
        "entity_type": enum_rule(tuple(ENTITY_MODELS)),
        "reminder_type": enum_rule(REMINDER_TYPES),
        "amount": parse_positive_money,
        "due_date": parse_date,
        "notes": optional_text_rule(5000),
    },
)

reminders_bp = Blueprint("reminders", __name__, url_prefix="/api/reminders")


def _with_days(reminder) -> dict:
    data = reminder.to_dict()
    data["days_until_due"] = reminder_service.days_until_due(reminder)
    return data


@reminders_bp.get("")
@require_auth
@require_permission("VIEW_REMINDERS")
def list_reminders_route():
    """Query params: status, entity_type, entity_id, limit, offset"""
    limit, offset = page_args()
    try:
        rows, total = reminder_service.list_reminders(
            shop_id=g.shop_id,
            status=request.args.get("status"),
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list reminders")
    return jsonify(paged([_with_days(r) for r in rows], total, limit, offset)), 200


@reminders_bp.get("/upcoming")
@require_auth
@require_permission("VIEW_REMINDERS")
def upcoming_reminders_route():
    """Query params: days (1-90, default 7), limit (1-50, default 10)"""
    try:
        rows = reminder_service.upcoming(
            shop_id=g.shop_id,
            days=request.args.get("days"),
            limit=request.args.get("limit"),
        )
    except Exception as e:
        return error_response(e, "list upcoming reminders")
    return jsonify({"items": [_with_days(r) for r in rows], "count": len(rows)}), 200


@reminders_bp.get("/overdue")
@require_auth
@require_permission("VIEW_REMINDERS")
def overdue_reminders_route():
    try:
        rows = reminder_service.overdue(shop_id=g.shop_id)
    except Exception as e:
        return error_response(e, "list overdue reminders")
    return jsonify({"items": [_with_days(r) for r in rows], "count": len(rows)}), 200


@reminders_bp.post("")
@require_auth
@require_permission("MANAGE_REMINDERS")
def create_reminder_route():
    try:
        patch = validate_payload(model=PaymentReminder, payload=json_body(), policy=REMINDER_POLICY, partial=False)
        reminder = reminder_service.create_reminder(
            shop_id=g.shop_id,
            patch=patch,
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "create reminder")
    return jsonify(_with_days(reminder)), 201


@reminders_bp.get("/<int:reminder_id>")
@require_auth
@require_permission("VIEW_REMINDERS")
def get_reminder_route(reminder_id: int):
    try:
        reminder = reminder_service.get_reminder(shop_id=g.shop_id, reminder_id=reminder_id)
    except Exception as e:
        return error_response(e, "load reminder")
    return jsonify(_with_days(reminder)), 200


@reminders_bp.patch("/<int:reminder_id>")
@require_auth
@require_permission("MANAGE_REMINDERS")
def update_reminder_route(reminder_id: int):
    payload = json_body()
    expected_version = payload.pop("version_id", None)
    try:
        patch = validate_payload(model=PaymentReminder, payload=payload, policy=REMINDER_POLICY, partial=True)
        reminder = reminder_service.update_reminder(
            shop_id=g.shop_id,
            reminder_id=reminder_id,
            patch=patch,
            expected_version=expected_version,
        )
    except Exception as e:
        return error_response(e, "update reminder")
    return jsonify(_with_days(reminder)), 200


@reminders_bp.delete("/<int:reminder_id>")
@require_auth
@require_permission("MANAGE_REMINDERS")
def delete_reminder_route(reminder_id: int):
    try:
        reminder_service.delete_reminder(shop_id=g.shop_id, reminder_id=reminder_id)
    except Exception as e:
        return error_response(e, "delete reminder")
    return jsonify({"deleted": True, "id": reminder_id}), 200


@reminders_bp.post("/<int:reminder_id>/complete")
@require_auth
@require_permission("MANAGE_REMINDERS")
def complete_reminder_route(reminder_id: int):
    """Body: {"notes"?}"""
    data = json_body()
    try:
        reminder = reminder_service.mark_completed(
            shop_id=g.shop_id,
            reminder_id=reminder_id,
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "complete reminder")
    return jsonify(_with_days(reminder)), 200


@reminders_bp.post("/<int:reminder_id>/snooze")
@require_auth
@require_permission("MANAGE_REMINDERS")
def snooze_reminder_route(reminder_id: int):
    """Body: {"days"? (1-365, default 7), "reason"?}"""
    data = json_body()
    try:
        reminder = reminder_service.snooze(
            shop_id=g.shop_id,
            reminder_id=reminder_id,
            days=data.get("days"),
            reason=data.get("reason"),
            actor_user_id=g.current_user.id,
        )
    except Exception as e:
        return error_response(e, "snooze reminder")
    return jsonify(_with_days(reminder)), 200
