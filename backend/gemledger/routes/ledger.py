# Overview: Flask API routes for the shop activity ledger (read-only).

from flask import Blueprint, g, jsonify, request

from ..decorators import require_any_permission, require_auth
from ..services.ledger_service import list_activity_events
from ._common import error_response, page_args, paged


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@require_auth
@require_any_permission("VIEW_ACTIVITY_LOG", "VIEW_AUDIT_LOG")
def list_ledger_events():
    """
    Query params:
    - entity_type, entity_id, event_type: optional filters
    - as_of: ISO-8601 datetime, inclusive upper bound on occurred_at
    - limit, offset
    """
    limit, offset = page_args()
    try:
        rows, total = list_activity_events(
            shop_id=g.shop_id,
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            event_type=request.args.get("event_type"),
            as_of=request.args.get("as_of"),
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        return error_response(e, "list activity events")
    return jsonify(paged([ev.to_dict() for ev in rows], total, limit, offset)), 200
