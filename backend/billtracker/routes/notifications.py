# Overview: Flask API routes for in-app notifications; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..responses import ok
from ..services import notification_service
from ..validation import parse_id_list


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/<company>/notifications")


@notifications_bp.get("")
@require_auth
@require_company()
def list_route(company):
    unread_only = request.args.get("unread", "").lower() in {"1", "true", "yes"}
    notifications = notification_service.list_notifications(
        company.id, g.current_user.id,
        unread_only=unread_only,
        limit=request.args.get("limit", 50, type=int),
    )
    return ok([n.to_dict() for n in notifications])


@notifications_bp.post("/read")
@require_auth
@require_company()
@handle_errors("Failed to mark notifications read")
def mark_read_route(company):
    ids = parse_id_list(request.get_json(silent=True))
    updated = notification_service.mark_read(company.id, g.current_user.id, ids)
    return ok({"updated": updated})
