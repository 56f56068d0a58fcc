# Overview: Flask API routes for the company audit trail; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_company
from ..responses import ok
from ..services import audit_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/<company>/audit-logs")


@audit_bp.get("")
@require_auth
@require_company("audit:read")
def list_route(company):
    """
    Audit trail for a company, newest first.

    Query: entity_type, entity_id, limit (max 500)
    """
    entries = audit_service.list_audit(
        company.id,
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return ok([e.to_dict() for e in entries])
