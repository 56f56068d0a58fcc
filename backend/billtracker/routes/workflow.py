# Overview: Flask API routes for the document workflow dashboard; parses input and returns JSON responses.

from flask import Blueprint

from ..decorators import require_auth, require_company
from ..responses import ok
from ..services import transaction_service


workflow_bp = Blueprint("document_workflow", __name__, url_prefix="/api/<company>/document-workflow")


@workflow_bp.get("")
@require_auth
@require_company("expenses:read")
def summary_route(company):
    """Counts per workflow status for expenses and incomes, plus pending approvals."""
    return ok(transaction_service.workflow_summary(company))
