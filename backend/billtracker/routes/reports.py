# Overview: Flask API routes for tax reports and the tax calculator; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..responses import ok
from ..services import permission_service, reporting_service
from billtracker.time_utils import bangkok_today


reports_bp = Blueprint("reports", __name__, url_prefix="/api/<company>")


@reports_bp.get("/reports/tax")
@require_auth
@require_company("expenses:read")
def tax_report_route(company):
    """
    Monthly VAT / WHT summary.

    Query: year, month (default: current month)
    Requires: expenses:read and incomes:read
    """
    permission_service.require_permission(
        g.current_user.id, company.id, "incomes:read",
        resource=request.path, ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    today = bangkok_today()
    report = reporting_service.tax_report(
        company,
        year=request.args.get("year", today.year, type=int),
        month=request.args.get("month", today.month, type=int),
    )
    return ok(report)


@reports_bp.post("/tax/calculate")
@require_auth
@require_company()
@handle_errors("Failed to calculate tax")
def calculate_route(company):
    """
    Body: {"amount": "1070", "vat_rate": 7, "vat_included": true, "wht_type": "SERVICE_3"}
    """
    data = request.get_json(silent=True)
    return ok(reporting_service.calculate(data if isinstance(data, dict) else {}))
