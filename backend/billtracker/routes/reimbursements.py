# Overview: Flask API routes for reimbursement requests; parses input and returns JSON responses.

"""Employee reimbursement API routes with permission enforcement"""

from flask import Blueprint, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..responses import created, ok
from ..services import reimbursement_service
from ..validation import parse_id_list


reimbursements_bp = Blueprint("reimbursements", __name__, url_prefix="/api/<company>/reimbursements")


def _json() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@reimbursements_bp.get("")
@require_auth
@require_company("reimbursements:read")
def list_route(company):
    requester_id = request.args.get("requester_id", type=int)
    requests = reimbursement_service.list_requests(
        company,
        status=request.args.get("status"),
        requester_id=requester_id,
        limit=request.args.get("limit", 100, type=int),
    )
    return ok([r.to_dict() for r in requests])


@reimbursements_bp.post("")
@require_auth
@require_company("reimbursements:create")
@handle_errors("Failed to create reimbursement request")
def create_route(company):
    """
    Submit a reimbursement request. The caller is the requester.

    Requires: reimbursements:create
    """
    request_obj = reimbursement_service.create(company, g.current_user.id, _json())
    return created(request_obj.to_dict(), message="ส่งคำขอเบิกเงินแล้ว")


@reimbursements_bp.get("/<int:request_id>")
@require_auth
@require_company("reimbursements:read")
def get_route(company, request_id: int):
    return ok(reimbursement_service.get(company, request_id).to_dict())


@reimbursements_bp.post("/<int:request_id>/flag")
@require_auth
@require_company("reimbursements:approve")
@handle_errors("Failed to flag reimbursement request")
def flag_route(company, request_id: int):
    request_obj = reimbursement_service.flag(company, request_id, g.current_user.id, _json().get("reason"))
    return ok(request_obj.to_dict(), message="ตั้งข้อสังเกตแล้ว")


@reimbursements_bp.post("/<int:request_id>/approve")
@require_auth
@require_company("reimbursements:approve")
@handle_errors("Failed to approve reimbursement request")
def approve_route(company, request_id: int):
    request_obj = reimbursement_service.approve(company, request_id, g.current_user.id)
    return ok(request_obj.to_dict(), message="อนุมัติแล้ว")


@reimbursements_bp.post("/<int:request_id>/reject")
@require_auth
@require_company("reimbursements:approve")
@handle_errors("Failed to reject reimbursement request")
def reject_route(company, request_id: int):
    request_obj = reimbursement_service.reject(company, request_id, g.current_user.id, _json().get("reason"))
    return ok(request_obj.to_dict(), message="ปฏิเสธแล้ว")


@reimbursements_bp.post("/<int:request_id>/pay")
@require_auth
@require_company("reimbursements:pay")
@handle_errors("Failed to pay reimbursement request")
def pay_route(company, request_id: int):
    request_obj = reimbursement_service.pay(
        company, request_id, g.current_user.id, payment_ref=_json().get("payment_ref"),
    )
    return ok(request_obj.to_dict(), message="จ่ายเงินคืนแล้ว")


@reimbursements_bp.post("/convert")
@require_auth
@require_company("reimbursements:pay")
@handle_errors("Failed to convert reimbursements to expense")
def convert_route(company):
    """
    Book PAID requests of one requester as a single company expense.

    Body: {"ids": [1, 2, 3]}
    """
    ids = parse_id_list(_json())
    expense = reimbursement_service.convert_to_expense(company, ids, g.current_user.id)
    return created(expense.to_dict(), message="บันทึกเป็นรายจ่ายแล้ว")
