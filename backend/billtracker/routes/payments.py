# Overview: Flask API routes for expense payments, settlements and petty cash; parses input and returns JSON responses.

"""
Payment / settlement API routes

- /api/<company>/expenses/<id>/payments            list, add
- /api/<company>/payments/<id>                     remove
- /api/<company>/payments/<id>/settle              pay back an employee advance
- /api/<company>/settlements                       outstanding advances per payer
- /api/<company>/settlements/create-expense        book settled advances
- /api/<company>/petty-cash                        list, create, replenish
"""

from flask import Blueprint, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..responses import created, ok
from ..services import payment_service, transaction_service
from ..services.workflow_service import EXPENSE
from ..validation import parse_id_list


payments_bp = Blueprint("payments", __name__, url_prefix="/api/<company>")


def _json() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@payments_bp.get("/expenses/<int:expense_id>/payments")
@require_auth
@require_company("settlements:read")
def list_payments_route(company, expense_id: int):
    expense = transaction_service.get(company, EXPENSE, expense_id)
    return ok([p.to_dict() for p in payment_service.list_payments(company, expense.id)])


@payments_bp.post("/expenses/<int:expense_id>/payments")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to add expense payment")
def add_payment_route(company, expense_id: int):
    expense = transaction_service.get(company, EXPENSE, expense_id)
    payment = payment_service.add_payment(company, expense, g.current_user.id, _json())
    return created(payment.to_dict(), message="บันทึกผู้จ่ายเงินแล้ว")


@payments_bp.delete("/payments/<int:payment_id>")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to remove expense payment")
def remove_payment_route(company, payment_id: int):
    payment_service.remove_payment(company, payment_id, g.current_user.id)
    return ok({"id": payment_id}, message="ลบรายการผู้จ่ายเงินแล้ว")


@payments_bp.post("/payments/<int:payment_id>/settle")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to settle expense payment")
def settle_route(company, payment_id: int):
    payment = payment_service.settle_payment(
        company, payment_id, g.current_user.id, settlement_ref=_json().get("settlement_ref"),
    )
    return ok(payment.to_dict(), message="ชำระคืนแล้ว")


@payments_bp.get("/settlements")
@require_auth
@require_company("settlements:read")
def settlement_summary_route(company):
    return ok(payment_service.settlement_summary(company))


@payments_bp.post("/settlements/create-expense")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to create settlement expense")
def create_settlement_expense_route(company):
    ids = parse_id_list(_json())
    expense = payment_service.create_settlement_expense(company, ids, g.current_user.id)
    return created(expense.to_dict(), message="บันทึกเป็นรายจ่ายแล้ว")


@payments_bp.get("/petty-cash")
@require_auth
@require_company("settlements:read")
def list_funds_route(company):
    return ok([f.to_dict() for f in payment_service.list_funds(company)])


@payments_bp.post("/petty-cash")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to create petty cash fund")
def create_fund_route(company):
    fund = payment_service.create_fund(company, g.current_user.id, _json())
    return created(fund.to_dict(), message="สร้างกองทุนเงินสดย่อยแล้ว")


@payments_bp.post("/petty-cash/<int:fund_id>/replenish")
@require_auth
@require_company("settlements:manage")
@handle_errors("Failed to replenish petty cash fund")
def replenish_route(company, fund_id: int):
    fund = payment_service.replenish(company, fund_id, g.current_user.id, _json().get("amount"))
    return ok(fund.to_dict(), message="เติมเงินสดย่อยแล้ว")
