# Overview: Flask API routes for expenses and incomes; parses input and returns JSON responses.

# backend/billtracker/routes/transactions.py
"""
Expense and Income API routes with permission enforcement.

Both blueprints come from one factory; they differ only in direction,
permission module and the name of the settlement action:

    /api/<company>/expenses/<id>/mark-paid
    /api/<company>/incomes/<id>/mark-received
    /api/<company>/incomes/<id>/remind-wht   (income only)
"""

from flask import Blueprint, current_app, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..responses import created, fail, ok
from ..services import audit_service, permission_service, transaction_service, workflow_service
from ..services.workflow_service import EXPENSE, INCOME, WorkflowFlags
from ..validation import parse_id_list


def _json() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _query_int(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def _workflow_view(direction: str, record) -> dict:
    flags = WorkflowFlags.from_record(record)
    return {
        "id": record.id,
        "workflow_status": record.workflow_status,
        "label": workflow_service.status_label(direction, record.workflow_status),
        "is_terminal": workflow_service.is_terminal(direction, record.workflow_status),
        "approval_status": record.approval_status,
        "available_triggers": [
            t for t in workflow_service.available_triggers(direction, record.workflow_status, flags)
            if t != workflow_service.SETTLEMENT_TRIGGERS[direction]
        ],
    }


def create_transaction_blueprint(direction: str) -> Blueprint:
    module = transaction_service.MODULES[direction]
    settle_action = "mark-paid" if direction == EXPENSE else "mark-received"

    bp = Blueprint(module, __name__, url_prefix=f"/api/<company>/{module}")

    @bp.get("")
    @require_auth
    @require_company(f"{module}:read")
    def list_route(company):
        records = transaction_service.list_records(
            company,
            direction,
            workflow_status=request.args.get("workflow_status"),
            approval_status=request.args.get("approval_status"),
            limit=_query_int("limit", 100),
            offset=_query_int("offset", 0),
        )
        return ok([r.to_dict() for r in records])

    @bp.post("")
    @require_auth
    @require_company(f"{module}:create")
    @handle_errors(f"Failed to create {module}")
    def create_route(company):
        record = transaction_service.create(company, direction, g.current_user.id, _json())
        return created(record.to_dict(), message="บันทึกรายการแล้ว")

    @bp.get("/<int:record_id>")
    @require_auth
    @require_company(f"{module}:read")
    def get_route(company, record_id: int):
        record = transaction_service.get(company, direction, record_id)
        return ok(record.to_dict())

    @bp.patch("/<int:record_id>")
    @require_auth
    @require_company(f"{module}:update")
    @handle_errors(f"Failed to update {module}")
    def update_route(company, record_id: int):
        data = _json()
        if "workflow_status" in data:
            permission_service.require_permission(
                g.current_user.id, company.id, f"{module}:change-status",
                resource=request.path, ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
        record = transaction_service.update(company, direction, record_id, g.current_user.id, data)
        return ok(record.to_dict(), message="แก้ไขรายการแล้ว")

    @bp.delete("/<int:record_id>")
    @require_auth
    @require_company(f"{module}:delete")
    @handle_errors(f"Failed to delete {module}")
    def delete_route(company, record_id: int):
        transaction_service.soft_delete(company, direction, record_id, g.current_user.id)
        return ok({"id": record_id}, message="ลบรายการแล้ว")

    @bp.post(f"/<int:record_id>/{settle_action}")
    @require_auth
    @require_company(f"{module}:{settle_action}")
    @handle_errors(f"Failed to {settle_action} {module}")
    def settle_route(company, record_id: int):
        data = _json()
        record = transaction_service.mark_paid_or_received(
            company, direction, record_id, g.current_user.id,
            notes=data.get("notes"), slip_urls=data.get("slip_urls"),
        )
        return ok(record.to_dict(), message=transaction_service.SETTLED_MESSAGES[direction])

    @bp.post("/<int:record_id>/submit")
    @require_auth
    @require_company(f"{module}:create")
    @handle_errors(f"Failed to submit {module}")
    def submit_route(company, record_id: int):
        record = transaction_service.submit(company, direction, record_id, g.current_user.id)
        return ok(record.to_dict(), message="ส่งขออนุมัติแล้ว")

    @bp.post("/<int:record_id>/approve")
    @require_auth
    @require_company(f"{module}:approve")
    @handle_errors(f"Failed to approve {module}")
    def approve_route(company, record_id: int):
        record = transaction_service.approve(
            company, direction, record_id, g.current_user.id, notes=_json().get("notes"),
        )
        return ok(record.to_dict(), message="อนุมัติแล้ว")

    @bp.post("/<int:record_id>/reject")
    @require_auth
    @require_company(f"{module}:approve")
    @handle_errors(f"Failed to reject {module}")
    def reject_route(company, record_id: int):
        record = transaction_service.reject(
            company, direction, record_id, g.current_user.id, _json().get("reason"),
        )
        return ok(record.to_dict(), message="ปฏิเสธแล้ว")

    @bp.post("/<int:record_id>/withdraw")
    @require_auth
    @require_company(f"{module}:create")
    @handle_errors(f"Failed to withdraw {module}")
    def withdraw_route(company, record_id: int):
        record = transaction_service.withdraw(company, direction, record_id, g.current_user.id)
        return ok(record.to_dict(), message="ยกเลิกคำขออนุมัติแล้ว")

    @bp.get("/<int:record_id>/workflow")
    @require_auth
    @require_company(f"{module}:read")
    def workflow_get_route(company, record_id: int):
        record = transaction_service.get(company, direction, record_id)
        return ok(_workflow_view(direction, record))

    @bp.post("/<int:record_id>/workflow")
    @require_auth
    @require_company(f"{module}:change-status")
    @handle_errors(f"Failed to advance {module} workflow")
    def workflow_route(company, record_id: int):
        data = _json()
        trigger = data.get("trigger")
        if not trigger:
            return fail("กรุณาระบุการดำเนินการ", "VALIDATION_ERROR", 400)
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            return fail("metadata must be an object", "VALIDATION_ERROR", 400)
        record = transaction_service.advance(
            company, direction, record_id, g.current_user.id, trigger,
            notes=data.get("notes"), metadata=metadata, urls=data.get("urls"),
        )
        return ok(_workflow_view(direction, record) | {"record": record.to_dict()})

    @bp.get("/<int:record_id>/events")
    @require_auth
    @require_company(f"{module}:read")
    def events_route(company, record_id: int):
        record = transaction_service.get(company, direction, record_id)
        return ok([e.to_dict() for e in audit_service.list_events(record)])

    @bp.post("/batch/approve")
    @require_auth
    @require_company(f"{module}:approve")
    @handle_errors(f"Failed to batch approve {module}")
    def batch_approve_route(company):
        ids = parse_id_list(_json(), limit=current_app.config["APPROVAL_BATCH_LIMIT"])
        batch = transaction_service.batch_approve(company, direction, ids, g.current_user.id)
        result = batch.to_dict("อนุมัติ")
        return ok(result, message=result["message"])

    @bp.post("/batch/reject")
    @require_auth
    @require_company(f"{module}:approve")
    @handle_errors(f"Failed to batch reject {module}")
    def batch_reject_route(company):
        data = _json()
        ids = parse_id_list(data, limit=current_app.config["APPROVAL_BATCH_LIMIT"])
        batch = transaction_service.batch_reject(company, direction, ids, g.current_user.id, data.get("reason"))
        result = batch.to_dict("ปฏิเสธ")
        return ok(result, message=result["message"])

    if direction == INCOME:
        @bp.post("/<int:record_id>/remind-wht")
        @require_auth
        @require_company("incomes:change-status")
        @handle_errors("Failed to record WHT reminder")
        def remind_wht_route(company, record_id: int):
            record = transaction_service.record_wht_reminder(
                company, record_id, g.current_user.id, notes=_json().get("notes"),
            )
            return ok(record.to_dict(), message="บันทึกการติดตามใบ 50 ทวิแล้ว")

    return bp


expenses_bp = create_transaction_blueprint(EXPENSE)
incomes_bp = create_transaction_blueprint(INCOME)
