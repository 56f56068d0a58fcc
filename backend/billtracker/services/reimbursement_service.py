# Overview: Service-layer operations for employee reimbursement requests; encapsulates business logic and database work.

r"""
Reimbursement Sub-flow

    PENDING --approve--> APPROVED --pay--> PAID --convert--> (linked Expense)
       |  \--flag-----> FLAGGED --approve / reject-->
       \--reject-----> REJECTED

The requester counts as the submitter for self-approval checks. Paying the
employee does not create a company Expense; convert_to_expense does, for one
requester at a time.
"""

from __future__ import annotations

from decimal import Decimal

from ..errors import IllegalTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ReimbursementRequest, User
from ..validation import ModelValidationPolicy, require_reason, validate_payload
from billtracker.time_utils import utcnow
from . import approval_service, audit_service, notification_service, payment_service
from .audit_service import AuditAction
from .concurrency import update_where
from .notification_service import NotificationKind
from .tax_service import resolve_tax_fields


class ReimbursementStatus:
    PENDING = "PENDING"
    FLAGGED = "FLAGGED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


ENTITY_TYPE = "reimbursement"
NOT_FOUND_MESSAGE = "ไม่พบคำขอเบิกเงิน"

TAX_FIELDS = {"amount", "vat_rate", "is_wht", "wht_rate", "wht_type"}

REIMBURSEMENT_POLICY = ModelValidationPolicy(
    writable_fields=TAX_FIELDS | {
        "requester_name",
        "bank_account",
        "description",
        "contact_name",
        "category",
        "bill_date",
        "receipt_urls",
    },
    required_on_create={"amount"},
)


def _payload(request: ReimbursementRequest, **extra) -> dict:
    payload = {
        "id": request.id,
        "requester_name": request.requester_name,
        "description": request.description,
        "net_amount": str(request.net_amount),
    }
    payload.update(extra)
    return payload


def _audit(request: ReimbursementRequest, actor_id: int, action: str, description: str,
           before: str | None = None) -> None:
    audit_service.record_audit(
        company_id=request.company_id,
        user_id=actor_id,
        action=action,
        entity_type=ENTITY_TYPE,
        entity_id=request.id,
        description=description,
        changes={"before": {"status": before}, "after": {"status": request.status}} if before else None,
    )


def get(company, request_id: int) -> ReimbursementRequest:
    request = db.session.query(ReimbursementRequest).filter(
        ReimbursementRequest.id == request_id,
        ReimbursementRequest.company_id == company.id,
        ReimbursementRequest.deleted_at.is_(None),
    ).first()
    if request is None:
        raise NotFoundError(NOT_FOUND_MESSAGE)
    return request


def list_requests(company, *, status: str | None = None, requester_id: int | None = None,
                  limit: int = 100) -> list[ReimbursementRequest]:
    query = db.session.query(ReimbursementRequest).filter(
        ReimbursementRequest.company_id == company.id,
        ReimbursementRequest.deleted_at.is_(None),
    )
    if status:
        query = query.filter(ReimbursementRequest.status == status)
    if requester_id is not None:
        query = query.filter(ReimbursementRequest.requester_id == requester_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(ReimbursementRequest.created_at.desc(), ReimbursementRequest.id.desc()).limit(limit).all()


def create(company, actor_id: int, payload: dict) -> ReimbursementRequest:
    patch = validate_payload(model=ReimbursementRequest, payload=payload, policy=REIMBURSEMENT_POLICY, partial=False)
    fields = {k: v for k, v in patch.items() if k not in TAX_FIELDS}
    fields.update(resolve_tax_fields(patch))

    if not fields.get("requester_name"):
        user = db.session.get(User, actor_id)
        fields["requester_name"] = user.name if user else str(actor_id)

    request = ReimbursementRequest(
        company_id=company.id,
        requester_id=actor_id,
        status=ReimbursementStatus.PENDING,
        **fields,
    )
    db.session.add(request)
    db.session.commit()

    _audit(request, actor_id, AuditAction.CREATE, f"ขอเบิกเงิน {request.net_amount} บาท")
    notification_service.notify(company.id, NotificationKind.REIMBURSEMENT_SUBMITTED, _payload(request))
    return request


def flag(company, request_id: int, actor_id: int, reason: str | None) -> ReimbursementRequest:
    """Hold a PENDING request for clarification."""
    request = get(company, request_id)
    if request.status != ReimbursementStatus.PENDING:
        raise IllegalTransitionError(
            "ตั้งข้อสังเกตได้เฉพาะคำขอที่รออนุมัติเท่านั้น", current_status=request.status,
        )
    reason = require_reason(reason, "กรุณาระบุเหตุผลที่ตั้งข้อสังเกต")
    update_where(
        request,
        {"status": ReimbursementStatus.PENDING},
        {"status": ReimbursementStatus.FLAGGED, "flag_reason": reason},
    )
    db.session.commit()
    _audit(request, actor_id, AuditAction.UPDATE, f"ตั้งข้อสังเกต: {reason}", before=ReimbursementStatus.PENDING)
    return request


def approve(company, request_id: int, actor_id: int) -> ReimbursementRequest:
    request = get(company, request_id)
    before = request.status
    approval_service.ensure_can_approve(
        before, actor_id, request.requester_id,
        allowed=(ReimbursementStatus.PENDING, ReimbursementStatus.FLAGGED),
    )
    update_where(
        request,
        {"status": before},
        {"status": ReimbursementStatus.APPROVED, "approved_by": actor_id, "approved_at": utcnow()},
    )
    db.session.commit()

    _audit(request, actor_id, AuditAction.APPROVE, "อนุมัติคำขอเบิกเงิน", before=before)
    notification_service.notify(
        company.id, NotificationKind.REIMBURSEMENT_APPROVED, _payload(request),
        target_user_id=request.requester_id,
    )
    return request


def reject(company, request_id: int, actor_id: int, reason: str | None) -> ReimbursementRequest:
    request = get(company, request_id)
    before = request.status
    reason = approval_service.ensure_can_reject(before, reason)
    update_where(
        request,
        {"status": before},
        {
            "status": ReimbursementStatus.REJECTED,
            "rejected_by": actor_id,
            "rejected_at": utcnow(),
            "rejected_reason": reason,
        },
    )
    db.session.commit()

    _audit(request, actor_id, AuditAction.REJECT, f"ปฏิเสธคำขอเบิกเงิน: {reason}", before=before)
    notification_service.notify(
        company.id, NotificationKind.REIMBURSEMENT_REJECTED, _payload(request, reason=reason),
        target_user_id=request.requester_id,
    )
    return request


def pay(company, request_id: int, actor_id: int, payment_ref: str | None = None) -> ReimbursementRequest:
    """Record that the employee was paid back. Does not book an Expense."""
    request = get(company, request_id)
    if request.status != ReimbursementStatus.APPROVED:
        raise IllegalTransitionError(
            "จ่ายเงินคืนได้เฉพาะคำขอที่อนุมัติแล้วเท่านั้น", current_status=request.status,
        )
    update_where(
        request,
        {"status": ReimbursementStatus.APPROVED},
        {
            "status": ReimbursementStatus.PAID,
            "paid_by": actor_id,
            "paid_at": utcnow(),
            "payment_ref": (payment_ref or "").strip() or None,
        },
    )
    db.session.commit()

    _audit(request, actor_id, AuditAction.PAY, "จ่ายเงินคืนแล้ว", before=ReimbursementStatus.APPROVED)
    notification_service.notify(
        company.id, NotificationKind.REIMBURSEMENT_PAID, _payload(request),
        target_user_id=request.requester_id,
    )
    return request


def convert_to_expense(company, request_ids: list[int], actor_id: int):
    """
    Book PAID requests of one requester as a single COMPLETED company expense.

    Every request must be PAID and not converted yet. Returns the Expense.
    """
    if not request_ids:
        raise ValidationError("กรุณาเลือกรายการที่ต้องการดำเนินการ")
    requests = [get(company, request_id) for request_id in dict.fromkeys(request_ids)]

    for request in requests:
        if request.status != ReimbursementStatus.PAID:
            raise IllegalTransitionError(
                "แปลงเป็นรายจ่ายได้เฉพาะคำขอที่จ่ายเงินแล้วเท่านั้น", current_status=request.status,
            )
        if request.linked_expense_id is not None:
            raise IllegalTransitionError("คำขอนี้ถูกแปลงเป็นรายจ่ายแล้ว", current_status=request.status)

    requesters = {(r.requester_id, r.requester_name if r.requester_id is None else None) for r in requests}
    if len(requesters) != 1:
        raise ValidationError("รายการที่เลือกต้องเป็นของพนักงานคนเดียวกัน")

    name = requests[0].requester_name
    receipts = []
    for request in requests:
        for url in request.receipt_urls or []:
            if url not in receipts:
                receipts.append(url)

    expense = payment_service.book_completed_expense(
        company,
        actor_id,
        amount=sum((r.net_amount for r in requests), Decimal("0")),
        description=f"โอนคืนค่าใช้จ่าย - {name}",
        contact_name=name,
        document_urls=receipts,
        metadata={"reimbursement_ids": [r.id for r in requests]},
    )
    for request in requests:
        update_where(
            request,
            {"status": ReimbursementStatus.PAID, "linked_expense_id": None},
            {"linked_expense_id": expense.id},
        )
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.CREATE,
        entity_type="expense",
        entity_id=expense.id,
        description=expense.description,
        changes={"before": None, "after": {"net_amount": str(expense.net_amount),
                                           "reimbursement_ids": [r.id for r in requests]}},
    )
    return expense
