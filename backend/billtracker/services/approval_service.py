# Overview: Approval gate rules shared by expenses, incomes and reimbursements.

r"""
Approval Gate

================================================================================
PURPOSE: Decide whether an approval action is allowed right now, and whether a
record may be marked paid / received.
================================================================================

Approval status is independent of the document workflow status:

    NOT_REQUIRED --submit--> PENDING --approve--> APPROVED
                               |  \--reject---> REJECTED --edit--> NOT_REQUIRED
                               \--withdraw--> NOT_REQUIRED

RULES (NON-NEGOTIABLE):
1. PENDING blocks mark-paid / mark-received; so does REJECTED
2. Nobody approves their own submission (approved_by != submitted_by)
3. Rejection always carries a non-empty reason
4. Only the submitter or the record's creator may withdraw
5. Records start PENDING only when the company sets an approval threshold,
   the net amount reaches it, and the creator lacks the create-direct
   permission

The functions here only validate and raise. Persisting the new status is the
caller's job (conditional update, see concurrency.update_where).
================================================================================
"""

from __future__ import annotations

from decimal import Decimal

from ..errors import (
    ApprovalPendingError,
    ApprovalRejectedError,
    ForbiddenError,
    IllegalTransitionError,
    SelfApprovalError,
)
from ..validation import require_reason


class ApprovalStatus:
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"


APPROVAL_LABELS = {
    ApprovalStatus.NOT_REQUIRED: "ไม่ต้องอนุมัติ",
    ApprovalStatus.PENDING: "รออนุมัติ",
    ApprovalStatus.APPROVED: "อนุมัติแล้ว",
    ApprovalStatus.REJECTED: "ถูกปฏิเสธ",
    ApprovalStatus.FLAGGED: "ถูกตั้งข้อสังเกต",
}

SETTLEMENT_ALLOWED = {ApprovalStatus.NOT_REQUIRED, ApprovalStatus.APPROVED}


def check_settlement_allowed(approval_status: str) -> None:
    """Gate for mark-paid / mark-received."""
    if approval_status == ApprovalStatus.PENDING:
        raise ApprovalPendingError()
    if approval_status == ApprovalStatus.REJECTED:
        raise ApprovalRejectedError()
    if approval_status not in SETTLEMENT_ALLOWED:
        raise IllegalTransitionError(
            f"ไม่สามารถบันทึกการชำระได้ในสถานะ \"{APPROVAL_LABELS.get(approval_status, approval_status)}\"",
            current_status=approval_status,
        )


def initial_status(threshold, net_amount, can_create_direct: bool) -> str:
    """Seed approval status for a new record from the company policy."""
    if threshold is None or can_create_direct:
        return ApprovalStatus.NOT_REQUIRED
    if Decimal(net_amount) >= Decimal(threshold):
        return ApprovalStatus.PENDING
    return ApprovalStatus.NOT_REQUIRED


def ensure_can_submit(approval_status: str, workflow_status: str) -> None:
    if workflow_status != "DRAFT":
        raise IllegalTransitionError("รายการนี้ไม่อยู่ในสถานะร่าง", current_status=workflow_status)
    if approval_status == ApprovalStatus.PENDING:
        raise IllegalTransitionError("รายการนี้ส่งขออนุมัติแล้ว", current_status=approval_status)
    if approval_status != ApprovalStatus.NOT_REQUIRED:
        raise IllegalTransitionError(
            f"ไม่สามารถส่งขออนุมัติได้ในสถานะ \"{APPROVAL_LABELS.get(approval_status, approval_status)}\"",
            current_status=approval_status,
        )


def ensure_can_approve(approval_status: str, actor_id: int, submitter_id: int | None,
                       allowed=(ApprovalStatus.PENDING,)) -> None:
    if approval_status not in allowed:
        raise IllegalTransitionError(
            "สามารถอนุมัติได้เฉพาะรายการที่รออนุมัติเท่านั้น", current_status=approval_status
        )
    if submitter_id is not None and actor_id == submitter_id:
        raise SelfApprovalError()


def ensure_can_reject(approval_status: str, reason: str | None,
                      allowed=(ApprovalStatus.PENDING, ApprovalStatus.FLAGGED)) -> str:
    """Returns the cleaned reason."""
    if approval_status not in allowed:
        raise IllegalTransitionError(
            "สามารถปฏิเสธได้เฉพาะรายการที่รออนุมัติเท่านั้น", current_status=approval_status
        )
    return require_reason(reason)


def ensure_can_withdraw(approval_status: str, actor_id: int, submitted_by: int | None,
                        created_by: int | None) -> None:
    if approval_status != ApprovalStatus.PENDING:
        raise IllegalTransitionError(
            "สามารถยกเลิกได้เฉพาะรายการที่รออนุมัติเท่านั้น", current_status=approval_status
        )
    if actor_id not in {submitted_by, created_by}:
        raise ForbiddenError("เฉพาะผู้ส่งคำขอหรือผู้สร้างรายการเท่านั้นที่สามารถยกเลิกคำขอได้")


def is_editable(approval_status: str) -> bool:
    """Financial fields may change only before submission or after rejection."""
    return approval_status in {ApprovalStatus.NOT_REQUIRED, ApprovalStatus.REJECTED}
