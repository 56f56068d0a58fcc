# Overview: Service-layer operations for expenses and incomes; encapsulates business logic and database work.

"""
Transaction Aggregate Service (Expense / Income)

The only code path allowed to write workflow_status and approval_status
on expenses and incomes. Every operation follows the same shape:

    load (company-scoped, not deleted)
      -> validate (approval gate / workflow engine / tax calculator)
      -> conditional UPDATE on the state that was read (update_where)
      -> DocumentEvent in the same transaction
      -> commit
      -> audit log (best effort)
      -> notification (best effort)

DIRECTION: `direction` is "EXPENSE" or "INCOME". The two share this module;
only vocabulary differs (mark-paid vs mark-received, tax invoice vs issued
invoice, WHT certificate issued vs received).

SECURITY: Records outside the caller's company raise NotFoundError, exactly
like ids that do not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func

from ..errors import (
    BillTrackerError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Expense, Income
from ..validation import ModelValidationPolicy, enforce_choice, validate_payload
from . import approval_service, audit_service, notification_service, permission_service, workflow_service
from .approval_service import ApprovalStatus
from .audit_service import AuditAction, EventType
from .concurrency import run_with_retry, update_where
from .tax_service import resolve_tax_fields
from .workflow_service import EXPENSE, INCOME, Trigger, WorkflowFlags
from billtracker.time_utils import utcnow


DEFAULT_BATCH_LIMIT = 50

MODELS = {EXPENSE: Expense, INCOME: Income}
MODULES = {EXPENSE: "expenses", INCOME: "incomes"}
ENTITY_TYPES = {EXPENSE: "expense", INCOME: "income"}
DATE_FIELDS = {EXPENSE: "bill_date", INCOME: "receive_date"}
SETTLED_AT_FIELDS = {EXPENSE: "paid_at", INCOME: "received_at"}

NOT_FOUND_MESSAGES = {EXPENSE: "ไม่พบรายจ่าย", INCOME: "ไม่พบรายรับ"}
SETTLED_MESSAGES = {EXPENSE: "บันทึกจ่ายเงินแล้ว", INCOME: "บันทึกรับเงินแล้ว"}

NOTIFY_KINDS = {
    (EXPENSE, "submitted"): notification_service.NotificationKind.EXPENSE_SUBMITTED,
    (EXPENSE, "approved"): notification_service.NotificationKind.EXPENSE_APPROVED,
    (EXPENSE, "rejected"): notification_service.NotificationKind.EXPENSE_REJECTED,
    (INCOME, "submitted"): notification_service.NotificationKind.INCOME_SUBMITTED,
    (INCOME, "approved"): notification_service.NotificationKind.INCOME_APPROVED,
    (INCOME, "rejected"): notification_service.NotificationKind.INCOME_REJECTED,
}

TAX_FIELDS = {"amount", "vat_rate", "is_wht", "wht_rate", "wht_type"}
DERIVED_FIELDS = {"vat_amount", "wht_amount", "net_amount"}

DESCRIPTIVE_FIELDS = {
    "contact_name",
    "description",
    "category",
    "payment_method",
    "invoice_number",
    "reference_no",
    "notes",
    "document_type",
    "has_required_document",
    "slip_urls",
    "document_urls",
    "wht_cert_urls",
}

AUDITED_FIELDS = sorted(
    TAX_FIELDS | DERIVED_FIELDS | DESCRIPTIVE_FIELDS | {"workflow_status", "approval_status"}
)


@dataclass(frozen=True)
class TriggerEffect:
    """What firing a document trigger stamps on the record besides its status."""
    event_type: str
    timestamp_field: str | None = None
    sets_flag: str | None = None
    url_field: str | None = None
    requires_urls: bool = False


TRIGGER_EFFECTS = {
    EXPENSE: {
        Trigger.MARK_PAID: TriggerEffect(EventType.MARKED_AS_PAID, "paid_at", url_field="slip_urls"),
        Trigger.DOCUMENT_RECEIVED: TriggerEffect(
            EventType.TAX_INVOICE_RECEIVED, "document_received_at",
            sets_flag="has_required_document", url_field="document_urls", requires_urls=True,
        ),
        Trigger.WHT_ISSUED: TriggerEffect(
            EventType.WHT_CERT_ISSUED, "wht_cert_issued_at", sets_flag="has_wht_cert", url_field="wht_cert_urls",
        ),
        Trigger.SENT_TO_VENDOR: TriggerEffect(EventType.WHT_CERT_SENT, "wht_cert_sent_at"),
        Trigger.READY_FOR_ACCOUNTING: TriggerEffect(EventType.STATUS_CHANGED),
        Trigger.SEND: TriggerEffect(EventType.SENT_TO_ACCOUNTANT, "sent_to_accountant_at"),
        Trigger.CONFIRM: TriggerEffect(EventType.STATUS_CHANGED, "completed_at"),
    },
    INCOME: {
        Trigger.MARK_RECEIVED: TriggerEffect(EventType.MARKED_AS_PAID, "received_at", url_field="slip_urls"),
        Trigger.INVOICE_ISSUED: TriggerEffect(
            EventType.INVOICE_ISSUED, "invoice_issued_at",
            sets_flag="has_required_document", url_field="document_urls", requires_urls=True,
        ),
        Trigger.WHT_CERT_RECEIVED: TriggerEffect(
            EventType.WHT_CERT_RECEIVED, "wht_cert_received_at", sets_flag="has_wht_cert", url_field="wht_cert_urls",
        ),
        Trigger.SEND: TriggerEffect(EventType.SENT_TO_ACCOUNTANT, "sent_to_accountant_at"),
    },
}


@dataclass
class BatchResult:
    results: list = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    def add(self, item_id: int, success: bool, error: str | None = None, code: str | None = None) -> None:
        entry = {"id": item_id, "success": success}
        if not success:
            entry["error"] = error
            entry["code"] = code
        self.results.append(entry)

    def to_dict(self, verb: str) -> dict:
        return {
            "results": self.results,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "message": f"{verb}แล้ว {self.succeeded} รายการ, ไม่สำเร็จ {self.failed} รายการ",
        }


def _model(direction: str):
    try:
        return MODELS[direction]
    except KeyError:
        raise ValueError(f"Unknown direction: {direction}")


def _policy(direction: str) -> ModelValidationPolicy:
    return ModelValidationPolicy(
        writable_fields=TAX_FIELDS | DESCRIPTIVE_FIELDS | {DATE_FIELDS[direction]},
        required_on_create={"amount"},
    )


def _check_urls(urls, field: str = "urls") -> None:
    if urls is not None and (not isinstance(urls, list) or not all(isinstance(u, str) for u in urls)):
        raise ValidationError(f"{field} must be a list of strings")


def _merge_urls(existing, extra) -> list[str]:
    merged = list(existing or [])
    for url in extra or []:
        if url and url not in merged:
            merged.append(url)
    return merged


def _notification_payload(record, **extra) -> dict:
    payload = {
        "direction": record.DIRECTION,
        "id": record.id,
        "description": record.description,
        "contact_name": record.contact_name,
        "net_amount": str(record.net_amount),
    }
    payload.update(extra)
    return payload


def _policy_approval(company, net_amount, actor_id: int, direction: str) -> str:
    can_direct = permission_service.has_permission(
        actor_id, company.id, f"{MODULES[direction]}:create-direct"
    )
    return approval_service.initial_status(company.approval_threshold, net_amount, can_direct)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get(company, direction: str, record_id: int):
    """Company-scoped lookup of a live (not deleted) record."""
    model = _model(direction)
    record = db.session.query(model).filter(
        model.id == record_id,
        model.company_id == company.id,
        model.deleted_at.is_(None),
    ).first()
    if record is None:
        raise NotFoundError(NOT_FOUND_MESSAGES[direction])
    return record


def list_records(
    company,
    direction: str,
    *,
    workflow_status: str | None = None,
    approval_status: str | None = None,
    limit: int = 100,
    offset: int = 0,
):
    model = _model(direction)
    query = db.session.query(model).filter(
        model.company_id == company.id,
        model.deleted_at.is_(None),
    )
    if workflow_status:
        query = query.filter(model.workflow_status == workflow_status)
    if approval_status:
        query = query.filter(model.approval_status == approval_status)
    limit = max(1, min(int(limit), 500))
    return query.order_by(model.created_at.desc(), model.id.desc()).offset(max(0, int(offset))).limit(limit).all()


def workflow_summary(company) -> dict:
    """Counts per workflow / approval bucket for the document-workflow dashboard."""
    summary = {}
    for direction, model in MODELS.items():
        rows = db.session.query(model.workflow_status, func.count(model.id)).filter(
            model.company_id == company.id,
            model.deleted_at.is_(None),
        ).group_by(model.workflow_status).all()
        by_status = {status: count for status, count in rows}
        pending_approval = db.session.query(func.count(model.id)).filter(
            model.company_id == company.id,
            model.deleted_at.is_(None),
            model.approval_status == ApprovalStatus.PENDING,
        ).scalar()
        summary[ENTITY_TYPES[direction]] = {
            "by_status": {
                status: {
                    "label": workflow_service.status_label(direction, status),
                    "count": by_status.get(status, 0),
                }
                for status in workflow_service.statuses(direction)
            },
            "pending_approval": pending_approval,
        }
    summary["pending_accounting"] = sum(
        summary[ENTITY_TYPES[d]]["by_status"]["READY_FOR_ACCOUNTING"]["count"] for d in MODELS
    )
    return summary


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------

def create(company, direction: str, actor_id: int, payload: dict):
    """
    Create a DRAFT record. Derived tax amounts are always recomputed here.

    Approval status is seeded from the company's approval threshold.
    """
    model = _model(direction)
    patch = validate_payload(model=model, payload=payload, policy=_policy(direction), partial=False)
    enforce_choice(patch, "document_type", workflow_service.DOCUMENT_TYPES)

    tax = resolve_tax_fields(patch)
    fields = {k: v for k, v in patch.items() if k not in TAX_FIELDS}
    fields.update(tax)
    fields["has_required_document"] = bool(fields.get("has_required_document")) or bool(fields.get("document_urls"))

    now = utcnow()
    approval = _policy_approval(company, tax["net_amount"], actor_id, direction)

    record = model(
        company_id=company.id,
        created_by=actor_id,
        workflow_status=workflow_service.ExpenseStatus.DRAFT,
        approval_status=approval,
        created_at=now,
        updated_at=now,
        **fields,
    )
    if approval == ApprovalStatus.PENDING:
        record.submitted_by = actor_id
        record.submitted_at = now

    db.session.add(record)
    db.session.flush()
    audit_service.record_event(
        record, event_type=EventType.CREATED, actor_id=actor_id, to_status=record.workflow_status,
    )
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.CREATE,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=f"สร้าง{_noun(direction)} {record.description or ''}".strip(),
        changes={"before": None, "after": audit_service.snapshot(record, AUDITED_FIELDS)},
    )
    if approval == ApprovalStatus.PENDING:
        notification_service.notify(
            company.id, NOTIFY_KINDS[(direction, "submitted")], _notification_payload(record),
        )
    return record


def _noun(direction: str) -> str:
    return "รายจ่าย" if direction == EXPENSE else "รายรับ"


def update(company, direction: str, record_id: int, actor_id: int, payload: dict):
    """
    Edit a record.

    - Tax inputs (amount, rates, WHT) may change only while the record is a
      DRAFT that is not awaiting approval; derived amounts are recomputed.
      Editing tax inputs re-applies the approval policy, so a rejected
      record returns to NOT_REQUIRED (or PENDING again above threshold).
    - A workflow_status in the payload is a direct status edit: it must be
      reachable by one document trigger from the current status and is
      recorded as STATUS_CHANGE. Everything else is recorded as UPDATE.
    """
    payload = dict(payload or {})
    target_status = payload.pop("workflow_status", None)

    record = get(company, direction, record_id)
    model = type(record)
    before = audit_service.snapshot(record, AUDITED_FIELDS)

    patch = validate_payload(model=model, payload=payload, policy=_policy(direction), partial=True)
    enforce_choice(patch, "document_type", workflow_service.DOCUMENT_TYPES)

    if TAX_FIELDS & patch.keys():
        if record.workflow_status != "DRAFT" or not approval_service.is_editable(record.approval_status):
            raise IllegalTransitionError(
                "ไม่สามารถแก้ไขยอดเงินได้ เนื่องจากรายการอยู่ระหว่างอนุมัติหรือดำเนินการแล้ว",
                current_status=record.approval_status if record.workflow_status == "DRAFT" else record.workflow_status,
            )
        merged = {f: getattr(record, f) for f in TAX_FIELDS}
        merged.update({k: v for k, v in patch.items() if k in TAX_FIELDS})
        if "is_wht" in patch and patch["is_wht"] and "wht_rate" not in patch and not record.is_wht:
            merged["wht_rate"] = None
        patch.update(resolve_tax_fields(merged))

        approval = _policy_approval(company, patch["net_amount"], actor_id, direction)
        patch["approval_status"] = approval
        if approval == ApprovalStatus.PENDING:
            patch["submitted_by"] = actor_id
            patch["submitted_at"] = utcnow()
        else:
            patch["submitted_by"] = None
            patch["submitted_at"] = None

    if "document_urls" in patch and patch["document_urls"]:
        patch.setdefault("has_required_document", True)

    if patch:
        update_where(record, {}, patch)

    status_changed = target_status is not None and target_status != record.workflow_status
    if status_changed:
        flags = WorkflowFlags.from_record(record)
        trigger = workflow_service.trigger_for_target(direction, record.workflow_status, target_status, flags)
        if trigger is None:
            raise IllegalTransitionError(
                f"ไม่สามารถเปลี่ยนสถานะจาก \"{workflow_service.status_label(direction, record.workflow_status)}\" "
                f"เป็น \"{workflow_service.status_label(direction, target_status)}\" ได้",
                current_status=record.workflow_status,
            )
        _fire(record, direction, trigger, actor_id, event_type=EventType.STATUS_CHANGED)
    elif patch:
        audit_service.record_event(record, event_type=EventType.UPDATED, actor_id=actor_id)

    db.session.commit()

    after = audit_service.snapshot(record, AUDITED_FIELDS)
    changes = audit_service.diff(before, after)
    if changes["after"]:
        audit_service.record_audit(
            company_id=company.id,
            user_id=actor_id,
            action=AuditAction.STATUS_CHANGE if status_changed else AuditAction.UPDATE,
            entity_type=ENTITY_TYPES[direction],
            entity_id=record.id,
            description=f"แก้ไข{_noun(direction)}",
            changes=changes,
        )
    if record.approval_status == ApprovalStatus.PENDING and before["approval_status"] != ApprovalStatus.PENDING:
        notification_service.notify(
            company.id, NOTIFY_KINDS[(direction, "submitted")], _notification_payload(record),
        )
    return record


def soft_delete(company, direction: str, record_id: int, actor_id: int):
    record = get(company, direction, record_id)
    now = utcnow()
    update_where(record, {"deleted_at": None}, {"deleted_at": now, "deleted_by": actor_id})
    audit_service.record_event(record, event_type=EventType.DELETED, actor_id=actor_id)
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.DELETE,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=f"ลบ{_noun(direction)}",
    )
    return record


# ---------------------------------------------------------------------------
# Workflow transitions
# ---------------------------------------------------------------------------

def _fire(record, direction: str, trigger: str, actor_id: int, *,
          event_type: str | None = None, notes: str | None = None,
          metadata: dict | None = None, urls=None, extra_expected: dict | None = None):
    """
    Apply one trigger: engine -> conditional update -> event. Does not commit.
    """
    effect = TRIGGER_EFFECTS[direction].get(trigger)
    if effect is None:
        raise IllegalTransitionError(f"ไม่รู้จักการดำเนินการ '{trigger}'", current_status=record.workflow_status)

    now = utcnow()
    patch = {}
    if effect.url_field:
        merged = _merge_urls(getattr(record, effect.url_field), urls)
        if merged != list(getattr(record, effect.url_field) or []):
            patch[effect.url_field] = merged
    if effect.requires_urls and not _merge_urls(getattr(record, effect.url_field), urls):
        raise ValidationError("กรุณาแนบเอกสารก่อนบันทึกว่าได้รับเอกสารแล้ว")
    if effect.sets_flag:
        patch[effect.sets_flag] = True
    if effect.timestamp_field:
        patch[effect.timestamp_field] = now

    flags = WorkflowFlags(
        document_type=record.document_type,
        has_required_document=bool(patch.get("has_required_document", record.has_required_document)),
        is_wht=bool(record.is_wht),
    )
    transition = workflow_service.apply_transition(direction, record.workflow_status, trigger, flags)
    patch["workflow_status"] = transition.target

    expected = {"workflow_status": record.workflow_status}
    expected.update(extra_expected or {})
    update_where(record, expected, patch)

    event_metadata = dict(metadata or {})
    if len(transition.path) > 1:
        event_metadata["path"] = list(transition.path)
    audit_service.record_event(
        record,
        event_type=event_type or effect.event_type,
        actor_id=actor_id,
        from_status=transition.source,
        to_status=transition.target,
        notes=notes,
        metadata=event_metadata or None,
    )
    return transition


def mark_paid_or_received(company, direction: str, record_id: int, actor_id: int, *,
                          notes: str | None = None, slip_urls=None):
    """
    mark-paid (expense) / mark-received (income).

    Approval gate first: PENDING and REJECTED records cannot be settled.
    """
    _check_urls(slip_urls, "slip_urls")
    record = get(company, direction, record_id)
    approval_service.check_settlement_allowed(record.approval_status)

    trigger = workflow_service.SETTLEMENT_TRIGGERS[direction]
    from_status = record.workflow_status
    transition = _fire(
        record, direction, trigger, actor_id,
        notes=notes, urls=slip_urls,
        extra_expected={"approval_status": record.approval_status},
    )
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.STATUS_CHANGE,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=SETTLED_MESSAGES[direction],
        changes={"before": {"workflow_status": from_status}, "after": {"workflow_status": transition.target}},
    )
    return record


def advance(company, direction: str, record_id: int, actor_id: int, trigger: str, *,
            notes: str | None = None, metadata: dict | None = None, urls=None):
    """Document workflow action (tax invoice received, 50 Tawi issued, sent to accountant, ...)."""
    if trigger == workflow_service.SETTLEMENT_TRIGGERS[direction]:
        raise ValidationError("กรุณาใช้การบันทึกจ่าย/รับเงินสำหรับการดำเนินการนี้")
    _check_urls(urls)

    record = get(company, direction, record_id)
    from_status = record.workflow_status
    transition = _fire(record, direction, trigger, actor_id, notes=notes, metadata=metadata, urls=urls)
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.STATUS_CHANGE,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=f"{workflow_service.status_label(direction, from_status)} → "
                    f"{workflow_service.status_label(direction, transition.target)}",
        changes={"before": {"workflow_status": from_status}, "after": {"workflow_status": transition.target}},
    )
    return record


def record_wht_reminder(company, record_id: int, actor_id: int | None, *, notes: str | None = None,
                        now=None):
    """
    Note that the customer was chased for their 50 Tawi certificate.

    Does not change workflow_status. actor_id is None when the scheduled
    scan sends the reminder.
    """
    record = get(company, INCOME, record_id)
    if record.workflow_status != workflow_service.IncomeStatus.WHT_PENDING_CERT:
        raise IllegalTransitionError(
            "ส่งการแจ้งเตือนได้เฉพาะรายการที่รอใบ 50 ทวิเท่านั้น", current_status=record.workflow_status,
        )
    now = now or utcnow()
    update_where(
        record,
        {"workflow_status": record.workflow_status},
        {"wht_cert_reminded_at": now, "wht_cert_remind_count": (record.wht_cert_remind_count or 0) + 1},
    )
    audit_service.record_event(
        record,
        event_type=EventType.WHT_REMINDER_SENT,
        actor_id=actor_id,
        notes=notes,
        metadata={"count": record.wht_cert_remind_count},
    )
    db.session.commit()

    notification_service.notify(
        company.id,
        notification_service.NotificationKind.WHT_REMINDER,
        _notification_payload(
            record,
            remind_count=record.wht_cert_remind_count,
            days_waiting=(now - record.received_at).days if record.received_at else None,
        ),
    )
    return record


# ---------------------------------------------------------------------------
# Approval
# ---------------------------------------------------------------------------

def submit(company, direction: str, record_id: int, actor_id: int):
    record = get(company, direction, record_id)
    approval_service.ensure_can_submit(record.approval_status, record.workflow_status)

    update_where(
        record,
        {"approval_status": record.approval_status},
        {
            "approval_status": ApprovalStatus.PENDING,
            "submitted_by": actor_id,
            "submitted_at": utcnow(),
        },
    )
    audit_service.record_event(
        record, event_type=EventType.SUBMITTED_FOR_APPROVAL, actor_id=actor_id,
        from_status=record.workflow_status, to_status=record.workflow_status,
    )
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.SUBMIT,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description="ส่งคำขออนุมัติแล้ว",
    )
    notification_service.notify(company.id, NOTIFY_KINDS[(direction, "submitted")], _notification_payload(record))
    return record


def approve(company, direction: str, record_id: int, actor_id: int, *, notes: str | None = None):
    record = get(company, direction, record_id)
    approval_service.ensure_can_approve(record.approval_status, actor_id, record.submitted_by)

    update_where(
        record,
        {"approval_status": ApprovalStatus.PENDING},
        {
            "approval_status": ApprovalStatus.APPROVED,
            "approved_by": actor_id,
            "approved_at": utcnow(),
        },
    )
    audit_service.record_event(record, event_type=EventType.APPROVED, actor_id=actor_id, notes=notes)
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.APPROVE,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=f"อนุมัติ{_noun(direction)}",
        changes={"before": {"approval_status": ApprovalStatus.PENDING},
                 "after": {"approval_status": ApprovalStatus.APPROVED}},
    )
    notification_service.notify(
        company.id, NOTIFY_KINDS[(direction, "approved")], _notification_payload(record),
        target_user_id=record.submitted_by,
    )
    return record


def reject(company, direction: str, record_id: int, actor_id: int, reason: str | None):
    record = get(company, direction, record_id)
    reason = approval_service.ensure_can_reject(record.approval_status, reason)
    previous = record.approval_status

    update_where(
        record,
        {"approval_status": previous},
        {
            "approval_status": ApprovalStatus.REJECTED,
            "rejected_by": actor_id,
            "rejected_at": utcnow(),
            "rejected_reason": reason,
        },
    )
    audit_service.record_event(record, event_type=EventType.REJECTED, actor_id=actor_id, notes=reason)
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.REJECT,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description=f"ปฏิเสธ{_noun(direction)}: {reason}",
        changes={"before": {"approval_status": previous},
                 "after": {"approval_status": ApprovalStatus.REJECTED}},
    )
    notification_service.notify(
        company.id, NOTIFY_KINDS[(direction, "rejected")], _notification_payload(record, reason=reason),
        target_user_id=record.submitted_by,
    )
    return record


def withdraw(company, direction: str, record_id: int, actor_id: int):
    record = get(company, direction, record_id)
    approval_service.ensure_can_withdraw(
        record.approval_status, actor_id, record.submitted_by, record.created_by,
    )

    update_where(
        record,
        {"approval_status": ApprovalStatus.PENDING},
        {
            "approval_status": ApprovalStatus.NOT_REQUIRED,
            "submitted_by": None,
            "submitted_at": None,
        },
    )
    audit_service.record_event(record, event_type=EventType.WITHDRAWN, actor_id=actor_id)
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.WITHDRAW,
        entity_type=ENTITY_TYPES[direction],
        entity_id=record.id,
        description="ยกเลิกคำขออนุมัติแล้ว",
    )
    return record


def _run_batch(ids, operation) -> BatchResult:
    if not ids:
        raise ValidationError("กรุณาเลือกรายการที่ต้องการอนุมัติ")
    limit = current_app.config.get("APPROVAL_BATCH_LIMIT", DEFAULT_BATCH_LIMIT)
    if len(ids) > limit:
        raise ValidationError(f"สามารถดำเนินการได้สูงสุด {limit} รายการต่อครั้ง")

    batch = BatchResult()
    for record_id in ids:
        try:
            run_with_retry(lambda: operation(record_id))
            batch.add(record_id, True)
        except BillTrackerError as exc:
            db.session.rollback()
            batch.add(record_id, False, exc.message, exc.code)
    return batch


def batch_approve(company, direction: str, ids: list[int], actor_id: int) -> BatchResult:
    """Approve each id independently; one failure never aborts the rest."""
    return _run_batch(ids, lambda record_id: approve(company, direction, record_id, actor_id))


def batch_reject(company, direction: str, ids: list[int], actor_id: int, reason: str | None) -> BatchResult:
    # Validate once so an empty reason fails the whole request with 400
    approval_service.ensure_can_reject(ApprovalStatus.PENDING, reason)
    return _run_batch(ids, lambda record_id: reject(company, direction, record_id, actor_id, reason))
