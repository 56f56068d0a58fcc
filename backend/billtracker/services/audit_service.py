# Overview: Service-layer operations for audit; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from flask import has_request_context, request

from ..extensions import db
from ..models import AuditLog, DocumentEvent
from billtracker.time_utils import to_utc_z
"""
Audit / Event Recorder invariants

- DocumentEvent rows are the workflow timeline of one expense or income.
  They are added inside the caller's DB transaction (flush only, never
  commit) so a status change and its event commit or roll back together.
- AuditLog rows are the company-wide trail. They are written AFTER the
  business commit, inside a savepoint, and any failure is logged and
  swallowed: losing an audit row must never make a successful operation
  look failed.
- Neither table is ever updated or deleted.
"""


logger = logging.getLogger(__name__)


class AuditAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    WITHDRAW = "WITHDRAW"
    PAY = "PAY"


class EventType:
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    MARKED_AS_PAID = "MARKED_AS_PAID"
    SUBMITTED_FOR_APPROVAL = "SUBMITTED_FOR_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    TAX_INVOICE_RECEIVED = "TAX_INVOICE_RECEIVED"
    WHT_CERT_ISSUED = "WHT_CERT_ISSUED"
    WHT_CERT_SENT = "WHT_CERT_SENT"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    WHT_CERT_RECEIVED = "WHT_CERT_RECEIVED"
    WHT_REMINDER_SENT = "WHT_REMINDER_SENT"
    SENT_TO_ACCOUNTANT = "SENT_TO_ACCOUNTANT"
    STATUS_CHANGED = "STATUS_CHANGED"


def to_json_value(value):
    """Make column values JSON-safe for the changes payload."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


def snapshot(record, fields) -> dict:
    return {f: to_json_value(getattr(record, f)) for f in fields}


def diff(before: dict, after: dict) -> dict:
    """Only the keys whose value changed, as {"before": {...}, "after": {...}}."""
    changed = sorted(k for k in set(before) | set(after) if before.get(k) != after.get(k))
    return {
        "before": {k: before.get(k) for k in changed},
        "after": {k: after.get(k) for k in changed},
    }


def record_event(
    record,
    *,
    event_type: str,
    actor_id: int | None,
    from_status: str | None = None,
    to_status: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
) -> DocumentEvent:
    """
    Append a workflow event for an Expense or Income in the current transaction.

    Flushes, never commits.
    """
    parent = {"expense_id": record.id} if record.DIRECTION == "EXPENSE" else {"income_id": record.id}
    event = DocumentEvent(
        company_id=record.company_id,
        event_type=event_type,
        from_status=from_status,
        to_status=to_status,
        notes=notes,
        event_metadata=metadata,
        created_by=actor_id,
        **parent,
    )
    db.session.add(event)
    db.session.flush()
    return event


def list_events(record) -> list[DocumentEvent]:
    query = db.session.query(DocumentEvent)
    if record.DIRECTION == "EXPENSE":
        query = query.filter(DocumentEvent.expense_id == record.id)
    else:
        query = query.filter(DocumentEvent.income_id == record.id)
    return query.order_by(DocumentEvent.created_at.asc(), DocumentEvent.id.asc()).all()


def record_audit(
    *,
    company_id: int,
    user_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    description: str | None = None,
    changes: dict | None = None,
) -> AuditLog | None:
    """
    Best-effort audit append. Returns the row, or None if it could not be written.

    Call after the business transaction has committed.
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    try:
        with db.session.begin_nested():
            entry = AuditLog(
                company_id=company_id,
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                changes=changes,
                description=description,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:512] or None,
            )
            db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        logger.exception(
            "Failed to write audit log: company=%s action=%s entity=%s:%s",
            company_id, action, entity_type, entity_id,
        )
        db.session.rollback()
        return None


def list_audit(
    company_id: int,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    query = db.session.query(AuditLog).filter(AuditLog.company_id == company_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
