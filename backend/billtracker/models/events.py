from __future__ import annotations

from ..extensions import db
from billtracker.time_utils import to_utc_z


class DocumentEvent(db.Model):
    """
    Per-record workflow history (the timeline shown on an expense/income).

    WHY: Every transition records who moved the record, from which status to
    which. Written in the same database transaction as the status change, so
    a transition without its event (or an event without its transition) can
    never be committed.

    Exactly one of expense_id / income_id is set.

    IMMUTABLE: Append-only.
    """
    __tablename__ = "document_events"
    __table_args__ = (
        db.CheckConstraint(
            "(expense_id IS NULL) <> (income_id IS NULL)",
            name="ck_document_events_single_parent",
        ),
        db.Index("ix_document_events_expense", "expense_id", "created_at"),
        db.Index("ix_document_events_income", "income_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True)
    income_id = db.Column(db.Integer, db.ForeignKey("incomes.id"), nullable=True)

    event_type = db.Column(db.String(32), nullable=False, index=True)
    from_status = db.Column(db.String(32), nullable=True)
    to_status = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    event_metadata = db.Column(db.JSON, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "expense_id": self.expense_id,
            "income_id": self.income_id,
            "event_type": self.event_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "notes": self.notes,
            "metadata": self.event_metadata,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class AuditLog(db.Model):
    """
    Company-wide audit trail of user actions.

    Unlike DocumentEvent, audit rows are best-effort: they are written after
    the business change is committed and a failure here is logged, never
    raised back to the caller.

    changes holds {"before": {...}, "after": {...}} for the touched fields.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_company_created", "company_id", "created_at"),
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    action = db.Column(db.String(32), nullable=False)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    changes = db.Column(db.JSON, nullable=True)
    description = db.Column(db.String(500), nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": self.changes,
            "description": self.description,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }


class Notification(db.Model):
    """
    In-app notification written by the in-app delivery channel.

    target_user_id NULL means company-wide.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_company_read", "company_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)
    target_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    kind = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    payload = db.Column(db.JSON, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "target_user_id": self.target_user_id,
            "kind": self.kind,
            "title": self.title,
            "payload": self.payload,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }
