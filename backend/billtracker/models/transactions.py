from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from billtracker.time_utils import to_iso_date, to_utc_z


def _money(value) -> str | None:
    return str(value) if value is not None else None


class TransactionMixin:
    """
    Shape shared by Expense and Income.

    WHY: Both directions carry the same tax fields, the same two independent
    status axes (workflow_status for document handling, approval_status for
    sign-off) and the same attachment lists. Keeping them in one mixin keeps
    the two tables column-compatible for exports and summaries.

    INVARIANTS:
    - vat_amount, wht_amount and net_amount are derived; only tax_service
      writes them
    - workflow_status and approval_status are written only through
      transaction_service (conditional updates, see concurrency.update_where)
    - deleted_at set means soft-deleted; such rows are invisible to workflow
      queries
    """
    DIRECTION: str = ""

    id = db.Column(db.Integer, primary_key=True)

    @declared_attr
    def company_id(cls):
        return db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    contact_name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    reference_no = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Tax fields (Decimal, never float)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    is_wht = db.Column(db.Boolean, nullable=False, default=False)
    wht_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    wht_type = db.Column(db.String(32), nullable=True)
    wht_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(14, 2), nullable=False)

    # Document handling
    document_type = db.Column(db.String(32), nullable=False, default="TAX_INVOICE")
    has_required_document = db.Column(db.Boolean, nullable=False, default=False)
    has_wht_cert = db.Column(db.Boolean, nullable=False, default=False)

    workflow_status = db.Column(db.String(32), nullable=False, default="DRAFT", index=True)

    # Approval
    approval_status = db.Column(db.String(16), nullable=False, default="NOT_REQUIRED", index=True)
    submitted_by = db.Column(db.Integer, nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.Integer, nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_reason = db.Column(db.String(500), nullable=True)

    # Attachments: opaque object-storage URLs
    slip_urls = db.Column(db.JSON, nullable=False, default=list)
    document_urls = db.Column(db.JSON, nullable=False, default=list)
    wht_cert_urls = db.Column(db.JSON, nullable=False, default=list)

    sent_to_accountant_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @declared_attr
    def created_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    # Optimistic locking for concurrent updates
    version_id = db.Column(db.Integer, nullable=False, default=1)

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.version_id}

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.DIRECTION,
            "company_id": self.company_id,
            "contact_name": self.contact_name,
            "description": self.description,
            "category": self.category,
            "payment_method": self.payment_method,
            "invoice_number": self.invoice_number,
            "reference_no": self.reference_no,
            "notes": self.notes,
            "amount": _money(self.amount),
            "vat_rate": _money(self.vat_rate),
            "vat_amount": _money(self.vat_amount),
            "is_wht": self.is_wht,
            "wht_rate": _money(self.wht_rate),
            "wht_type": self.wht_type,
            "wht_amount": _money(self.wht_amount),
            "net_amount": _money(self.net_amount),
            "document_type": self.document_type,
            "has_required_document": self.has_required_document,
            "has_wht_cert": self.has_wht_cert,
            "workflow_status": self.workflow_status,
            "approval_status": self.approval_status,
            "submitted_by": self.submitted_by,
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejected_reason": self.rejected_reason,
            "slip_urls": list(self.slip_urls or []),
            "document_urls": list(self.document_urls or []),
            "wht_cert_urls": list(self.wht_cert_urls or []),
            "sent_to_accountant_at": to_utc_z(self.sent_to_accountant_at),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "version_id": self.version_id,
        }


class Expense(TransactionMixin, db.Model):
    """
    Money paid out by the company.

    WHT on an expense is withheld by the company from the vendor; the company
    issues the 50 Tawi certificate (WHT_PENDING_ISSUE -> WHT_ISSUED).
    has_required_document means the vendor's tax invoice is in hand.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_company_workflow", "company_id", "workflow_status"),
        db.Index("ix_expenses_company_approval", "company_id", "approval_status"),
        {"sqlite_autoincrement": True},
    )

    DIRECTION = "EXPENSE"

    bill_date = db.Column(db.Date, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    document_received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    wht_cert_issued_at = db.Column(db.DateTime(timezone=True), nullable=True)
    wht_cert_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    company = db.relationship("Company", backref=db.backref("expenses", lazy=True))

    def __repr__(self) -> str:
        return f"<Expense id={self.id} status={self.workflow_status}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "bill_date": to_iso_date(self.bill_date),
            "paid_at": to_utc_z(self.paid_at),
            "document_received_at": to_utc_z(self.document_received_at),
            "wht_cert_issued_at": to_utc_z(self.wht_cert_issued_at),
            "wht_cert_sent_at": to_utc_z(self.wht_cert_sent_at),
            "completed_at": to_utc_z(self.completed_at),
        })
        return data


class Income(TransactionMixin, db.Model):
    """
    Money received by the company.

    WHT on an income is withheld by the customer; the company waits for the
    customer's 50 Tawi certificate (WHT_PENDING_CERT) and may send reminders.
    has_required_document means our invoice has been issued.
    """
    __tablename__ = "incomes"
    __table_args__ = (
        db.Index("ix_incomes_company_workflow", "company_id", "workflow_status"),
        db.Index("ix_incomes_company_approval", "company_id", "approval_status"),
        {"sqlite_autoincrement": True},
    )

    DIRECTION = "INCOME"

    receive_date = db.Column(db.Date, nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    invoice_issued_at = db.Column(db.DateTime(timezone=True), nullable=True)
    wht_cert_received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    wht_cert_reminded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    wht_cert_remind_count = db.Column(db.Integer, nullable=False, default=0)

    company = db.relationship("Company", backref=db.backref("incomes", lazy=True))

    def __repr__(self) -> str:
        return f"<Income id={self.id} status={self.workflow_status}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "receive_date": to_iso_date(self.receive_date),
            "received_at": to_utc_z(self.received_at),
            "invoice_issued_at": to_utc_z(self.invoice_issued_at),
            "wht_cert_received_at": to_utc_z(self.wht_cert_received_at),
            "wht_cert_reminded_at": to_utc_z(self.wht_cert_reminded_at),
            "wht_cert_remind_count": self.wht_cert_remind_count,
        })
        return data
