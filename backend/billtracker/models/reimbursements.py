from __future__ import annotations

from ..extensions import db
from billtracker.time_utils import to_iso_date, to_utc_z


class ReimbursementRequest(db.Model):
    """
    Employee claim for repayment of a company expense paid personally.

    LIFECYCLE:
        PENDING -> APPROVED | REJECTED | FLAGGED
        FLAGGED -> APPROVED | REJECTED
        APPROVED -> PAID

    Paying the employee does not book a company Expense. Conversion to an
    Expense is a separate explicit step (linked_expense_id records it).

    requester_id is nullable: claims submitted through the LINE bot may come
    from people without an account; requester_name is always kept.
    """
    __tablename__ = "reimbursement_requests"
    __table_args__ = (
        db.Index("ix_reimbursements_company_status", "company_id", "status"),
        db.Index("ix_reimbursements_requester", "requester_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    requester_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    requester_name = db.Column(db.String(128), nullable=False)
    bank_account = db.Column(db.String(64), nullable=True)

    description = db.Column(db.String(500), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    bill_date = db.Column(db.Date, nullable=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    is_wht = db.Column(db.Boolean, nullable=False, default=False)
    wht_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    wht_type = db.Column(db.String(32), nullable=True)
    wht_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(14, 2), nullable=False)

    receipt_urls = db.Column(db.JSON, nullable=False, default=list)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    flag_reason = db.Column(db.String(500), nullable=True)

    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.Integer, nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_reason = db.Column(db.String(500), nullable=True)

    paid_by = db.Column(db.Integer, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_ref = db.Column(db.String(128), nullable=True)

    linked_expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "bank_account": self.bank_account,
            "description": self.description,
            "contact_name": self.contact_name,
            "category": self.category,
            "bill_date": to_iso_date(self.bill_date),
            "amount": str(self.amount),
            "vat_rate": str(self.vat_rate),
            "vat_amount": str(self.vat_amount),
            "is_wht": self.is_wht,
            "wht_rate": str(self.wht_rate),
            "wht_type": self.wht_type,
            "wht_amount": str(self.wht_amount),
            "net_amount": str(self.net_amount),
            "receipt_urls": list(self.receipt_urls or []),
            "status": self.status,
            "flag_reason": self.flag_reason,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejected_reason": self.rejected_reason,
            "paid_by": self.paid_by,
            "paid_at": to_utc_z(self.paid_at),
            "payment_ref": self.payment_ref,
            "linked_expense_id": self.linked_expense_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
