from __future__ import annotations

from ..extensions import db
from billtracker.time_utils import to_utc_z


class ExpensePayment(db.Model):
    """
    Who funded an expense, and whether they have been paid back.

    paid_by_type:
    - USER: an employee advanced the money; settlement PENDING until repaid
    - PETTY_CASH: drawn from a petty cash fund; no settlement needed
    - COMPANY: paid from the company account; no settlement needed

    INVARIANT: one row per (expense, payer). payer_key folds paid_by_type and
    the payer identity into a single NOT NULL column so the unique
    constraint holds even for COMPANY rows, which have no payer id (NULLs
    never collide in a unique index).
    """
    __tablename__ = "expense_payments"
    __table_args__ = (
        db.UniqueConstraint("expense_id", "payer_key", name="uq_expense_payments_expense_payer"),
        db.Index("ix_expense_payments_company_settlement", "company_id", "settlement_status"),
        db.Index("ix_expense_payments_user", "paid_by_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=False, index=True)

    paid_by_type = db.Column(db.String(16), nullable=False)
    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    petty_cash_fund_id = db.Column(db.Integer, db.ForeignKey("petty_cash_funds.id"), nullable=True)
    payer_key = db.Column(db.String(64), nullable=False)

    amount = db.Column(db.Numeric(14, 2), nullable=False)

    settlement_status = db.Column(db.String(16), nullable=False, default="NOT_REQUIRED")
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    settled_by = db.Column(db.Integer, nullable=True)
    settlement_ref = db.Column(db.String(128), nullable=True)

    # Expense booked from this advance once it was settled
    settlement_expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    expense = db.relationship(
        "Expense",
        foreign_keys=[expense_id],
        backref=db.backref("payments", lazy=True),
    )
    paid_by_user = db.relationship("User", foreign_keys=[paid_by_user_id])
    petty_cash_fund = db.relationship("PettyCashFund", backref=db.backref("payments", lazy=True))

    @staticmethod
    def build_payer_key(paid_by_type: str, paid_by_user_id: int | None, petty_cash_fund_id: int | None) -> str:
        if paid_by_type == "USER":
            return f"USER:{paid_by_user_id}"
        if paid_by_type == "PETTY_CASH":
            return f"PETTY_CASH:{petty_cash_fund_id}"
        return paid_by_type

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "expense_id": self.expense_id,
            "paid_by_type": self.paid_by_type,
            "paid_by_user_id": self.paid_by_user_id,
            "petty_cash_fund_id": self.petty_cash_fund_id,
            "amount": str(self.amount),
            "settlement_status": self.settlement_status,
            "settled_at": to_utc_z(self.settled_at),
            "settled_by": self.settled_by,
            "settlement_ref": self.settlement_ref,
            "settlement_expense_id": self.settlement_expense_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class PettyCashFund(db.Model):
    """
    Company cash float for small expenses.

    INVARIANT: balance never goes below zero. Payments deduct, replenishment
    adds; both happen under a row lock in payment_service.
    """
    __tablename__ = "petty_cash_funds"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_petty_cash_funds_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    custodian_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "custodian_id": self.custodian_id,
            "balance": str(self.balance),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
