from __future__ import annotations

from ..extensions import db
from billtracker.time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    WHY: Expenses, incomes, reimbursements and payments all belong to exactly
    one company. Every query and every permission check is scoped by
    company_id; nothing crosses company boundaries.

    DESIGN:
    - code is the short identifier used in API URLs (/api/<code>/expenses)
    - approval_threshold is the external approval policy: when set, records
      whose net amount reaches it start life PENDING approval
    - line_group_id is the optional LINE group that receives notifications
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    tax_id = db.Column(db.String(13), nullable=True)

    approval_threshold = db.Column(db.Numeric(14, 2), nullable=True)
    line_group_id = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_id": self.tax_id,
            "approval_threshold": str(self.approval_threshold) if self.approval_threshold is not None else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CompanyAccess(db.Model):
    """
    Membership of a user in a company.

    WHY: Users of a bookkeeping app commonly work for several companies
    (owner, bookkeeper, external accountant). Access is granted per company.

    DESIGN:
    - is_owner bypasses every permission check for that company
    - permissions is a JSON list of "module:action" strings, "module:*"
      wildcards allowed
    """
    __tablename__ = "company_access"
    __table_args__ = (
        db.UniqueConstraint("user_id", "company_id", name="uq_company_access_user_company"),
        db.Index("ix_company_access_company", "company_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    is_owner = db.Column(db.Boolean, nullable=False, default=False)
    permissions = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("company_access", lazy=True))
    company = db.relationship("Company", backref=db.backref("members", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "company_id": self.company_id,
            "is_owner": self.is_owner,
            "permissions": list(self.permissions or []),
            "created_at": to_utc_z(self.created_at),
        }
