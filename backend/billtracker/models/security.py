from __future__ import annotations

from ..extensions import db
from billtracker.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Append-only log of refused requests. event_type names the check that
    refused it; company_id and user_id are empty before login.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_company_occurred", "company_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # LOGIN_FAILED, PERMISSION_DENIED, COMPANY_ACCESS_DENIED
    resource = db.Column(db.String(255), nullable=True)  # request path
    action = db.Column(db.String(64), nullable=True)  # permission code that was checked

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
