# Overview: Best-effort notification dispatch to pluggable delivery channels.

"""
Notification Dispatcher

WHY: Approvals, rejections and WHT reminders should reach people, but a
notification is never part of the business transaction. Delivery happens
after the commit, each channel is tried once, and any failure is logged and
dropped. Callers never see an exception from notify().

CHANNELS:
- InAppChannel: writes a Notification row (shown in the app)
- LogChannel: writes to the application log
- LineChannel: pushes a text message to the company's LINE group over HTTP;
  enabled only when LINE_CHANNEL_ACCESS_TOKEN is configured

Tests replace or extend the channel list on app.extensions["notifier"] to
assert that a notification was attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from flask import current_app

from ..extensions import db
from ..models import Company, Notification


logger = logging.getLogger(__name__)


class NotificationKind:
    EXPENSE_SUBMITTED = "expense.submitted"
    EXPENSE_APPROVED = "expense.approved"
    EXPENSE_REJECTED = "expense.rejected"
    INCOME_SUBMITTED = "income.submitted"
    INCOME_APPROVED = "income.approved"
    INCOME_REJECTED = "income.rejected"
    REIMBURSEMENT_SUBMITTED = "reimbursement.submitted"
    REIMBURSEMENT_APPROVED = "reimbursement.approved"
    REIMBURSEMENT_REJECTED = "reimbursement.rejected"
    REIMBURSEMENT_PAID = "reimbursement.paid"
    WHT_REMINDER = "wht.reminder"


TITLES = {
    NotificationKind.EXPENSE_SUBMITTED: "มีรายจ่ายรออนุมัติ",
    NotificationKind.EXPENSE_APPROVED: "รายจ่ายได้รับการอนุมัติแล้ว",
    NotificationKind.EXPENSE_REJECTED: "รายจ่ายถูกปฏิเสธ",
    NotificationKind.INCOME_SUBMITTED: "มีรายรับรออนุมัติ",
    NotificationKind.INCOME_APPROVED: "รายรับได้รับการอนุมัติแล้ว",
    NotificationKind.INCOME_REJECTED: "รายรับถูกปฏิเสธ",
    NotificationKind.REIMBURSEMENT_SUBMITTED: "มีคำขอเบิกเงินใหม่",
    NotificationKind.REIMBURSEMENT_APPROVED: "คำขอเบิกเงินได้รับการอนุมัติแล้ว",
    NotificationKind.REIMBURSEMENT_REJECTED: "คำขอเบิกเงินถูกปฏิเสธ",
    NotificationKind.REIMBURSEMENT_PAID: "จ่ายเงินคืนแล้ว",
    NotificationKind.WHT_REMINDER: "ติดตามใบ 50 ทวิ",
}


@dataclass
class NotificationMessage:
    company_id: int
    kind: str
    title: str
    payload: dict = field(default_factory=dict)
    target_user_id: int | None = None

    @property
    def text(self) -> str:
        detail = self.payload.get("description") or self.payload.get("contact_name")
        amount = self.payload.get("net_amount")
        parts = [self.title]
        if detail:
            parts.append(str(detail))
        if amount:
            parts.append(f"{amount} บาท")
        reason = self.payload.get("reason")
        if reason:
            parts.append(f"เหตุผล: {reason}")
        return "\n".join(parts)


class InAppChannel:
    name = "in_app"

    def send(self, message: NotificationMessage) -> None:
        with db.session.begin_nested():
            db.session.add(Notification(
                company_id=message.company_id,
                target_user_id=message.target_user_id,
                kind=message.kind,
                title=message.title,
                payload=message.payload,
            ))
        db.session.commit()


class LogChannel:
    name = "log"

    def send(self, message: NotificationMessage) -> None:
        logger.info(
            "Notification company=%s kind=%s target=%s",
            message.company_id, message.kind, message.target_user_id,
        )


class LineChannel:
    """Push to the company's LINE group. Companies without a group are skipped."""

    name = "line"

    def __init__(self, access_token: str, push_url: str, timeout: float = 5.0):
        self.access_token = access_token
        self.push_url = push_url
        self.timeout = timeout

    def send(self, message: NotificationMessage) -> None:
        company = db.session.get(Company, message.company_id)
        if company is None or not company.line_group_id:
            return
        response = httpx.post(
            self.push_url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            json={
                "to": company.line_group_id,
                "messages": [{"type": "text", "text": message.text}],
            },
            timeout=self.timeout,
        )
        response.raise_for_status()


class NotificationDispatcher:
    def __init__(self, channels=None, enabled: bool = True):
        self.channels = list(channels or [])
        self.enabled = enabled

    def add_channel(self, channel) -> None:
        self.channels.append(channel)

    def notify(self, company_id: int, kind: str, payload: dict | None = None,
               target_user_id: int | None = None) -> int:
        """
        Deliver to every channel, once. Returns how many channels succeeded.

        Never raises.
        """
        if not self.enabled:
            return 0

        message = NotificationMessage(
            company_id=company_id,
            kind=kind,
            title=TITLES.get(kind, kind),
            payload=dict(payload or {}),
            target_user_id=target_user_id,
        )

        delivered = 0
        for channel in self.channels:
            try:
                channel.send(message)
                delivered += 1
            except Exception:
                logger.exception(
                    "Notification channel %s failed: company=%s kind=%s",
                    getattr(channel, "name", type(channel).__name__), company_id, kind,
                )
                db.session.rollback()
        return delivered


def build_dispatcher(config) -> NotificationDispatcher:
    channels = [InAppChannel(), LogChannel()]
    token = config.get("LINE_CHANNEL_ACCESS_TOKEN")
    if token:
        channels.append(LineChannel(token, config["LINE_PUSH_URL"]))
    return NotificationDispatcher(channels, enabled=config.get("NOTIFICATIONS_ENABLED", True))


def init_app(app) -> None:
    app.extensions["notifier"] = build_dispatcher(app.config)


def get_dispatcher() -> NotificationDispatcher:
    return current_app.extensions["notifier"]


def notify(company_id: int, kind: str, payload: dict | None = None,
           target_user_id: int | None = None) -> int:
    """Fire-and-forget entry point used by services after commit."""
    try:
        return get_dispatcher().notify(company_id, kind, payload, target_user_id=target_user_id)
    except Exception:
        logger.exception("Notification dispatch failed: company=%s kind=%s", company_id, kind)
        return 0


def list_notifications(company_id: int, user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    """Company-wide notifications plus those addressed to this user."""
    query = db.session.query(Notification).filter(
        Notification.company_id == company_id,
        db.or_(Notification.target_user_id.is_(None), Notification.target_user_id == user_id),
    )
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    limit = max(1, min(int(limit), 200))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(company_id: int, user_id: int, ids: list[int]) -> int:
    updated = db.session.query(Notification).filter(
        Notification.company_id == company_id,
        Notification.id.in_(ids),
        db.or_(Notification.target_user_id.is_(None), Notification.target_user_id == user_id),
    ).update({"is_read": True}, synchronize_session=False)
    db.session.commit()
    return updated
