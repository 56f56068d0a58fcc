# Overview: Periodic scan for incomes still waiting on the customer's 50 Tawi certificate.

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..errors import BillTrackerError
from ..extensions import db
from ..models import Income
from billtracker.time_utils import utcnow
from . import transaction_service
from .workflow_service import IncomeStatus


logger = logging.getLogger(__name__)


def find_overdue_wht_incomes(now: datetime | None = None, min_age_days: int = 7) -> list[Income]:
    """
    Incomes in WHT_PENDING_CERT whose money arrived at least `min_age_days`
    ago and that were not chased within the same window.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=min_age_days)
    return db.session.query(Income).filter(
        Income.workflow_status == IncomeStatus.WHT_PENDING_CERT,
        Income.deleted_at.is_(None),
        Income.received_at.isnot(None),
        Income.received_at <= cutoff,
        db.or_(Income.wht_cert_reminded_at.is_(None), Income.wht_cert_reminded_at <= cutoff),
    ).order_by(Income.company_id.asc(), Income.received_at.asc()).all()


def scan_wht_reminders(now: datetime | None = None, min_age_days: int = 7) -> list[int]:
    """
    Send a wht.reminder for each overdue income and stamp it as chased.

    The stamp (wht_cert_reminded_at) keeps the next run quiet for another
    `min_age_days`. workflow_status is left alone. Returns the income ids
    reminded.
    """
    now = now or utcnow()
    notified = []
    for income in find_overdue_wht_incomes(now, min_age_days):
        try:
            transaction_service.record_wht_reminder(
                income.company, income.id, None, notes="แจ้งเตือนอัตโนมัติ", now=now,
            )
        except BillTrackerError as exc:
            # moved on (certificate received or deleted) since the query ran
            db.session.rollback()
            logger.warning("Skipped WHT reminder for income %s: %s", income.id, exc.message)
            continue
        notified.append(income.id)
    logger.info("WHT reminder scan: %s overdue income(s)", len(notified))
    return notified
