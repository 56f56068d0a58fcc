# Overview: Service-layer operations for tax reporting; encapsulates business logic and database work.

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Expense, Income
from billtracker.time_utils import bangkok_today
from .tax_service import (
    WHT_TYPE_LABELS,
    WhtType,
    compute_tax,
    reverse_vat,
    round2,
    summarize_vat,
    summarize_wht,
    to_decimal,
    wht_rate_for_type,
)


# PND 3 / PND 53 are due on the 7th of the following month
WHT_DEADLINE_DAY = 7


def _month_range(year: int, month: int) -> tuple[date, date]:
    """[first day of month, first day of next month)"""
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise ValidationError("year must be between 2000 and 2100")
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _in_month(model, date_field, start: date, end: date):
    # Records without a bill / receive date fall back to their creation day
    effective = func.coalesce(date_field, func.date(model.created_at))
    return db.session.query(model).filter(
        model.deleted_at.is_(None),
        effective >= start,
        effective < end,
    )


def tax_report(company, year: int, month: int, today: date | None = None) -> dict:
    """
    Monthly VAT / WHT position for a company.

    Expenses are bucketed by bill_date and incomes by receive_date.
    """
    start, end = _month_range(year, month)
    today = today or bangkok_today()

    expenses = _in_month(Expense, Expense.bill_date, start, end).filter(
        Expense.company_id == company.id,
    ).all()
    incomes = _in_month(Income, Income.receive_date, start, end).filter(
        Income.company_id == company.id,
    ).all()

    by_type = defaultdict(lambda: {"count": 0, "amount": Decimal("0")})
    for expense in expenses:
        if not expense.is_wht:
            continue
        entry = by_type[expense.wht_type or WhtType.OTHER]
        entry["count"] += 1
        entry["amount"] += expense.wht_amount

    deadline = date(end.year, end.month, WHT_DEADLINE_DAY)
    days_until = (deadline - today).days

    return {
        "year": year,
        "month": month,
        "vat": summarize_vat(expenses, incomes),
        "wht": summarize_wht(expenses, incomes) | {
            "by_type": {
                wht_type: {
                    "label": WHT_TYPE_LABELS.get(wht_type, wht_type),
                    "count": entry["count"],
                    "amount": str(round2(entry["amount"])),
                }
                for wht_type, entry in sorted(by_type.items())
            },
        },
        "deadline": {
            "date": deadline.isoformat(),
            "days_until": days_until,
            "is_overdue": days_until < 0,
        },
        "pending": {
            "wht_to_issue": sum(1 for e in expenses if e.is_wht and not e.has_wht_cert),
            "wht_certs_to_receive": sum(1 for i in incomes if i.is_wht and not i.has_wht_cert),
        },
        "counts": {"expenses": len(expenses), "incomes": len(incomes)},
    }


def calculate(payload: dict) -> dict:
    """
    Tax preview for entry forms.

    With vat_included the amount is a VAT-inclusive total and is split
    first. wht_type supplies the standard rate when wht_rate is missing.
    """
    payload = payload or {}
    vat_rate = payload.get("vat_rate") or 0
    amount = payload.get("amount")

    if payload.get("vat_included"):
        amount = reverse_vat(amount, vat_rate).amount

    wht_rate = payload.get("wht_rate")
    if wht_rate is None:
        wht_rate = wht_rate_for_type(payload.get("wht_type")) or 0

    breakdown = compute_tax(amount, vat_rate, wht_rate)
    return breakdown.to_dict() | {
        "vat_rate": str(to_decimal(vat_rate, "vat_rate")),
        "wht_rate": str(to_decimal(wht_rate, "wht_rate")),
    }
