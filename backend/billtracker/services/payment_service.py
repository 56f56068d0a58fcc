# Overview: Service-layer operations for expense payments, settlements and petty cash; encapsulates business logic and database work.

"""
Expense Payment & Settlement Service

Records who actually funded an expense. An employee advancing company
money must be paid back (settled); petty cash and company-account payments
need no settlement.

DESIGN PRINCIPLES:
- Payments are separate from expenses (many-to-one relationship)
- One payment row per (expense, payer); enforced by a unique constraint on
  payer_key, with a friendly pre-check in front of it
- Petty cash balance moves under a row lock and never goes negative
- Settled advances can be booked into a single COMPLETED expense
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicatePaymentError, IllegalTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CompanyAccess, Expense, ExpensePayment, PettyCashFund, User
from billtracker.time_utils import utcnow
from . import audit_service
from .audit_service import AuditAction, EventType
from .concurrency import lock_for_update, run_with_retry, update_where
from .tax_service import round2, to_decimal
from .workflow_service import DocumentType, ExpenseStatus


# =============================================================================
# PAYER TYPES / SETTLEMENT STATUS (CONSTANTS)
# =============================================================================

PAID_BY_USER = "USER"
PAID_BY_PETTY_CASH = "PETTY_CASH"
PAID_BY_COMPANY = "COMPANY"

VALID_PAYER_TYPES = [PAID_BY_USER, PAID_BY_PETTY_CASH, PAID_BY_COMPANY]

SETTLEMENT_NOT_REQUIRED = "NOT_REQUIRED"
SETTLEMENT_PENDING = "PENDING"
SETTLEMENT_SETTLED = "SETTLED"


def _positive_amount(value, field: str = "amount") -> Decimal:
    amount = round2(to_decimal(value, field))
    if amount <= 0:
        raise ValidationError("จำนวนเงินต้องมากกว่า 0")
    return amount


def get_payment(company, payment_id: int) -> ExpensePayment:
    payment = db.session.query(ExpensePayment).filter_by(id=payment_id, company_id=company.id).first()
    if payment is None:
        raise NotFoundError("ไม่พบรายการจ่ายเงิน")
    return payment


def list_payments(company, expense_id: int) -> list[ExpensePayment]:
    return db.session.query(ExpensePayment).filter_by(
        company_id=company.id, expense_id=expense_id,
    ).order_by(ExpensePayment.id.asc()).all()


def find_payment(expense_id: int, payer_key: str) -> ExpensePayment | None:
    """Read-side duplicate check; the unique constraint is the real guard."""
    return db.session.query(ExpensePayment).filter_by(expense_id=expense_id, payer_key=payer_key).first()


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def add_payment(company, expense, actor_id: int, payload: dict) -> ExpensePayment:
    """
    Record who paid for an expense.

    Args:
        company: Company the expense belongs to
        expense: Expense (already company-scoped by the caller)
        actor_id: User recording the payment
        payload: paid_by_type, paid_by_user_id | petty_cash_fund_id, amount
            (defaults to the expense's net amount)

    Raises:
        ValidationError: bad payer type, unknown payer, insufficient petty cash
        DuplicatePaymentError: this payer already has a row for the expense
    """
    payload = payload or {}
    paid_by_type = payload.get("paid_by_type")
    if paid_by_type not in VALID_PAYER_TYPES:
        raise ValidationError(f"paid_by_type must be one of: {', '.join(VALID_PAYER_TYPES)}")

    amount = _positive_amount(payload.get("amount", expense.net_amount))
    user_id = payload.get("paid_by_user_id") if paid_by_type == PAID_BY_USER else None
    fund_id = payload.get("petty_cash_fund_id") if paid_by_type == PAID_BY_PETTY_CASH else None

    if paid_by_type == PAID_BY_USER:
        if user_id is None:
            raise ValidationError("กรุณาระบุพนักงานที่สำรองจ่าย")
        access = db.session.query(CompanyAccess).filter_by(user_id=user_id, company_id=company.id).first()
        if access is None:
            raise ValidationError("ไม่พบพนักงานในบริษัทนี้")
    if paid_by_type == PAID_BY_PETTY_CASH and fund_id is None:
        raise ValidationError("กรุณาระบุกองทุนเงินสดย่อย")

    payer_key = ExpensePayment.build_payer_key(paid_by_type, user_id, fund_id)

    def _op():
        if find_payment(expense.id, payer_key) is not None:
            raise DuplicatePaymentError()

        if paid_by_type == PAID_BY_PETTY_CASH:
            fund = lock_for_update(
                db.session.query(PettyCashFund).filter_by(id=fund_id, company_id=company.id)
            ).first()
            if fund is None or not fund.is_active:
                raise ValidationError("ไม่พบกองทุนเงินสดย่อย")
            if fund.balance < amount:
                raise ValidationError("ยอดเงินสดย่อยไม่เพียงพอ")
            update_where(fund, {"balance": fund.balance}, {"balance": fund.balance - amount})

        payment = ExpensePayment(
            company_id=company.id,
            expense_id=expense.id,
            paid_by_type=paid_by_type,
            paid_by_user_id=user_id,
            petty_cash_fund_id=fund_id,
            payer_key=payer_key,
            amount=amount,
            settlement_status=SETTLEMENT_PENDING if paid_by_type == PAID_BY_USER else SETTLEMENT_NOT_REQUIRED,
            created_by=actor_id,
            created_at=utcnow(),
        )
        db.session.add(payment)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DuplicatePaymentError()

        db.session.commit()
        return payment

    payment = run_with_retry(_op)

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.PAY,
        entity_type="expense_payment",
        entity_id=payment.id,
        description=f"บันทึกผู้จ่ายเงิน {payer_key} {payment.amount} บาท",
        changes={"before": None, "after": audit_service.snapshot(
            payment, ["expense_id", "paid_by_type", "paid_by_user_id", "petty_cash_fund_id", "amount"],
        )},
    )
    return payment


def settle_payment(company, payment_id: int, actor_id: int, settlement_ref: str | None = None) -> ExpensePayment:
    """Mark an employee advance as paid back (PENDING -> SETTLED)."""
    def _op():
        payment = get_payment(company, payment_id)
        if payment.settlement_status != SETTLEMENT_PENDING:
            raise IllegalTransitionError(
                "รายการนี้ไม่อยู่ในสถานะรอชำระคืน", current_status=payment.settlement_status,
            )
        update_where(
            payment,
            {"settlement_status": SETTLEMENT_PENDING},
            {
                "settlement_status": SETTLEMENT_SETTLED,
                "settled_at": utcnow(),
                "settled_by": actor_id,
                "settlement_ref": (settlement_ref or "").strip() or None,
            },
        )
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.PAY,
        entity_type="expense_payment",
        entity_id=payment.id,
        description="ชำระคืนเงินสำรองจ่ายแล้ว",
        changes={"before": {"settlement_status": SETTLEMENT_PENDING},
                 "after": {"settlement_status": SETTLEMENT_SETTLED}},
    )
    return payment


def remove_payment(company, payment_id: int, actor_id: int) -> None:
    """Delete a payment row. Petty cash is refunded; settled advances cannot be removed."""
    def _op():
        payment = get_payment(company, payment_id)
        if payment.settlement_status == SETTLEMENT_SETTLED:
            raise IllegalTransitionError(
                "ไม่สามารถลบรายการที่ชำระคืนแล้ว", current_status=payment.settlement_status,
            )
        if payment.petty_cash_fund_id is not None:
            fund = lock_for_update(
                db.session.query(PettyCashFund).filter_by(id=payment.petty_cash_fund_id)
            ).first()
            update_where(fund, {"balance": fund.balance}, {"balance": fund.balance + payment.amount})
        snapshot = audit_service.snapshot(payment, ["expense_id", "paid_by_type", "amount"])
        db.session.delete(payment)
        db.session.commit()
        return snapshot

    snapshot = run_with_retry(_op)
    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.DELETE,
        entity_type="expense_payment",
        entity_id=payment_id,
        description="ลบรายการผู้จ่ายเงิน",
        changes={"before": snapshot, "after": None},
    )


# =============================================================================
# SETTLEMENT REPORTING
# =============================================================================

def settlement_summary(company) -> dict:
    """Outstanding employee advances, grouped by payer."""
    rows = db.session.query(ExpensePayment, User).join(
        User, User.id == ExpensePayment.paid_by_user_id,
    ).filter(
        ExpensePayment.company_id == company.id,
        ExpensePayment.paid_by_type == PAID_BY_USER,
        ExpensePayment.settlement_status == SETTLEMENT_PENDING,
    ).order_by(ExpensePayment.id.asc()).all()

    by_user = defaultdict(lambda: {"payment_ids": [], "total": Decimal("0")})
    names = {}
    for payment, user in rows:
        entry = by_user[user.id]
        entry["payment_ids"].append(payment.id)
        entry["total"] += payment.amount
        names[user.id] = user.name

    payers = [
        {
            "user_id": user_id,
            "name": names[user_id],
            "count": len(entry["payment_ids"]),
            "payment_ids": entry["payment_ids"],
            "total": str(entry["total"]),
        }
        for user_id, entry in by_user.items()
    ]
    grand_total = sum((entry["total"] for entry in by_user.values()), Decimal("0"))
    return {"payers": payers, "total": str(grand_total), "count": len(rows)}


def book_completed_expense(
    company,
    actor_id: int,
    *,
    amount: Decimal,
    description: str,
    contact_name: str | None = None,
    document_urls=None,
    metadata: dict | None = None,
) -> Expense:
    """
    Book money already paid back as a COMPLETED expense with a settled
    COMPANY payment. Flushes, never commits.
    """
    now = utcnow()
    amount = round2(amount)
    expense = Expense(
        company_id=company.id,
        created_by=actor_id,
        contact_name=contact_name,
        description=description,
        amount=amount,
        vat_rate=Decimal("0"),
        vat_amount=Decimal("0"),
        is_wht=False,
        wht_rate=Decimal("0"),
        wht_type=None,
        wht_amount=Decimal("0"),
        net_amount=amount,
        document_type=DocumentType.CASH_RECEIPT if document_urls else DocumentType.NO_DOCUMENT,
        has_required_document=bool(document_urls),
        document_urls=list(document_urls or []),
        workflow_status=ExpenseStatus.COMPLETED,
        approval_status="NOT_REQUIRED",
        bill_date=now.date(),
        paid_at=now,
        completed_at=now,
        created_at=now,
        updated_at=now,
    )
    db.session.add(expense)
    db.session.flush()

    db.session.add(ExpensePayment(
        company_id=company.id,
        expense_id=expense.id,
        paid_by_type=PAID_BY_COMPANY,
        payer_key=ExpensePayment.build_payer_key(PAID_BY_COMPANY, None, None),
        amount=amount,
        settlement_status=SETTLEMENT_SETTLED,
        settled_at=now,
        settled_by=actor_id,
        created_by=actor_id,
        created_at=now,
    ))
    audit_service.record_event(
        expense,
        event_type=EventType.CREATED,
        actor_id=actor_id,
        to_status=ExpenseStatus.COMPLETED,
        metadata=metadata,
    )
    return expense


def create_settlement_expense(company, payment_ids: list[int], actor_id: int) -> Expense:
    """
    Book settled employee advances of one payer as a single COMPLETED expense.
    """
    if not payment_ids:
        raise ValidationError("กรุณาเลือกรายการที่ต้องการดำเนินการ")

    payments = db.session.query(ExpensePayment).filter(
        ExpensePayment.company_id == company.id,
        ExpensePayment.id.in_(payment_ids),
    ).all()
    if len(payments) != len(set(payment_ids)):
        raise NotFoundError("ไม่พบรายการจ่ายเงิน")

    for payment in payments:
        if payment.paid_by_type != PAID_BY_USER or payment.settlement_status != SETTLEMENT_SETTLED:
            raise IllegalTransitionError(
                "รายการที่เลือกต้องเป็นเงินสำรองจ่ายที่ชำระคืนแล้วเท่านั้น",
                current_status=payment.settlement_status,
            )
        if payment.settlement_expense_id is not None:
            raise IllegalTransitionError("รายการนี้ถูกบันทึกเป็นรายจ่ายแล้ว")
    if len({p.paid_by_user_id for p in payments}) != 1:
        raise ValidationError("รายการที่เลือกต้องเป็นของพนักงานคนเดียวกัน")

    payer = db.session.get(User, payments[0].paid_by_user_id)
    total = sum((p.amount for p in payments), Decimal("0"))

    expense = book_completed_expense(
        company,
        actor_id,
        amount=total,
        description=f"โอนคืนเงินสำรองจ่าย - {payer.name}",
        contact_name=payer.name,
        metadata={"payment_ids": sorted(p.id for p in payments)},
    )
    for payment in payments:
        update_where(payment, {"settlement_expense_id": None}, {"settlement_expense_id": expense.id})
    db.session.commit()

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.CREATE,
        entity_type="expense",
        entity_id=expense.id,
        description=expense.description,
        changes={"before": None, "after": {"net_amount": str(expense.net_amount),
                                           "payment_ids": sorted(p.id for p in payments)}},
    )
    return expense


# =============================================================================
# PETTY CASH
# =============================================================================

def list_funds(company) -> list[PettyCashFund]:
    return db.session.query(PettyCashFund).filter_by(company_id=company.id).order_by(PettyCashFund.name).all()


def create_fund(company, actor_id: int, payload: dict) -> PettyCashFund:
    payload = payload or {}
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError("กรุณาระบุชื่อกองทุนเงินสดย่อย")
    balance = round2(to_decimal(payload.get("balance", 0), "balance"))
    if balance < 0:
        raise ValidationError("ยอดเงินเริ่มต้นต้องไม่ติดลบ")

    fund = PettyCashFund(
        company_id=company.id,
        name=name,
        custodian_id=payload.get("custodian_id"),
        balance=balance,
    )
    db.session.add(fund)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("มีกองทุนเงินสดย่อยชื่อนี้แล้ว")

    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.CREATE,
        entity_type="petty_cash_fund",
        entity_id=fund.id,
        description=f"สร้างกองทุนเงินสดย่อย {fund.name}",
        changes={"before": None, "after": {"balance": str(fund.balance)}},
    )
    return fund


def replenish(company, fund_id: int, actor_id: int, amount) -> PettyCashFund:
    amount = _positive_amount(amount)

    def _op():
        fund = lock_for_update(
            db.session.query(PettyCashFund).filter_by(id=fund_id, company_id=company.id)
        ).first()
        if fund is None:
            raise NotFoundError("ไม่พบกองทุนเงินสดย่อย")
        before = fund.balance
        update_where(fund, {"balance": before}, {"balance": before + amount})
        db.session.commit()
        return fund, before

    fund, before = run_with_retry(_op)
    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=AuditAction.UPDATE,
        entity_type="petty_cash_fund",
        entity_id=fund.id,
        description=f"เติมเงินสดย่อย {amount} บาท",
        changes={"before": {"balance": str(before)}, "after": {"balance": str(fund.balance)}},
    )
    return fund
