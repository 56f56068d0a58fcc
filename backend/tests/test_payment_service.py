# Overview: Pytest coverage for expense payers, employee settlements and petty cash.

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from billtracker.errors import DuplicatePaymentError, IllegalTransitionError, NotFoundError, ValidationError
from billtracker.extensions import db
from billtracker.models import ExpensePayment, PettyCashFund
from billtracker.services import payment_service, transaction_service as txn
from billtracker.services.transaction_service import EXPENSE


@pytest.fixture
def expense(company, owner):
    return txn.create(company, EXPENSE, owner.id, {"amount": "1000", "vat_rate": 7, "description": "ค่ากระดาษ"})


@pytest.fixture
def fund(company, owner):
    return payment_service.create_fund(company, owner.id, {"name": "เงินสดย่อยหน้าร้าน", "balance": "1000"})


def fund_balance(fund_id):
    return db.session.get(PettyCashFund, fund_id).balance


class TestAddPayment:
    def test_employee_advance_needs_settlement(self, company, owner, clerk, expense):
        payment = payment_service.add_payment(company, expense, owner.id, {
            "paid_by_type": "USER", "paid_by_user_id": clerk.id,
        })
        assert payment.amount == Decimal("1070.00")
        assert payment.settlement_status == "PENDING"
        assert payment.payer_key == ExpensePayment.build_payer_key("USER", clerk.id, None)

    def test_company_payment_needs_no_settlement(self, company, owner, expense):
        payment = payment_service.add_payment(company, expense, owner.id, {"paid_by_type": "COMPANY"})
        assert payment.settlement_status == "NOT_REQUIRED"

    def test_same_payer_twice(self, company, owner, clerk, expense):
        payload = {"paid_by_type": "USER", "paid_by_user_id": clerk.id, "amount": "500"}
        payment_service.add_payment(company, expense, owner.id, payload)
        with pytest.raises(DuplicatePaymentError) as exc_info:
            payment_service.add_payment(company, expense, owner.id, payload)
        assert exc_info.value.status_code == 409

        # A different payer on the same expense is fine
        payment_service.add_payment(company, expense, owner.id, {"paid_by_type": "USER", "paid_by_user_id": owner.id,
                                                                 "amount": "570"})
        assert len(payment_service.list_payments(company, expense.id)) == 2

    def test_unique_payer_constraint(self, db_session, company, owner, clerk, expense):
        payer_key = ExpensePayment.build_payer_key("USER", clerk.id, None)
        for _ in range(2):
            db_session.add(ExpensePayment(
                company_id=company.id, expense_id=expense.id, paid_by_type="USER", paid_by_user_id=clerk.id,
                payer_key=payer_key, amount=Decimal("100"), created_by=owner.id,
            ))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()

    def test_duplicate_past_read_check_maps_to_409(self, monkeypatch, company, owner, clerk, expense):
        payload = {"paid_by_type": "USER", "paid_by_user_id": clerk.id, "amount": "500"}
        payment_service.add_payment(company, expense, owner.id, payload)

        # Simulate a concurrent request that read before the first insert committed
        monkeypatch.setattr(payment_service, "find_payment", lambda expense_id, payer_key: None)
        with pytest.raises(DuplicatePaymentError):
            payment_service.add_payment(company, expense, owner.id, payload)
        assert len(payment_service.list_payments(company, expense.id)) == 1

    def test_payer_must_belong_to_company(self, company, owner, outsider, expense):
        with pytest.raises(ValidationError):
            payment_service.add_payment(company, expense, owner.id, {
                "paid_by_type": "USER", "paid_by_user_id": outsider.id,
            })

    @pytest.mark.parametrize("payload", [
        {"paid_by_type": "CARD"},
        {"paid_by_type": "USER"},
        {"paid_by_type": "PETTY_CASH"},
        {"paid_by_type": "COMPANY", "amount": "0"},
        {"paid_by_type": "COMPANY", "amount": "abc"},
    ])
    def test_invalid_payloads(self, company, owner, expense, payload):
        with pytest.raises(ValidationError):
            payment_service.add_payment(company, expense, owner.id, payload)


class TestPettyCash:
    def test_payment_draws_down_fund(self, company, owner, expense, fund):
        payment = payment_service.add_payment(company, expense, owner.id, {
            "paid_by_type": "PETTY_CASH", "petty_cash_fund_id": fund.id, "amount": "300",
        })
        assert payment.settlement_status == "NOT_REQUIRED"
        assert fund_balance(fund.id) == Decimal("700.00")

    def test_insufficient_balance(self, company, owner, expense, fund):
        with pytest.raises(ValidationError) as exc_info:
            payment_service.add_payment(company, expense, owner.id, {
                "paid_by_type": "PETTY_CASH", "petty_cash_fund_id": fund.id, "amount": "1000.01",
            })
        assert exc_info.value.message == "ยอดเงินสดย่อยไม่เพียงพอ"
        assert fund_balance(fund.id) == Decimal("1000.00")

    def test_other_company_fund(self, company, other_company, owner, outsider, expense):
        foreign = payment_service.create_fund(other_company, outsider.id, {"name": "Beta cash", "balance": "5000"})
        with pytest.raises(ValidationError):
            payment_service.add_payment(company, expense, owner.id, {
                "paid_by_type": "PETTY_CASH", "petty_cash_fund_id": foreign.id, "amount": "10",
            })

    def test_remove_refunds_fund(self, company, owner, expense, fund):
        payment = payment_service.add_payment(company, expense, owner.id, {
            "paid_by_type": "PETTY_CASH", "petty_cash_fund_id": fund.id, "amount": "250.50",
        })
        payment_service.remove_payment(company, payment.id, owner.id)
        assert fund_balance(fund.id) == Decimal("1000.00")
        assert payment_service.list_payments(company, expense.id) == []

    def test_replenish(self, company, owner, fund):
        payment_service.replenish(company, fund.id, owner.id, "500")
        assert fund_balance(fund.id) == Decimal("1500.00")
        with pytest.raises(ValidationError):
            payment_service.replenish(company, fund.id, owner.id, "-1")

    def test_replenish_unknown_fund(self, other_company, outsider, fund):
        with pytest.raises(NotFoundError):
            payment_service.replenish(other_company, fund.id, outsider.id, "100")

    def test_fund_names_unique_per_company(self, company, owner, fund):
        with pytest.raises(ValidationError):
            payment_service.create_fund(company, owner.id, {"name": fund.name})
        with pytest.raises(ValidationError):
            payment_service.create_fund(company, owner.id, {"name": "ติดลบ", "balance": "-5"})
        assert [f.name for f in payment_service.list_funds(company)] == [fund.name]


class TestSettlement:
    def _advance(self, company, owner, payer, amount):
        expense = txn.create(company, EXPENSE, owner.id, {"amount": amount, "description": "ซื้อของเข้าร้าน"})
        return payment_service.add_payment(company, expense, owner.id, {
            "paid_by_type": "USER", "paid_by_user_id": payer.id,
        })

    def test_settle_once(self, company, owner, clerk):
        payment = self._advance(company, owner, clerk, "800")
        payment_service.settle_payment(company, payment.id, owner.id, settlement_ref="TRF-9")
        assert payment.settlement_status == "SETTLED"
        assert payment.settlement_ref == "TRF-9"

        with pytest.raises(IllegalTransitionError):
            payment_service.settle_payment(company, payment.id, owner.id)
        with pytest.raises(IllegalTransitionError):
            payment_service.remove_payment(company, payment.id, owner.id)

    def test_summary_groups_outstanding_by_payer(self, company, owner, clerk, manager):
        self._advance(company, owner, clerk, "100")
        self._advance(company, owner, clerk, "250")
        settled = self._advance(company, owner, manager, "40")
        payment_service.settle_payment(company, settled.id, owner.id)

        summary = payment_service.settlement_summary(company)
        assert summary["count"] == 2
        assert summary["total"] == "350.00"
        assert len(summary["payers"]) == 1
        assert summary["payers"][0]["name"] == "Clerk"
        assert summary["payers"][0]["total"] == "350.00"

    def test_settlement_expense(self, company, owner, clerk):
        first = self._advance(company, owner, clerk, "100")
        second = self._advance(company, owner, clerk, "250")
        for payment in (first, second):
            payment_service.settle_payment(company, payment.id, owner.id)

        expense = payment_service.create_settlement_expense(company, [first.id, second.id], owner.id)
        assert expense.workflow_status == "COMPLETED"
        assert expense.net_amount == Decimal("350.00")
        assert expense.description == "โอนคืนเงินสำรองจ่าย - Clerk"
        assert first.settlement_expense_id == expense.id

        with pytest.raises(IllegalTransitionError):
            payment_service.create_settlement_expense(company, [first.id], owner.id)

    def test_settlement_expense_rules(self, company, owner, clerk, manager):
        unsettled = self._advance(company, owner, clerk, "100")
        with pytest.raises(IllegalTransitionError):
            payment_service.create_settlement_expense(company, [unsettled.id], owner.id)

        with pytest.raises(NotFoundError):
            payment_service.create_settlement_expense(company, [999999], owner.id)

        mine = self._advance(company, owner, clerk, "10")
        theirs = self._advance(company, owner, manager, "10")
        for payment in (mine, theirs):
            payment_service.settle_payment(company, payment.id, owner.id)
        with pytest.raises(ValidationError):
            payment_service.create_settlement_expense(company, [mine.id, theirs.id], owner.id)
