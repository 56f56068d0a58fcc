# Overview: Pytest coverage for the expense / income aggregate: approval gate, workflow, events and audit.

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from billtracker.errors import (
    ApprovalPendingError,
    ApprovalRejectedError,
    ConcurrentModificationError,
    ForbiddenError,
    IllegalTransitionError,
    InvalidTaxInputError,
    NotFoundError,
    SelfApprovalError,
    ValidationError,
)
from billtracker.extensions import db
from billtracker.models import AuditLog, Expense, Income
from billtracker.services import audit_service, reminder_service, transaction_service as txn
from billtracker.services.transaction_service import EXPENSE, INCOME
from billtracker.time_utils import utcnow


RECEIPT = "https://files.example.com/receipts/inv-001.pdf"


def expense_payload(amount="1000", **extra):
    payload = {"amount": amount, "vat_rate": 7, "description": "ค่าบริการทำความสะอาด", "contact_name": "Clean Co"}
    payload.update(extra)
    return payload


def event_types(record):
    return [e.event_type for e in audit_service.list_events(record)]


def audit_actions(entity_type, entity_id):
    rows = db.session.query(AuditLog).filter_by(entity_type=entity_type, entity_id=entity_id).order_by(AuditLog.id).all()
    return [row.action for row in rows]


class TestCreate:
    def test_draft_with_derived_tax(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("1000", is_wht=True, wht_type="SERVICE_3"))

        assert expense.workflow_status == "DRAFT"
        assert expense.approval_status == "NOT_REQUIRED"
        assert expense.vat_amount == Decimal("70.00")
        assert expense.wht_amount == Decimal("30.00")
        assert expense.net_amount == Decimal("1040.00")
        assert event_types(expense) == ["CREATED"]
        assert audit_actions("expense", expense.id) == ["CREATE"]

    def test_client_cannot_set_derived_amounts(self, company, clerk):
        with pytest.raises(ValidationError):
            txn.create(company, EXPENSE, clerk.id, expense_payload(net_amount="1"))

    @pytest.mark.parametrize("field, value", [
        ("amount", "abc"),
        ("amount", "1000000000000"),
        ("vat_rate", "seven"),
        ("wht_rate", [3]),
    ])
    def test_malformed_tax_input_names_field(self, company, clerk, field, value):
        with pytest.raises(InvalidTaxInputError) as exc:
            txn.create(company, EXPENSE, clerk.id, expense_payload(**{field: value}))
        assert exc.value.field == field
        assert exc.value.code == "INVALID_TAX_INPUT"

    @pytest.mark.parametrize("extra, field", [
        ({"vat_rate": "7.125"}, "vat_rate"),
        ({"is_wht": True, "wht_rate": "3.005"}, "wht_rate"),
    ])
    def test_rate_finer_than_storage_is_rejected(self, company, clerk, extra, field):
        with pytest.raises(InvalidTaxInputError) as exc:
            txn.create(company, EXPENSE, clerk.id, expense_payload(**extra))
        assert exc.value.field == field

    def test_stored_rate_reproduces_stored_vat(self, db_session, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("1000", vat_rate="7.13"))
        db_session.expire_all()
        stored = db_session.get(Expense, expense.id)
        assert stored.vat_rate == Decimal("7.13")
        assert stored.vat_amount == Decimal("71.30")

        txn.update(company, EXPENSE, stored.id, clerk.id, {"amount": "2000"})
        db_session.expire_all()
        assert db_session.get(Expense, expense.id).vat_amount == Decimal("142.60")

    def test_amount_required(self, company, clerk):
        with pytest.raises(ValidationError):
            txn.create(company, EXPENSE, clerk.id, {"description": "no amount"})

    def test_unknown_document_type(self, company, clerk):
        with pytest.raises(ValidationError):
            txn.create(company, EXPENSE, clerk.id, expense_payload(document_type="SELFIE"))

    def test_above_threshold_starts_pending(self, company, clerk, notifications):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))

        assert expense.approval_status == "PENDING"
        assert expense.submitted_by == clerk.id
        assert notifications.kinds() == ["expense.submitted"]

    def test_create_direct_skips_approval(self, company, manager, owner):
        assert txn.create(company, EXPENSE, manager.id, expense_payload("20000")).approval_status == "NOT_REQUIRED"
        assert txn.create(company, INCOME, owner.id, expense_payload("20000")).approval_status == "NOT_REQUIRED"

    def test_no_threshold_means_no_approval(self, other_company, make_user):
        staff = make_user("beta-staff", other_company, preset="staff")
        record = txn.create(other_company, EXPENSE, staff.id, expense_payload("999999"))
        assert record.approval_status == "NOT_REQUIRED"

    def test_document_urls_mark_document_present(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload(document_urls=[RECEIPT]))
        assert expense.has_required_document is True


class TestQueries:
    def test_get_scoped_to_company(self, company, other_company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        with pytest.raises(NotFoundError):
            txn.get(other_company, EXPENSE, expense.id)
        with pytest.raises(NotFoundError):
            txn.get(company, INCOME, expense.id)

    def test_list_filters(self, company, clerk):
        small = txn.create(company, EXPENSE, clerk.id, expense_payload("100"))
        big = txn.create(company, EXPENSE, clerk.id, expense_payload("50000"))

        assert {r.id for r in txn.list_records(company, EXPENSE)} == {small.id, big.id}
        assert [r.id for r in txn.list_records(company, EXPENSE, approval_status="PENDING")] == [big.id]
        assert txn.list_records(company, INCOME) == []

    def test_soft_delete_hides_record(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.soft_delete(company, EXPENSE, expense.id, clerk.id)

        with pytest.raises(NotFoundError):
            txn.get(company, EXPENSE, expense.id)
        assert txn.list_records(company, EXPENSE) == []
        assert "DELETED" in event_types(expense)

    def test_workflow_summary(self, company, owner):
        txn.create(company, EXPENSE, owner.id, expense_payload())
        paid = txn.create(company, EXPENSE, owner.id, expense_payload(document_type="NO_DOCUMENT"))
        txn.mark_paid_or_received(company, EXPENSE, paid.id, owner.id)

        summary = txn.workflow_summary(company)
        assert summary["expense"]["by_status"]["DRAFT"]["count"] == 1
        assert summary["expense"]["by_status"]["READY_FOR_ACCOUNTING"]["count"] == 1
        assert summary["expense"]["by_status"]["DRAFT"]["label"] == "ร่าง"
        assert summary["income"]["pending_approval"] == 0
        assert summary["pending_accounting"] == 1


class TestMarkPaid:
    def test_waits_for_tax_invoice(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id, slip_urls=["https://files/slip.jpg"])

        assert expense.workflow_status == "WAITING_TAX_INVOICE"
        assert expense.paid_at is not None
        assert expense.slip_urls == ["https://files/slip.jpg"]
        assert event_types(expense) == ["CREATED", "MARKED_AS_PAID"]
        assert audit_actions("expense", expense.id) == ["CREATE", "STATUS_CHANGE"]

    def test_pending_blocks_until_approved(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        with pytest.raises(ApprovalPendingError):
            txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        assert expense.workflow_status == "DRAFT"

        txn.approve(company, EXPENSE, expense.id, manager.id)
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        assert expense.workflow_status == "WAITING_TAX_INVOICE"

    def test_rejected_blocks(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        txn.reject(company, EXPENSE, expense.id, manager.id, "ขาดใบเสนอราคา")
        with pytest.raises(ApprovalRejectedError):
            txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)

    def test_second_mark_paid_is_illegal(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        with pytest.raises(IllegalTransitionError) as exc_info:
            txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        assert exc_info.value.current_status == "WAITING_TAX_INVOICE"

    def test_income_with_wht_waits_for_certificate(self, company, clerk):
        income = txn.create(company, INCOME, clerk.id, expense_payload(
            "5000", document_type="NO_DOCUMENT", is_wht=True, wht_type="SERVICE_3",
        ))
        txn.mark_paid_or_received(company, INCOME, income.id, clerk.id)
        assert income.workflow_status == "WHT_PENDING_CERT"
        assert income.received_at is not None


class TestDocumentWorkflow:
    def test_document_received_requires_attachment(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)

        with pytest.raises(ValidationError) as exc_info:
            txn.advance(company, EXPENSE, expense.id, clerk.id, "document-received")
        assert "แนบเอกสาร" in exc_info.value.message

    def test_document_received_auto_advances(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        txn.advance(company, EXPENSE, expense.id, clerk.id, "document-received", urls=[RECEIPT])

        assert expense.workflow_status == "READY_FOR_ACCOUNTING"
        assert expense.has_required_document is True
        assert expense.document_urls == [RECEIPT]
        last = audit_service.list_events(expense)[-1]
        assert last.event_type == "TAX_INVOICE_RECEIVED"
        assert last.from_status == "WAITING_TAX_INVOICE"
        assert last.to_status == "READY_FOR_ACCOUNTING"
        assert last.event_metadata["path"] == ["TAX_INVOICE_RECEIVED", "READY_FOR_ACCOUNTING"]

    def test_full_wht_expense_flow(self, company, owner):
        expense = txn.create(company, EXPENSE, owner.id, expense_payload(
            "10000", is_wht=True, wht_type="SERVICE_3", document_urls=[RECEIPT],
        ))
        txn.mark_paid_or_received(company, EXPENSE, expense.id, owner.id)
        assert expense.workflow_status == "WHT_PENDING_ISSUE"

        txn.advance(company, EXPENSE, expense.id, owner.id, "wht-issued", urls=["https://files/50tawi.pdf"])
        assert expense.workflow_status == "WHT_ISSUED"
        assert expense.has_wht_cert is True

        txn.advance(company, EXPENSE, expense.id, owner.id, "sent-to-vendor")
        assert expense.workflow_status == "READY_FOR_ACCOUNTING"
        assert expense.wht_cert_sent_at is not None

        txn.advance(company, EXPENSE, expense.id, owner.id, "send")
        txn.advance(company, EXPENSE, expense.id, owner.id, "confirm")
        assert expense.workflow_status == "COMPLETED"
        assert expense.completed_at is not None
        assert event_types(expense) == [
            "CREATED", "MARKED_AS_PAID", "WHT_CERT_ISSUED", "WHT_CERT_SENT", "SENT_TO_ACCOUNTANT", "STATUS_CHANGED",
        ]

    def test_income_invoice_then_certificate(self, company, owner):
        income = txn.create(company, INCOME, owner.id, expense_payload("8000", is_wht=True, wht_type="SERVICE_3"))
        txn.mark_paid_or_received(company, INCOME, income.id, owner.id)
        assert income.workflow_status == "WAITING_INVOICE_ISSUE"

        txn.advance(company, INCOME, income.id, owner.id, "invoice-issued", urls=["https://files/inv.pdf"])
        assert income.workflow_status == "WHT_PENDING_CERT"

        txn.advance(company, INCOME, income.id, owner.id, "wht-cert-received", urls=["https://files/cert.pdf"])
        assert income.workflow_status == "READY_FOR_ACCOUNTING"

        txn.advance(company, INCOME, income.id, owner.id, "send")
        assert income.workflow_status == "SENT_TO_ACCOUNTANT"
        with pytest.raises(IllegalTransitionError):
            txn.advance(company, INCOME, income.id, owner.id, "confirm")

    def test_settlement_triggers_not_allowed_here(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        with pytest.raises(ValidationError):
            txn.advance(company, EXPENSE, expense.id, clerk.id, "mark-paid")

    def test_urls_must_be_strings(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        with pytest.raises(ValidationError):
            txn.advance(company, EXPENSE, expense.id, clerk.id, "document-received", urls="not-a-list")


class TestUpdate:
    def test_descriptive_edit(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.update(company, EXPENSE, expense.id, clerk.id, {"notes": "จ่ายผ่านบัญชีกสิกร"})

        assert expense.notes == "จ่ายผ่านบัญชีกสิกร"
        assert event_types(expense) == ["CREATED", "UPDATED"]
        assert audit_actions("expense", expense.id) == ["CREATE", "UPDATE"]

    def test_tax_edit_recomputes_and_reapplies_policy(self, company, clerk, notifications):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("5000"))
        assert expense.approval_status == "NOT_REQUIRED"

        txn.update(company, EXPENSE, expense.id, clerk.id, {"amount": "20000"})
        assert expense.net_amount == Decimal("21400.00")
        assert expense.approval_status == "PENDING"
        assert expense.submitted_by == clerk.id
        assert notifications.kinds() == ["expense.submitted"]

    def test_rejected_record_can_be_fixed(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        txn.reject(company, EXPENSE, expense.id, manager.id, "ยอดไม่ตรงใบเสนอราคา")

        txn.update(company, EXPENSE, expense.id, clerk.id, {"amount": "9000"})
        assert expense.approval_status == "NOT_REQUIRED"
        assert expense.submitted_by is None

    def test_pending_record_is_locked(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        with pytest.raises(IllegalTransitionError):
            txn.update(company, EXPENSE, expense.id, clerk.id, {"amount": "100"})

    def test_settled_record_amount_is_locked(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        with pytest.raises(IllegalTransitionError) as exc_info:
            txn.update(company, EXPENSE, expense.id, clerk.id, {"vat_rate": 0})
        assert exc_info.value.current_status == "WAITING_TAX_INVOICE"

    def test_direct_status_edit_follows_rules(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)

        txn.update(company, EXPENSE, expense.id, clerk.id, {
            "document_urls": [RECEIPT],
            "workflow_status": "READY_FOR_ACCOUNTING",
        })
        assert expense.workflow_status == "READY_FOR_ACCOUNTING"
        assert event_types(expense)[-1] == "STATUS_CHANGED"
        assert audit_actions("expense", expense.id)[-1] == "STATUS_CHANGE"

    def test_direct_status_edit_rejects_jumps(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        with pytest.raises(IllegalTransitionError):
            txn.update(company, EXPENSE, expense.id, clerk.id, {"workflow_status": "COMPLETED"})
        with pytest.raises(IllegalTransitionError):
            txn.update(company, EXPENSE, expense.id, clerk.id, {"workflow_status": "READY_FOR_ACCOUNTING"})


class TestApproval:
    def test_submit_and_approve(self, company, clerk, manager, notifications):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("500"))
        txn.submit(company, EXPENSE, expense.id, clerk.id)
        assert expense.approval_status == "PENDING"

        txn.approve(company, EXPENSE, expense.id, manager.id, notes="ok")
        assert expense.approval_status == "APPROVED"
        assert expense.approved_by == manager.id
        assert notifications.kinds() == ["expense.submitted", "expense.approved"]
        assert notifications.messages[-1].target_user_id == clerk.id
        assert event_types(expense) == ["CREATED", "SUBMITTED_FOR_APPROVAL", "APPROVED"]

    def test_submit_twice(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("500"))
        txn.submit(company, EXPENSE, expense.id, clerk.id)
        with pytest.raises(IllegalTransitionError):
            txn.submit(company, EXPENSE, expense.id, clerk.id)

    def test_submit_requires_draft(self, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("500"))
        txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        with pytest.raises(IllegalTransitionError):
            txn.submit(company, EXPENSE, expense.id, clerk.id)

    def test_no_self_approval(self, company, manager):
        # Managers skip the threshold, so submit by hand
        expense = txn.create(company, EXPENSE, manager.id, expense_payload("20000"))
        txn.submit(company, EXPENSE, expense.id, manager.id)
        with pytest.raises(SelfApprovalError):
            txn.approve(company, EXPENSE, expense.id, manager.id)
        assert expense.approval_status == "PENDING"

    def test_reject_needs_reason(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        with pytest.raises(ValidationError):
            txn.reject(company, EXPENSE, expense.id, manager.id, "  ")

        txn.reject(company, EXPENSE, expense.id, manager.id, "ซ้ำกับรายการเดิม")
        assert expense.approval_status == "REJECTED"
        assert expense.rejected_reason == "ซ้ำกับรายการเดิม"
        assert audit_service.list_events(expense)[-1].notes == "ซ้ำกับรายการเดิม"

    def test_withdraw(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        with pytest.raises(ForbiddenError):
            txn.withdraw(company, EXPENSE, expense.id, manager.id)

        txn.withdraw(company, EXPENSE, expense.id, clerk.id)
        assert expense.approval_status == "NOT_REQUIRED"
        assert expense.submitted_by is None

    def test_approve_only_pending(self, company, clerk, manager):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload("500"))
        with pytest.raises(IllegalTransitionError):
            txn.approve(company, EXPENSE, expense.id, manager.id)


class TestBatch:
    def test_partial_failure(self, company, clerk, manager):
        first = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        second = txn.create(company, EXPENSE, clerk.id, expense_payload("30000"))
        not_pending = txn.create(company, EXPENSE, clerk.id, expense_payload("100"))

        result = txn.batch_approve(company, EXPENSE, [first.id, not_pending.id, 999999, second.id], manager.id)

        assert result.succeeded == 2
        assert result.failed == 2
        by_id = {r["id"]: r for r in result.results}
        assert by_id[first.id]["success"] and by_id[second.id]["success"]
        assert by_id[not_pending.id]["code"] == "ILLEGAL_TRANSITION"
        assert by_id[999999]["code"] == "NOT_FOUND"
        assert txn.get(company, EXPENSE, first.id).approval_status == "APPROVED"
        assert result.to_dict("อนุมัติ")["message"] == "อนุมัติแล้ว 2 รายการ, ไม่สำเร็จ 2 รายการ"

    def test_self_approval_fails_only_that_item(self, company, clerk, make_user):
        approver = make_user("approver", company, permissions=["expenses:approve"])
        own = txn.create(company, EXPENSE, approver.id, expense_payload("20000"))
        other = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))

        result = txn.batch_approve(company, EXPENSE, [own.id, other.id], approver.id)
        assert [r["success"] for r in result.results] == [False, True]
        assert result.results[0]["code"] == "SELF_APPROVAL"

    def test_batch_reject(self, company, clerk, manager):
        pending = txn.create(company, INCOME, clerk.id, expense_payload("20000"))
        result = txn.batch_reject(company, INCOME, [pending.id], manager.id, "ข้อมูลลูกค้าไม่ครบ")
        assert result.succeeded == 1
        assert pending.approval_status == "REJECTED"

    def test_batch_reject_needs_reason(self, company, clerk, manager):
        pending = txn.create(company, EXPENSE, clerk.id, expense_payload("20000"))
        with pytest.raises(ValidationError):
            txn.batch_reject(company, EXPENSE, [pending.id], manager.id, "")

    def test_limits(self, app, company, manager):
        with pytest.raises(ValidationError):
            txn.batch_approve(company, EXPENSE, [], manager.id)
        limit = app.config["APPROVAL_BATCH_LIMIT"]
        with pytest.raises(ValidationError):
            txn.batch_approve(company, EXPENSE, list(range(1, limit + 2)), manager.id)

    def test_limit_follows_config(self, app, monkeypatch, company, manager):
        monkeypatch.setitem(app.config, "APPROVAL_BATCH_LIMIT", 60)
        result = txn.batch_approve(company, EXPENSE, list(range(100001, 100056)), manager.id)
        assert result.failed == 55
        assert {r["code"] for r in result.results} == {"NOT_FOUND"}


class TestConcurrency:
    def test_stale_read_loses(self, db_session, company, clerk):
        expense = txn.create(company, EXPENSE, clerk.id, expense_payload())
        assert expense.version_id == 1

        # Another request settles the same row after we read it
        table = Expense.__table__
        db_session.execute(
            update(table)
            .where(table.c.id == expense.id)
            .values(workflow_status="WAITING_TAX_INVOICE", version_id=table.c.version_id + 1)
        )

        with pytest.raises(ConcurrentModificationError) as exc_info:
            txn.mark_paid_or_received(company, EXPENSE, expense.id, clerk.id)
        assert exc_info.value.status_code == 409

        # The losing write changed nothing; the record now shows the winner's state
        assert expense.workflow_status == "WAITING_TAX_INVOICE"
        assert expense.paid_at is None
        assert event_types(expense) == ["CREATED"]
        db_session.rollback()

    def test_version_bumps_on_each_write(self, company, owner):
        expense = txn.create(company, EXPENSE, owner.id, expense_payload())
        txn.submit(company, EXPENSE, expense.id, owner.id)
        txn.withdraw(company, EXPENSE, expense.id, owner.id)
        assert expense.version_id == 3


class TestWhtReminders:
    def _pending_certificate(self, company, actor):
        income = txn.create(company, INCOME, actor.id, expense_payload(
            "5000", document_type="NO_DOCUMENT", is_wht=True, wht_type="SERVICE_3",
        ))
        txn.mark_paid_or_received(company, INCOME, income.id, actor.id)
        return income

    def test_record_reminder(self, company, owner, notifications):
        income = self._pending_certificate(company, owner)
        txn.record_wht_reminder(company, income.id, owner.id, notes="โทรตามแล้ว")

        assert income.wht_cert_remind_count == 1
        assert income.workflow_status == "WHT_PENDING_CERT"
        assert event_types(income)[-1] == "WHT_REMINDER_SENT"
        assert notifications.kinds() == ["wht.reminder"]
        assert notifications.messages[0].payload["remind_count"] == 1

    def test_reminder_only_while_waiting(self, company, owner):
        income = txn.create(company, INCOME, owner.id, expense_payload())
        with pytest.raises(IllegalTransitionError):
            txn.record_wht_reminder(company, income.id, owner.id)

    def test_scan_finds_overdue_incomes(self, company, owner, notifications):
        income = self._pending_certificate(company, owner)
        txn.create(company, INCOME, owner.id, expense_payload())

        assert reminder_service.scan_wht_reminders(now=utcnow() + timedelta(days=3)) == []

        scan_time = utcnow() + timedelta(days=8)
        notified = reminder_service.scan_wht_reminders(now=scan_time)
        assert notified == [income.id]
        assert notifications.kinds() == ["wht.reminder"]
        assert notifications.messages[0].payload["days_waiting"] >= 7
        assert income.workflow_status == "WHT_PENDING_CERT"
        assert income.wht_cert_reminded_at == scan_time
        assert income.wht_cert_remind_count == 1
        assert event_types(income)[-1] == "WHT_REMINDER_SENT"

    def test_daily_scan_does_not_repeat_within_window(self, company, owner, notifications):
        income = self._pending_certificate(company, owner)
        first = utcnow() + timedelta(days=8)
        assert reminder_service.scan_wht_reminders(now=first) == [income.id]

        for day in range(1, 7):
            assert reminder_service.scan_wht_reminders(now=first + timedelta(days=day)) == []
        assert reminder_service.scan_wht_reminders(now=first + timedelta(days=7)) == [income.id]
        assert notifications.kinds() == ["wht.reminder", "wht.reminder"]
        assert income.wht_cert_remind_count == 2

    def test_scan_skips_recently_chased(self, db_session, company, owner):
        income = self._pending_certificate(company, owner)
        later = utcnow() + timedelta(days=8)
        assert [i.id for i in reminder_service.find_overdue_wht_incomes(later, min_age_days=7)] == [income.id]
        assert reminder_service.find_overdue_wht_incomes(later, min_age_days=10) == []

        table = Income.__table__
        db_session.execute(update(table).where(table.c.id == income.id).values(wht_cert_reminded_at=later))
        db_session.commit()

        assert reminder_service.find_overdue_wht_incomes(later + timedelta(days=1), min_age_days=7) == []
        assert len(reminder_service.find_overdue_wht_incomes(later + timedelta(days=7), min_age_days=7)) == 1
