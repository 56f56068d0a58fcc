# Overview: Table-driven document workflow state machine for expenses and incomes.

"""
Document Workflow Rules Engine

================================================================================
PURPOSE: Single source of truth for how an Expense or Income moves from DRAFT
to "ready for accounting" and on to the accountant.
================================================================================

CONTRACT:
- Every entry point (mark-paid, document actions, direct status edits) asks
  this module for the next state, so expense and income branches cannot
  drift apart.
- Pure: no database access, no Flask context. Callers persist the result.

MODEL:
    A Rule is (source, trigger, target, condition). Applying a trigger picks
    the FIRST rule whose source matches the current status and whose
    condition holds for the record's flags. Rules with trigger=None are
    automatic: after a triggered rule fires, automatic rules are followed
    until a resting state is reached. The full path is returned so callers
    can record every intermediate status.

EXPENSE:
    DRAFT --mark-paid--> READY_FOR_ACCOUNTING | WHT_PENDING_ISSUE | WAITING_TAX_INVOICE
    WAITING_TAX_INVOICE --document-received--> TAX_INVOICE_RECEIVED --auto--> WHT_PENDING_ISSUE | READY_FOR_ACCOUNTING
    WHT_PENDING_ISSUE --wht-issued--> WHT_ISSUED
    WHT_ISSUED --sent-to-vendor--> WHT_SENT_TO_VENDOR --auto--> READY_FOR_ACCOUNTING
    WHT_ISSUED --ready-for-accounting--> READY_FOR_ACCOUNTING
    READY_FOR_ACCOUNTING --send--> SENT_TO_ACCOUNTANT --confirm--> COMPLETED

INCOME:
    DRAFT --mark-received--> WHT_PENDING_CERT | READY_FOR_ACCOUNTING | WAITING_INVOICE_ISSUE
    WAITING_INVOICE_ISSUE --invoice-issued--> INVOICE_ISSUED --auto--> WHT_PENDING_CERT | READY_FOR_ACCOUNTING
    WHT_PENDING_CERT --wht-cert-received--> WHT_CERT_RECEIVED --auto--> READY_FOR_ACCOUNTING
    READY_FOR_ACCOUNTING --send--> SENT_TO_ACCOUNTANT  (terminal, no COMPLETED)
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import IllegalTransitionError


EXPENSE = "EXPENSE"
INCOME = "INCOME"
DIRECTIONS = {EXPENSE, INCOME}


class DocumentType:
    TAX_INVOICE = "TAX_INVOICE"
    CASH_RECEIPT = "CASH_RECEIPT"
    NO_DOCUMENT = "NO_DOCUMENT"


DOCUMENT_TYPES = {DocumentType.TAX_INVOICE, DocumentType.CASH_RECEIPT, DocumentType.NO_DOCUMENT}


class ExpenseStatus:
    DRAFT = "DRAFT"
    WAITING_TAX_INVOICE = "WAITING_TAX_INVOICE"
    TAX_INVOICE_RECEIVED = "TAX_INVOICE_RECEIVED"
    WHT_PENDING_ISSUE = "WHT_PENDING_ISSUE"
    WHT_ISSUED = "WHT_ISSUED"
    WHT_SENT_TO_VENDOR = "WHT_SENT_TO_VENDOR"
    READY_FOR_ACCOUNTING = "READY_FOR_ACCOUNTING"
    SENT_TO_ACCOUNTANT = "SENT_TO_ACCOUNTANT"
    COMPLETED = "COMPLETED"


class IncomeStatus:
    DRAFT = "DRAFT"
    WAITING_INVOICE_ISSUE = "WAITING_INVOICE_ISSUE"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    WHT_PENDING_CERT = "WHT_PENDING_CERT"
    WHT_CERT_RECEIVED = "WHT_CERT_RECEIVED"
    READY_FOR_ACCOUNTING = "READY_FOR_ACCOUNTING"
    SENT_TO_ACCOUNTANT = "SENT_TO_ACCOUNTANT"


class Trigger:
    MARK_PAID = "mark-paid"
    MARK_RECEIVED = "mark-received"
    DOCUMENT_RECEIVED = "document-received"
    WHT_ISSUED = "wht-issued"
    SENT_TO_VENDOR = "sent-to-vendor"
    READY_FOR_ACCOUNTING = "ready-for-accounting"
    SEND = "send"
    CONFIRM = "confirm"
    INVOICE_ISSUED = "invoice-issued"
    WHT_CERT_RECEIVED = "wht-cert-received"


SETTLEMENT_TRIGGERS = {
    EXPENSE: Trigger.MARK_PAID,
    INCOME: Trigger.MARK_RECEIVED,
}


STATUS_LABELS = {
    EXPENSE: {
        ExpenseStatus.DRAFT: "ร่าง",
        ExpenseStatus.WAITING_TAX_INVOICE: "รอใบกำกับ",
        ExpenseStatus.TAX_INVOICE_RECEIVED: "ได้ใบกำกับแล้ว",
        ExpenseStatus.WHT_PENDING_ISSUE: "รอออก 50 ทวิ",
        ExpenseStatus.WHT_ISSUED: "ออก 50 ทวิแล้ว",
        ExpenseStatus.WHT_SENT_TO_VENDOR: "ส่ง 50 ทวิแล้ว",
        ExpenseStatus.READY_FOR_ACCOUNTING: "รอส่งบัญชี",
        ExpenseStatus.SENT_TO_ACCOUNTANT: "ส่งบัญชีแล้ว",
        ExpenseStatus.COMPLETED: "เสร็จสิ้น",
    },
    INCOME: {
        IncomeStatus.DRAFT: "ร่าง",
        IncomeStatus.WAITING_INVOICE_ISSUE: "รอออกบิล",
        IncomeStatus.INVOICE_ISSUED: "ออกบิลแล้ว",
        IncomeStatus.WHT_PENDING_CERT: "รอใบ 50 ทวิ",
        IncomeStatus.WHT_CERT_RECEIVED: "ได้ใบ 50 ทวิ",
        IncomeStatus.READY_FOR_ACCOUNTING: "รอส่งบัญชี",
        IncomeStatus.SENT_TO_ACCOUNTANT: "ส่งบัญชีแล้ว",
    },
}


@dataclass(frozen=True)
class WorkflowFlags:
    """Record attributes the rule conditions are allowed to look at."""
    document_type: str = DocumentType.TAX_INVOICE
    has_required_document: bool = False
    is_wht: bool = False

    @classmethod
    def from_record(cls, record) -> "WorkflowFlags":
        return cls(
            document_type=record.document_type,
            has_required_document=bool(record.has_required_document),
            is_wht=bool(record.is_wht),
        )


def _always(flags: WorkflowFlags) -> bool:
    return True


def _no_document_type(flags: WorkflowFlags) -> bool:
    return flags.document_type == DocumentType.NO_DOCUMENT


def _has_document(flags: WorkflowFlags) -> bool:
    return flags.has_required_document


def _wht_on_tax_invoice(flags: WorkflowFlags) -> bool:
    return flags.has_required_document and flags.is_wht and flags.document_type == DocumentType.TAX_INVOICE


def _is_wht(flags: WorkflowFlags) -> bool:
    return flags.is_wht


def _not_wht(flags: WorkflowFlags) -> bool:
    return not flags.is_wht


def _settled_with_document_and_wht(flags: WorkflowFlags) -> bool:
    return (_no_document_type(flags) or _has_document(flags)) and flags.is_wht


def _settled_with_document(flags: WorkflowFlags) -> bool:
    return _no_document_type(flags) or _has_document(flags)


@dataclass(frozen=True)
class Rule:
    source: str
    trigger: Optional[str]
    target: str
    condition: Callable[[WorkflowFlags], bool] = _always

    @property
    def automatic(self) -> bool:
        return self.trigger is None


@dataclass(frozen=True)
class Transition:
    direction: str
    source: str
    trigger: str
    path: tuple

    @property
    def target(self) -> str:
        return self.path[-1]


# Order matters: the first matching rule wins.
EXPENSE_RULES = (
    Rule(ExpenseStatus.DRAFT, Trigger.MARK_PAID, ExpenseStatus.READY_FOR_ACCOUNTING, _no_document_type),
    Rule(ExpenseStatus.DRAFT, Trigger.MARK_PAID, ExpenseStatus.WHT_PENDING_ISSUE, _wht_on_tax_invoice),
    Rule(ExpenseStatus.DRAFT, Trigger.MARK_PAID, ExpenseStatus.READY_FOR_ACCOUNTING, _has_document),
    Rule(ExpenseStatus.DRAFT, Trigger.MARK_PAID, ExpenseStatus.WAITING_TAX_INVOICE),
    Rule(ExpenseStatus.WAITING_TAX_INVOICE, Trigger.DOCUMENT_RECEIVED, ExpenseStatus.TAX_INVOICE_RECEIVED),
    Rule(ExpenseStatus.TAX_INVOICE_RECEIVED, None, ExpenseStatus.WHT_PENDING_ISSUE, _is_wht),
    Rule(ExpenseStatus.TAX_INVOICE_RECEIVED, None, ExpenseStatus.READY_FOR_ACCOUNTING, _not_wht),
    Rule(ExpenseStatus.WHT_PENDING_ISSUE, Trigger.WHT_ISSUED, ExpenseStatus.WHT_ISSUED),
    Rule(ExpenseStatus.WHT_ISSUED, Trigger.SENT_TO_VENDOR, ExpenseStatus.WHT_SENT_TO_VENDOR),
    Rule(ExpenseStatus.WHT_ISSUED, Trigger.READY_FOR_ACCOUNTING, ExpenseStatus.READY_FOR_ACCOUNTING),
    Rule(ExpenseStatus.WHT_SENT_TO_VENDOR, None, ExpenseStatus.READY_FOR_ACCOUNTING),
    Rule(ExpenseStatus.READY_FOR_ACCOUNTING, Trigger.SEND, ExpenseStatus.SENT_TO_ACCOUNTANT),
    Rule(ExpenseStatus.SENT_TO_ACCOUNTANT, Trigger.CONFIRM, ExpenseStatus.COMPLETED),
)

INCOME_RULES = (
    Rule(IncomeStatus.DRAFT, Trigger.MARK_RECEIVED, IncomeStatus.WHT_PENDING_CERT, _settled_with_document_and_wht),
    Rule(IncomeStatus.DRAFT, Trigger.MARK_RECEIVED, IncomeStatus.READY_FOR_ACCOUNTING, _settled_with_document),
    Rule(IncomeStatus.DRAFT, Trigger.MARK_RECEIVED, IncomeStatus.WAITING_INVOICE_ISSUE),
    Rule(IncomeStatus.WAITING_INVOICE_ISSUE, Trigger.INVOICE_ISSUED, IncomeStatus.INVOICE_ISSUED),
    Rule(IncomeStatus.INVOICE_ISSUED, None, IncomeStatus.WHT_PENDING_CERT, _is_wht),
    Rule(IncomeStatus.INVOICE_ISSUED, None, IncomeStatus.READY_FOR_ACCOUNTING, _not_wht),
    Rule(IncomeStatus.WHT_PENDING_CERT, Trigger.WHT_CERT_RECEIVED, IncomeStatus.WHT_CERT_RECEIVED),
    Rule(IncomeStatus.WHT_CERT_RECEIVED, None, IncomeStatus.READY_FOR_ACCOUNTING),
    Rule(IncomeStatus.READY_FOR_ACCOUNTING, Trigger.SEND, IncomeStatus.SENT_TO_ACCOUNTANT),
)

RULES = {EXPENSE: EXPENSE_RULES, INCOME: INCOME_RULES}

TERMINAL_STATUSES = {
    EXPENSE: {ExpenseStatus.COMPLETED},
    INCOME: {IncomeStatus.SENT_TO_ACCOUNTANT},
}


def _rules_for(direction: str) -> tuple:
    try:
        return RULES[direction]
    except KeyError:
        raise ValueError(f"Unknown direction: {direction}")


def statuses(direction: str) -> list[str]:
    return list(STATUS_LABELS[direction].keys())


def status_label(direction: str, status: str) -> str:
    return STATUS_LABELS.get(direction, {}).get(status, status)


def is_terminal(direction: str, status: str) -> bool:
    return status in TERMINAL_STATUSES[direction]


def _match(direction: str, current: str, trigger: Optional[str], flags: WorkflowFlags) -> Optional[Rule]:
    for rule in _rules_for(direction):
        if rule.source == current and rule.trigger == trigger and rule.condition(flags):
            return rule
    return None


def can_transition(direction: str, current: str, trigger: str, flags: WorkflowFlags) -> bool:
    """Guard: is `trigger` legal from `current` for a record with these flags."""
    if trigger is None:
        return False
    return _match(direction, current, trigger, flags) is not None


def apply_transition(direction: str, current: str, trigger: str, flags: WorkflowFlags) -> Transition:
    """
    Compute the resting status reached by firing `trigger` from `current`.

    Raises IllegalTransitionError when no rule matches.
    """
    rule = _match(direction, current, trigger, flags) if trigger else None
    if rule is None:
        raise IllegalTransitionError(
            f"ไม่สามารถดำเนินการ '{trigger}' ได้ในสถานะ \"{status_label(direction, current)}\"",
            current_status=current,
        )

    path = [rule.target]
    # Each automatic hop moves strictly forward, so the table length bounds the walk
    for _ in range(len(_rules_for(direction))):
        auto = _match(direction, path[-1], None, flags)
        if auto is None:
            break
        path.append(auto.target)

    return Transition(direction=direction, source=current, trigger=trigger, path=tuple(path))


def available_triggers(direction: str, current: str, flags: WorkflowFlags) -> list[str]:
    """Triggers a UI may offer for a record in `current` status."""
    seen: list[str] = []
    for rule in _rules_for(direction):
        if rule.automatic or rule.trigger in seen:
            continue
        if rule.source == current and rule.condition(flags):
            seen.append(rule.trigger)
    return seen


def trigger_for_target(direction: str, current: str, target: str, flags: WorkflowFlags) -> Optional[str]:
    """
    Find the document trigger that moves `current` to `target`.

    Used to validate direct status edits. The settlement triggers
    (mark-paid / mark-received) are excluded; those go through the
    approval gate on their own endpoint.
    """
    settlement = SETTLEMENT_TRIGGERS[direction]
    for trigger in available_triggers(direction, current, flags):
        if trigger == settlement:
            continue
        if target in apply_transition(direction, current, trigger, flags).path:
            return trigger
    return None
