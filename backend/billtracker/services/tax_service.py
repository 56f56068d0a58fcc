# Overview: Pure VAT / withholding-tax arithmetic shared by expenses, incomes and reimbursements.

"""
Thai VAT and Withholding Tax Calculator

WHY: vat_amount, wht_amount and net_amount feed accounting exports, so they
must be identical no matter which entry point computed them. Every write
path calls compute_tax(); client-supplied derived amounts are ignored.

RULES:
    vat_amount = round2(amount * vat_rate / 100)
    wht_amount = round2(amount * wht_rate / 100)
    net_amount = amount + vat_amount - wht_amount

    round2 is half-up to two decimals (satang).
    amount >= 0, 0 <= vat_rate <= 100, 0 <= wht_rate <= 100.
    Rates carry at most two decimals, the precision they are stored at.

DIRECTION: The arithmetic is the same for both sides. On an expense the
company withholds from the vendor and net_amount is cash paid out; on an
income the customer withholds from the company and net_amount is cash
received.

No I/O, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from ..errors import InvalidTaxInputError


CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


class WhtType:
    """Withholding tax categories with their standard Thai rates."""
    SERVICE_3 = "SERVICE_3"
    PROFESSIONAL_5 = "PROFESSIONAL_5"
    TRANSPORT_1 = "TRANSPORT_1"
    RENT_5 = "RENT_5"
    ADVERTISING_2 = "ADVERTISING_2"
    OTHER = "OTHER"


STANDARD_WHT_RATES = {
    WhtType.SERVICE_3: Decimal("3"),
    WhtType.PROFESSIONAL_5: Decimal("5"),
    WhtType.TRANSPORT_1: Decimal("1"),
    WhtType.RENT_5: Decimal("5"),
    WhtType.ADVERTISING_2: Decimal("2"),
}

WHT_TYPES = set(STANDARD_WHT_RATES) | {WhtType.OTHER}

WHT_TYPE_LABELS = {
    WhtType.SERVICE_3: "ค่าบริการ 3%",
    WhtType.PROFESSIONAL_5: "ค่าวิชาชีพ 5%",
    WhtType.TRANSPORT_1: "ค่าขนส่ง 1%",
    WhtType.RENT_5: "ค่าเช่า 5%",
    WhtType.ADVERTISING_2: "ค่าโฆษณา 2%",
    WhtType.OTHER: "อื่นๆ",
}


@dataclass(frozen=True)
class TaxBreakdown:
    amount: Decimal
    vat_amount: Decimal
    wht_amount: Decimal
    net_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "amount": str(self.amount),
            "vat_amount": str(self.vat_amount),
            "wht_amount": str(self.wht_amount),
            "net_amount": str(self.net_amount),
        }


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str) -> Decimal:
    """Coerce a number-like value to Decimal, failing with the field name."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise InvalidTaxInputError(f"{field} must be a number", field=field)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidTaxInputError(f"{field} must be a number", field=field)
    if not number.is_finite():
        raise InvalidTaxInputError(f"{field} must be a finite number", field=field)
    return number


def _check_rate(rate: Decimal, field: str) -> None:
    if rate < ZERO or rate > HUNDRED:
        raise InvalidTaxInputError(f"{field} must be between 0 and 100", field=field)
    # rate columns are Numeric(5, 2); a finer rate would be stored rounded
    if rate != rate.quantize(CENT):
        raise InvalidTaxInputError(f"{field} must have at most 2 decimal places", field=field)


def compute_tax(amount, vat_rate=0, wht_rate=0) -> TaxBreakdown:
    """
    Compute VAT, WHT and net amount for a base amount.

    Raises InvalidTaxInputError naming the first offending field.
    """
    base = to_decimal(amount, "amount")
    vat = to_decimal(vat_rate, "vat_rate")
    wht = to_decimal(wht_rate, "wht_rate")

    if base < ZERO:
        raise InvalidTaxInputError("amount must be >= 0", field="amount")
    _check_rate(vat, "vat_rate")
    _check_rate(wht, "wht_rate")

    base = round2(base)
    vat_amount = round2(base * vat / HUNDRED)
    wht_amount = round2(base * wht / HUNDRED)
    net_amount = base + vat_amount - wht_amount

    return TaxBreakdown(
        amount=base,
        vat_amount=vat_amount,
        wht_amount=wht_amount,
        net_amount=net_amount,
    )


def wht_rate_for_type(wht_type: str | None) -> Decimal | None:
    """Standard rate for a WHT category; None for OTHER or unknown."""
    if wht_type is None:
        return None
    return STANDARD_WHT_RATES.get(wht_type)


def resolve_tax_fields(data: dict) -> dict:
    """
    Normalize the tax-related subset of a create/update payload.

    Accepts amount, vat_rate, is_wht, wht_rate, wht_type and returns a dict
    with every tax column populated, including the derived amounts. When
    is_wht is set without a rate, the standard rate of wht_type is used.
    """
    is_wht = bool(data.get("is_wht"))
    wht_type = data.get("wht_type")
    wht_rate = data.get("wht_rate")

    if wht_type is not None and wht_type not in WHT_TYPES:
        raise InvalidTaxInputError(
            f"wht_type must be one of: {', '.join(sorted(WHT_TYPES))}", field="wht_type"
        )

    if is_wht:
        if wht_rate is None:
            wht_rate = wht_rate_for_type(wht_type)
        if wht_rate is None or to_decimal(wht_rate, "wht_rate") <= ZERO:
            raise InvalidTaxInputError(
                "wht_rate must be greater than 0 when withholding tax applies", field="wht_rate"
            )
    else:
        wht_rate = ZERO
        wht_type = None

    breakdown = compute_tax(data.get("amount"), data.get("vat_rate") or ZERO, wht_rate)

    return {
        "amount": breakdown.amount,
        "vat_rate": to_decimal(data.get("vat_rate") or ZERO, "vat_rate"),
        "vat_amount": breakdown.vat_amount,
        "is_wht": is_wht,
        "wht_rate": to_decimal(wht_rate, "wht_rate"),
        "wht_type": wht_type,
        "wht_amount": breakdown.wht_amount,
        "net_amount": breakdown.net_amount,
    }


def reverse_vat(total, vat_rate=7) -> TaxBreakdown:
    """
    Split a VAT-inclusive total into base amount and VAT.

    Used when a receipt only shows the grand total. The base is rounded
    first, VAT is the remainder, so base + VAT always equals the total.
    """
    gross = to_decimal(total, "total")
    rate = to_decimal(vat_rate, "vat_rate")
    if gross < ZERO:
        raise InvalidTaxInputError("total must be >= 0", field="total")
    _check_rate(rate, "vat_rate")

    gross = round2(gross)
    base = round2(gross * HUNDRED / (HUNDRED + rate))
    vat_amount = gross - base
    return TaxBreakdown(amount=base, vat_amount=vat_amount, wht_amount=ZERO, net_amount=gross)


def summarize_vat(expenses: Iterable, incomes: Iterable) -> dict:
    """
    VAT position for a period.

    input_vat: VAT paid on expenses (claimable)
    output_vat: VAT charged on incomes (payable)
    net_vat: output - input; positive means VAT is owed
    """
    input_vat = sum((Decimal(e.vat_amount or 0) for e in expenses), ZERO)
    output_vat = sum((Decimal(i.vat_amount or 0) for i in incomes), ZERO)
    return {
        "input_vat": str(round2(input_vat)),
        "output_vat": str(round2(output_vat)),
        "net_vat": str(round2(output_vat - input_vat)),
    }


def summarize_wht(expenses: Iterable, incomes: Iterable) -> dict:
    """
    WHT position for a period.

    wht_paid: withheld by us from vendors, to remit (PND 3/53)
    wht_received: withheld from us by customers, creditable
    """
    paid = sum((Decimal(e.wht_amount or 0) for e in expenses if e.is_wht), ZERO)
    received = sum((Decimal(i.wht_amount or 0) for i in incomes if i.is_wht), ZERO)
    return {
        "wht_paid": str(round2(paid)),
        "wht_received": str(round2(received)),
        "net_wht": str(round2(received - paid)),
    }
