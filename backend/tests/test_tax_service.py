# Overview: Pytest coverage for VAT / WHT arithmetic.

from decimal import Decimal
from types import SimpleNamespace

import pytest

from billtracker.errors import InvalidTaxInputError
from billtracker.services.tax_service import (
    compute_tax,
    resolve_tax_fields,
    reverse_vat,
    round2,
    summarize_vat,
    summarize_wht,
    wht_rate_for_type,
)


class TestComputeTax:
    def test_vat_and_wht(self):
        result = compute_tax("1000", 7, 3)
        assert result.vat_amount == Decimal("70.00")
        assert result.wht_amount == Decimal("30.00")
        assert result.net_amount == Decimal("1040.00")

    def test_no_taxes(self):
        result = compute_tax(500)
        assert result.vat_amount == Decimal("0.00")
        assert result.wht_amount == Decimal("0.00")
        assert result.net_amount == Decimal("500.00")

    def test_rounds_half_up_to_satang(self):
        # 0.50 * 1% = 0.005 -> 0.01
        assert compute_tax("0.50", 1, 0).vat_amount == Decimal("0.01")
        # 333.33 * 7% = 23.3331 -> 23.33
        assert compute_tax("333.33", 7, 0).vat_amount == Decimal("23.33")

    def test_net_is_exact_sum_of_rounded_parts(self):
        result = compute_tax("1234.56", 7, 3)
        assert result.net_amount == result.amount + result.vat_amount - result.wht_amount

    def test_float_input_keeps_printed_value(self):
        assert compute_tax(0.1, 0, 0).amount == Decimal("0.10")

    def test_zero_amount_allowed(self):
        assert compute_tax(0, 7, 3).net_amount == Decimal("0.00")

    @pytest.mark.parametrize(
        "amount, vat_rate, wht_rate, field",
        [
            (-1, 0, 0, "amount"),
            (100, -1, 0, "vat_rate"),
            (100, 101, 0, "vat_rate"),
            (100, 0, 100.01, "wht_rate"),
            ("abc", 0, 0, "amount"),
            (100, "seven", 0, "vat_rate"),
            (True, 0, 0, "amount"),
            ("NaN", 0, 0, "amount"),
            (100, "7.125", 0, "vat_rate"),
            (100, 0, "3.001", "wht_rate"),
        ],
    )
    def test_invalid_input_names_field(self, amount, vat_rate, wht_rate, field):
        with pytest.raises(InvalidTaxInputError) as exc_info:
            compute_tax(amount, vat_rate, wht_rate)
        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400

    def test_to_dict_serializes_strings(self):
        assert compute_tax("100", 7, 0).to_dict() == {
            "amount": "100.00",
            "vat_amount": "7.00",
            "wht_amount": "0.00",
            "net_amount": "107.00",
        }


class TestResolveTaxFields:
    def test_standard_rate_from_wht_type(self):
        fields = resolve_tax_fields({"amount": "10000", "vat_rate": 7, "is_wht": True, "wht_type": "SERVICE_3"})
        assert fields["wht_rate"] == Decimal("3")
        assert fields["wht_amount"] == Decimal("300.00")
        assert fields["net_amount"] == Decimal("10400.00")

    def test_explicit_rate_wins_over_type(self):
        fields = resolve_tax_fields({"amount": "1000", "is_wht": True, "wht_type": "OTHER", "wht_rate": 1.5})
        assert fields["wht_amount"] == Decimal("15.00")

    def test_wht_requires_positive_rate(self):
        with pytest.raises(InvalidTaxInputError) as exc_info:
            resolve_tax_fields({"amount": "1000", "is_wht": True})
        assert exc_info.value.field == "wht_rate"

        with pytest.raises(InvalidTaxInputError):
            resolve_tax_fields({"amount": "1000", "is_wht": True, "wht_rate": 0})

    def test_no_wht_clears_rate_and_type(self):
        fields = resolve_tax_fields({"amount": "1000", "is_wht": False, "wht_type": "RENT_5", "wht_rate": 5})
        assert fields["wht_rate"] == Decimal("0")
        assert fields["wht_type"] is None
        assert fields["wht_amount"] == Decimal("0.00")

    def test_unknown_wht_type(self):
        with pytest.raises(InvalidTaxInputError) as exc_info:
            resolve_tax_fields({"amount": "1000", "is_wht": True, "wht_type": "BRIBE_10"})
        assert exc_info.value.field == "wht_type"


def test_wht_rate_for_type():
    assert wht_rate_for_type("PROFESSIONAL_5") == Decimal("5")
    assert wht_rate_for_type("TRANSPORT_1") == Decimal("1")
    assert wht_rate_for_type("OTHER") is None
    assert wht_rate_for_type(None) is None


def test_reverse_vat_splits_inclusive_total():
    result = reverse_vat("107", 7)
    assert result.amount == Decimal("100.00")
    assert result.vat_amount == Decimal("7.00")

    odd = reverse_vat("1000", 7)
    assert odd.amount + odd.vat_amount == Decimal("1000.00")
    assert odd.amount == Decimal("934.58")


def test_round2():
    assert round2(Decimal("2.345")) == Decimal("2.35")
    assert round2(Decimal("2.344")) == Decimal("2.34")


def test_vat_and_wht_summaries():
    expenses = [
        SimpleNamespace(vat_amount=Decimal("70.00"), wht_amount=Decimal("30.00"), is_wht=True),
        SimpleNamespace(vat_amount=Decimal("7.00"), wht_amount=Decimal("0.00"), is_wht=False),
    ]
    incomes = [SimpleNamespace(vat_amount=Decimal("140.00"), wht_amount=Decimal("60.00"), is_wht=True)]

    assert summarize_vat(expenses, incomes) == {
        "input_vat": "77.00",
        "output_vat": "140.00",
        "net_vat": "63.00",
    }
    assert summarize_wht(expenses, incomes) == {
        "wht_paid": "30.00",
        "wht_received": "60.00",
        "net_wht": "30.00",
    }
