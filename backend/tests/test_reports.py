# Overview: Pytest coverage for the monthly VAT / WHT report and the tax calculator.

from datetime import date

import pytest

from billtracker.errors import InvalidTaxInputError, ValidationError
from billtracker.services import reporting_service, transaction_service as txn
from billtracker.services.transaction_service import EXPENSE, INCOME


@pytest.fixture
def march_books(company, owner):
    txn.create(company, EXPENSE, owner.id, {
        "amount": "1000", "vat_rate": 7, "is_wht": True, "wht_type": "SERVICE_3", "bill_date": "2026-03-10",
    })
    txn.create(company, EXPENSE, owner.id, {"amount": "500", "vat_rate": 7, "bill_date": "2026-03-31"})
    txn.create(company, EXPENSE, owner.id, {"amount": "9999", "vat_rate": 7, "bill_date": "2026-04-01"})
    txn.create(company, INCOME, owner.id, {
        "amount": "2000", "vat_rate": 7, "is_wht": True, "wht_type": "PROFESSIONAL_5", "receive_date": "2026-03-05",
    })


class TestTaxReport:
    def test_month_position(self, company, march_books):
        report = reporting_service.tax_report(company, 2026, 3, today=date(2026, 4, 1))

        assert report["counts"] == {"expenses": 2, "incomes": 1}
        assert report["vat"] == {"input_vat": "105.00", "output_vat": "140.00", "net_vat": "35.00"}
        assert report["wht"]["wht_paid"] == "30.00"
        assert report["wht"]["wht_received"] == "100.00"
        assert report["wht"]["by_type"] == {
            "SERVICE_3": {"label": "ค่าบริการ 3%", "count": 1, "amount": "30.00"},
        }
        assert report["pending"] == {"wht_to_issue": 1, "wht_certs_to_receive": 1}

    def test_deadline(self, company):
        report = reporting_service.tax_report(company, 2026, 3, today=date(2026, 4, 1))
        assert report["deadline"] == {"date": "2026-04-07", "days_until": 6, "is_overdue": False}

        late = reporting_service.tax_report(company, 2026, 3, today=date(2026, 4, 10))
        assert late["deadline"]["is_overdue"] is True

    def test_december_rolls_into_next_year(self, company):
        report = reporting_service.tax_report(company, 2025, 12, today=date(2025, 12, 15))
        assert report["deadline"]["date"] == "2026-01-07"

    def test_other_company_excluded(self, other_company, march_books):
        report = reporting_service.tax_report(other_company, 2026, 3)
        assert report["counts"] == {"expenses": 0, "incomes": 0}
        assert report["vat"]["net_vat"] == "0.00"

    @pytest.mark.parametrize("year, month", [(2026, 0), (2026, 13), (1999, 5)])
    def test_invalid_period(self, company, year, month):
        with pytest.raises(ValidationError):
            reporting_service.tax_report(company, year, month)


class TestCalculate:
    def test_plain(self):
        assert reporting_service.calculate({"amount": "1000", "vat_rate": 7, "wht_rate": 3}) == {
            "amount": "1000.00",
            "vat_amount": "70.00",
            "wht_amount": "30.00",
            "net_amount": "1040.00",
            "vat_rate": "7",
            "wht_rate": "3",
        }

    def test_vat_included_total_is_split(self):
        result = reporting_service.calculate({"amount": "107", "vat_rate": 7, "vat_included": True})
        assert result["amount"] == "100.00"
        assert result["vat_amount"] == "7.00"
        assert result["net_amount"] == "107.00"

    def test_explicit_rate_wins_over_type(self):
        result = reporting_service.calculate({"amount": "1000", "wht_type": "RENT_5", "wht_rate": 1})
        assert result["wht_amount"] == "10.00"

    def test_rejects_bad_rate(self):
        with pytest.raises(InvalidTaxInputError) as exc_info:
            reporting_service.calculate({"amount": "1000", "vat_rate": -1})
        assert exc_info.value.field == "vat_rate"
