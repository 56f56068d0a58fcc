# Overview: Pytest coverage for request body validation and time helpers.

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from billtracker.errors import ValidationError
from billtracker.models import Expense
from billtracker.time_utils import bangkok_today, to_iso_date, to_utc_z
from billtracker.validation import ModelValidationPolicy, parse_id_list, validate_payload


POLICY = ModelValidationPolicy(
    writable_fields={"amount", "contact_name", "has_required_document", "bill_date", "slip_urls"},
    required_on_create={"amount"},
)


def _validate(payload, partial=False):
    return validate_payload(model=Expense, payload=payload, policy=POLICY, partial=partial)


class TestValidatePayload:
    def test_coerces_by_column_type(self):
        cleaned = _validate({
            "amount": 0.1,
            "contact_name": "  ร้านป้าแดง ",
            "has_required_document": "true",
            "bill_date": "2026-03-10T08:00:00",
            "slip_urls": [" https://x/slip.jpg ", " "],
        })
        assert cleaned == {
            "amount": Decimal("0.1"),
            "contact_name": "ร้านป้าแดง",
            "has_required_document": True,
            "bill_date": date(2026, 3, 10),
            "slip_urls": ["https://x/slip.jpg"],
        }

    def test_missing_required_on_create(self):
        with pytest.raises(ValidationError, match="amount"):
            _validate({"contact_name": "x"})

    def test_partial_skips_required(self):
        assert _validate({"contact_name": "x"}, partial=True) == {"contact_name": "x"}

    @pytest.mark.parametrize("payload", [
        {"amount": "100", "net_amount": "100"},
        {"amount": "100", "workflow_status": "PAID"},
    ])
    def test_non_writable_field_rejected(self, payload):
        with pytest.raises(ValidationError, match="not allowed"):
            _validate(payload)

    @pytest.mark.parametrize("amount", [True, "abc", "NaN", "1000000000000", [1]])
    def test_bad_amounts(self, amount):
        with pytest.raises(ValidationError):
            _validate({"amount": amount})

    def test_null_on_required_column(self):
        with pytest.raises(ValidationError, match="cannot be null"):
            _validate({"amount": None}, partial=True)

    def test_bad_date_and_url_list(self):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            _validate({"amount": "1", "bill_date": "10/03/2026"})
        with pytest.raises(ValidationError, match="list of strings"):
            _validate({"amount": "1", "slip_urls": "https://x"})

    def test_string_length_limit(self):
        with pytest.raises(ValidationError, match="max length 255"):
            _validate({"amount": "1", "contact_name": "ก" * 256})


class TestParseIdList:
    def test_dedupes_in_order(self):
        assert parse_id_list({"ids": [3, "1", 3, 2]}) == [3, 1, 2]

    @pytest.mark.parametrize("body", [None, {}, {"ids": []}, {"ids": "1,2"}])
    def test_empty_or_wrong_shape(self, body):
        with pytest.raises(ValidationError):
            parse_id_list(body)

    @pytest.mark.parametrize("ids", [[True], [1.5], ["x"]])
    def test_non_integer_ids(self, ids):
        with pytest.raises(ValidationError):
            parse_id_list({"ids": ids})

    def test_limit(self):
        with pytest.raises(ValidationError):
            parse_id_list({"ids": [1, 2, 3]}, limit=2)


class TestTimeUtils:
    def test_to_utc_z(self):
        assert to_utc_z(None) is None
        assert to_utc_z(datetime(2026, 3, 10, 9, 30, 15, 500)) == "2026-03-10T09:30:15Z"
        bangkok = datetime(2026, 3, 10, 16, 30, tzinfo=timezone(timedelta(hours=7)))
        assert to_utc_z(bangkok) == "2026-03-10T09:30:00Z"

    def test_iso_date(self):
        assert to_iso_date(None) is None
        assert to_iso_date(date(2026, 4, 7)) == "2026-04-07"

    def test_bangkok_today_is_within_a_day_of_utc(self):
        utc_today = datetime.now(timezone.utc).date()
        assert bangkok_today() - utc_today in (timedelta(0), timedelta(days=1))
