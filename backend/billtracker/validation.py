"""
Request body validation driven by SQLAlchemy column metadata.

Services declare which columns a client may write (ModelValidationPolicy);
validate_payload coerces each value to the column's type and enforces
nullability and String lengths. Computed columns such as net_amount are
never in a writable set, so sending them is a 400.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Numeric, String, Text

from .errors import InvalidTaxInputError, ValidationError


# 999,999,999,999.99 THB, the most a Numeric(14, 2) column holds
MAX_AMOUNT = Decimal("999999999999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be a boolean")


def _to_decimal(key: str, value: Any) -> Decimal:
    """Numeric columns are amounts and rates; failures name the field."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise InvalidTaxInputError(f"{key} must be a number", field=key)
    try:
        # via str() so 0.1 stays 0.1
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidTaxInputError(f"{key} must be a number", field=key)
    if not number.is_finite():
        raise InvalidTaxInputError(f"{key} must be a finite number", field=key)
    if abs(number) > MAX_AMOUNT:
        raise InvalidTaxInputError(f"{key} cannot exceed {MAX_AMOUNT:,}", field=key)
    return number


def _to_date(key: str, value: Any) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")


def _to_url_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _coerce(col, value: Any):
    coltype = col.type
    if isinstance(coltype, Boolean):
        return _to_bool(col.key, value)
    if isinstance(coltype, Numeric):
        return _to_decimal(col.key, value)
    if isinstance(coltype, Date):
        return _to_date(col.key, value)
    if isinstance(coltype, JSON):
        return _to_url_list(col.key, value)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{col.key} exceeds max length {coltype.length}")
        return text
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Return a cleaned dict holding only writable fields.

    partial=False is create: every required_on_create field must be present.
    partial=True is PATCH: only the keys sent are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

    cleaned: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            cleaned[key] = None
        else:
            cleaned[key] = _coerce(col, raw)
    return cleaned


def enforce_choice(patch: dict, field_name: str, choices) -> None:
    if patch.get(field_name) is not None and patch[field_name] not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(sorted(choices))}")


def require_reason(reason: str | None, message: str = "กรุณาระบุเหตุผลในการปฏิเสธ") -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError(message)
    return str(reason).strip()


def parse_id_list(payload: dict | None, key: str = "ids", limit: int | None = None) -> list[int]:
    """Non-empty list of integer ids from a JSON body, de-duplicated in order."""
    raw = (payload or {}).get(key)
    if not isinstance(raw, list) or not raw:
        raise ValidationError("กรุณาเลือกรายการที่ต้องการดำเนินการ")
    ids: list[int] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValidationError(f"{key} must contain integer ids")
        try:
            parsed = int(value)
        except ValueError:
            raise ValidationError(f"{key} must contain integer ids")
        if parsed not in ids:
            ids.append(parsed)
    if limit is not None and len(ids) > limit:
        raise ValidationError(f"สามารถดำเนินการได้สูงสุด {limit} รายการต่อครั้ง")
    return ids
