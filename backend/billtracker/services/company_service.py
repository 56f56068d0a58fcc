# Overview: Service-layer operations for companies (tenants); encapsulates business logic and database work.

"""
Company (tenant) management.

Companies are created by an operator from the CLI. The code is the URL
segment of every company-scoped API route, so it is normalized to upper
case and must be unique.
"""

from __future__ import annotations

import re
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Company
from . import audit_service
from .tax_service import round2, to_decimal


CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{2,32}$")


def normalize_code(code: str) -> str:
    code = (code or "").strip().upper()
    if not CODE_PATTERN.match(code):
        raise ValidationError("รหัสบริษัทต้องเป็นตัวอักษรภาษาอังกฤษหรือตัวเลข 2-32 ตัว")
    return code


def _threshold(value) -> Decimal | None:
    if value is None or value == "":
        return None
    threshold = round2(to_decimal(value, "approval_threshold"))
    if threshold < 0:
        raise ValidationError("วงเงินอนุมัติต้องไม่ติดลบ")
    return threshold


def create_company(
    name: str,
    code: str,
    *,
    tax_id: str | None = None,
    approval_threshold=None,
    line_group_id: str | None = None,
) -> Company:
    name = (name or "").strip()
    if not name:
        raise ValidationError("กรุณาระบุชื่อบริษัท")
    code = normalize_code(code)
    if db.session.query(Company).filter_by(code=code).first():
        raise ValidationError(f"รหัสบริษัท {code} ถูกใช้แล้ว")
    if tax_id is not None and not re.fullmatch(r"\d{13}", tax_id):
        raise ValidationError("เลขประจำตัวผู้เสียภาษีต้องเป็นตัวเลข 13 หลัก")

    company = Company(
        name=name,
        code=code,
        tax_id=tax_id,
        approval_threshold=_threshold(approval_threshold),
        line_group_id=line_group_id,
        is_active=True,
    )
    db.session.add(company)
    db.session.commit()
    return company


def get_by_code(code: str) -> Company:
    company = db.session.query(Company).filter_by(code=(code or "").strip().upper()).first()
    if company is None:
        raise NotFoundError("ไม่พบบริษัท")
    return company


def list_companies(include_inactive: bool = False) -> list[Company]:
    query = db.session.query(Company)
    if not include_inactive:
        query = query.filter(Company.is_active.is_(True))
    return query.order_by(Company.code).all()


def set_approval_threshold(company: Company, value) -> Company:
    """None disables approval for new records."""
    company.approval_threshold = _threshold(value)
    db.session.commit()
    return company


SETTINGS_FIELDS = ("name", "tax_id", "approval_threshold", "line_group_id")


def update_settings(company: Company, actor_id: int, payload: dict) -> Company:
    """
    Edit company-level settings from the API.

    approval_threshold: null disables approval for new records.
    line_group_id: null stops LINE pushes for this company.
    """
    payload = payload or {}
    unknown = sorted(set(payload) - set(SETTINGS_FIELDS))
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    before = {field: audit_service.to_json_value(getattr(company, field)) for field in payload}

    if "name" in payload:
        name = (payload["name"] or "").strip()
        if not name:
            raise ValidationError("กรุณาระบุชื่อบริษัท")
        company.name = name
    if "tax_id" in payload:
        tax_id = payload["tax_id"] or None
        if tax_id is not None and not re.fullmatch(r"\d{13}", str(tax_id)):
            raise ValidationError("เลขประจำตัวผู้เสียภาษีต้องเป็นตัวเลข 13 หลัก")
        company.tax_id = tax_id
    if "approval_threshold" in payload:
        company.approval_threshold = _threshold(payload["approval_threshold"])
    if "line_group_id" in payload:
        company.line_group_id = (payload["line_group_id"] or "").strip() or None

    db.session.commit()

    after = {field: audit_service.to_json_value(getattr(company, field)) for field in payload}
    audit_service.record_audit(
        company_id=company.id,
        user_id=actor_id,
        action=audit_service.AuditAction.UPDATE,
        entity_type="company",
        entity_id=company.id,
        description="แก้ไขการตั้งค่าบริษัท",
        changes=audit_service.diff(before, after),
    )
    return company
