# Overview: Flask API routes for company settings and the permission catalog; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import handle_errors, require_auth, require_company
from ..permissions import PermissionCategory, get_permission_definition, get_permissions_by_category
from ..responses import ok
from ..services import company_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/<company>/settings")


CATEGORY_ORDER = [
    PermissionCategory.EXPENSES,
    PermissionCategory.INCOMES,
    PermissionCategory.REIMBURSEMENTS,
    PermissionCategory.SETTLEMENTS,
    PermissionCategory.AUDIT,
    PermissionCategory.SETTINGS,
]


def _settings_view(company) -> dict:
    data = company.to_dict()
    data["line_group_id"] = company.line_group_id
    return data


@settings_bp.get("")
@require_auth
@require_company("settings:read")
def get_settings_route(company):
    return ok(_settings_view(company))


@settings_bp.patch("")
@require_auth
@require_company("settings:manage")
@handle_errors("Failed to update company settings")
def update_settings_route(company):
    """
    Body: any of name, tax_id, approval_threshold, line_group_id.
    """
    data = request.get_json(silent=True)
    company_service.update_settings(company, g.current_user.id, data if isinstance(data, dict) else {})
    return ok(_settings_view(company), message="บันทึกการตั้งค่าแล้ว")


@settings_bp.get("/permissions")
@require_auth
@require_company("settings:read")
def permission_catalog_route(company):
    """Grantable permissions grouped by category, for the access editor."""
    return ok([
        {
            "category": category,
            "permissions": [get_permission_definition(perm[0]) for perm in get_permissions_by_category(category)],
        }
        for category in CATEGORY_ORDER
    ])
