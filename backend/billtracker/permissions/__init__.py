# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .capability import Permission, grants_any
from .definitions import (
    PERMISSION_DEFINITIONS,
    EXPENSE_PERMISSIONS,
    INCOME_PERMISSIONS,
    REIMBURSEMENT_PERMISSIONS,
    SETTLEMENT_PERMISSIONS,
    AUDIT_PERMISSIONS,
    SETTINGS_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_modules,
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "Permission",
    "grants_any",
    "PERMISSION_DEFINITIONS",
    "EXPENSE_PERMISSIONS",
    "INCOME_PERMISSIONS",
    "REIMBURSEMENT_PERMISSIONS",
    "SETTLEMENT_PERMISSIONS",
    "AUDIT_PERMISSIONS",
    "SETTINGS_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_modules",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
