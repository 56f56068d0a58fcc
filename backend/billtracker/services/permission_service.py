# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging

Every mutating operation is authorized against the actor's access to
the company named in the request. Denials are recorded for security
monitoring.

MODEL:
- CompanyAccess(user, company) is the only source of permissions
- is_owner=True bypasses every check for that company
- permissions is a list of "module:action" strings; "module:*" and "*"
  are wildcards (see permissions.capability.Permission)
- No CompanyAccess row means no permissions at all

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit grant
- Log denials only: grants are not logged
- Company isolation: every lookup is keyed by (user_id, company_id)
"""

import logging

from ..extensions import db
from ..errors import ForbiddenError, ValidationError
from ..models import CompanyAccess, SecurityEvent
from ..permissions import DEFAULT_ROLE_PERMISSIONS, Permission, grants_any, validate_permission_code
from billtracker.time_utils import utcnow


logger = logging.getLogger(__name__)


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to the append-only security trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - COMPANY_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_company_access(user_id: int, company_id: int) -> CompanyAccess | None:
    return db.session.query(CompanyAccess).filter_by(
        user_id=user_id,
        company_id=company_id,
    ).first()


def get_user_permissions(user_id: int, company_id: int) -> list[str]:
    """
    Stored permission codes for a user in a company.

    Owners get ["*"]. Users without access get [].
    """
    access = get_company_access(user_id, company_id)
    if access is None:
        return []
    if access.is_owner:
        return ["*"]
    return list(access.permissions or [])


def has_permission(user_id: int, company_id: int, permission_code: str) -> bool:
    """
    Core permission check: owner bypass, then wildcard-aware matching.

    Used by decorators and by services that branch on a capability
    (e.g. create-direct skipping the approval threshold).
    """
    access = get_company_access(user_id, company_id)
    if access is None:
        return False
    if access.is_owner:
        return True
    return grants_any(access.permissions, permission_code)


def require_permission(
    user_id: int,
    company_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have permission, raise ForbiddenError if not.

    Usage:
        require_permission(user.id, company.id, "expenses:approve", resource=request.path)
    """
    if has_permission(user_id, company_id, permission_code):
        return

    logger.warning(
        "Permission denied: user=%s company=%s permission=%s resource=%s",
        user_id, company_id, permission_code, resource,
    )
    # Log only denials (policy: no granted logs)
    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        company_id=company_id,
    )
    raise ForbiddenError("คุณไม่มีสิทธิ์ดำเนินการนี้", details={"required_permission": permission_code})


def grant_access(
    *,
    user_id: int,
    company_id: int,
    permissions: list[str] | None = None,
    preset: str | None = None,
    is_owner: bool = False,
) -> CompanyAccess:
    """
    Create or replace a user's access to a company.

    permissions and preset are merged; codes are validated before storing.
    """
    codes: list[str] = []
    if preset is not None:
        if preset not in DEFAULT_ROLE_PERMISSIONS:
            raise ValidationError(f"Unknown permission preset: {preset}")
        codes.extend(DEFAULT_ROLE_PERMISSIONS[preset])
    for code in permissions or []:
        if not validate_permission_code(code):
            raise ValidationError(f"Unknown permission: {code}")
        code = str(Permission.parse(code))
        if code not in codes:
            codes.append(code)

    access = get_company_access(user_id, company_id)
    if access is None:
        access = CompanyAccess(user_id=user_id, company_id=company_id)
        db.session.add(access)

    access.is_owner = is_owner
    access.permissions = codes
    db.session.commit()
    return access


def revoke_access(*, user_id: int, company_id: int) -> bool:
    access = get_company_access(user_id, company_id)
    if access is None:
        return False
    db.session.delete(access)
    db.session.commit()
    return True
