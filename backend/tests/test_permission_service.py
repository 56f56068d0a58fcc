# Overview: Pytest coverage for permission matching and company access grants.

import pytest

from billtracker.errors import ForbiddenError, ValidationError
from billtracker.models import SecurityEvent
from billtracker.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    Permission,
    get_all_modules,
    grants_any,
    validate_permission_code,
)
from billtracker.services import permission_service


class TestPermissionMatching:
    def test_parse(self):
        assert Permission.parse("expenses:approve") == Permission("expenses", "approve")
        assert str(Permission.parse(" incomes:* ")) == "incomes:*"
        assert str(Permission.parse("*")) == "*"

    @pytest.mark.parametrize("code", ["", "expenses", ":read", "expenses:", None])
    def test_parse_rejects_malformed(self, code):
        with pytest.raises(ValueError):
            Permission.parse(code)

    @pytest.mark.parametrize(
        "granted, required, expected",
        [
            ("expenses:read", "expenses:read", True),
            ("expenses:*", "expenses:approve", True),
            ("*", "settlements:manage", True),
            ("expenses:*", "incomes:read", False),
            ("expenses:create", "expenses:create-direct", False),
            ("expenses:read", "expenses:update", False),
        ],
    )
    def test_grants(self, granted, required, expected):
        assert Permission.parse(granted).grants(Permission.parse(required)) is expected

    def test_grants_any_ignores_bad_codes(self):
        assert grants_any(["garbage", "incomes:*"], "incomes:approve")
        assert not grants_any(["garbage"], "incomes:approve")
        assert not grants_any(None, "incomes:read")

    def test_validate_permission_code(self):
        assert validate_permission_code("*")
        assert validate_permission_code("reimbursements:*")
        assert validate_permission_code("audit:read")
        assert not validate_permission_code("payroll:*")
        assert not validate_permission_code("audit:delete")

    def test_presets_only_use_known_codes(self):
        for codes in DEFAULT_ROLE_PERMISSIONS.values():
            assert all(validate_permission_code(code) for code in codes)
        assert "expenses" in get_all_modules()


class TestCompanyAccess:
    def test_owner_has_everything(self, company, owner):
        assert permission_service.has_permission(owner.id, company.id, "settings:manage")
        assert permission_service.get_user_permissions(owner.id, company.id) == ["*"]

    def test_staff_cannot_skip_approval(self, company, clerk):
        assert permission_service.has_permission(clerk.id, company.id, "expenses:create")
        assert not permission_service.has_permission(clerk.id, company.id, "expenses:create-direct")
        assert not permission_service.has_permission(clerk.id, company.id, "expenses:approve")

    def test_manager_wildcards(self, company, manager):
        assert permission_service.has_permission(manager.id, company.id, "expenses:create-direct")
        assert permission_service.has_permission(manager.id, company.id, "reimbursements:pay")
        assert not permission_service.has_permission(manager.id, company.id, "settings:manage")

    def test_access_is_per_company(self, company, other_company, outsider):
        assert permission_service.has_permission(outsider.id, other_company.id, "expenses:read")
        assert not permission_service.has_permission(outsider.id, company.id, "expenses:read")
        assert permission_service.get_user_permissions(outsider.id, company.id) == []

    def test_grant_merges_preset_and_extra_codes(self, company, make_user):
        user = make_user("viewer", company, preset="viewer", permissions=["audit:read", "expenses:read"])
        codes = permission_service.get_user_permissions(user.id, company.id)
        assert codes == DEFAULT_ROLE_PERMISSIONS["viewer"] + ["audit:read"]

    def test_regrant_replaces(self, company, clerk):
        permission_service.grant_access(user_id=clerk.id, company_id=company.id, permissions=["incomes:read"])
        assert permission_service.get_user_permissions(clerk.id, company.id) == ["incomes:read"]

    @pytest.mark.parametrize("kwargs", [{"preset": "superuser"}, {"permissions": ["expenses:fly"]}])
    def test_grant_rejects_unknown(self, company, clerk, kwargs):
        with pytest.raises(ValidationError):
            permission_service.grant_access(user_id=clerk.id, company_id=company.id, **kwargs)

    def test_revoke(self, company, clerk):
        assert permission_service.revoke_access(user_id=clerk.id, company_id=company.id) is True
        assert not permission_service.has_permission(clerk.id, company.id, "expenses:read")
        assert permission_service.revoke_access(user_id=clerk.id, company_id=company.id) is False


class TestRequirePermission:
    def test_denial_is_logged(self, db_session, company, clerk):
        with pytest.raises(ForbiddenError) as exc_info:
            permission_service.require_permission(clerk.id, company.id, "expenses:approve", resource="/test")
        assert exc_info.value.details == {"required_permission": "expenses:approve"}

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == clerk.id
        assert event.company_id == company.id
        assert event.action == "expenses:approve"
        assert event.success is False

    def test_grant_is_not_logged(self, db_session, company, owner):
        permission_service.require_permission(owner.id, company.id, "expenses:approve")
        assert db_session.query(SecurityEvent).count() == 0
