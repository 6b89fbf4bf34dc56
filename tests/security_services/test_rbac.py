"""Role -> permission checks and audit-read scoping."""

import pytest

from security_kernel.exceptions import PermissionDeniedError
from security_kernel.models.audit_log import AuditAction
from security_kernel.selectors.audit_selector import AuditLogFilters
from security_kernel.services.audit_service import AuditLogEntry
from security_services.rbac import (
    PERMISSIONS,
    Role,
    has_permission,
    require_permission,
    scope_audit_filters,
)


class TestHasPermission:
    @pytest.mark.parametrize(
        "permission", ["company:delete", "audit_log:read", "anything:at_all"]
    )
    def test_super_admin_wildcard(self, permission):
        assert has_permission(Role.SUPER_ADMIN, permission) is True

    @pytest.mark.parametrize(
        "role,permission,expected",
        [
            (Role.CONTADOR, "transaction:delete", True),
            (Role.CONTADOR, "audit_log:read", False),
            (Role.CLIENTE, "report:export", True),
            (Role.CLIENTE, "transaction:read", False),
            (Role.AUDITOR, "audit_log:read", True),
            (Role.AUDITOR, "transaction:update", False),
        ],
    )
    def test_table(self, role, permission, expected):
        assert has_permission(role, permission) is expected

    def test_role_by_name(self):
        assert has_permission("AUDITOR", "report:read") is True

    @pytest.mark.parametrize("role", ["GUEST", "", None, "super_admin"])
    def test_unknown_role_has_nothing(self, role):
        assert has_permission(role, "company:read") is False

    def test_every_role_listed(self):
        assert set(PERMISSIONS) == set(Role)


class TestRequirePermission:
    def test_granted(self):
        require_permission(Role.CONTADOR, "report:generate")

    def test_denied_raises_and_logs(self, captured_logs):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_permission(Role.CLIENTE, "transaction:delete")

        assert exc_info.value.role == "CLIENTE"
        assert exc_info.value.permission == "transaction:delete"
        assert exc_info.value.code == "PERMISSION_DENIED"

        denied = [r for r in captured_logs() if r["message"] == "permission_denied"]
        assert denied[0]["level"] == "SECURITY"
        assert denied[0]["permission"] == "transaction:delete"

    def test_unknown_role_name_in_error(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_permission("GUEST", "company:read")
        assert exc_info.value.role == "GUEST"


class TestScopeAuditFilters:
    def test_super_admin_unchanged(self):
        filters = AuditLogFilters(user_id="someone", action=AuditAction.USER_LOGIN)
        assert scope_audit_filters(Role.SUPER_ADMIN, "admin-1", filters) is filters

    @pytest.mark.parametrize("role", [Role.AUDITOR, Role.CONTADOR, "CLIENTE", "GUEST"])
    def test_others_forced_to_own_records(self, role):
        filters = AuditLogFilters(user_id="someone", limit=10)
        scoped = scope_audit_filters(role, "me", filters)
        assert scoped.user_id == "me"
        assert scoped.limit == 10

    def test_default_filters(self):
        assert scope_audit_filters(Role.AUDITOR, "me").user_id == "me"

    def test_scoped_read(self, audit_service):
        for user_id in ("me", "someone", "me"):
            audit_service.create_audit_log(
                AuditLogEntry(
                    action=AuditAction.USER_LOGIN,
                    resource="auth",
                    ip_address="10.0.0.1",
                    user_agent="pytest",
                    user_id=user_id,
                )
            )

        assert audit_service.get_audit_logs(scope_audit_filters(Role.CLIENTE, "me")).total == 2
        assert audit_service.get_audit_logs(scope_audit_filters(Role.SUPER_ADMIN, "me")).total == 3
