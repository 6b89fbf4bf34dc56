"""
security_services.rbac -- role-based access checks.

Responsibility:
    Answers "may this role perform this permission?" from a fixed role ->
    permission table, and scopes audit-log reads to the caller.

Architecture position:
    Services layer.  Called by request handlers before they reach kernel
    services.  The kernel's AuditLogService does not know about roles.

Invariants:
    - SUPER_ADMIN holds the wildcard and passes every check.
    - Unknown roles hold no permissions.
    - Only SUPER_ADMIN may read other users' audit records; every other
      role has ``user_id`` forced to its own id.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from security_kernel.exceptions import PermissionDeniedError
from security_kernel.logging_config import get_logger, log_security
from security_kernel.selectors.audit_selector import AuditLogFilters

logger = get_logger("services.rbac")

WILDCARD = "*"


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    CONTADOR = "CONTADOR"
    CLIENTE = "CLIENTE"
    AUDITOR = "AUDITOR"


# role -> granted permissions ("resource:verb")
PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.SUPER_ADMIN: frozenset({WILDCARD}),
    Role.CONTADOR: frozenset(
        {
            "company:read",
            "company:update",  # assigned companies only
            "transaction:create",
            "transaction:read",
            "transaction:update",
            "transaction:delete",
            "report:generate",
        }
    ),
    Role.CLIENTE: frozenset(
        {
            "company:read",  # own company only
            "dashboard:read",
            "report:export",
        }
    ),
    Role.AUDITOR: frozenset(
        {
            "company:read",
            "transaction:read",
            "report:read",
            "audit_log:read",
        }
    ),
}


def _as_role(role: Role | str | None) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def has_permission(role: Role | str | None, permission: str) -> bool:
    resolved = _as_role(role)
    if resolved is None:
        return False
    granted = PERMISSIONS.get(resolved, frozenset())
    return WILDCARD in granted or permission in granted


def require_permission(role: Role | str | None, permission: str) -> None:
    """
    Raises:
        PermissionDeniedError: the role does not grant ``permission``.
    """
    if not has_permission(role, permission):
        role_name = role.value if isinstance(role, Role) else str(role)
        log_security(
            logger,
            "permission_denied",
            role=role_name,
            permission=permission,
        )
        raise PermissionDeniedError(role_name, permission)


def scope_audit_filters(
    role: Role | str | None,
    user_id: str,
    filters: AuditLogFilters | None = None,
) -> AuditLogFilters:
    """Filters the caller may actually run: non-admins see only their own records."""
    filters = filters or AuditLogFilters()
    if _as_role(role) is Role.SUPER_ADMIN:
        return filters
    return replace(filters, user_id=user_id)
