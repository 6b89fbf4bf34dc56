"""
security_services -- orchestration over the security kernel.

Responsibility:
    Wires kernel components from configuration and composes them into the
    flows request handlers and operator scripts call: sign-in, password
    change, re-authentication for sensitive actions, role checks and
    emergency session revocation.

Architecture position:
    Services.  Dependency direction:
        security_services/ -> security_kernel/  (allowed)
        security_services/ -> security_config/  (allowed)
        security_kernel/   -> security_services/ (FORBIDDEN)
"""

from security_services.bootstrap import (
    build_audit_service,
    build_backup_code_manager,
    build_breach_checker,
    build_field_codec,
    build_password_change_service,
    build_password_expiration_policy,
    build_rate_limit_sweeper,
    build_rate_limiter,
    build_session_manager,
    decrypt,
    encrypt,
    get_default_engine,
    hash_value,
    reset_defaults,
)
from security_services.emergency import RevocationReport, revoke_all_sessions
from security_services.login_service import LoginOutcome, LoginService
from security_services.password_change import (
    PasswordChangeOutcome,
    PasswordChangeService,
)
from security_services.rbac import (
    PERMISSIONS,
    Role,
    has_permission,
    require_permission,
    scope_audit_filters,
)
from security_services.reauth import ReauthGuard, ReauthResult, SensitiveAction

__all__ = [
    "build_audit_service",
    "build_backup_code_manager",
    "build_breach_checker",
    "build_field_codec",
    "build_password_change_service",
    "build_password_expiration_policy",
    "build_rate_limit_sweeper",
    "build_rate_limiter",
    "build_session_manager",
    "decrypt",
    "encrypt",
    "get_default_engine",
    "hash_value",
    "reset_defaults",
    "RevocationReport",
    "revoke_all_sessions",
    "LoginOutcome",
    "LoginService",
    "PasswordChangeOutcome",
    "PasswordChangeService",
    "PERMISSIONS",
    "Role",
    "has_permission",
    "require_permission",
    "scope_audit_filters",
    "ReauthGuard",
    "ReauthResult",
    "SensitiveAction",
]
