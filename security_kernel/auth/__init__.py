"""Authentication guards: rate limiting, password rules, breach lookup, backup codes."""

from security_kernel.auth.backup_codes import (
    BackupCode,
    BackupCodeManager,
    BackupCodeVerification,
    format_backup_code,
    generate_backup_codes,
)
from security_kernel.auth.breach_check import (
    BreachChecker,
    PasswordSecurityReport,
    heuristic_warnings,
)
from security_kernel.auth.password_expiration import (
    PasswordChangeRequirement,
    PasswordExpirationPolicy,
    PasswordHistoryEntry,
)
from security_kernel.auth.password_policy import (
    PasswordPolicy,
    PasswordValidationResult,
    require_valid_password,
    validate_password,
)
from security_kernel.auth.rate_limiter import (
    InMemoryRateLimitStore,
    RateLimitDecision,
    RateLimitEntry,
    RateLimiter,
    RateLimitStore,
    RateLimitSweeper,
    check_rate_limit_fail_open,
)

__all__ = [
    "BackupCode",
    "BackupCodeManager",
    "BackupCodeVerification",
    "format_backup_code",
    "generate_backup_codes",
    "BreachChecker",
    "PasswordSecurityReport",
    "heuristic_warnings",
    "PasswordChangeRequirement",
    "PasswordExpirationPolicy",
    "PasswordHistoryEntry",
    "PasswordPolicy",
    "PasswordValidationResult",
    "require_valid_password",
    "validate_password",
    "InMemoryRateLimitStore",
    "RateLimitDecision",
    "RateLimitEntry",
    "RateLimiter",
    "RateLimitStore",
    "RateLimitSweeper",
    "check_rate_limit_fail_open",
]
