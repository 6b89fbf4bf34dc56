"""
Typed Exception Hierarchy for the Security Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Security failures must be handled precisely. A decryption failure on one
column is recoverable ("field unavailable"); a missing master secret is not.
Callers decide by type, never by parsing messages:

    try:
        tax_id = engine.decrypt(row.tax_id)
    except DecryptionError:
        tax_id = None            # field unavailable, keep rendering the page

    except ConfigurationError:
        raise                    # fatal, surface immediately

Every exception has a CODE class attribute (machine-readable, API-safe) and
carries structured DATA as attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SecurityKernelError:

    SecurityKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- CryptoError
    |   +-- EncryptionError
    |   +-- DecryptionError
    |
    +-- ValidationError
    |   +-- PasswordPolicyError
    |   +-- PasswordReuseError
    |   +-- InputValidationError
    |
    +-- AuditError
    |   +-- DirectAuditWriteError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuthenticationError
    +-- ReauthenticationRequiredError
    +-- PermissionDeniedError
    +-- SessionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Master secret missing or too short
----------------|-----------------------------|-----------------------------------------
Crypto          | ENCRYPTION_FAILED           | Cipher failure while encrypting
                | DECRYPTION_FAILED           | Malformed payload, tag mismatch, wrong key
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Input schema rejected (all violations)
                | PASSWORD_POLICY_VIOLATION   | Password fails complexity rules
                | PASSWORD_REUSED             | Password matches recent history
                | INPUT_VALIDATION_FAILED     | Form or API payload fails its schema
----------------|-----------------------------|-----------------------------------------
Audit           | DIRECT_AUDIT_WRITE          | Audit row inserted outside the service
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an audit row
----------------|-----------------------------|-----------------------------------------
Auth            | AUTHENTICATION_FAILED       | Sign-in denied (generic message)
                | REAUTH_REQUIRED             | Sensitive action without fresh reauth
                | PERMISSION_DENIED           | Role lacks the required permission
                | SESSION_ERROR               | Session manager misuse

Rate-limit blocks are NOT exceptions: they are an expected control-flow
outcome reported as RateLimitDecision(allowed=False, retry_after_seconds=N).

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY NO RETRY HINT ON DecryptionError?
   A GCM tag mismatch is deterministic for a given (payload, key). Retrying
   with the same inputs cannot succeed.

2. WHY DOES ValidationError CARRY A LIST?
   Users fix every rule in one pass. Reporting only the first violation
   forces a guess-and-resubmit loop.

3. WHY IS AuthenticationError'S MESSAGE FIXED?
   Distinguishing "unknown email" from "wrong password" enables account
   enumeration.

===============================================================================
"""


class SecurityKernelError(Exception):
    """
    Base exception for all security kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SECURITY_KERNEL_ERROR"


# Configuration


class ConfigurationError(SecurityKernelError):
    """Process-level misconfiguration. Fatal, never retried."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration for {setting}: {reason}")


# Crypto


class CryptoError(SecurityKernelError):
    """Base exception for cryptographic failures."""

    code: str = "CRYPTO_ERROR"


class EncryptionError(CryptoError):
    """Encrypting a value failed."""

    code: str = "ENCRYPTION_FAILED"

    def __init__(self, reason: str = "Failed to encrypt data"):
        self.reason = reason
        super().__init__(reason)


class DecryptionError(CryptoError):
    """
    Decrypting a payload failed.

    Raised on malformed format, authentication-tag mismatch, or wrong key.
    Never accompanied by partial plaintext.
    """

    code: str = "DECRYPTION_FAILED"

    def __init__(self, reason: str = "Failed to decrypt data"):
        self.reason = reason
        super().__init__(reason)


# Validation


class ValidationError(SecurityKernelError):
    """Input rejected. Carries every violated rule, not just the first."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, errors: list[str] | tuple[str, ...]):
        self.errors = tuple(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class PasswordPolicyError(ValidationError):
    """Password does not satisfy the complexity policy."""

    code: str = "PASSWORD_POLICY_VIOLATION"


class PasswordReuseError(ValidationError):
    """Password matches one of the recent password hashes."""

    code: str = "PASSWORD_REUSED"

    def __init__(self, history_count: int):
        self.history_count = history_count
        super().__init__(
            [f"You cannot reuse any of your last {history_count} passwords."]
        )


class InputValidationError(ValidationError):
    """
    Payload rejected by an input schema.

    ``field_errors`` keeps the per-field detail; ``errors`` holds the same
    violations as ``"field: message"`` strings.
    """

    code: str = "INPUT_VALIDATION_FAILED"

    def __init__(self, field_errors, layer: str):
        self.field_errors = tuple(field_errors)
        self.layer = layer
        super().__init__([f"{e.field}: {e.message}" for e in self.field_errors])


# Audit


class AuditError(SecurityKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class DirectAuditWriteError(AuditError):
    """An audit record was inserted without going through the masking path."""

    code: str = "DIRECT_AUDIT_WRITE"

    def __init__(self, action: str):
        self.action = action
        super().__init__(
            f"Audit record for action '{action}' must be written through "
            "AuditLogService.create_audit_log()"
        )


# Immutability


class ImmutabilityError(SecurityKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Authentication / authorization


class AuthenticationError(SecurityKernelError):
    """Sign-in denied. The message never reveals which credential was wrong."""

    code: str = "AUTHENTICATION_FAILED"

    GENERIC_MESSAGE = "Invalid email or password."

    def __init__(self, message: str = GENERIC_MESSAGE):
        super().__init__(message)


class ReauthenticationRequiredError(SecurityKernelError):
    """A sensitive action needs a fresh password confirmation."""

    code: str = "REAUTH_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Re-authentication required for action: {action}")


class PermissionDeniedError(SecurityKernelError):
    """Role does not grant the permission required for the operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, permission: str):
        self.role = role
        self.permission = permission
        super().__init__(f"Role {role} lacks permission {permission}")


class SessionError(SecurityKernelError):
    """Session manager used in an invalid state."""

    code: str = "SESSION_ERROR"

    def __init__(self, state: str, reason: str):
        self.state = state
        self.reason = reason
        super().__init__(f"Session manager in state {state}: {reason}")
