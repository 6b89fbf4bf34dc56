"""
security_services.password_change -- the account password-change flow.

Responsibility:
    Orchestrates one password change: recent re-authentication, local
    complexity policy, breach lookup and weak-pattern heuristics, reuse
    check against the recent history, identity-provider update, global
    session invalidation and the audit trail.

Architecture position:
    Services layer.  Composes the password policy, BreachChecker,
    PasswordExpirationPolicy, ReauthGuard, the session module operations
    and AuditLogService.

Invariants:
    - Every rejection happens before the identity provider is called.  A
      rejected password leaves the account and its history untouched.
    - A password found in the breach list is rejected; heuristic warnings
      are returned to the caller and do not block.
    - Once the provider accepted the new password the change stands: a
      failed global sign-out is logged and reported in the outcome, never
      raised.
    - The history returned is the caller's history with the new password
      first, truncated to the configured length.

Failure modes:
    - ReauthenticationRequiredError: the re-auth window is closed.
    - PasswordPolicyError: complexity rules failed, or the password is
      breached.
    - PasswordReuseError: the password is one of the recent ones.
    - Identity provider errors propagate after a failure audit entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from security_config.schema import PasswordPolicySettings, SessionSettings
from security_kernel.auth.breach_check import (
    BREACHED_WARNING,
    BreachChecker,
    heuristic_warnings,
)
from security_kernel.auth.password_expiration import (
    PasswordExpirationPolicy,
    PasswordHistoryEntry,
)
from security_kernel.auth.password_policy import require_valid_password
from security_kernel.domain.identity import IdentityProvider
from security_kernel.exceptions import PasswordPolicyError, ValidationError
from security_kernel.logging_config import get_logger, log_security
from security_kernel.models.audit_log import AuditAction, AuditResult
from security_kernel.services.audit_service import AuditLogEntry, AuditLogService
from security_kernel.session.capabilities import KeyValueStorage
from security_kernel.session.metadata import handle_password_change
from security_services.reauth import ReauthGuard, SensitiveAction

logger = get_logger("services.password_change")

USER_RESOURCE = "user"


@dataclass(frozen=True)
class PasswordChangeOutcome:
    history: tuple[PasswordHistoryEntry, ...]
    warnings: tuple[str, ...] = ()
    sessions_invalidated: bool = True


class PasswordChangeService:
    def __init__(
        self,
        identity: IdentityProvider,
        storage: KeyValueStorage,
        audit_service: AuditLogService,
        expiration_policy: PasswordExpirationPolicy | None = None,
        breach_checker: BreachChecker | None = None,
        reauth: ReauthGuard | None = None,
        password_policy: PasswordPolicySettings | None = None,
        session_settings: SessionSettings | None = None,
    ):
        self._identity = identity
        self._storage = storage
        self._audit = audit_service
        self._expiration = expiration_policy or PasswordExpirationPolicy()
        self._breach_checker = breach_checker
        self._reauth = reauth
        self._password_policy = password_policy
        self._session_settings = session_settings or SessionSettings()

    def _check_new_password(
        self, new_password: str, history: Sequence[PasswordHistoryEntry]
    ) -> tuple[str, ...]:
        require_valid_password(new_password, self._password_policy)

        if self._breach_checker is None:
            warnings = tuple(heuristic_warnings(new_password))
        else:
            report = self._breach_checker.validate_password_security(new_password)
            if report.breached:
                raise PasswordPolicyError((BREACHED_WARNING,))
            warnings = report.warnings

        self._expiration.validate_password_change(new_password, history)
        return warnings

    async def change_password(
        self,
        user_id: str,
        new_password: str,
        history: Sequence[PasswordHistoryEntry],
        ip_address: str,
        user_agent: str,
    ) -> PasswordChangeOutcome:
        if self._reauth is not None:
            self._reauth.require_recent_reauth(SensitiveAction.CHANGE_PASSWORD)

        try:
            warnings = self._check_new_password(new_password, history)
        except ValidationError as exc:
            logger.info(
                "password_change_rejected",
                extra={"reason": exc.code, "violations": len(exc.errors)},
            )
            raise

        try:
            await self._identity.update_password(new_password)
        except Exception:
            logger.error("password_update_failed", exc_info=True)
            self._audit.create_audit_log(
                AuditLogEntry(
                    action=AuditAction.PASSWORD_CHANGED,
                    resource=USER_RESOURCE,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    result=AuditResult.FAILURE,
                    user_id=user_id,
                    resource_id=user_id,
                )
            )
            raise

        new_history = self._expiration.add_to_password_history(new_password, history)

        sessions_invalidated = True
        try:
            await handle_password_change(
                self._identity, self._storage, self._session_settings
            )
        except Exception:
            # The new password is already active; the caller is told instead.
            sessions_invalidated = False
            logger.error("password_change_sign_out_failed", exc_info=True)

        if self._reauth is not None:
            self._reauth.invalidate()

        self._audit.create_audit_log(
            AuditLogEntry(
                action=AuditAction.PASSWORD_CHANGED,
                resource=USER_RESOURCE,
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=user_id,
                resource_id=user_id,
                metadata={
                    "sessions_invalidated": sessions_invalidated,
                    "warning_count": len(warnings),
                },
            )
        )
        log_security(logger, "password_changed", warning_count=len(warnings))

        return PasswordChangeOutcome(
            history=tuple(new_history),
            warnings=tuple(warnings),
            sessions_invalidated=sessions_invalidated,
        )
