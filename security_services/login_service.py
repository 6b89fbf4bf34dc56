"""
security_services.login_service -- password sign-in with brute-force guard.

Responsibility:
    Orchestrates one sign-in attempt: rate limit, identity provider call,
    limiter reset on success, audit trail, suspicious-activity detection.

Architecture position:
    Services layer.  Composes RateLimiter, AuditLogService and the
    IdentityProvider protocol.

Invariants:
    - Every attempt counts once against the limiter, keyed by the
      normalized email.
    - The rate-limit check fails open; the identity provider fails closed.
      Any provider error is a denied sign-in.
    - Failure messages never say which credential was wrong.
    - Audit failures never affect the outcome (the audit service swallows
      them).
"""

from __future__ import annotations

from dataclasses import dataclass

from security_kernel.auth.rate_limiter import RateLimiter, check_rate_limit_fail_open
from security_kernel.domain.identity import AuthSession, IdentityProvider
from security_kernel.exceptions import AuthenticationError
from security_kernel.logging_config import get_logger
from security_kernel.models.audit_log import AuditAction, AuditResult
from security_kernel.services.audit_service import AuditLogEntry, AuditLogService

logger = get_logger("services.login")

AUTH_RESOURCE = "auth"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def rate_limited_message(minutes: int) -> str:
    return f"Too many failed attempts. Try again in {minutes} minute(s)."


@dataclass(frozen=True)
class LoginOutcome:
    """Result of ``LoginService.authenticate``.

    ``message`` is safe to show to the end user.
    """

    success: bool
    session: AuthSession | None = None
    message: str | None = None
    retry_after_minutes: int | None = None

    @property
    def rate_limited(self) -> bool:
        return self.retry_after_minutes is not None


class LoginService:
    def __init__(
        self,
        identity: IdentityProvider,
        rate_limiter: RateLimiter,
        audit_service: AuditLogService,
    ):
        self._identity = identity
        self._rate_limiter = rate_limiter
        self._audit = audit_service

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: str,
        user_agent: str,
    ) -> LoginOutcome:
        identifier = normalize_email(email)

        decision = check_rate_limit_fail_open(self._rate_limiter, identifier)
        if not decision.allowed:
            minutes = decision.retry_after_minutes or 1
            self._audit.create_audit_log(
                AuditLogEntry(
                    action=AuditAction.RATE_LIMIT_EXCEEDED,
                    resource=AUTH_RESOURCE,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    result=AuditResult.BLOCKED,
                    metadata={
                        "email": identifier,
                        "retry_after_seconds": decision.retry_after_seconds,
                    },
                )
            )
            return LoginOutcome(
                success=False,
                message=rate_limited_message(minutes),
                retry_after_minutes=minutes,
            )

        session = await self._sign_in(identifier, password)
        if session is None:
            self._audit.create_audit_log(
                AuditLogEntry(
                    action=AuditAction.USER_LOGIN_FAILED,
                    resource=AUTH_RESOURCE,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    result=AuditResult.FAILURE,
                    metadata={"email": identifier},
                )
            )
            return LoginOutcome(
                success=False, message=AuthenticationError.GENERIC_MESSAGE
            )

        self._rate_limiter.clear_rate_limit(identifier)
        self._audit.create_audit_log(
            AuditLogEntry(
                action=AuditAction.USER_LOGIN,
                resource=AUTH_RESOURCE,
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=session.user_id,
            )
        )
        self._audit.detect_suspicious_activity(session.user_id, ip_address)
        return LoginOutcome(success=True, session=session)

    async def _sign_in(self, email: str, password: str) -> AuthSession | None:
        try:
            result = await self._identity.sign_in_with_password(email, password)
        except Exception:
            logger.warning("identity_provider_sign_in_error", exc_info=True)
            return None
        if not result.succeeded:
            logger.info("sign_in_rejected")
            return None
        return result.session
