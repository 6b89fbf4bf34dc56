"""
Incident-response operations.

``revoke_all_sessions`` signs every account out of every device.  It needs
the identity provider's admin surface (service-role credentials) and is
meant for operators during a security incident; see
``scripts/revoke_all_sessions.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

from security_kernel.domain.identity import IdentityAdmin
from security_kernel.logging_config import get_logger, log_security
from security_kernel.models.audit_log import AuditAction, AuditResult
from security_kernel.services.audit_service import AuditLogEntry, AuditLogService

logger = get_logger("services.emergency")

OPERATOR_USER_AGENT = "revoke_all_sessions"


@dataclass(frozen=True)
class RevocationReport:
    total: int
    revoked: tuple[str, ...]
    failed: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return not self.failed


async def revoke_all_sessions(
    admin: IdentityAdmin,
    audit_service: AuditLogService | None = None,
    ip_address: str = "127.0.0.1",
) -> RevocationReport:
    """
    Sign out every listed account.

    A failure for one account is logged and recorded in the report; the
    remaining accounts are still processed.  Failing to list the accounts
    propagates.
    """
    users = await admin.list_users()
    log_security(logger, "revoke_all_sessions_started", total=len(users))

    revoked: list[str] = []
    failed: list[str] = []
    for user in users:
        try:
            await admin.sign_out_user(user.user_id)
        except Exception:
            failed.append(user.user_id)
            logger.error(
                "session_revocation_failed",
                extra={"target_user_id": user.user_id},
                exc_info=True,
            )
        else:
            revoked.append(user.user_id)

    report = RevocationReport(
        total=len(users), revoked=tuple(revoked), failed=tuple(failed)
    )
    log_security(
        logger,
        "revoke_all_sessions_finished",
        revoked=len(report.revoked),
        failed=len(report.failed),
    )

    if audit_service is not None:
        audit_service.create_audit_log(
            AuditLogEntry(
                action=AuditAction.USER_LOGOUT,
                resource="security",
                ip_address=ip_address,
                user_agent=OPERATOR_USER_AGENT,
                result=AuditResult.SUCCESS if report.complete else AuditResult.WARNING,
                metadata={
                    "scope": "all_users",
                    "total": report.total,
                    "revoked": len(report.revoked),
                    "failed": len(report.failed),
                },
            )
        )
    return report
