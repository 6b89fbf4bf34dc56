"""
Module: security_kernel.models.audit_log
Responsibility: ORM persistence for security audit records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners in
      db/immutability.py).
    - Records are created only through AuditLogService.create_audit_log, so
      old_data/new_data are always masked before they reach this table.
    - timestamp is assigned by the service clock, never by the caller.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - DirectAuditWriteError on an INSERT outside the service write path.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from security_kernel.db.base import Base


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Authentication
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_LOGIN_FAILED = "user_login_failed"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    PASSWORD_CHANGED = "password_changed"
    EMAIL_CHANGED = "email_changed"

    # Companies
    COMPANY_CREATED = "company_created"
    COMPANY_UPDATED = "company_updated"
    COMPANY_DELETED = "company_deleted"
    COMPANY_VIEWED = "company_viewed"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_IMPORTED = "transaction_imported"

    # Reports
    REPORT_GENERATED = "report_generated"
    DATA_EXPORTED = "data_exported"

    # Administration
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    ROLE_CHANGED = "role_changed"
    PERMISSION_CHANGED = "permission_changed"

    # Security
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    ACCESS_DENIED = "access_denied"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SESSION_EXPIRED = "session_expired"


class AuditResult(str, Enum):
    """Outcome of an audited action."""

    SUCCESS = "success"
    FAILURE = "failure"
    BLOCKED = "blocked"
    WARNING = "warning"


class AuditLogRecord(Base):
    """
    One persisted security audit entry.

    Contract:
        Rows are immutable once written and carry only masked payloads.

    Non-goals:
        - Retention and deletion policy live outside the kernel.
    """

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_logs_user", "user_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_timestamp", "timestamp"),
        Index("idx_audit_logs_user_result_ts", "user_id", "result", "timestamp"),
    )

    # Opaque identity-provider user id
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    # Kind of thing acted on: "auth", "company", "transaction", ...
    resource: Mapped[str] = mapped_column(String(100), nullable=False)

    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)

    user_agent: Mapped[str] = mapped_column(Text, nullable=False)

    geo_location: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    old_data: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    new_data: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    result: Mapped[AuditResult] = mapped_column(String(20), nullable=False)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", nullable=True
    )

    timestamp: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuditLogRecord {self.action} {self.result} "
            f"user={self.user_id} at={self.timestamp}>"
        )
