"""ORM models for the security kernel."""

from security_kernel.models.audit_log import AuditAction, AuditLogRecord, AuditResult

__all__ = ["AuditAction", "AuditLogRecord", "AuditResult"]
