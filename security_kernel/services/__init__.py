"""Kernel services: audit trail and security alert hand-off."""

from security_kernel.services.alerting import (
    AlertSink,
    CollectingAlertSink,
    LoggingAlertSink,
    SecurityAlert,
)
from security_kernel.services.audit_service import (
    AuditLogEntry,
    AuditLogPage,
    AuditLogService,
    AuditStats,
)

__all__ = [
    "AlertSink",
    "CollectingAlertSink",
    "LoggingAlertSink",
    "SecurityAlert",
    "AuditLogEntry",
    "AuditLogPage",
    "AuditLogService",
    "AuditStats",
]
