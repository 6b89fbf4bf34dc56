"""Read-only query selectors."""

from security_kernel.selectors.audit_selector import (
    AuditLogFilters,
    AuditLogSelector,
    AuditLogView,
)
from security_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector", "AuditLogSelector", "AuditLogFilters", "AuditLogView"]
