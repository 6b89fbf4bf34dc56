"""
AuditLogSelector -- read-only queries over the audit trail.

Responsibility:
    Filtered, paginated listing of audit records and the counts used by the
    statistics view and the suspicious-activity heuristics.

Architecture position:
    Kernel > Selectors.  Called by AuditLogService with a session the
    service opened; never writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, distinct, func, select

from security_kernel.models.audit_log import AuditAction, AuditLogRecord, AuditResult
from security_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AuditLogFilters:
    """
    Query filters for ``get_audit_logs``.

    ``limit=None`` means the configured default page size.  Date bounds are
    inclusive.
    """

    user_id: str | None = None
    action: AuditAction | None = None
    resource: str | None = None
    result: AuditResult | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = None
    offset: int = 0


@dataclass(frozen=True)
class AuditLogView:
    """Detached, read-only copy of one audit record."""

    id: UUID
    user_id: str | None
    action: AuditAction
    resource: str
    resource_id: str | None
    ip_address: str
    user_agent: str
    geo_location: dict[str, Any] | None
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    result: AuditResult
    metadata: dict[str, Any] | None
    timestamp: datetime

    @classmethod
    def from_record(cls, record: AuditLogRecord) -> "AuditLogView":
        return cls(
            id=record.id,
            user_id=record.user_id,
            action=AuditAction(record.action),
            resource=record.resource,
            resource_id=record.resource_id,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            geo_location=record.geo_location,
            old_data=record.old_data,
            new_data=record.new_data,
            result=AuditResult(record.result),
            metadata=record.extra_metadata,
            timestamp=record.timestamp,
        )


class AuditLogSelector(BaseSelector[AuditLogRecord]):
    """Queries over ``audit_logs``."""

    def _filtered(self, stmt: Select, filters: AuditLogFilters) -> Select:
        if filters.user_id is not None:
            stmt = stmt.where(AuditLogRecord.user_id == filters.user_id)
        if filters.action is not None:
            stmt = stmt.where(AuditLogRecord.action == AuditAction(filters.action).value)
        if filters.resource is not None:
            stmt = stmt.where(AuditLogRecord.resource == filters.resource)
        if filters.result is not None:
            stmt = stmt.where(AuditLogRecord.result == AuditResult(filters.result).value)
        if filters.start_date is not None:
            stmt = stmt.where(AuditLogRecord.timestamp >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(AuditLogRecord.timestamp <= filters.end_date)
        return stmt

    def find(self, filters: AuditLogFilters, limit: int) -> list[AuditLogView]:
        """Matching records, newest first."""
        stmt = (
            self._filtered(select(AuditLogRecord), filters)
            .order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id)
            .limit(limit)
            .offset(filters.offset)
        )
        return [AuditLogView.from_record(r) for r in self.session.scalars(stmt)]

    def count(self, filters: AuditLogFilters | None = None) -> int:
        stmt = select(func.count()).select_from(AuditLogRecord)
        if filters is not None:
            stmt = self._filtered(stmt, filters)
        return self.session.scalar(stmt) or 0

    def count_where(
        self,
        *,
        user_id: str | None = None,
        action: AuditAction | None = None,
        result: AuditResult | None = None,
        since: datetime | None = None,
    ) -> int:
        return self.count(
            AuditLogFilters(
                user_id=user_id, action=action, result=result, start_date=since
            )
        )

    def distinct_ips(
        self,
        user_id: str,
        action: AuditAction,
        result: AuditResult,
        since: datetime,
    ) -> list[str]:
        """Distinct IP addresses on matching records since ``since``, sorted."""
        stmt = self._filtered(
            select(distinct(AuditLogRecord.ip_address)),
            AuditLogFilters(
                user_id=user_id, action=action, result=result, start_date=since
            ),
        ).order_by(AuditLogRecord.ip_address)
        return list(self.session.scalars(stmt))
