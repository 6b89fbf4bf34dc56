"""
AuditLogService -- the only write path into the security audit trail.

Responsibility:
    Records security-relevant events with masked payloads, serves filtered
    and paginated reads, computes aggregate statistics, and detects
    suspicious patterns.

Architecture position:
    Kernel > Services.  Called by request handlers and by the login flow in
    security_services.  Owns its own sessions (through a session factory) so
    that an audit write is never part of the caller's transaction.

Invariants enforced:
    - Masking before persistence: old_data, new_data and metadata pass
      through the sensitive-field policy before the record is built.  The
      entity list is the entry's ``entity`` or the one its ``resource``
      names (``"companies"`` selects ``company``).
    - Single write path: the insert runs inside ``audit_write_scope()``;
      any other AuditLogRecord insert is rejected by the ORM listener,
      which the service registers on construction.
    - Fire-and-forget: a persistence or alerting failure is logged and
      swallowed.  Auditing never blocks the operation it observes.
    - The SECURITY log line is emitted whether or not persistence worked.

Failure modes:
    - create_audit_log: none propagated.
    - get_audit_logs / get_audit_stats: database errors propagate; reads
      are the caller's concern.
    - detect_suspicious_activity: database errors are logged and yield
      ``False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from security_config.schema import AuditSettings
from security_kernel.crypto.masking import (
    DEFAULT_POLICY,
    SensitiveFieldPolicy,
    mask_mapping,
    mask_sensitive_data,
)
from security_kernel.db.engine import session_scope
from security_kernel.db.immutability import (
    audit_write_scope,
    register_immutability_listeners,
)
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.exceptions import ValidationError
from security_kernel.logging_config import get_logger, log_security
from security_kernel.models.audit_log import AuditAction, AuditLogRecord, AuditResult
from security_kernel.selectors.audit_selector import (
    AuditLogFilters,
    AuditLogSelector,
    AuditLogView,
)
from security_kernel.services.alerting import AlertSink, LoggingAlertSink, SecurityAlert

logger = get_logger("services.audit")

_ALERT_RESULTS = frozenset({AuditResult.FAILURE, AuditResult.BLOCKED})


@dataclass(frozen=True)
class AuditLogEntry:
    """Caller-supplied description of one auditable event (unmasked)."""

    action: AuditAction
    resource: str
    ip_address: str
    user_agent: str
    result: AuditResult = AuditResult.SUCCESS
    user_id: str | None = None
    resource_id: str | None = None
    geo_location: Mapping[str, Any] | None = None
    old_data: Mapping[str, Any] | None = None
    new_data: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] | None = None
    # Entity list for masking; derived from ``resource`` when omitted.
    entity: str | None = None


@dataclass(frozen=True)
class AuditLogPage:
    logs: tuple[AuditLogView, ...]
    total: int
    has_more: bool


@dataclass(frozen=True)
class AuditStats:
    """Counts computed at call time."""

    total_logs: int
    failed_actions: int
    suspicious_activity: int
    recent_logins: int


class AuditLogService:
    """
    Append-only security audit trail.

    Contract:
        ``create_audit_log`` is the sole supported way to persist an
        AuditLogRecord.

    Guarantees:
        - Persisted and logged payloads are masked with
          ``settings.mask_visible_chars`` visible characters.
        - Failed and blocked events, and every suspicious_activity event,
          are handed to the alert sink.
        - ``timestamp`` comes from the injected clock.

    Non-goals:
        - Scoping reads to the caller's own records.  That is the caller's
          job (see security_services.rbac).
        - Retention or deletion.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        masking_policy: SensitiveFieldPolicy = DEFAULT_POLICY,
        alert_sink: AlertSink | None = None,
        settings: AuditSettings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = masking_policy
        self._alert_sink = alert_sink or LoggingAlertSink()
        self._settings = settings or AuditSettings()
        register_immutability_listeners()

    @property
    def settings(self) -> AuditSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _mask(self, data: Mapping[str, Any] | None, entity: str | None) -> dict[str, Any] | None:
        if data is None:
            return None
        return mask_mapping(
            data,
            self._policy,
            entity=entity,
            show_chars=self._settings.mask_visible_chars,
        )

    def create_audit_log(self, entry: AuditLogEntry) -> AuditLogView | None:
        """
        Mask, persist, log and (when warranted) alert.

        Returns:
            The persisted record, or None if persistence failed.  Never
            raises.
        """
        action = AuditAction(entry.action)
        result = AuditResult(entry.result)
        timestamp = self._clock.now()

        entity = entry.entity or self._policy.entity_for(entry.resource)
        old_data = self._mask(entry.old_data, entity)
        new_data = self._mask(entry.new_data, entity)
        metadata = self._mask(entry.metadata, entity)

        view: AuditLogView | None = None
        try:
            with audit_write_scope(), session_scope(self._session_factory) as session:
                record = AuditLogRecord(
                    user_id=entry.user_id,
                    action=action.value,
                    resource=entry.resource,
                    resource_id=entry.resource_id,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    geo_location=dict(entry.geo_location) if entry.geo_location else None,
                    old_data=old_data,
                    new_data=new_data,
                    result=result.value,
                    extra_metadata=metadata,
                    timestamp=timestamp,
                )
                session.add(record)
            # Only a committed record is reported back.
            view = AuditLogView.from_record(record)
        except Exception:
            logger.error(
                "audit_log_persist_failed",
                extra={"action": action.value, "resource": entry.resource},
                exc_info=True,
            )

        log_security(
            logger,
            "audit_event",
            action=action.value,
            resource=entry.resource,
            result=result.value,
            audit_user_id=(
                mask_sensitive_data(entry.user_id, 4) if entry.user_id else None
            ),
            persisted=view is not None,
            old_data=old_data,
            new_data=new_data,
        )

        if result in _ALERT_RESULTS or action is AuditAction.SUSPICIOUS_ACTIVITY:
            self._alert(entry, action, result, timestamp, metadata)

        return view

    def _alert(self, entry, action, result, timestamp, metadata) -> None:
        alert = SecurityAlert(
            action=action.value,
            result=result.value,
            resource=entry.resource,
            user_id=entry.user_id,
            ip_address=entry.ip_address,
            timestamp=timestamp,
            details=metadata or {},
        )
        try:
            self._alert_sink.send(alert)
        except Exception:
            logger.error(
                "security_alert_failed",
                extra={"action": action.value},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_audit_logs(self, filters: AuditLogFilters | None = None) -> AuditLogPage:
        """
        Filtered page of audit records, newest first.

        Raises:
            ValidationError: negative limit or offset.
        """
        filters = filters or AuditLogFilters()
        limit = (
            filters.limit
            if filters.limit is not None
            else self._settings.default_page_size
        )
        errors = []
        if limit < 0:
            errors.append("limit must be >= 0")
        if filters.offset < 0:
            errors.append("offset must be >= 0")
        if errors:
            raise ValidationError(errors)

        with session_scope(self._session_factory) as session:
            selector = AuditLogSelector(session)
            logs = selector.find(filters, limit)
            total = selector.count(filters)

        return AuditLogPage(
            logs=tuple(logs),
            total=total,
            has_more=total > filters.offset + limit,
        )

    def get_audit_stats(self, user_id: str | None = None) -> AuditStats:
        """Aggregate counts, optionally for one user."""
        since = self._clock.now() - timedelta(
            hours=self._settings.recent_login_window_hours
        )
        with session_scope(self._session_factory) as session:
            selector = AuditLogSelector(session)
            return AuditStats(
                total_logs=selector.count_where(user_id=user_id),
                failed_actions=selector.count_where(
                    user_id=user_id, result=AuditResult.FAILURE
                ),
                suspicious_activity=selector.count_where(
                    user_id=user_id, action=AuditAction.SUSPICIOUS_ACTIVITY
                ),
                recent_logins=selector.count_where(
                    user_id=user_id, action=AuditAction.USER_LOGIN, since=since
                ),
            )

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_suspicious_activity(self, user_id: str, ip_address: str) -> bool:
        """
        Apply the two heuristics in order; the first that fires is recorded.

        1. ``failed_attempts_threshold`` or more failed-result records for
           the user within the trailing ``failed_attempts_window_minutes``.
        2. ``distinct_ip_threshold`` or more distinct IP addresses on
           successful logins within the trailing
           ``distinct_ip_window_minutes``.

        Exactly one suspicious_activity entry (result ``warning``) is written
        when either fires.
        """
        s = self._settings
        now = self._clock.now()

        try:
            with session_scope(self._session_factory) as session:
                selector = AuditLogSelector(session)
                failures = selector.count_where(
                    user_id=user_id,
                    result=AuditResult.FAILURE,
                    since=now - timedelta(minutes=s.failed_attempts_window_minutes),
                )
                ips: list[str] = []
                if failures < s.failed_attempts_threshold:
                    ips = selector.distinct_ips(
                        user_id,
                        AuditAction.USER_LOGIN,
                        AuditResult.SUCCESS,
                        since=now - timedelta(minutes=s.distinct_ip_window_minutes),
                    )
        except SQLAlchemyError:
            logger.error("suspicious_activity_check_failed", exc_info=True)
            return False

        if failures >= s.failed_attempts_threshold:
            metadata: dict[str, Any] = {
                "reason": "multiple_failed_attempts",
                "count": failures,
            }
        elif len(ips) >= s.distinct_ip_threshold:
            metadata = {"reason": "multiple_ip_addresses", "ips": ips}
        else:
            return False

        self.create_audit_log(
            AuditLogEntry(
                action=AuditAction.SUSPICIOUS_ACTIVITY,
                resource="security",
                ip_address=ip_address,
                user_agent="system",
                result=AuditResult.WARNING,
                user_id=user_id,
                metadata=metadata,
            )
        )
        return True
