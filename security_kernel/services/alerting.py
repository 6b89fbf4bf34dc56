"""
Security alert hand-off.

The audit service raises an alert for failed, blocked and suspicious
events.  Delivery (email, SMS, webhook) belongs to the application; the
kernel only defines the sink interface and a logging default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from security_kernel.logging_config import get_logger, log_security

logger = get_logger("services.alerting")


@dataclass(frozen=True)
class SecurityAlert:
    """One alert-worthy audit event. ``details`` is already masked."""

    action: str
    result: str
    resource: str
    user_id: str | None
    ip_address: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class AlertSink(Protocol):
    def send(self, alert: SecurityAlert) -> None: ...


class LoggingAlertSink:
    """Default sink: one SECURITY-level log line per alert."""

    def send(self, alert: SecurityAlert) -> None:
        log_security(
            logger,
            "security_alert",
            alert_action=alert.action,
            alert_result=alert.result,
            resource=alert.resource,
            alert_user_id=alert.user_id,
            alert_ip_address=alert.ip_address,
            alert_timestamp=alert.timestamp,
            details=alert.details,
        )


class CollectingAlertSink:
    """Keeps alerts in memory. For tests and local tooling."""

    def __init__(self) -> None:
        self.alerts: list[SecurityAlert] = []

    def send(self, alert: SecurityAlert) -> None:
        self.alerts.append(alert)
