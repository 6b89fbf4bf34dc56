"""
AuditLogService: masking, fire-and-forget persistence, alerting, reads,
statistics and the suspicious-activity heuristics.

Runs against in-memory SQLite unless DATABASE_URL points elsewhere.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from security_config.schema import AuditSettings
from security_kernel.exceptions import ValidationError
from security_kernel.models.audit_log import AuditAction, AuditResult
from security_kernel.selectors.audit_selector import AuditLogFilters
from security_kernel.services.alerting import CollectingAlertSink
from security_kernel.services.audit_service import AuditLogEntry, AuditLogService


def _entry(
    action=AuditAction.USER_LOGIN,
    result=AuditResult.SUCCESS,
    user_id="user-1",
    ip_address="10.0.0.1",
    **kwargs,
):
    return AuditLogEntry(
        action=action,
        resource=kwargs.pop("resource", "auth"),
        ip_address=ip_address,
        user_agent="pytest",
        result=result,
        user_id=user_id,
        **kwargs,
    )


def _unavailable_factory():
    raise OperationalError("SELECT 1", {}, Exception("database is down"))


class TestCreateAuditLog:
    def test_persists_and_returns_view(self, audit_service, clock):
        view = audit_service.create_audit_log(
            _entry(resource_id="r-1", geo_location={"country": "CL"})
        )

        assert view is not None
        assert view.action is AuditAction.USER_LOGIN
        assert view.result is AuditResult.SUCCESS
        assert view.resource_id == "r-1"
        assert view.geo_location == {"country": "CL"}
        assert view.timestamp == clock.now()

        page = audit_service.get_audit_logs()
        assert page.total == 1
        assert page.logs[0].id == view.id

    def test_sensitive_payload_masked_before_persistence(self, audit_service):
        audit_service.create_audit_log(
            _entry(
                action=AuditAction.PASSWORD_CHANGED,
                resource="user",
                old_data={"password": "hunter2secret", "name": "Ana"},
                new_data={"password": "n3w-Secret!", "mfaSecret": "JBSWY3DPEHPK3PXP"},
                metadata={"apiKey": "sk_live_abcdef", "reason": "rotation"},
            )
        )

        stored = audit_service.get_audit_logs().logs[0]
        assert stored.old_data == {"password": "hu*********et", "name": "Ana"}
        assert stored.new_data["password"] == "n3*******t!"
        assert stored.new_data["mfaSecret"] == "JB************XP"
        assert stored.metadata == {"apiKey": "sk**********ef", "reason": "rotation"}

    def test_entity_fields_masked_by_resource(self, audit_service):
        audit_service.create_audit_log(
            _entry(
                action=AuditAction.COMPANY_UPDATED,
                resource="company",
                new_data={"legalName": "Acme Ltda.", "country": "CL"},
            )
        )
        stored = audit_service.get_audit_logs().logs[0]
        assert stored.new_data == {"legalName": "Ac******a.", "country": "CL"}

    def test_compound_key_names_masked_before_persistence(self, audit_service):
        audit_service.create_audit_log(
            _entry(
                action=AuditAction.PASSWORD_CHANGED,
                old_data={"userpassword": "secret123"},
                new_data={"newpassword": "hunter2secret", "accesstoken": "abcdef123456"},
            )
        )
        stored = audit_service.get_audit_logs().logs[0]
        assert stored.old_data == {"userpassword": "se*****23"}
        assert stored.new_data == {
            "newpassword": "hu*********et",
            "accesstoken": "ab********56",
        }

    def test_plural_resource_selects_entity_fields(self, audit_service):
        audit_service.create_audit_log(
            _entry(
                action=AuditAction.COMPANY_UPDATED,
                resource="companies",
                new_data={"legalName": "Acme Ltda.", "phone": "+56 2 2345 6789"},
            )
        )
        stored = audit_service.get_audit_logs().logs[0]
        assert stored.new_data == {
            "legalName": "Ac******a.",
            "phone": "+5***********89",
        }

    def test_explicit_entity_wins_over_resource(self, audit_service):
        audit_service.create_audit_log(
            _entry(
                resource="billing",
                entity="client",
                new_data={"notes": "private note", "plan": "pro"},
            )
        )
        stored = audit_service.get_audit_logs().logs[0]
        assert stored.new_data == {"notes": "pr********te", "plan": "pro"}

    def test_caller_payload_not_mutated(self, audit_service):
        data = {"password": "hunter2secret"}
        audit_service.create_audit_log(_entry(new_data=data))
        assert data == {"password": "hunter2secret"}

    def test_security_log_emitted(self, audit_service, captured_logs):
        audit_service.create_audit_log(
            _entry(new_data={"password": "hunter2secret"})
        )

        events = [r for r in captured_logs() if r["message"] == "audit_event"]
        assert len(events) == 1
        assert events[0]["level"] == "SECURITY"
        assert events[0]["persisted"] is True
        assert events[0]["audit_user_id"] == "******"
        assert "hunter2secret" not in str(events[0])

    def test_persistence_failure_swallowed(self, clock, captured_logs):
        sink = CollectingAlertSink()
        service = AuditLogService(_unavailable_factory, clock, alert_sink=sink)

        view = service.create_audit_log(
            _entry(action=AuditAction.USER_LOGIN_FAILED, result=AuditResult.FAILURE)
        )

        assert view is None
        logs = captured_logs()
        assert any(r["message"] == "audit_log_persist_failed" for r in logs)
        event = next(r for r in logs if r["message"] == "audit_event")
        assert event["persisted"] is False
        # The alert still goes out for a failure nobody could store.
        assert len(sink.alerts) == 1


class TestAlerts:
    @pytest.mark.parametrize("result", [AuditResult.FAILURE, AuditResult.BLOCKED])
    def test_failed_and_blocked_alert(self, audit_service, alert_sink, result):
        audit_service.create_audit_log(
            _entry(action=AuditAction.ACCESS_DENIED, result=result)
        )
        assert len(alert_sink.alerts) == 1
        alert = alert_sink.alerts[0]
        assert alert.action == "access_denied"
        assert alert.result == result.value
        assert alert.user_id == "user-1"

    @pytest.mark.parametrize("result", [AuditResult.SUCCESS, AuditResult.WARNING])
    def test_no_alert_for_success_or_warning(self, audit_service, alert_sink, result):
        audit_service.create_audit_log(_entry(result=result))
        assert alert_sink.alerts == []

    def test_suspicious_activity_always_alerts(self, audit_service, alert_sink):
        audit_service.create_audit_log(
            _entry(action=AuditAction.SUSPICIOUS_ACTIVITY, result=AuditResult.WARNING)
        )
        assert len(alert_sink.alerts) == 1

    def test_alert_details_are_masked(self, audit_service, alert_sink):
        audit_service.create_audit_log(
            _entry(
                result=AuditResult.FAILURE,
                metadata={"token": "abcdef123456"},
            )
        )
        assert alert_sink.alerts[0].details == {"token": "ab********56"}

    def test_sink_failure_swallowed(self, session_factory, clock, captured_logs):
        class ExplodingSink:
            def send(self, alert):
                raise RuntimeError("smtp down")

        service = AuditLogService(session_factory, clock, alert_sink=ExplodingSink())
        view = service.create_audit_log(_entry(result=AuditResult.FAILURE))

        assert view is not None
        assert any(r["message"] == "security_alert_failed" for r in captured_logs())


class TestGetAuditLogs:
    @pytest.fixture
    def seven_entries(self, audit_service, clock):
        views = []
        for i in range(7):
            views.append(audit_service.create_audit_log(_entry(resource_id=str(i))))
            clock.advance(60)
        return views

    def test_newest_first(self, audit_service, seven_entries):
        page = audit_service.get_audit_logs()
        assert [v.resource_id for v in page.logs] == [str(i) for i in range(6, -1, -1)]

    def test_first_page_has_more(self, audit_service, seven_entries):
        page = audit_service.get_audit_logs(AuditLogFilters(limit=3))
        assert len(page.logs) == 3
        assert page.total == 7
        assert page.has_more is True

    def test_last_page(self, audit_service, seven_entries):
        page = audit_service.get_audit_logs(AuditLogFilters(limit=3, offset=6))
        assert [v.resource_id for v in page.logs] == ["0"]
        assert page.has_more is False

    def test_exact_fit_has_no_more(self, audit_service, seven_entries):
        page = audit_service.get_audit_logs(AuditLogFilters(limit=7))
        assert page.has_more is False

    def test_zero_limit(self, audit_service, seven_entries):
        page = audit_service.get_audit_logs(AuditLogFilters(limit=0))
        assert page.logs == ()
        assert page.total == 7
        assert page.has_more is True

    def test_default_page_size_from_settings(self, session_factory, clock):
        service = AuditLogService(
            session_factory, clock, settings=AuditSettings(default_page_size=2)
        )
        for _ in range(3):
            service.create_audit_log(_entry())
        page = service.get_audit_logs()
        assert len(page.logs) == 2
        assert page.has_more is True

    def test_negative_bounds_rejected(self, audit_service):
        with pytest.raises(ValidationError) as exc_info:
            audit_service.get_audit_logs(AuditLogFilters(limit=-1, offset=-1))
        assert exc_info.value.errors == ("limit must be >= 0", "offset must be >= 0")

    def test_filters(self, audit_service, clock):
        start = clock.now()
        audit_service.create_audit_log(_entry(user_id="a"))
        clock.advance(60)
        audit_service.create_audit_log(
            _entry(
                action=AuditAction.USER_LOGIN_FAILED,
                result=AuditResult.FAILURE,
                user_id="b",
            )
        )
        clock.advance(60)
        audit_service.create_audit_log(
            _entry(action=AuditAction.COMPANY_VIEWED, resource="company", user_id="a")
        )

        def total(**kwargs):
            return audit_service.get_audit_logs(AuditLogFilters(**kwargs)).total

        assert total(user_id="a") == 2
        assert total(action=AuditAction.USER_LOGIN_FAILED) == 1
        assert total(result=AuditResult.FAILURE) == 1
        assert total(resource="company") == 1
        assert total(start_date=start + timedelta(seconds=60)) == 2
        # Date bounds are inclusive.
        assert total(start_date=start, end_date=start) == 1
        assert total(user_id="a", resource="auth") == 1


class TestAuditStats:
    def test_counts(self, audit_service, clock):
        audit_service.create_audit_log(_entry())
        clock.advance(25 * 3600)
        audit_service.create_audit_log(_entry())
        audit_service.create_audit_log(
            _entry(action=AuditAction.USER_LOGIN_FAILED, result=AuditResult.FAILURE)
        )
        audit_service.create_audit_log(
            _entry(action=AuditAction.SUSPICIOUS_ACTIVITY, result=AuditResult.WARNING)
        )
        audit_service.create_audit_log(_entry(user_id="someone-else"))

        stats = audit_service.get_audit_stats("user-1")
        assert stats.total_logs == 4
        assert stats.failed_actions == 1
        assert stats.suspicious_activity == 1
        assert stats.recent_logins == 1

    def test_all_users(self, audit_service):
        audit_service.create_audit_log(_entry(user_id="a"))
        audit_service.create_audit_log(_entry(user_id="b"))
        stats = audit_service.get_audit_stats()
        assert stats.total_logs == 2
        assert stats.recent_logins == 2

    def test_empty(self, audit_service):
        stats = audit_service.get_audit_stats("nobody")
        assert (stats.total_logs, stats.failed_actions) == (0, 0)


class TestDetectSuspiciousActivity:
    def _fail(self, service, times, user_id="user-1"):
        for _ in range(times):
            service.create_audit_log(
                _entry(
                    action=AuditAction.USER_LOGIN_FAILED,
                    result=AuditResult.FAILURE,
                    user_id=user_id,
                )
            )

    def _suspicious(self, service):
        return service.get_audit_logs(
            AuditLogFilters(action=AuditAction.SUSPICIOUS_ACTIVITY)
        ).logs

    def test_five_failures_flagged_once(self, audit_service):
        self._fail(audit_service, 5)

        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.9") is True

        entries = self._suspicious(audit_service)
        assert len(entries) == 1
        assert entries[0].result is AuditResult.WARNING
        assert entries[0].user_agent == "system"
        assert entries[0].ip_address == "10.0.0.9"
        assert entries[0].metadata == {
            "reason": "multiple_failed_attempts",
            "count": 5,
        }

    def test_four_failures_not_flagged(self, audit_service):
        self._fail(audit_service, 4)
        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.9") is False
        assert self._suspicious(audit_service) == ()

    def test_old_failures_ignored(self, audit_service, clock):
        self._fail(audit_service, 5)
        clock.advance(minutes=16)
        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.9") is False

    def test_other_users_failures_ignored(self, audit_service):
        self._fail(audit_service, 5, user_id="someone-else")
        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.9") is False

    def test_three_ips_flagged(self, audit_service):
        for ip in ("10.0.0.3", "10.0.0.1", "10.0.0.2", "10.0.0.1"):
            audit_service.create_audit_log(_entry(ip_address=ip))

        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.3") is True
        assert self._suspicious(audit_service)[0].metadata == {
            "reason": "multiple_ip_addresses",
            "ips": ["10.0.0.1", "10.0.0.2", "10.0.0.3"],
        }

    def test_two_ips_not_flagged(self, audit_service):
        for ip in ("10.0.0.1", "10.0.0.2"):
            audit_service.create_audit_log(_entry(ip_address=ip))
        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.2") is False

    def test_ips_outside_window_ignored(self, audit_service, clock):
        audit_service.create_audit_log(_entry(ip_address="10.0.0.1"))
        clock.advance(minutes=61)
        for ip in ("10.0.0.2", "10.0.0.3"):
            audit_service.create_audit_log(_entry(ip_address=ip))
        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.3") is False

    def test_both_heuristics_one_entry(self, audit_service):
        for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
            audit_service.create_audit_log(_entry(ip_address=ip))
        self._fail(audit_service, 5)

        assert audit_service.detect_suspicious_activity("user-1", "10.0.0.1") is True
        entries = self._suspicious(audit_service)
        assert len(entries) == 1
        assert entries[0].metadata["reason"] == "multiple_failed_attempts"

    def test_flag_raises_alert(self, audit_service, alert_sink):
        self._fail(audit_service, 5)
        alert_sink.alerts.clear()
        audit_service.detect_suspicious_activity("user-1", "10.0.0.9")
        assert [a.action for a in alert_sink.alerts] == ["suspicious_activity"]

    def test_database_error_yields_false(self, clock, captured_logs):
        service = AuditLogService(_unavailable_factory, clock)
        assert service.detect_suspicious_activity("user-1", "10.0.0.9") is False
        assert any(
            r["message"] == "suspicious_activity_check_failed" for r in captured_logs()
        )
