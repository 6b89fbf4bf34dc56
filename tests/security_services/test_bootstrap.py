"""Wiring kernel components from the active configuration."""

import asyncio

import pytest

from security_config import get_active_config
from security_kernel.db.engine import get_session_factory
from security_kernel.db.immutability import unregister_immutability_listeners
from security_kernel.exceptions import (
    ConfigurationError,
    DirectAuditWriteError,
    ReauthenticationRequiredError,
)
from security_kernel.models.audit_log import AuditAction, AuditLogRecord, AuditResult
from security_kernel.session import InMemoryStorage, in_memory_platform
from security_services import bootstrap


MASTER_KEY = "bootstrap-master-key-0123456789abcdef0123456789"

OVERLAY = """
rate_limit:
  max_attempts: 2
breach_check:
  enabled: false
audit:
  default_page_size: 7
session:
  inactivity_timeout_seconds: 60
backup_codes:
  count: 4
password_expiration:
  default_expiration_days: 30
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("SECURITY_CONFIG_PATH", raising=False)
    monkeypatch.delenv("ENCRYPTION_MASTER_KEY", raising=False)
    bootstrap.reset_defaults()
    yield
    bootstrap.reset_defaults()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text(OVERLAY)
    return get_active_config(path, environ={"ENCRYPTION_MASTER_KEY": MASTER_KEY})


class TestDefaultEngine:
    def test_round_trip_with_env_key(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_MASTER_KEY", MASTER_KEY)
        payload = bootstrap.encrypt("76.123.456-7")
        assert bootstrap.decrypt(payload) == "76.123.456-7"

    def test_engine_cached(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_MASTER_KEY", MASTER_KEY)
        assert bootstrap.get_default_engine() is bootstrap.get_default_engine()

    def test_missing_key_fails_at_first_use(self):
        engine = bootstrap.get_default_engine()
        assert engine is not None
        with pytest.raises(ConfigurationError):
            bootstrap.encrypt("secret")

    def test_hash_value_needs_no_key(self):
        assert bootstrap.hash_value("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_engine_creation_logged(self, captured_logs):
        bootstrap.get_default_engine()
        created = [
            r for r in captured_logs() if r["message"] == "default_crypto_engine_created"
        ]
        assert created[0]["master_key_present"] is False


class TestBuilders:
    def test_rate_limiter(self, config, clock):
        limiter = bootstrap.build_rate_limiter(clock=clock, config=config)
        assert limiter.settings.max_attempts == 2

    def test_rate_limit_sweeper_interval(self, config):
        limiter = bootstrap.build_rate_limiter(config=config)
        sweeper = bootstrap.build_rate_limit_sweeper(limiter)
        assert sweeper.running is False
        assert sweeper._interval == config.rate_limit.sweep_interval_seconds

    def test_breach_checker(self, config):
        checker = bootstrap.build_breach_checker(config=config)
        assert checker.settings.enabled is False
        assert checker.is_password_compromised("password") is False

    def test_audit_service(self, config, session_factory, clock):
        service = bootstrap.build_audit_service(session_factory, clock, config=config)
        assert service.settings.default_page_size == 7

    def test_audit_service_default_factory(self, db_engine, config):
        service = bootstrap.build_audit_service(config=config)
        assert service.get_audit_logs().total == 0

    def test_audit_service_rejects_direct_writes(self, db_engine, config, clock):
        unregister_immutability_listeners()
        bootstrap.build_audit_service(config=config)

        with get_session_factory()() as session:
            session.add(
                AuditLogRecord(
                    action=AuditAction.USER_LOGIN.value,
                    resource="auth",
                    ip_address="10.0.0.1",
                    user_agent="pytest",
                    result=AuditResult.SUCCESS.value,
                    old_data={"password": "plain"},
                    timestamp=clock.now(),
                )
            )
            with pytest.raises(DirectAuditWriteError):
                session.flush()
            session.rollback()

    def test_session_manager(self, config, identity, clock):
        manager = bootstrap.build_session_manager(
            identity, in_memory_platform(), clock, config=config
        )
        assert manager.settings.inactivity_timeout_seconds == 60

    def test_backup_code_manager(self, config, crypto_engine):
        manager = bootstrap.build_backup_code_manager(crypto_engine, config=config)
        assert len(manager.generate_backup_codes()) == 4

    def test_password_expiration_policy(self, config, clock):
        policy = bootstrap.build_password_expiration_policy(clock, config=config)
        assert policy.expiration_days("UNKNOWN") == 30
        assert policy.expiration_days("AUDITOR") == 120

    def test_password_change_needs_reauth_by_default(
        self, config, identity, audit_service, clock
    ):
        service = bootstrap.build_password_change_service(
            identity, InMemoryStorage(), audit_service, clock, config=config
        )
        with pytest.raises(ReauthenticationRequiredError):
            asyncio.run(
                service.change_password(
                    "user-1", "Brand-New-Phrase-7!", (), "10.0.0.1", "pytest"
                )
            )
        assert identity.password_updates == []

    def test_password_change_without_reauth(self, config, identity, audit_service, clock):
        service = bootstrap.build_password_change_service(
            identity,
            InMemoryStorage(),
            audit_service,
            clock,
            require_reauth=False,
            config=config,
        )
        outcome = asyncio.run(
            service.change_password("user-1", "Brand-New-Phrase-7!", (), "10.0.0.1", "pytest")
        )
        assert identity.password_updates == ["Brand-New-Phrase-7!"]
        assert outcome.sessions_invalidated is True

    def test_field_codec_uses_given_engine(self, crypto_engine):
        codec = bootstrap.build_field_codec(crypto_engine)
        stored = codec.prepare_company_for_storage({"tax_id": "1-9"})
        assert crypto_engine.decrypt(stored["tax_id"]) == "1-9"

    def test_builders_default_to_active_config(self):
        limiter = bootstrap.build_rate_limiter()
        assert limiter.settings.max_attempts == 5
