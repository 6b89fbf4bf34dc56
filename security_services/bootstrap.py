"""
security_services.bootstrap -- wiring kernel components from configuration.

Responsibility:
    Builds kernel objects from ``get_active_config()`` so that application
    code never passes settings by hand.  Holds the process-wide default
    CryptoEngine behind thin ``encrypt`` / ``decrypt`` / ``hash_value``
    helpers.

Architecture position:
    Services layer.  The kernel never reads configuration; this module is
    where configuration meets kernel constructors.

Invariants:
    - The master secret is checked at first use, not here.  Building the
      default engine without a secret succeeds; the first encrypt raises
      ConfigurationError.
    - ``reset_defaults()`` exists for tests only.
"""

from __future__ import annotations

import threading

import httpx
from sqlalchemy.orm import Session, sessionmaker

from security_config import SecurityConfig, get_active_config
from security_kernel.auth.backup_codes import BackupCodeManager
from security_kernel.auth.breach_check import BreachChecker
from security_kernel.auth.password_expiration import PasswordExpirationPolicy
from security_kernel.auth.rate_limiter import (
    RateLimiter,
    RateLimitStore,
    RateLimitSweeper,
)
from security_kernel.crypto.engine import CryptoEngine
from security_kernel.crypto.fields import SensitiveFieldCodec
from security_kernel.db.engine import get_session_factory
from security_kernel.domain.clock import Clock
from security_kernel.domain.identity import IdentityProvider
from security_kernel.logging_config import get_logger
from security_kernel.services.alerting import AlertSink
from security_kernel.services.audit_service import AuditLogService
from security_kernel.session.capabilities import KeyValueStorage, SessionPlatform
from security_kernel.session.manager import SessionManager
from security_services.password_change import PasswordChangeService
from security_services.reauth import ReauthGuard

logger = get_logger("services.bootstrap")

_default_engine: CryptoEngine | None = None
_default_config: SecurityConfig | None = None
_lock = threading.Lock()


def _config(config: SecurityConfig | None) -> SecurityConfig:
    global _default_config
    if config is not None:
        return config
    with _lock:
        if _default_config is None:
            _default_config = get_active_config()
        return _default_config


def get_default_engine() -> CryptoEngine:
    """Process-wide engine bound to the active configuration."""
    global _default_engine
    config = _config(None)
    with _lock:
        if _default_engine is None:
            _default_engine = CryptoEngine(config.master_key, config.crypto)
            logger.info(
                "default_crypto_engine_created",
                extra={"master_key_present": config.master_key is not None},
            )
        return _default_engine


def reset_defaults() -> None:
    """Forget the cached config and engine. FOR TESTING ONLY."""
    global _default_engine, _default_config
    with _lock:
        _default_engine = None
        _default_config = None


def encrypt(plaintext: str) -> str:
    return get_default_engine().encrypt(plaintext)


def decrypt(payload: str) -> str:
    return get_default_engine().decrypt(payload)


def hash_value(data: str) -> str:
    return get_default_engine().hash(data)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_field_codec(engine: CryptoEngine | None = None) -> SensitiveFieldCodec:
    return SensitiveFieldCodec(engine or get_default_engine())


def build_backup_code_manager(
    engine: CryptoEngine | None = None,
    clock: Clock | None = None,
    config: SecurityConfig | None = None,
) -> BackupCodeManager:
    return BackupCodeManager(
        engine or get_default_engine(), clock, _config(config).backup_codes
    )


def build_rate_limiter(
    store: RateLimitStore | None = None,
    clock: Clock | None = None,
    config: SecurityConfig | None = None,
) -> RateLimiter:
    return RateLimiter(store, clock, _config(config).rate_limit)


def build_rate_limit_sweeper(limiter: RateLimiter) -> RateLimitSweeper:
    """Sweeper at the limiter's configured interval; the caller starts it."""
    return RateLimitSweeper(limiter)


def build_breach_checker(
    client: httpx.Client | None = None,
    config: SecurityConfig | None = None,
) -> BreachChecker:
    return BreachChecker(_config(config).breach_check, client)


def build_password_expiration_policy(
    clock: Clock | None = None,
    config: SecurityConfig | None = None,
) -> PasswordExpirationPolicy:
    return PasswordExpirationPolicy(_config(config).password_expiration, clock)


def build_audit_service(
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    alert_sink: AlertSink | None = None,
    config: SecurityConfig | None = None,
) -> AuditLogService:
    """Audit service on ``session_factory`` (default: the initialized engine's)."""
    return AuditLogService(
        session_factory or get_session_factory(),
        clock,
        alert_sink=alert_sink,
        settings=_config(config).audit,
    )


def build_session_manager(
    identity: IdentityProvider,
    platform: SessionPlatform,
    clock: Clock | None = None,
    config: SecurityConfig | None = None,
) -> SessionManager:
    return SessionManager(identity, platform, clock, _config(config).session)


def build_password_change_service(
    identity: IdentityProvider,
    storage: KeyValueStorage,
    audit_service: AuditLogService,
    clock: Clock | None = None,
    breach_checker: BreachChecker | None = None,
    require_reauth: bool = True,
    config: SecurityConfig | None = None,
) -> PasswordChangeService:
    """
    Password-change flow on the configured policy, breach check, history
    length and session settings.  With ``require_reauth`` the change needs a
    password confirmation inside the re-auth window.
    """
    cfg = _config(config)
    reauth = ReauthGuard(identity, storage, clock, cfg.reauth) if require_reauth else None
    return PasswordChangeService(
        identity,
        storage,
        audit_service,
        expiration_policy=PasswordExpirationPolicy(cfg.password_expiration, clock),
        breach_checker=breach_checker or build_breach_checker(config=cfg),
        reauth=reauth,
        password_policy=cfg.password_policy,
        session_settings=cfg.session,
    )
