"""
Configuration schema (``security_config.schema``).

Frozen dataclasses describing every tunable of the security kernel. Values
here are data only -- no behaviour. Defaults mirror ``defaults.yaml`` so a
component constructed without a config still gets production values.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CryptoSettings:
    """Envelope encryption parameters."""

    master_key_env: str = "ENCRYPTION_MASTER_KEY"
    min_master_key_length: int = 32
    pbkdf2_iterations: int = 100_000
    salt_length: int = 64
    iv_length: int = 16
    key_length: int = 32


@dataclass(frozen=True)
class RateLimitSettings:
    """Brute-force guard thresholds."""

    max_attempts: int = 5
    window_seconds: int = 15 * 60
    block_seconds: int = 30 * 60
    sweep_interval_seconds: int = 60 * 60


@dataclass(frozen=True)
class PasswordPolicySettings:
    """Local complexity rules."""

    min_length: int = 12
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True
    special_chars: str = '!@#$%^&*(),.?":{}|<>'


@dataclass(frozen=True)
class BreachCheckSettings:
    """k-anonymity breach-database lookup."""

    base_url: str = "https://api.pwnedpasswords.com"
    user_agent: str = "Conta2Go-Security-Check"
    timeout_seconds: float = 5.0
    enabled: bool = True


@dataclass(frozen=True)
class AuditSettings:
    """Audit trail masking and suspicious-activity thresholds."""

    mask_visible_chars: int = 2
    default_page_size: int = 50
    failed_attempts_threshold: int = 5
    failed_attempts_window_minutes: int = 15
    distinct_ip_threshold: int = 3
    distinct_ip_window_minutes: int = 60
    recent_login_window_hours: int = 24


@dataclass(frozen=True)
class SessionSettings:
    """Client-side session lifecycle."""

    inactivity_timeout_seconds: int = 15 * 60
    check_interval_seconds: int = 60
    session_id_prefix_length: int = 20
    storage_key: str = "conta2go_session_metadata"
    device_id_key: str = "conta2go_device_id"
    broadcast_channel: str = "conta2go_session_channel"
    activity_events: tuple[str, ...] = (
        "mousedown",
        "mousemove",
        "keypress",
        "scroll",
        "touchstart",
        "click",
    )


@dataclass(frozen=True)
class BackupCodeSettings:
    """MFA recovery codes."""

    count: int = 10
    length: int = 8
    alphabet: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


@dataclass(frozen=True)
class ReauthSettings:
    """Re-authentication window for sensitive actions."""

    timeout_seconds: int = 5 * 60
    storage_key: str = "conta2go_last_reauth"


@dataclass(frozen=True)
class PasswordExpirationSettings:
    """Per-role password expiry and reuse history."""

    expiration_days_by_role: dict[str, int] = field(
        default_factory=lambda: {
            "SUPER_ADMIN": 90,
            "CONTADOR": 90,
            "CLIENTE": 180,
            "AUDITOR": 120,
        }
    )
    default_expiration_days: int = 180
    history_count: int = 5
    warning_days: int = 7


@dataclass(frozen=True)
class SecurityConfig:
    """Root configuration object returned by ``get_active_config()``."""

    crypto: CryptoSettings = field(default_factory=CryptoSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    password_policy: PasswordPolicySettings = field(default_factory=PasswordPolicySettings)
    breach_check: BreachCheckSettings = field(default_factory=BreachCheckSettings)
    audit: AuditSettings = field(default_factory=AuditSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    backup_codes: BackupCodeSettings = field(default_factory=BackupCodeSettings)
    reauth: ReauthSettings = field(default_factory=ReauthSettings)
    password_expiration: PasswordExpirationSettings = field(
        default_factory=PasswordExpirationSettings
    )
    # Populated from the environment only; never read from YAML.
    master_key: str | None = field(default=None, repr=False, compare=False)
