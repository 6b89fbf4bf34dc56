"""
security_config -- single public entrypoint for security configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - The master encryption key comes from the environment and is never
      validated here: absence is fatal at first use, not at process start.

Failure modes:
    - ``FileNotFoundError`` -- ``SECURITY_CONFIG_PATH`` names a missing file.
    - ``ValueError`` -- unknown section or key in a YAML file.

Audit relevance:
    Every call emits a ``SECURITY_CONFIG_TRACE`` log entry carrying the
    configuration checksum (never the master key).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from security_config.loader import (
    compute_checksum,
    load_yaml_file,
    merge_config_data,
    parse_config,
)
from security_config.schema import (
    AuditSettings,
    BackupCodeSettings,
    BreachCheckSettings,
    CryptoSettings,
    PasswordExpirationSettings,
    PasswordPolicySettings,
    RateLimitSettings,
    ReauthSettings,
    SecurityConfig,
    SessionSettings,
)

_logger = logging.getLogger("security_kernel.config")

_DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "SECURITY_CONFIG_PATH"


def get_active_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> SecurityConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional YAML overlay. Defaults to ``$SECURITY_CONFIG_PATH``.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Frozen ``SecurityConfig``.
    """
    env = os.environ if environ is None else environ
    data = load_yaml_file(_DEFAULTS_PATH)

    overlay_path = config_path or (
        Path(env[CONFIG_PATH_ENV]) if env.get(CONFIG_PATH_ENV) else None
    )
    if overlay_path is not None:
        data = merge_config_data(data, load_yaml_file(overlay_path))

    key_env = (data.get("crypto") or {}).get("master_key_env", "ENCRYPTION_MASTER_KEY")
    config = parse_config(data, master_key=env.get(key_env))

    _logger.info(
        "SECURITY_CONFIG_TRACE",
        extra={
            "trace_type": "SECURITY_CONFIG_TRACE",
            "checksum": compute_checksum(config),
            "overlay": str(overlay_path) if overlay_path else None,
            "master_key_present": config.master_key is not None,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "compute_checksum",
    "SecurityConfig",
    "CryptoSettings",
    "RateLimitSettings",
    "PasswordPolicySettings",
    "BreachCheckSettings",
    "AuditSettings",
    "SessionSettings",
    "BackupCodeSettings",
    "ReauthSettings",
    "PasswordExpirationSettings",
]
