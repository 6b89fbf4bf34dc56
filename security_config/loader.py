"""
Configuration Loader (``security_config.loader``).

Responsibility
--------------
Loads YAML configuration files and parses them into the frozen dataclasses
of ``security_config.schema``.  The single public entry point for runtime
config is ``security_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown keys in a section raise ``ValueError``; a typo in a threshold
  name must not silently fall back to a default.
* The master encryption key is taken from the environment only.  A
  ``master_key`` entry in YAML is rejected.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  non-secret configuration.

Failure modes
-------------
* Missing overlay file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Unknown section or key -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

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

_SECTIONS: dict[str, type] = {
    "crypto": CryptoSettings,
    "rate_limit": RateLimitSettings,
    "password_policy": PasswordPolicySettings,
    "breach_check": BreachCheckSettings,
    "audit": AuditSettings,
    "session": SessionSettings,
    "backup_codes": BackupCodeSettings,
    "reauth": ReauthSettings,
    "password_expiration": PasswordExpirationSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_config_data(
    base: Mapping[str, Any], overlay: Mapping[str, Any]
) -> dict[str, Any]:
    """Merge two raw config mappings section by section (overlay wins)."""
    merged: dict[str, Any] = {k: dict(v or {}) for k, v in base.items()}
    for section, values in overlay.items():
        merged.setdefault(section, {}).update(values or {})
    return merged


def _parse_section(name: str, cls: type, data: Mapping[str, Any]) -> Any:
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(
            f"Unknown keys in config section '{name}': {sorted(unknown)}"
        )
    values = dict(data)
    for key, val in values.items():
        if isinstance(val, list):
            values[key] = tuple(val)
    return cls(**values)


def parse_config(data: Mapping[str, Any], master_key: str | None = None) -> SecurityConfig:
    """
    Parse a raw mapping into a ``SecurityConfig``.

    Args:
        data: Section name -> key/value mapping (as loaded from YAML).
        master_key: Master encryption secret from the environment.

    Raises:
        ValueError: on unknown sections or keys, or a YAML-supplied master key.
    """
    unknown_sections = set(data) - set(_SECTIONS)
    if "master_key" in unknown_sections:
        raise ValueError("master_key must be supplied via the environment, not YAML")
    if unknown_sections:
        raise ValueError(f"Unknown config sections: {sorted(unknown_sections)}")

    sections = {
        name: _parse_section(name, cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return SecurityConfig(**sections, master_key=master_key)


def compute_checksum(config: SecurityConfig) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON form of ``config``.

    The master key is excluded: the checksum is safe to log.
    """
    data = asdict(config)
    data.pop("master_key", None)
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
