"""
Session metadata kept in local storage, and the module-level session
operations that act on it.
"""

from __future__ import annotations

import json
import secrets
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta

from security_config.schema import SessionSettings
from security_kernel.domain.clock import Clock
from security_kernel.domain.identity import IdentityProvider, SignOutScope
from security_kernel.logging_config import get_logger, log_security
from security_kernel.session.capabilities import KeyValueStorage

logger = get_logger("session.metadata")


@dataclass(frozen=True)
class SessionMetadata:
    user_id: str
    session_id: str
    device_id: str
    last_activity_at: datetime
    created_at: datetime
    ip_address: str | None = None

    def to_json(self) -> str:
        data = asdict(self)
        data["last_activity_at"] = self.last_activity_at.isoformat()
        data["created_at"] = self.created_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "SessionMetadata":
        data = json.loads(raw)
        return cls(
            user_id=data["user_id"],
            session_id=data["session_id"],
            device_id=data["device_id"],
            last_activity_at=datetime.fromisoformat(data["last_activity_at"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            ip_address=data.get("ip_address"),
        )


def get_device_id(storage: KeyValueStorage, clock: Clock, settings: SessionSettings) -> str:
    """Stable per-storage device id, generated once and reused."""
    device_id = storage.get(settings.device_id_key)
    if not device_id:
        millis = int(clock.timestamp() * 1000)
        device_id = f"device_{millis}_{secrets.token_hex(6)}"
        storage.set(settings.device_id_key, device_id)
    return device_id


def get_session_metadata(
    storage: KeyValueStorage, settings: SessionSettings
) -> SessionMetadata | None:
    """Stored metadata, or None when absent or unreadable."""
    raw = storage.get(settings.storage_key)
    if not raw:
        return None
    try:
        return SessionMetadata.from_json(raw)
    except (ValueError, KeyError, TypeError):
        logger.warning("session_metadata_unreadable")
        return None


def set_session_metadata(
    storage: KeyValueStorage, settings: SessionSettings, metadata: SessionMetadata
) -> None:
    storage.set(settings.storage_key, metadata.to_json())


def clear_session_metadata(storage: KeyValueStorage, settings: SessionSettings) -> None:
    storage.delete(settings.storage_key)


def update_last_activity(
    storage: KeyValueStorage, settings: SessionSettings, clock: Clock
) -> None:
    """Stamp ``last_activity_at`` with the current time, if a session is stored."""
    metadata = get_session_metadata(storage, settings)
    if metadata is not None:
        set_session_metadata(
            storage, settings, replace(metadata, last_activity_at=clock.now())
        )


def is_session_expired(
    storage: KeyValueStorage,
    settings: SessionSettings,
    clock: Clock,
    timeout_seconds: float | None = None,
) -> bool:
    """
    True when no session is stored, or the last activity is older than the
    inactivity timeout (strictly greater).
    """
    metadata = get_session_metadata(storage, settings)
    if metadata is None:
        return True
    timeout = timedelta(
        seconds=(
            settings.inactivity_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )
    )
    return clock.now() - metadata.last_activity_at > timeout


async def invalidate_all_sessions(
    identity: IdentityProvider, storage: KeyValueStorage, settings: SessionSettings
) -> None:
    """
    Global sign-out, then drop local metadata.

    Raises:
        Whatever the identity provider raises; local metadata is kept in that
        case so the caller can retry.
    """
    try:
        await identity.sign_out(SignOutScope.GLOBAL)
    except Exception:
        logger.error("invalidate_all_sessions_failed", exc_info=True)
        raise
    clear_session_metadata(storage, settings)
    log_security(logger, "all_sessions_invalidated")


async def handle_password_change(
    identity: IdentityProvider, storage: KeyValueStorage, settings: SessionSettings
) -> None:
    """A password change ends every session of the account."""
    await invalidate_all_sessions(identity, storage, settings)
    logger.info("password_changed_sessions_invalidated")
