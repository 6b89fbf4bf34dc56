"""Client-side session lifecycle: inactivity expiry and concurrent-session detection."""

from security_kernel.session.capabilities import (
    ActivitySource,
    BroadcastChannel,
    KeyValueStorage,
    Scheduler,
    SessionPlatform,
)
from security_kernel.session.concurrency import (
    SESSION_PING,
    SESSION_PONG,
    ConcurrentSessionDetector,
)
from security_kernel.session.manager import SessionManager, SessionState
from security_kernel.session.metadata import (
    SessionMetadata,
    clear_session_metadata,
    get_device_id,
    get_session_metadata,
    handle_password_change,
    invalidate_all_sessions,
    is_session_expired,
    set_session_metadata,
    update_last_activity,
)
from security_kernel.session.platform import (
    AsyncioScheduler,
    InMemoryActivitySource,
    InMemoryBroadcastHub,
    InMemoryStorage,
    in_memory_platform,
)

__all__ = [
    "ActivitySource",
    "BroadcastChannel",
    "KeyValueStorage",
    "Scheduler",
    "SessionPlatform",
    "SESSION_PING",
    "SESSION_PONG",
    "ConcurrentSessionDetector",
    "SessionManager",
    "SessionState",
    "SessionMetadata",
    "clear_session_metadata",
    "get_device_id",
    "get_session_metadata",
    "handle_password_change",
    "invalidate_all_sessions",
    "is_session_expired",
    "set_session_metadata",
    "update_last_activity",
    "AsyncioScheduler",
    "InMemoryActivitySource",
    "InMemoryBroadcastHub",
    "InMemoryStorage",
    "in_memory_platform",
]
