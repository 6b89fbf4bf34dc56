"""
Platform capabilities the session manager runs on.

The inactivity state machine needs four things from its host: a stream of
user-interaction events, a periodic timer, a small key-value store that
survives restarts, and a broadcast channel shared with sibling contexts
(other tabs or windows).  Each is a narrow protocol so the state machine is
testable without a browser; ``security_kernel.session.platform`` provides
in-process implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, runtime_checkable

Unsubscribe = Callable[[], None]
ActivityCallback = Callable[[str], None]
TickCallback = Callable[[], Awaitable[None] | None]
MessageCallback = Callable[[Mapping[str, Any]], None]


@runtime_checkable
class ActivitySource(Protocol):
    def on_activity(
        self, event_types: Sequence[str], callback: ActivityCallback
    ) -> Unsubscribe:
        """
        Call ``callback(event_type)`` whenever one of ``event_types`` fires.

        Listeners are passive: they never delay or cancel the event.
        """
        ...


@runtime_checkable
class Scheduler(Protocol):
    def schedule(self, interval_seconds: float, callback: TickCallback) -> Unsubscribe:
        """Run ``callback`` every ``interval_seconds`` until cancelled."""
        ...


@runtime_checkable
class BroadcastChannel(Protocol):
    def post(self, message: Mapping[str, Any]) -> None:
        """Deliver ``message`` to every other subscriber of the channel."""
        ...

    def subscribe(self, callback: MessageCallback) -> Unsubscribe: ...


@runtime_checkable
class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass(frozen=True)
class SessionPlatform:
    """The capabilities bundle handed to SessionManager."""

    activity: ActivitySource
    scheduler: Scheduler
    storage: KeyValueStorage
    open_channel: Callable[[str], BroadcastChannel]
