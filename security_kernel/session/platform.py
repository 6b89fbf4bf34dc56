"""
In-process implementations of the session capabilities.

Used by tests and by server-side hosts that drive the session state machine
themselves.  ``AsyncioScheduler`` needs a running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable, Mapping, Sequence

from security_kernel.logging_config import get_logger
from security_kernel.session.capabilities import (
    ActivityCallback,
    MessageCallback,
    SessionPlatform,
    TickCallback,
    Unsubscribe,
)

logger = get_logger("session.platform")


class InMemoryStorage:
    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class InMemoryActivitySource:
    """Activity events are injected with ``emit``."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ActivityCallback]] = defaultdict(list)

    def on_activity(
        self, event_types: Sequence[str], callback: ActivityCallback
    ) -> Unsubscribe:
        types = tuple(event_types)
        for event_type in types:
            self._listeners[event_type].append(callback)

        def unsubscribe() -> None:
            for event_type in types:
                listeners = self._listeners.get(event_type, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def emit(self, event_type: str) -> None:
        for callback in list(self._listeners.get(event_type, ())):
            callback(event_type)

    @property
    def listener_count(self) -> int:
        return sum(len(v) for v in self._listeners.values())


class _Tick:
    """One repeating timer.  Cancelling from inside its own callback lets
    the callback finish instead of interrupting it."""

    def __init__(self, interval: float, callback: TickCallback):
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._in_callback = False
        self.task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self._interval)
            if self._cancelled:
                break
            self._in_callback = True
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("scheduled_callback_failed", exc_info=True)
            finally:
                self._in_callback = False

    def cancel(self) -> None:
        self._cancelled = True
        if not self._in_callback:
            self.task.cancel()


class AsyncioScheduler:
    def __init__(self) -> None:
        self._ticks: list[_Tick] = []

    def schedule(self, interval_seconds: float, callback: TickCallback) -> Unsubscribe:
        tick = _Tick(interval_seconds, callback)
        self._ticks.append(tick)

        def cancel() -> None:
            tick.cancel()
            if tick in self._ticks:
                self._ticks.remove(tick)

        return cancel

    @property
    def active_count(self) -> int:
        return len(self._ticks)


class InMemoryBroadcastChannel:
    """One endpoint of a named channel.  Messages never echo to the sender."""

    def __init__(self, hub: "InMemoryBroadcastHub", name: str):
        self._hub = hub
        self.name = name
        self._subscribers: list[MessageCallback] = []

    def post(self, message: Mapping[str, Any]) -> None:
        self._hub._deliver(self, dict(message))

    def subscribe(self, callback: MessageCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _receive(self, message: dict[str, Any]) -> None:
        for callback in list(self._subscribers):
            callback(dict(message))


class InMemoryBroadcastHub:
    """Fan-out between endpoints sharing a channel name (sibling tabs)."""

    def __init__(self) -> None:
        self._endpoints: dict[str, list[InMemoryBroadcastChannel]] = defaultdict(list)

    def open(self, name: str) -> InMemoryBroadcastChannel:
        endpoint = InMemoryBroadcastChannel(self, name)
        self._endpoints[name].append(endpoint)
        return endpoint

    def _deliver(self, sender: InMemoryBroadcastChannel, message: dict[str, Any]) -> None:
        for endpoint in list(self._endpoints[sender.name]):
            if endpoint is not sender:
                endpoint._receive(message)


def in_memory_platform(
    hub: InMemoryBroadcastHub | None = None,
    storage: InMemoryStorage | None = None,
) -> SessionPlatform:
    """A complete in-process platform; pass a shared ``hub`` to simulate tabs."""
    hub = hub or InMemoryBroadcastHub()
    open_channel: Callable[[str], InMemoryBroadcastChannel] = hub.open
    return SessionPlatform(
        activity=InMemoryActivitySource(),
        scheduler=AsyncioScheduler(),
        storage=storage or InMemoryStorage(),
        open_channel=open_channel,
    )
