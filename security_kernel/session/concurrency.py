"""
Concurrent-session detection over a broadcast channel.

Each context announces itself with ``SESSION_PING``; every context that hears
a ping from a different device answers with ``SESSION_PONG``.  Either message
carrying a foreign device id means the same account is open elsewhere.  The
callback fires once per foreign device.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from security_kernel.logging_config import get_logger
from security_kernel.session.capabilities import BroadcastChannel, Unsubscribe

logger = get_logger("session.concurrency")

SESSION_PING = "SESSION_PING"
SESSION_PONG = "SESSION_PONG"


class ConcurrentSessionDetector:
    def __init__(
        self,
        channel: BroadcastChannel,
        device_id: str,
        on_concurrent: Callable[[str], None],
    ):
        self._channel = channel
        self._device_id = device_id
        self._on_concurrent = on_concurrent
        self._seen: set[str] = set()
        self._unsubscribe: Unsubscribe | None = None

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def concurrent_devices(self) -> frozenset[str]:
        return frozenset(self._seen)

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._channel.subscribe(self._handle)
        self._channel.post({"type": SESSION_PING, "deviceId": self._device_id})

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle(self, message: Mapping[str, Any]) -> None:
        kind = message.get("type")
        other = message.get("deviceId")
        if kind not in (SESSION_PING, SESSION_PONG) or not other:
            return
        if other == self._device_id:
            return

        if other not in self._seen:
            self._seen.add(other)
            logger.warning(
                "concurrent_session_detected",
                extra={"device_id": self._device_id, "other_device_id": other},
            )
            try:
                self._on_concurrent(other)
            except Exception:
                logger.error("concurrent_session_callback_failed", exc_info=True)

        if kind == SESSION_PING:
            self._channel.post({"type": SESSION_PONG, "deviceId": self._device_id})
