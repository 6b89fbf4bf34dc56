"""
SessionManager -- inactivity-driven session lifecycle.

Responsibility:
    Tracks user interaction for an open session and signs the user out once
    the inactivity timeout elapses.

Architecture position:
    Kernel > Session.  Runs on a single cooperative event loop; all host
    integration goes through ``SessionPlatform`` capabilities and the
    ``IdentityProvider`` protocol.

State machine:
    STOPPED --start()--> RUNNING --check() finds expiry--> EXPIRED
    EXPIRED --cleanup done--> STOPPED
    RUNNING --stop()--> STOPPED

Invariants:
    - The expiration callback runs at most once per ``start()``.
    - After ``stop()`` returns, no activity listener, periodic check or
      in-flight expiry remains.
    - Activity events never block; they only stamp ``last_activity_at``.

Failure modes:
    - Identity-provider errors during sign-out are logged; local metadata is
      still cleared and the callback still runs.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable

from security_config.schema import SessionSettings
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.domain.identity import IdentityProvider, SignOutScope
from security_kernel.exceptions import SessionError
from security_kernel.logging_config import get_logger, log_security
from security_kernel.session.capabilities import SessionPlatform, Unsubscribe
from security_kernel.session.concurrency import ConcurrentSessionDetector
from security_kernel.session.metadata import (
    SessionMetadata,
    clear_session_metadata,
    get_device_id,
    get_session_metadata,
    is_session_expired,
    set_session_metadata,
    update_last_activity,
)

logger = get_logger("session.manager")

ExpiredCallback = Callable[[], Awaitable[None] | None]


class SessionState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    EXPIRED = "expired"


class SessionManager:
    def __init__(
        self,
        identity: IdentityProvider,
        platform: SessionPlatform,
        clock: Clock | None = None,
        settings: SessionSettings | None = None,
    ):
        self._identity = identity
        self._platform = platform
        self._clock = clock or SystemClock()
        self._settings = settings or SessionSettings()

        self._state = SessionState.STOPPED
        self._on_expired: ExpiredCallback | None = None
        self._remove_listeners: Unsubscribe | None = None
        self._cancel_check: Unsubscribe | None = None
        self._expiring: asyncio.Task[None] | None = None
        self._detector: ConcurrentSessionDetector | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def device_id(self) -> str:
        return get_device_id(self._platform.storage, self._clock, self._settings)

    @property
    def metadata(self) -> SessionMetadata | None:
        return get_session_metadata(self._platform.storage, self._settings)

    async def start(self, on_expired: ExpiredCallback | None = None) -> None:
        """
        Begin monitoring.  A second call while running is a no-op.

        Raises:
            SessionError: an expiry is still being processed; await
                ``stop()`` first.
        """
        if self._state is SessionState.RUNNING:
            return
        if self._state is SessionState.EXPIRED:
            raise SessionError(self._state.value, "expiry in progress")

        self._on_expired = on_expired
        session = await self._identity.get_session()
        if session is not None:
            now = self._clock.now()
            set_session_metadata(
                self._platform.storage,
                self._settings,
                SessionMetadata(
                    user_id=session.user_id,
                    session_id=session.access_token[: self._settings.session_id_prefix_length],
                    device_id=self.device_id,
                    last_activity_at=now,
                    created_at=now,
                ),
            )

        self._remove_listeners = self._platform.activity.on_activity(
            self._settings.activity_events, self._on_activity
        )
        self._cancel_check = self._platform.scheduler.schedule(
            self._settings.check_interval_seconds, self.check
        )
        self._state = SessionState.RUNNING
        logger.info(
            "session_monitor_started",
            extra={"has_session": session is not None},
        )

    def _on_activity(self, event_type: str) -> None:
        if self._state is SessionState.RUNNING:
            self.record_activity()

    def record_activity(self) -> None:
        update_last_activity(self._platform.storage, self._settings, self._clock)

    async def check(self) -> bool:
        """
        One inactivity check.

        Returns:
            True when this call expired the session.
        """
        if self._state is not SessionState.RUNNING:
            return False
        if not is_session_expired(self._platform.storage, self._settings, self._clock):
            return False

        self._state = SessionState.EXPIRED
        self._expiring = asyncio.get_running_loop().create_task(self._expire())
        await self._expiring
        return True

    async def _expire(self) -> None:
        self._teardown()
        try:
            await self._identity.sign_out(SignOutScope.LOCAL)
        except Exception:
            logger.error("session_sign_out_failed", exc_info=True)
        clear_session_metadata(self._platform.storage, self._settings)

        callback, self._on_expired = self._on_expired, None
        if callback is not None:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("session_expired_callback_failed", exc_info=True)

        log_security(
            logger,
            "session_expired",
            timeout_seconds=self._settings.inactivity_timeout_seconds,
        )
        self._state = SessionState.STOPPED

    def _teardown(self) -> None:
        if self._remove_listeners is not None:
            self._remove_listeners()
            self._remove_listeners = None
        if self._cancel_check is not None:
            self._cancel_check()
            self._cancel_check = None
        if self._detector is not None:
            self._detector.stop()
            self._detector = None

    async def stop(self) -> None:
        """Deregister everything and wait for an in-flight expiry to finish."""
        self._teardown()
        pending = self._expiring
        if (
            pending is not None
            and not pending.done()
            and pending is not asyncio.current_task()
        ):
            await pending
        self._expiring = None
        if self._state is SessionState.RUNNING:
            self._state = SessionState.STOPPED
            logger.info("session_monitor_stopped")

    def detect_concurrent_sessions(
        self, on_concurrent: Callable[[str], Any] | None = None
    ) -> ConcurrentSessionDetector:
        """
        Announce this device on the shared channel and watch for others.

        Advisory only: a concurrent session never ends this one.
        """
        if self._detector is not None:
            return self._detector
        channel = self._platform.open_channel(self._settings.broadcast_channel)
        self._detector = ConcurrentSessionDetector(
            channel, self.device_id, on_concurrent or (lambda _device: None)
        )
        self._detector.start()
        return self._detector
