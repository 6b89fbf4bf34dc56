"""
RateLimiter -- brute-force guard keyed by an opaque identifier.

Responsibility:
    Count authentication attempts per identifier (typically a normalized
    email) inside a sliding window and block the identifier once the count
    exceeds the limit.

Architecture position:
    Kernel > Auth.  Invoked by request handlers BEFORE calling the identity
    provider.  Independent of every other kernel component.

State machine (per identifier):

    CLEAR --check--> TRACKING --attempts > max--> BLOCKED
      ^                 |                            |
      |        window elapsed: reset to 1            |
      +----- clear_rate_limit() / block elapsed -----+

Invariants enforced:
    - Per-key atomic check-and-increment: two concurrent checks for the same
      identifier can never both observe ``attempts`` below the limit and both
      pass the (max+1)-th attempt.
    - Sliding, not cumulative: a check after ``window`` of silence restarts
      the count at 1.
    - State is process-local and not persisted; a restart clears all
      counters.

Failure modes:
    - A block is a RESULT (``allowed=False``), never an exception.
    - ``check_rate_limit_fail_open`` converts unexpected store errors into
      ``allowed=True`` so an infrastructure fault does not lock every user
      out.  Authentication itself still fails closed downstream.
"""

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, TypeVar

from security_config.schema import RateLimitSettings
from security_kernel.crypto.masking import mask_sensitive_data
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.logging_config import get_logger, log_security

logger = get_logger("auth.rate_limiter")

T = TypeVar("T")


@dataclass(frozen=True)
class RateLimitEntry:
    """Attempt counter for one identifier."""

    attempts: int
    last_attempt_at: datetime
    blocked_until: datetime | None = None

    def is_blocked(self, now: datetime) -> bool:
        return self.blocked_until is not None and self.blocked_until > now


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check."""

    allowed: bool
    retry_after_seconds: int | None = None

    @property
    def retry_after_minutes(self) -> int | None:
        """Remaining wait rounded up to whole minutes, for user-facing text."""
        if self.retry_after_seconds is None:
            return None
        return math.ceil(self.retry_after_seconds / 60)


ALLOWED = RateLimitDecision(allowed=True)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class RateLimitStore(ABC):
    """
    Storage interface for rate-limit entries.

    Contract:
        ``update`` is the only read-modify-write path and MUST be atomic per
        key.  ``sweep`` may run concurrently with ``update`` on other keys.
    """

    @abstractmethod
    def get(self, key: str) -> RateLimitEntry | None: ...

    @abstractmethod
    def set(self, key: str, entry: RateLimitEntry) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def update(
        self,
        key: str,
        fn: Callable[[RateLimitEntry | None], tuple[RateLimitEntry | None, T]],
    ) -> T:
        """Atomically replace the entry for ``key`` with ``fn(entry)[0]``."""
        ...

    @abstractmethod
    def sweep(self, now: datetime, window: timedelta) -> int:
        """Remove expired entries, returning how many were removed."""
        ...

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryRateLimitStore(RateLimitStore):
    """
    Dict-backed store with striped per-key locks.

    A fixed pool of locks, selected by key hash, serializes updates to the
    same key without growing a lock table per identifier.  The map itself is
    guarded by a separate lock held only for single dict operations, so the
    sweep never waits on an in-flight update for an unrelated key.
    """

    _STRIPES = 64

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._map_lock = threading.Lock()
        self._stripes = tuple(threading.Lock() for _ in range(self._STRIPES))

    def _lock_for(self, key: str) -> threading.Lock:
        return self._stripes[hash(key) % self._STRIPES]

    def get(self, key: str) -> RateLimitEntry | None:
        with self._map_lock:
            return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        with self._map_lock:
            self._entries[key] = entry

    def delete(self, key: str) -> None:
        with self._lock_for(key), self._map_lock:
            self._entries.pop(key, None)

    def update(self, key, fn):
        with self._lock_for(key):
            with self._map_lock:
                current = self._entries.get(key)
            new_entry, result = fn(current)
            with self._map_lock:
                if new_entry is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = new_entry
            return result

    def sweep(self, now: datetime, window: timedelta) -> int:
        removed = 0
        with self._map_lock:
            for key, entry in list(self._entries.items()):
                if entry.blocked_until is not None:
                    expired = entry.blocked_until <= now
                else:
                    # An idle tracking entry would be reset to 1 on next sight
                    # anyway; dropping it is indistinguishable to callers.
                    expired = now - entry.last_attempt_at > window
                if expired:
                    del self._entries[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """
    Sliding-window limiter with escalation to a timed block.

    Defaults: 5 attempts per 15 minutes, then a 30 minute block.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Clock | None = None,
        settings: RateLimitSettings | None = None,
    ):
        self._store = store or InMemoryRateLimitStore()
        self._clock = clock or SystemClock()
        self._settings = settings or RateLimitSettings()
        self._window = timedelta(seconds=self._settings.window_seconds)
        self._block = timedelta(seconds=self._settings.block_seconds)

    @property
    def settings(self) -> RateLimitSettings:
        return self._settings

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def check_rate_limit(self, identifier: str) -> RateLimitDecision:
        """
        Count one attempt for ``identifier`` and decide whether it may proceed.

        Returns:
            ``RateLimitDecision(allowed=True)`` while under the limit;
            ``allowed=False`` with the remaining block time otherwise.
        """
        now = self._clock.now()
        max_attempts = self._settings.max_attempts

        def transition(
            entry: RateLimitEntry | None,
        ) -> tuple[RateLimitEntry | None, RateLimitDecision]:
            if entry is None:
                return RateLimitEntry(attempts=1, last_attempt_at=now), ALLOWED

            if entry.blocked_until is not None:
                if entry.blocked_until > now:
                    remaining = math.ceil((entry.blocked_until - now).total_seconds())
                    return entry, RateLimitDecision(False, remaining)
                # Block served: back to CLEAR, this attempt is the first.
                return RateLimitEntry(attempts=1, last_attempt_at=now), ALLOWED

            if now - entry.last_attempt_at > self._window:
                return RateLimitEntry(attempts=1, last_attempt_at=now), ALLOWED

            attempts = entry.attempts + 1
            if attempts > max_attempts:
                blocked = RateLimitEntry(
                    attempts=attempts,
                    last_attempt_at=now,
                    blocked_until=now + self._block,
                )
                return blocked, RateLimitDecision(
                    False, math.ceil(self._block.total_seconds())
                )
            return RateLimitEntry(attempts=attempts, last_attempt_at=now), ALLOWED

        decision = self._store.update(identifier, transition)

        if not decision.allowed:
            log_security(
                logger,
                "rate_limit_blocked",
                identifier=mask_sensitive_data(identifier, 2),
                retry_after_seconds=decision.retry_after_seconds,
            )
        return decision

    def record_failed_attempt(self, identifier: str) -> RateLimitDecision:
        """Count a failed attempt. Same transition as ``check_rate_limit``."""
        return self.check_rate_limit(identifier)

    def clear_rate_limit(self, identifier: str) -> None:
        """Forget ``identifier`` entirely. Called after a successful sign-in."""
        self._store.delete(identifier)
        logger.debug("rate_limit_cleared")

    def get_entry(self, identifier: str) -> RateLimitEntry | None:
        return self._store.get(identifier)

    def sweep_expired(self) -> int:
        """Drop entries whose block has elapsed (and idle tracking entries)."""
        removed = self._store.sweep(self._clock.now(), self._window)
        if removed:
            logger.info("rate_limit_sweep", extra={"removed": removed})
        return removed


def check_rate_limit_fail_open(limiter: RateLimiter, identifier: str) -> RateLimitDecision:
    """
    Run ``limiter.check_rate_limit`` but allow the attempt if the check itself errors.

    The brute-force guard is advisory to availability: a broken store must
    not deny every sign-in.  The identity provider still fails closed.
    """
    try:
        return limiter.check_rate_limit(identifier)
    except Exception:
        logger.error("rate_limit_check_failed_open", exc_info=True)
        return ALLOWED


class RateLimitSweeper:
    """
    Background thread calling ``sweep_expired`` on a fixed interval.

    ``stop()`` signals the thread and joins it.
    """

    def __init__(self, limiter: RateLimiter, interval_seconds: float | None = None):
        self._limiter = limiter
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else limiter.settings.sweep_interval_seconds
        )
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="rate-limit-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._limiter.sweep_expired()
            except Exception:
                logger.error("rate_limit_sweep_failed", exc_info=True)
