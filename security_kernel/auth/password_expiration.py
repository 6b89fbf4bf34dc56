"""
Password expiry by role and reuse prevention.

Expiry windows:
    SUPER_ADMIN 90 days, CONTADOR 90, AUDITOR 120, CLIENTE 180; any other
    role falls back to the default (180).

History:
    The most recent ``history_count`` (5) password hashes, newest first.
    Hashes are plain SHA-256 hex: comparison only.  Account passwords
    themselves are stored by the identity provider.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from security_config.schema import PasswordExpirationSettings
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.exceptions import PasswordReuseError
from security_kernel.utils.hashing import sha256_hex

EXPIRED = "password_expired"
EXPIRING_SOON = "password_expiring_soon"


@dataclass(frozen=True)
class PasswordHistoryEntry:
    password_hash: str
    changed_at: datetime


@dataclass(frozen=True)
class PasswordChangeRequirement:
    required: bool
    reason: str | None = None
    days_remaining: int | None = None


class PasswordExpirationPolicy:
    """Role-based expiry and last-N reuse checks."""

    def __init__(
        self,
        settings: PasswordExpirationSettings | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or PasswordExpirationSettings()
        self._clock = clock or SystemClock()

    @property
    def history_count(self) -> int:
        return self._settings.history_count

    def expiration_days(self, role: str) -> int:
        return self._settings.expiration_days_by_role.get(
            role, self._settings.default_expiration_days
        )

    def expires_at(self, last_changed_at: datetime, role: str) -> datetime:
        return last_changed_at + timedelta(days=self.expiration_days(role))

    def is_password_expired(self, last_changed_at: datetime, role: str) -> bool:
        return self._clock.now() > self.expires_at(last_changed_at, role)

    def days_until_expiration(self, last_changed_at: datetime, role: str) -> int:
        """Whole days left, rounded up, never negative."""
        remaining = self.expires_at(last_changed_at, role) - self._clock.now()
        return max(0, math.ceil(remaining.total_seconds() / 86400))

    def requires_password_change(
        self, last_changed_at: datetime, role: str
    ) -> PasswordChangeRequirement:
        if self.is_password_expired(last_changed_at, role):
            return PasswordChangeRequirement(required=True, reason=EXPIRED)

        days = self.days_until_expiration(last_changed_at, role)
        if days <= self._settings.warning_days:
            return PasswordChangeRequirement(
                required=False, reason=EXPIRING_SOON, days_remaining=days
            )
        return PasswordChangeRequirement(required=False)

    def is_password_reused(
        self, new_password: str, history: Sequence[PasswordHistoryEntry]
    ) -> bool:
        candidate = sha256_hex(new_password)
        recent = history[: self._settings.history_count]
        return any(entry.password_hash == candidate for entry in recent)

    def add_to_password_history(
        self, password: str, history: Sequence[PasswordHistoryEntry]
    ) -> list[PasswordHistoryEntry]:
        """New history with ``password`` first, truncated to ``history_count``."""
        entry = PasswordHistoryEntry(
            password_hash=sha256_hex(password),
            changed_at=self._clock.now(),
        )
        return [entry, *history][: self._settings.history_count]

    def validate_password_change(
        self, new_password: str, history: Sequence[PasswordHistoryEntry]
    ) -> None:
        """
        Raises:
            PasswordReuseError: ``new_password`` is one of the recent passwords.
        """
        if self.is_password_reused(new_password, history):
            raise PasswordReuseError(self._settings.history_count)
