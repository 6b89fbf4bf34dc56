"""
Re-authentication for sensitive actions.

A successful password confirmation is remembered in local storage for a
short window (5 minutes by default).  Inside the window, sensitive actions
proceed without asking again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from security_config.schema import ReauthSettings
from security_kernel.domain.clock import Clock, SystemClock
from security_kernel.domain.identity import IdentityProvider
from security_kernel.exceptions import ReauthenticationRequiredError
from security_kernel.logging_config import get_logger, log_security
from security_kernel.session.capabilities import KeyValueStorage

logger = get_logger("services.reauth")

INVALID_CREDENTIALS = "Invalid credentials."
VERIFICATION_FAILED = "Could not verify credentials."


class SensitiveAction(str, Enum):
    CHANGE_PASSWORD = "change_password"
    CHANGE_EMAIL = "change_email"
    DELETE_ACCOUNT = "delete_account"
    CHANGE_MFA = "change_mfa"
    EXPORT_DATA = "export_data"
    CHANGE_BANK_INFO = "change_bank_info"
    DELETE_COMPANY = "delete_company"
    TRANSFER_OWNERSHIP = "transfer_ownership"


@dataclass(frozen=True)
class ReauthResult:
    success: bool
    error: str | None = None


class ReauthGuard:
    def __init__(
        self,
        identity: IdentityProvider,
        storage: KeyValueStorage,
        clock: Clock | None = None,
        settings: ReauthSettings | None = None,
    ):
        self._identity = identity
        self._storage = storage
        self._clock = clock or SystemClock()
        self._settings = settings or ReauthSettings()

    def _last_reauth(self) -> datetime | None:
        raw = self._storage.get(self._settings.storage_key)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("reauth_timestamp_unreadable")
            return None

    def requires_reauth(
        self, action: SensitiveAction, timeout_seconds: float | None = None
    ) -> bool:
        """True when no confirmation is stored or it is older than the timeout."""
        last = self._last_reauth()
        if last is None:
            return True
        timeout = timedelta(
            seconds=(
                self._settings.timeout_seconds
                if timeout_seconds is None
                else timeout_seconds
            )
        )
        return self._clock.now() - last > timeout

    async def reauthenticate(self, email: str, password: str) -> ReauthResult:
        """Confirm the password with the identity provider and open the window."""
        try:
            result = await self._identity.sign_in_with_password(
                email.strip().lower(), password
            )
        except Exception:
            logger.warning("reauth_provider_error", exc_info=True)
            return ReauthResult(False, VERIFICATION_FAILED)

        if not result.succeeded:
            log_security(logger, "reauth_failed")
            return ReauthResult(False, INVALID_CREDENTIALS)

        self._storage.set(self._settings.storage_key, self._clock.now().isoformat())
        logger.info("reauth_succeeded")
        return ReauthResult(True)

    async def validate_sensitive_action(
        self, action: SensitiveAction, email: str, password: str
    ) -> ReauthResult:
        """Re-authenticate only if the window has closed."""
        if not self.requires_reauth(action):
            return ReauthResult(True)
        result = await self.reauthenticate(email, password)
        if not result.success:
            log_security(logger, "sensitive_action_denied", action=action.value)
        return result

    def require_recent_reauth(self, action: SensitiveAction) -> None:
        """
        Raises:
            ReauthenticationRequiredError: the window is closed.
        """
        if self.requires_reauth(action):
            raise ReauthenticationRequiredError(action.value)

    def invalidate(self) -> None:
        """Close the window, e.g. on sign-out."""
        self._storage.delete(self._settings.storage_key)
