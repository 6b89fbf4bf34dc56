"""
Breach-database lookup (k-anonymity range query) plus weak-pattern heuristics.

Only the first five hex characters of the password's SHA-1 leave the
process.  The response lists ``SUFFIX:COUNT`` lines for every known
breached hash sharing that prefix; the match is done locally.

Failure policy:
    The lookup is advisory.  A non-2xx response, a timeout or any transport
    error is logged and treated as "not breached" so an outage of the remote
    service never blocks registration or a password change.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx

from security_config.schema import BreachCheckSettings
from security_kernel.logging_config import get_logger
from security_kernel.utils.hashing import sha1_hex_upper

logger = get_logger("auth.breach_check")

PREFIX_LENGTH = 5

BREACHED_WARNING = (
    "This password has appeared in public data breaches. Please choose another."
)
COMMON_PATTERN_WARNING = "The password contains common patterns that are easy to guess."
REPEATED_CHARS_WARNING = "The password contains too many repeated characters in a row."

COMMON_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"123456"),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"qwerty", re.IGNORECASE),
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"welcome", re.IGNORECASE),
    re.compile(r"12345678"),
)

# Four or more identical characters in a row.
_REPEATED = re.compile(r"(.)\1{3,}")


@dataclass(frozen=True)
class PasswordSecurityReport:
    is_secure: bool
    warnings: tuple[str, ...]
    breached: bool = False


def heuristic_warnings(password: str) -> list[str]:
    """
    Weak-pattern warnings.  Several matching common patterns still produce a
    single warning; repetition is reported separately.
    """
    warnings: list[str] = []
    if any(p.search(password) for p in COMMON_PATTERNS):
        warnings.append(COMMON_PATTERN_WARNING)
    if _REPEATED.search(password):
        warnings.append(REPEATED_CHARS_WARNING)
    return warnings


class BreachChecker:
    """
    Client for the range-query breach API.

    Args:
        settings: Endpoint, User-Agent and timeout.
        client: Optional shared ``httpx.Client``.  Without one, a client is
            opened per lookup.
    """

    def __init__(
        self,
        settings: BreachCheckSettings | None = None,
        client: httpx.Client | None = None,
    ):
        self._settings = settings or BreachCheckSettings()
        self._client = client

    @property
    def settings(self) -> BreachCheckSettings:
        return self._settings

    def _range_url(self, prefix: str) -> str:
        return f"{self._settings.base_url.rstrip('/')}/range/{prefix}"

    def _fetch_range(self, prefix: str) -> httpx.Response:
        headers = {"User-Agent": self._settings.user_agent}
        if self._client is not None:
            return self._client.get(
                self._range_url(prefix),
                headers=headers,
                timeout=self._settings.timeout_seconds,
            )
        with httpx.Client(timeout=self._settings.timeout_seconds) as client:
            return client.get(self._range_url(prefix), headers=headers)

    def is_password_compromised(self, password: str) -> bool:
        """True only when the remote list contains this password's hash."""
        if not self._settings.enabled:
            return False

        digest = sha1_hex_upper(password)
        prefix, suffix = digest[:PREFIX_LENGTH], digest[PREFIX_LENGTH:]

        try:
            response = self._fetch_range(prefix)
        except httpx.HTTPError as exc:
            logger.warning(
                "breach_check_unavailable",
                extra={"error_type": type(exc).__name__},
            )
            return False

        if not response.is_success:
            logger.warning(
                "breach_check_unavailable",
                extra={"status_code": response.status_code},
            )
            return False

        for line in response.text.splitlines():
            candidate, _, count = line.strip().partition(":")
            if candidate.upper() == suffix:
                logger.warning(
                    "password_found_in_breach",
                    extra={"breach_count": count.strip() or None},
                )
                return True
        return False

    def validate_password_security(self, password: str) -> PasswordSecurityReport:
        """
        Breach lookup plus heuristics.

        ``is_secure`` is True only when no warning fired; an unavailable
        breach service contributes no warning.
        """
        warnings: list[str] = []
        breached = self.is_password_compromised(password)
        if breached:
            warnings.append(BREACHED_WARNING)
        warnings.extend(heuristic_warnings(password))
        return PasswordSecurityReport(
            is_secure=not warnings,
            warnings=tuple(warnings),
            breached=breached,
        )
