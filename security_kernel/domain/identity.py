"""
Identity provider boundary.

Contract:
    The identity provider is an opaque remote authentication service. The
    kernel only needs: read the current session, password sign-in, password
    update, and sign-out (local or global scope). Operator tooling also uses
    an admin surface that lists accounts and signs one account out everywhere. Every method is a coroutine because
    each one is a network round-trip.

Architecture: security_kernel/domain. No I/O here; concrete providers live
with the application that wires the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class SignOutScope(str, Enum):
    """Which sessions a sign-out invalidates."""

    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class AuthSession:
    """An authenticated session as reported by the identity provider."""

    user_id: str
    access_token: str
    email: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class SignInResult:
    """Outcome of a password sign-in. ``session`` is None on failure."""

    session: AuthSession | None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.session is not None and self.error is None


@runtime_checkable
class IdentityProvider(Protocol):
    """Remote authentication service used by the session and login layers."""

    async def get_session(self) -> AuthSession | None:
        """Return the current session, or None when signed out."""
        ...

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        """Attempt a password sign-in."""
        ...

    async def sign_out(self, scope: SignOutScope = SignOutScope.LOCAL) -> None:
        """Invalidate the current session (or all sessions for GLOBAL)."""
        ...

    async def update_password(self, new_password: str) -> None:
        """Replace the signed-in account's password."""
        ...


@dataclass(frozen=True)
class IdentityUser:
    """An account as listed by the identity provider's admin surface."""

    user_id: str
    email: str | None = None


@runtime_checkable
class IdentityAdmin(Protocol):
    """Privileged account operations (service-role credentials)."""

    async def list_users(self) -> list[IdentityUser]:
        ...

    async def sign_out_user(self, user_id: str) -> None:
        """End every session of ``user_id``."""
        ...
