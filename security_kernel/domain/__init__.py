"""
Pure domain layer.

Value objects and interfaces with NO dependencies on the ORM, the database
or wall-clock time.
"""

from security_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from security_kernel.domain.identity import (
    AuthSession,
    IdentityAdmin,
    IdentityProvider,
    IdentityUser,
    SignInResult,
    SignOutScope,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AuthSession",
    "IdentityAdmin",
    "IdentityProvider",
    "IdentityUser",
    "SignInResult",
    "SignOutScope",
]
