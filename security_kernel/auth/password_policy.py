"""
Local password complexity policy.

Every rule is evaluated; the result lists ALL violations so a form can show
every hint at once.
"""

from __future__ import annotations

from dataclasses import dataclass

from security_config.schema import PasswordPolicySettings
from security_kernel.exceptions import PasswordPolicyError

PasswordPolicy = PasswordPolicySettings


@dataclass(frozen=True)
class PasswordValidationResult:
    valid: bool
    errors: tuple[str, ...]


def validate_password(
    password: str,
    policy: PasswordPolicy | None = None,
) -> PasswordValidationResult:
    """Check ``password`` against every rule of ``policy``."""
    policy = policy or PasswordPolicy()
    errors: list[str] = []

    if len(password) < policy.min_length:
        errors.append(
            f"Password must be at least {policy.min_length} characters long."
        )
    if policy.require_uppercase and not any("A" <= c <= "Z" for c in password):
        errors.append("Password must contain at least one uppercase letter.")
    if policy.require_lowercase and not any("a" <= c <= "z" for c in password):
        errors.append("Password must contain at least one lowercase letter.")
    if policy.require_numbers and not any("0" <= c <= "9" for c in password):
        errors.append("Password must contain at least one number.")
    if policy.require_special_chars and not any(
        c in policy.special_chars for c in password
    ):
        errors.append("Password must contain at least one special character.")

    return PasswordValidationResult(valid=not errors, errors=tuple(errors))


def require_valid_password(password: str, policy: PasswordPolicy | None = None) -> None:
    """
    Raise unless ``password`` satisfies ``policy``.

    Raises:
        PasswordPolicyError: carrying every violated rule.
    """
    result = validate_password(password, policy)
    if not result.valid:
        raise PasswordPolicyError(result.errors)
