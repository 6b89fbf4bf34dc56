"""Password expiry by role and last-N reuse prevention."""

from datetime import timedelta

import pytest

from security_kernel.auth.password_expiration import (
    EXPIRED,
    EXPIRING_SOON,
    PasswordExpirationPolicy,
)
from security_kernel.exceptions import PasswordReuseError


@pytest.fixture
def policy(clock):
    return PasswordExpirationPolicy(clock=clock)


class TestExpiry:
    @pytest.mark.parametrize(
        "role,days",
        [
            ("SUPER_ADMIN", 90),
            ("CONTADOR", 90),
            ("AUDITOR", 120),
            ("CLIENTE", 180),
            ("UNKNOWN", 180),
        ],
    )
    def test_days_by_role(self, policy, role, days):
        assert policy.expiration_days(role) == days

    def test_not_expired_inside_window(self, policy, clock):
        changed = clock.now() - timedelta(days=89)
        assert policy.is_password_expired(changed, "CONTADOR") is False
        assert policy.days_until_expiration(changed, "CONTADOR") == 1

    def test_expired_after_window(self, policy, clock):
        changed = clock.now() - timedelta(days=90, seconds=1)
        assert policy.is_password_expired(changed, "CONTADOR") is True
        assert policy.days_until_expiration(changed, "CONTADOR") == 0

    def test_exact_boundary_not_expired(self, policy, clock):
        changed = clock.now() - timedelta(days=90)
        assert policy.is_password_expired(changed, "CONTADOR") is False

    def test_partial_day_rounds_up(self, policy, clock):
        changed = clock.now() - timedelta(days=100, hours=12)
        assert policy.days_until_expiration(changed, "AUDITOR") == 20


class TestRequiresPasswordChange:
    def test_expired(self, policy, clock):
        changed = clock.now() - timedelta(days=200)
        requirement = policy.requires_password_change(changed, "CLIENTE")
        assert requirement.required is True
        assert requirement.reason == EXPIRED

    def test_expiring_soon(self, policy, clock):
        changed = clock.now() - timedelta(days=85)
        requirement = policy.requires_password_change(changed, "SUPER_ADMIN")
        assert requirement.required is False
        assert requirement.reason == EXPIRING_SOON
        assert requirement.days_remaining == 5

    def test_seven_days_still_warns(self, policy, clock):
        changed = clock.now() - timedelta(days=83)
        assert policy.requires_password_change(changed, "CONTADOR").days_remaining == 7

    def test_fresh_password(self, policy, clock):
        requirement = policy.requires_password_change(clock.now(), "CLIENTE")
        assert requirement.required is False
        assert requirement.reason is None


class TestHistory:
    def test_reuse_detected(self, policy):
        history = policy.add_to_password_history("Old-Passw0rd!", [])
        assert policy.is_password_reused("Old-Passw0rd!", history) is True
        assert policy.is_password_reused("New-Passw0rd!", history) is False

    def test_history_newest_first_and_truncated(self, policy, clock):
        history = []
        for i in range(7):
            history = policy.add_to_password_history(f"Passw0rd-{i}!", history)
            clock.advance(60)

        assert len(history) == 5
        assert history[0].changed_at > history[-1].changed_at
        assert policy.is_password_reused("Passw0rd-6!", history)
        assert not policy.is_password_reused("Passw0rd-0!", history)

    def test_history_stores_hashes_only(self, policy):
        history = policy.add_to_password_history("Plain-Text-1!", [])
        assert "Plain-Text-1!" not in history[0].password_hash
        assert len(history[0].password_hash) == 64

    def test_validate_password_change_raises(self, policy):
        history = policy.add_to_password_history("Old-Passw0rd!", [])
        with pytest.raises(PasswordReuseError) as exc_info:
            policy.validate_password_change("Old-Passw0rd!", history)
        assert exc_info.value.history_count == 5
        assert exc_info.value.errors == (
            "You cannot reuse any of your last 5 passwords.",
        )

    def test_validate_password_change_accepts_new(self, policy):
        history = policy.add_to_password_history("Old-Passw0rd!", [])
        policy.validate_password_change("Brand-New-Passw0rd!", history)

    def test_input_history_not_mutated(self, policy):
        history = policy.add_to_password_history("a", [])
        before = list(history)
        policy.add_to_password_history("b", history)
        assert history == before
