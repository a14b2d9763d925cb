"""
tests/test_lockout.py -- Unit tests for auth/lockout.authenticate_user().

The clock is injected through the `now` argument, so stepping past the
15-minute window needs no sleeping.

Covers:
  - Three failures lock; the third failure itself reports the lock
  - Correct password during the window still fails with the lock message
  - After the window, the correct password succeeds and resets the counter
  - Expiry is passive: one wrong password after expiry re-locks immediately
  - Unknown email is a generic 401
  - Unapproved user with the right password gets 403 pending approval
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import STRONG_PASSWORD, make_user

from auth.lockout import LOCKOUT_WINDOW, MAX_FAILED_ATTEMPTS, authenticate_user
from core.database import now_utc
from core.errors import AccountLockedError, InvalidCredentialsError, PendingApprovalError


class TestLockoutStateMachine:
    def test_three_failures_lock_then_window_elapses(self, user_store) -> None:
        user = make_user(user_store, "alice@example.com")
        t0 = now_utc()

        for _ in range(MAX_FAILED_ATTEMPTS - 1):
            with pytest.raises(InvalidCredentialsError):
                authenticate_user(user_store, "alice@example.com", "Wrong1!xx", now=t0)
        with pytest.raises(AccountLockedError):
            authenticate_user(user_store, "alice@example.com", "Wrong1!xx", now=t0)

        stored = user_store.get_by_id(user.id)
        assert stored.failed_attempts == MAX_FAILED_ATTEMPTS
        assert stored.lockout_until == t0 + LOCKOUT_WINDOW

        # Fourth attempt, correct password, inside the window
        with pytest.raises(AccountLockedError, match="15 minutes"):
            authenticate_user(user_store, "alice@example.com", STRONG_PASSWORD, now=t0 + timedelta(minutes=5))

        # Window elapsed
        later = t0 + LOCKOUT_WINDOW + timedelta(seconds=1)
        result = authenticate_user(user_store, "alice@example.com", STRONG_PASSWORD, now=later)
        assert result.id == user.id

        stored = user_store.get_by_id(user.id)
        assert stored.failed_attempts == 0
        assert stored.lockout_until is None

    def test_wrong_password_after_expiry_relocks_immediately(self, user_store) -> None:
        make_user(user_store, "bob@example.com")
        t0 = now_utc()
        for _ in range(MAX_FAILED_ATTEMPTS):
            with pytest.raises((InvalidCredentialsError, AccountLockedError)):
                authenticate_user(user_store, "bob@example.com", "Wrong1!xx", now=t0)

        later = t0 + LOCKOUT_WINDOW + timedelta(minutes=1)
        with pytest.raises(AccountLockedError):
            authenticate_user(user_store, "bob@example.com", "Wrong1!xx", now=later)
        assert user_store.get_by_email("bob@example.com").lockout_until == later + LOCKOUT_WINDOW

    def test_success_resets_partial_counter(self, user_store) -> None:
        user = make_user(user_store, "carol@example.com")
        with pytest.raises(InvalidCredentialsError):
            authenticate_user(user_store, "carol@example.com", "Wrong1!xx")
        assert user_store.get_by_id(user.id).failed_attempts == 1

        authenticate_user(user_store, "carol@example.com", STRONG_PASSWORD)
        assert user_store.get_by_id(user.id).failed_attempts == 0


class TestAuthenticateUser:
    def test_unknown_email_is_generic(self, user_store) -> None:
        with pytest.raises(InvalidCredentialsError) as exc_info:
            authenticate_user(user_store, "nobody@example.com", STRONG_PASSWORD)
        assert exc_info.value.message == "Invalid email or password."

    def test_email_match_is_exact(self, user_store) -> None:
        make_user(user_store, "Dave@example.com")
        with pytest.raises(InvalidCredentialsError):
            authenticate_user(user_store, "dave@example.com", STRONG_PASSWORD)

    def test_unapproved_user_gets_pending(self, user_store) -> None:
        make_user(user_store, "erin@example.com", is_approved=False)
        with pytest.raises(PendingApprovalError):
            authenticate_user(user_store, "erin@example.com", STRONG_PASSWORD)

    def test_unapproved_user_wrong_password_is_generic(self, user_store) -> None:
        make_user(user_store, "frank@example.com", is_approved=False)
        with pytest.raises(InvalidCredentialsError):
            authenticate_user(user_store, "frank@example.com", "Wrong1!xx")
