"""
auth/lockout.py -- Failed-attempt counter, timed lockout, and the password login driver.

State machine per account:
  Active  -- lockout_until is None or not in the future.
  Locked  -- lockout_until > now. Every attempt is refused, right password or not.

Transitions:
  Active --wrong password--> failed_attempts + 1; at MAX_FAILED_ATTEMPTS the
      account becomes Locked for LOCKOUT_WINDOW.
  Active --right password--> counters reset (only written when non-zero).
  Locked --window elapses--> Active. Expiry is passive: nothing clears the
      counter, so one more wrong password after expiry re-locks at once.

Unknown emails still pay for one bcrypt verification (burn_dummy_check) so
response timing does not reveal which addresses are registered.

Layer rule: no imports from api/, protocols/, or suggest/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from auth.models import User
from auth.store import UserStore
from auth.tokens import burn_dummy_check, verify_password
from core.database import now_utc
from core.errors import AccountLockedError, InvalidCredentialsError, PendingApprovalError

logger = logging.getLogger("logicgrid.auth")

MAX_FAILED_ATTEMPTS = 3
LOCKOUT_WINDOW = timedelta(minutes=15)


def is_locked(user: User, now: datetime) -> bool:
    return user.lockout_until is not None and user.lockout_until > now


def register_failure(store: UserStore, user: User, now: datetime) -> bool:
    """Record one failed verification. Returns True if this failure locked the account."""
    count = user.failed_attempts + 1
    if count >= MAX_FAILED_ATTEMPTS:
        store.record_failed_attempt(user.id, count, lockout_until=now + LOCKOUT_WINDOW)
        logger.warning("Account locked after %d failed attempts: user_id=%s", count, user.id)
        return True
    store.record_failed_attempt(user.id, count)
    return False


def register_success(store: UserStore, user: User) -> None:
    if user.failed_attempts > 0 or user.lockout_until is not None:
        store.clear_lockout(user.id)


def authenticate_user(store: UserStore, email: str, password: str, now: datetime | None = None) -> User:
    """Verify email + password under the lockout rules and return the user.

    Raises:
      InvalidCredentialsError -- unknown email or wrong password (401, generic).
      AccountLockedError      -- account is locked, or this failure locked it (403).
      PendingApprovalError    -- credentials are right but the account is not approved (403).

    now is injectable so tests can step past the lockout window without sleeping.
    """
    now = now or now_utc()
    user = store.get_by_email(email)
    if user is None:
        burn_dummy_check(password)
        raise InvalidCredentialsError()

    if is_locked(user, now):
        raise AccountLockedError()

    if not verify_password(password, user.password_hash):
        if register_failure(store, user, now):
            raise AccountLockedError()
        raise InvalidCredentialsError()

    register_success(store, user)
    user.failed_attempts = 0
    user.lockout_until = None

    if not user.is_approved:
        raise PendingApprovalError()
    return user
