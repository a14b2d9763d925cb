"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in protocols/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, protocols/, or suggest/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """An identity in LogicGrid, reachable by password login or federated login.

    email is the join key between both login paths: the federation callback
    looks users up by email and reuses whatever row it finds, so there is never
    more than one User per address.

    password_hash is "" for accounts created by federation. Such accounts can
    still be given a password later through an admin reset.

    failed_attempts / lockout_until belong to the lockout state machine in
    auth/lockout.py. lockout_until is None when the account has never been
    locked or the last successful login cleared it.

    suggestion_usage counts successful calls to the action-suggestion service.
    """

    email: str
    id: int | None = None
    password_hash: str = ""
    is_admin: bool = False
    is_approved: bool = False
    failed_attempts: int = 0
    lockout_until: datetime | None = None
    suggestion_usage: int = 0
    created_at: str | None = None


@dataclass
class Session:
    """An opaque login session. The token is the only credential a browser presents.

    token is 32 random bytes hex-encoded (256 bits). Tokens are never derived
    from user data, so knowing a user id or email gives no advantage in guessing one.
    """

    token: str
    user_id: int
    created_at: str | None = None
