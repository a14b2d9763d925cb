"""
auth/sessions.py -- Opaque session token lifecycle.

SessionManager is the only component that mints or destroys session rows.
Password login, signup, password change and the federation callback all end in
issue(); downstream code cannot tell which path created a session.

Tokens are bearer credentials: never logged, never echoed in a response body.

Layer rule: no imports from api/, protocols/, or suggest/.
"""

from __future__ import annotations

from auth.store import UserStore
from auth.tokens import generate_token


class SessionManager:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def issue(self, user_id: int) -> str:
        """Create a new session for user_id and return its token."""
        token = generate_token()
        self.store.create_session(token, user_id)
        return token

    def resolve(self, token: str | None) -> int | None:
        """Return the user id owning token, or None.

        A missing, empty, or unknown token all resolve to None; this never raises
        for bad input.
        """
        if not token:
            return None
        return self.store.get_session_user_id(token)

    def revoke(self, token: str | None) -> None:
        """Delete one session. Revoking an unknown or already-revoked token is a no-op."""
        if token:
            self.store.delete_session(token)

    def revoke_all(self, user_id: int) -> int:
        """Delete every session belonging to user_id. Returns the number revoked."""
        return self.store.delete_sessions_for_user(user_id)
