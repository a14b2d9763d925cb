"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper (same as protocols/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email is stored exactly as supplied. Lookups are exact matches; only the
  admin listing orders case-insensitively.

  Counter updates (failed_attempts, suggestion_usage) write an absolute value
  computed by the caller, not an in-SQL increment. Two concurrent failures can
  both read the same count and write the same result; that under-count is
  accepted.

The engine is shared with ProtocolStore and owned by the app lifespan, which
disposes it on shutdown. Schema lives in core/database.py.

Layer rule: no imports from api/, protocols/, or suggest/.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from auth.models import Session, User
from core.database import now_iso, parse_iso, sessions, users


class UserStore:
    """Repository for User and Session entities.

    Usage:
        store = UserStore(create_db_engine())
        user_id = store.create_user(User(email="a@example.com", password_hash=hash_password("Abcdef1!")))
        user = store.get_by_email("a@example.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users)).scalar()
        return result or 0

    def has_users(self) -> bool:
        """Return True if at least one user record exists.

        Signup uses this to detect the first-ever account, which becomes admin.
        """
        return self.count_users() > 0

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers catch it and answer with a generic message so the response
        does not confirm the address is registered.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    email=user.email,
                    password_hash=user.password_hash,
                    is_admin=user.is_admin,
                    is_approved=user.is_approved,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email, case-insensitively. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(func.lower(users.c.email), users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def _update(self, user_id: int, **fields) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_admin(self, user_id: int, is_admin: bool) -> bool:
        """Set or clear the admin flag. Returns False if user_id was not found."""
        return self._update(user_id, is_admin=is_admin)

    def set_approved(self, user_id: int, is_approved: bool) -> bool:
        """Set or clear the approval flag. Returns False if user_id was not found."""
        return self._update(user_id, is_approved=is_approved)

    def update_password(self, user_id: int, password_hash: str, clear_lockout: bool = False) -> bool:
        """Replace the stored digest.

        clear_lockout=True also zeroes failed_attempts and lockout_until; the
        admin reset path uses it so a locked user can log in with the new password.
        """
        fields: dict = {"password_hash": password_hash}
        if clear_lockout:
            fields.update(failed_attempts=0, lockout_until=None)
        return self._update(user_id, **fields)

    def record_failed_attempt(self, user_id: int, count: int, lockout_until: datetime | None = None) -> None:
        """Write the failure counter and, when given, the lockout expiry.

        lockout_until=None leaves any existing expiry untouched.
        """
        fields: dict = {"failed_attempts": count}
        if lockout_until is not None:
            fields["lockout_until"] = lockout_until.isoformat()
        self._update(user_id, **fields)

    def clear_lockout(self, user_id: int) -> bool:
        """Zero failed_attempts and clear lockout_until. Returns False if user_id was not found."""
        return self._update(user_id, failed_attempts=0, lockout_until=None)

    def set_suggestion_usage(self, user_id: int, count: int) -> None:
        self._update(user_id, suggestion_usage=count)

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Sessions go with the user via ON DELETE CASCADE. Protocol rows have no
        cascade, so deleting a user who still owns protocols raises
        sqlalchemy.exc.IntegrityError; the admin route maps that to 409.
        """
        with self.engine.connect() as conn:
            result = conn.execute(users.delete().where(users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    def create_session(self, token: str, user_id: int) -> Session:
        created_at = now_iso()
        with self.engine.connect() as conn:
            conn.execute(sessions.insert().values(id=token, user_id=user_id, created_at=created_at))
            conn.commit()
        return Session(token=token, user_id=user_id, created_at=created_at)

    def get_session_user_id(self, token: str) -> int | None:
        """Return the owning user id for a token, or None if no such session exists."""
        with self.engine.connect() as conn:
            return conn.execute(select(sessions.c.user_id).where(sessions.c.id == token)).scalar()

    def delete_session(self, token: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.id == token))
            conn.commit()
        return result.rowcount > 0

    def delete_sessions_for_user(self, user_id: int) -> int:
        """Delete every session owned by user_id. Returns how many were removed."""
        with self.engine.connect() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.user_id == user_id))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash or "",
        is_admin=bool(row.is_admin),
        is_approved=bool(row.is_approved),
        failed_attempts=row.failed_attempts or 0,
        lockout_until=parse_iso(row.lockout_until),
        suggestion_usage=row.suggestion_usage or 0,
        created_at=row.created_at,
    )
