"""
core/database.py -- Shared SQLAlchemy Core schema and engine factory.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py and
protocols/models.py remain the authoritative domain representation. Swapping
SQLite for PostgreSQL is a connection string change, not a rewrite.

All three tables live on one engine because the foreign keys between them carry
behavior:
  sessions.user_id  -> users.id  ON DELETE CASCADE  (deleting a user ends their sessions)
  protocols.user_id -> users.id  no cascade         (deleting an owner is refused -> 409)

SQLite only enforces foreign keys when PRAGMA foreign_keys=ON is issued on
each connection, so _set_sqlite_pragmas runs on every new DBAPI connection.

Booleans use the Boolean type (native on PostgreSQL, 0/1 on SQLite) so the
stores read and write Python bools and never juggle integers.

Layer rule: core/ is the kernel. No imports from api/, auth/, protocols/, or suggest/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    false,
)
from sqlalchemy.engine import Engine

from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False, server_default=""),  # "" for federation-only users
    Column("is_admin", Boolean, nullable=False, server_default=false()),
    Column("is_approved", Boolean, nullable=False, server_default=false()),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("lockout_until", String(32)),  # ISO 8601, NULL when never locked
    Column("suggestion_usage", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(64), primary_key=True),  # 32 random bytes, hex
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

protocols = Table(
    "protocols",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("data", Text, nullable=False),  # opaque document, never parsed here
    Column("is_public", Boolean, nullable=False, server_default=false()),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign key enforcement on each new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_db_engine(db_url: str | None = None) -> Engine:
    """Create an engine for db_url (default: Settings.database_url) and ensure the schema exists.

    check_same_thread=False is required for SQLite because FastAPI runs sync
    handlers in a threadpool; the engine's pool hands connections across threads.
    """
    url = db_url or get_settings().database_url
    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(url, connect_args=connect_args)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return now_utc().isoformat()


def parse_iso(value: str | None) -> datetime | None:
    """Parse a stored ISO 8601 timestamp. Naive values are treated as UTC."""
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
