"""
protocols/store.py -- SQLAlchemy-backed persistence for protocols, with the
ownership and visibility rules enforced in the WHERE clauses.

Pattern: Repository + Data Mapper, same as auth/store.py. ProtocolStore is the
repository; _row_to_protocol is the mapper.

Ownership rules:
  read    -- owner, or anyone when the row is public
  write   -- owner only; every UPDATE/DELETE is scoped by (id, user_id)
  publish -- owner only, PRIVATE -> PUBLIC, no way back
  delete  -- owner only

Fork-on-write: save() with an id runs the owner-scoped UPDATE first. Zero rows
affected means the caller does not own that id (a public row they could see,
or nothing at all), so the store inserts a fresh private row owned by the
caller. The original is never touched. Two racing non-owner saves may create
two forks; that is accepted.

"Not found" covers both "no such row" and "row exists but you cannot see or
write it". Callers cannot tell the two apart.

Security: all queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/, auth/, or suggest/.
"""

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.engine import Engine

from core.database import now_iso
from core.database import protocols as _protocols
from core.errors import NotFoundError, ValidationError
from protocols.models import ListScope, Protocol, Visibility

logger = logging.getLogger("logicgrid.protocols")

_NOT_FOUND = "Protocol not found."

# List queries never load the document body.
_SUMMARY_COLUMNS = (
    _protocols.c.id,
    _protocols.c.user_id,
    _protocols.c.name,
    _protocols.c.is_public,
    _protocols.c.created_at,
    _protocols.c.updated_at,
)


class ProtocolStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def list_for_user(self, user_id: int, scope: ListScope = ListScope.VISIBLE) -> list[Protocol]:
        """Return protocol summaries (data=None) for the given scope.

        MINE    -- caller's rows, newest first.
        VISIBLE -- caller's rows plus all public rows, public first, then newest.
        id descending breaks created_at ties so ordering is stable.
        """
        query = select(*_SUMMARY_COLUMNS)
        if scope is ListScope.MINE:
            query = query.where(_protocols.c.user_id == user_id).order_by(
                _protocols.c.created_at.desc(), _protocols.c.id.desc()
            )
        else:
            query = query.where(or_(_protocols.c.user_id == user_id, _protocols.c.is_public.is_(True))).order_by(
                _protocols.c.is_public.desc(), _protocols.c.created_at.desc(), _protocols.c.id.desc()
            )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_protocol(r) for r in rows]

    def get_visible(self, protocol_id: int, user_id: int) -> Protocol:
        """Return the full protocol if the caller owns it or it is public.

        Raises NotFoundError otherwise, with the same message whether the row
        is missing or private to someone else.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _protocols.select().where(
                    (_protocols.c.id == protocol_id)
                    & or_(_protocols.c.user_id == user_id, _protocols.c.is_public.is_(True))
                )
            ).fetchone()
        if row is None:
            raise NotFoundError(_NOT_FOUND)
        return _row_to_protocol(row)

    def delete(self, protocol_id: int, user_id: int) -> None:
        """Delete an owned protocol. Raises NotFoundError when nothing was deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _protocols.delete().where((_protocols.c.id == protocol_id) & (_protocols.c.user_id == user_id))
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError(_NOT_FOUND)

    def publish(self, protocol_id: int, user_id: int) -> None:
        """Make an owned protocol public and touch updated_at.

        Publishing an already-public row is a harmless re-stamp. Raises
        NotFoundError when the caller does not own protocol_id.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _protocols.update()
                .where((_protocols.c.id == protocol_id) & (_protocols.c.user_id == user_id))
                .values(is_public=True, updated_at=now_iso())
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError(_NOT_FOUND)

    def save(self, user_id: int, name: str, data: str, protocol_id: Optional[int] = None) -> int:
        """Create or update a protocol and return the id the caller now owns.

        Same id back: updated in place. New id: created, or forked from a row
        the caller does not own. Raises ValidationError for a blank name or data.
        """
        if not name or not name.strip() or not data or not data.strip():
            raise ValidationError("Name and data are required.")

        now = now_iso()
        with self.engine.connect() as conn:
            if protocol_id:
                result = conn.execute(
                    _protocols.update()
                    .where((_protocols.c.id == protocol_id) & (_protocols.c.user_id == user_id))
                    .values(name=name, data=data, updated_at=now)
                )
                if result.rowcount > 0:
                    conn.commit()
                    return protocol_id

            result = conn.execute(
                _protocols.insert().values(
                    user_id=user_id,
                    name=name,
                    data=data,
                    is_public=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            new_id = result.inserted_primary_key[0]

        if protocol_id:
            logger.info("Forked protocol %s -> %s for user_id=%s", protocol_id, new_id, user_id)
        return new_id


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_protocol(row) -> Protocol:
    return Protocol(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        data=getattr(row, "data", None),
        visibility=Visibility.PUBLIC if row.is_public else Visibility.PRIVATE,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
