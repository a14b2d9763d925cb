"""
protocols/models.py -- Domain types for shared protocol records.

Pure data containers and enums with zero logic. The visibility state machine
and fork-on-write rules live in protocols/store.py.

data is an opaque document owned by the client. Nothing on the server parses it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Visibility(str, Enum):
    """Protocol visibility. Only ever moves PRIVATE -> PUBLIC."""

    PRIVATE = "private"
    PUBLIC = "public"


class ListScope(str, Enum):
    MINE = "mine"  # caller's rows only
    VISIBLE = "visible"  # caller's rows plus every public row

    @classmethod
    def from_query(cls, value: Optional[str]) -> "ListScope":
        """Map the ?scope= query value. "account" and "mine" select MINE; anything else is VISIBLE."""
        if value in ("account", "mine"):
            return cls.MINE
        return cls.VISIBLE


@dataclass
class Protocol:
    """A named document owned by one user.

    Owners read and write. Once public, everyone approved can read it but only
    the owner can write it; a non-owner's save produces a fork instead.

    data is None on list results, which never load the document body.
    """

    user_id: int
    name: str
    data: Optional[str] = None
    visibility: Visibility = Visibility.PRIVATE
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC
