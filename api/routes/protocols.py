"""
api/routes/protocols.py -- Protocol list/fetch/write endpoints.

Routes (all require_approved):
  GET    /api/protocols                 -- my rows + public rows (public first)
  GET    /api/protocols?scope=account   -- my rows only
  GET    /api/protocols?id=N            -- fetch one (owner or public)
  GET    /api/protocols/{id}            -- same, by path
  POST   /api/protocols                 -- write, dispatched by body flags:
                                             delete      -> _delete_protocol   (204)
                                             makePublic  -> _publish_protocol
                                             otherwise   -> _save_protocol (update or fork)
  DELETE /api/protocols/{id}            -- delete by path (204)

The ownership rules live in protocols/store.py; this module only translates
HTTP to store calls. A 404 here never says whether the row exists.
"""

from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from api.models import (
    ProtocolDetail,
    ProtocolSummary,
    ProtocolWriteRequest,
    PublishResponse,
    SaveProtocolResponse,
)
from auth.dependencies import require_approved
from auth.models import User
from core.errors import ValidationError
from protocols.models import ListScope, Protocol
from protocols.store import ProtocolStore

router = APIRouter(prefix="/api/protocols", tags=["Protocols"])


def _store(request: Request) -> ProtocolStore:
    return request.app.state.protocol_store


def _summary(p: Protocol, user_id: int) -> ProtocolSummary:
    return ProtocolSummary(
        id=p.id,
        name=p.name,
        is_public=p.is_public,
        is_owner=p.user_id == user_id,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


def _detail(p: Protocol, user_id: int) -> ProtocolDetail:
    return ProtocolDetail(
        id=p.id,
        name=p.name,
        data=p.data or "",
        is_public=p.is_public,
        is_owner=p.user_id == user_id,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


# ---------------------------------------------------------------------------
# GET
# ---------------------------------------------------------------------------


@router.get("", response_model=Union[ProtocolDetail, list[ProtocolSummary]])
def list_or_fetch(
    request: Request,
    scope: Optional[str] = Query(default=None, max_length=32),
    protocol_id: Optional[int] = Query(default=None, alias="id", gt=0),
    current_user: User = Depends(require_approved),
) -> Union[ProtocolDetail, list[ProtocolSummary]]:
    store = _store(request)
    if protocol_id is not None:
        return _detail(store.get_visible(protocol_id, current_user.id), current_user.id)
    rows = store.list_for_user(current_user.id, ListScope.from_query(scope))
    return [_summary(p, current_user.id) for p in rows]


@router.get("/{protocol_id}", response_model=ProtocolDetail)
def fetch(
    request: Request,
    protocol_id: int = Path(gt=0),
    current_user: User = Depends(require_approved),
) -> ProtocolDetail:
    return _detail(_store(request).get_visible(protocol_id, current_user.id), current_user.id)


# ---------------------------------------------------------------------------
# POST -- one handler per state transition
# ---------------------------------------------------------------------------


def _delete_protocol(store: ProtocolStore, body: ProtocolWriteRequest, user_id: int) -> Response:
    if body.id <= 0:
        raise ValidationError("id required for delete.")
    store.delete(body.id, user_id)
    return Response(status_code=204)


def _publish_protocol(store: ProtocolStore, body: ProtocolWriteRequest, user_id: int) -> PublishResponse:
    if body.id <= 0:
        raise ValidationError("id required to make public.")
    store.publish(body.id, user_id)
    return PublishResponse(id=body.id)


def _save_protocol(store: ProtocolStore, body: ProtocolWriteRequest, user_id: int) -> SaveProtocolResponse:
    new_id = store.save(user_id, body.name, body.data, protocol_id=body.id or None)
    return SaveProtocolResponse(id=new_id)


@router.post("", response_model=None)
def write(
    request: Request,
    body: ProtocolWriteRequest,
    current_user: User = Depends(require_approved),
) -> Union[Response, PublishResponse, SaveProtocolResponse]:
    if body.delete and body.make_public:
        raise ValidationError("Cannot combine delete and makePublic.")
    store = _store(request)
    if body.delete:
        return _delete_protocol(store, body, current_user.id)
    if body.make_public:
        return _publish_protocol(store, body, current_user.id)
    return _save_protocol(store, body, current_user.id)


# ---------------------------------------------------------------------------
# DELETE
# ---------------------------------------------------------------------------


@router.delete("/{protocol_id}", status_code=204, response_class=Response)
def delete(
    request: Request,
    protocol_id: int = Path(gt=0),
    current_user: User = Depends(require_approved),
) -> Response:
    _store(request).delete(protocol_id, current_user.id)
    return Response(status_code=204)
