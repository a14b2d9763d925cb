"""
api/routes/federation.py -- External identity provider login/logout redirects.

Routes (public):
  GET /login/ext       -- set oauth_state cookie, 302 to the provider
  GET /oauth/callback  -- verify state, exchange code, find-or-create user, issue session, 302 to /
  GET /logout/ext      -- revoke local session, 302 to the provider's logout (or / when unconfigured)

Security:
  State is verified before anything else in the callback. A mismatch is 401
  and the provider's token endpoint is never contacted.
  The state cookie is cleared on a successful callback.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from auth.oauth import IdentityFederation
from auth.tokens import (
    SESSION_COOKIE,
    STATE_COOKIE,
    clear_session_cookie,
    clear_state_cookie,
    set_session_cookie,
    set_state_cookie,
)
from core.errors import AuthError, InternalError

logger = logging.getLogger("logicgrid.api")

router = APIRouter(tags=["Federation"])


def _federation(request: Request) -> IdentityFederation:
    federation = request.app.state.federation
    if federation is None:
        raise InternalError("External login is not configured.")
    return federation


@router.get("/login/ext")
def login_ext(request: Request) -> RedirectResponse:
    federation = _federation(request)
    state = federation.new_state()
    resp = RedirectResponse(federation.authorization_url(state), status_code=302)
    set_state_cookie(resp, state)
    return resp


@router.get("/oauth/callback")
def oauth_callback(request: Request, state: str = "", code: str = "") -> RedirectResponse:
    """Finish the code flow and log the user in exactly like a password login."""
    federation = _federation(request)
    if not federation.verify_state(state, request.cookies.get(STATE_COOKIE)):
        logger.warning("Federation callback rejected: state mismatch")
        raise AuthError("Invalid state.")

    user = federation.complete(code)
    token = request.app.state.sessions.issue(user.id)

    resp = RedirectResponse("/", status_code=302)
    set_session_cookie(resp, token)
    clear_state_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/logout/ext")
def logout_ext(request: Request) -> RedirectResponse:
    request.app.state.sessions.revoke(request.cookies.get(SESSION_COOKIE))
    federation = request.app.state.federation
    target = federation.logout_url() if federation is not None else "/"
    resp = RedirectResponse(target, status_code=302)
    clear_session_cookie(resp)
    return resp
