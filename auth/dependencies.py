"""
auth/dependencies.py -- FastAPI Depends() helpers for the three authorization tiers.

Tiers are layered, each depending on the one before it:
  1. require_authenticated -- session cookie resolves to an existing user.
  2. require_approved      -- ... and that user is approved.
  3. require_admin         -- ... and that user is an admin.

The only credential is the opaque "session_id" cookie. There is no Bearer
header or API key path.

require_approved is the one tier with a side effect: an unapproved user loses
the session that presented itself, and the 403 response clears the cookie. A
retry with the same cookie therefore fails at tier 1 with 401. require_admin
does not revoke; a non-admin keeps their session.

Layer rule: no imports from api/, protocols/, or suggest/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from auth.models import User
from auth.tokens import SESSION_COOKIE, cleared_session_cookie_headers

logger = logging.getLogger("logicgrid.auth")


def try_get_current_user(request: Request) -> User | None:
    """Resolve the session cookie to a User. Returns None on any failure, never raises."""
    token = request.cookies.get(SESSION_COOKIE)
    user_id = request.app.state.sessions.resolve(token)
    if user_id is None:
        return None
    return request.app.state.user_store.get_by_id(user_id)


def require_authenticated(request: Request) -> User:
    """Require a live session. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(require_authenticated)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_approved(request: Request, user: User = Depends(require_authenticated)) -> User:
    """Require an approved account. Revokes the session and raises HTTP 403 otherwise."""
    if not user.is_approved:
        request.app.state.sessions.revoke(request.cookies.get(SESSION_COOKIE))
        logger.info("Session revoked for unapproved user: user_id=%s", user.id)
        raise HTTPException(
            status_code=403,
            detail={"code": "pending_approval", "message": "Account pending approval."},
            headers=cleared_session_cookie_headers(),
        )
    return user


def require_admin(user: User = Depends(require_approved)) -> User:
    """Require admin. Raises HTTP 401/403 from the lower tiers, HTTP 403 if not admin."""
    if not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
