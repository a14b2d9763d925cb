"""
api/routes/auth.py -- Password signup/login, logout, identity, and self-service password change.

Routes:
  POST /signup           -- create account; first-ever user becomes admin and is logged in
  POST /login            -- password login under lockout rules; sets session cookie
  POST /logout           -- revoke the presented session; clears cookie
  GET  /me               -- current user (approved tier)
  POST /change-password  -- verify current password, set new one, rotate sessions (approved tier)

Security:
  POST /login is rate-limited per client address (settings.login_rate_limit).
  authenticate_user() provides timing equalization and lockout -- use it, never inline.
  Duplicate-email signup answers with a generic 400 that does not confirm the
  address exists.
  Change-password revokes every session of the user BEFORE issuing the new one,
  so a stolen cookie dies with the password.

Every handler is a plain def: bcrypt and the store block, so FastAPI runs them
in its threadpool.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    ChangePasswordRequest,
    CredentialsRequest,
    LoginResponse,
    MeResponse,
    OkResponse,
    SignupResponse,
)
from auth.dependencies import require_approved
from auth.lockout import authenticate_user
from auth.models import User
from auth.policy import validate_password
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import (
    SESSION_COOKIE,
    clear_session_cookie,
    hash_password,
    set_session_cookie,
    verify_password,
)
from core.config import get_settings
from core.errors import AuthError, ValidationError

logger = logging.getLogger("logicgrid.api")

_settings = get_settings()

# Auth policy:
# - POST /signup, /login, /logout: public
# - GET  /me, POST /change-password: require_approved
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SignupResponse)
def signup(request: Request, response: Response, body: CredentialsRequest) -> SignupResponse:
    """Create a password account.

    The first account ever created is admin + approved and logged in at once.
    Later accounts are approved unless SIGNUP_REQUIRES_APPROVAL is set, in
    which case they wait for an admin and get no session.
    """
    validate_password(body.password)
    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = request.app.state.sessions

    first_user = not user_store.has_users()
    user = User(
        email=body.email,
        password_hash=hash_password(body.password),
        is_admin=first_user,
        is_approved=first_user or not _settings.signup_requires_approval,
    )
    try:
        user.id = user_store.create_user(user)
    except IntegrityError:
        raise ValidationError("Email may already exist.") from None

    auto_login = user.is_approved
    if auto_login:
        set_session_cookie(response, sessions.issue(user.id))
    if first_user:
        logger.info("Bootstrap admin created: user_id=%s", user.id)

    return SignupResponse(
        user_id=user.id,
        auto_login=auto_login,
        is_admin=user.is_admin,
        is_approved=user.is_approved,
        pending_approval=not auto_login,
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)  # under @router so FastAPI registers the limited wrapper
def login(request: Request, response: Response, body: CredentialsRequest) -> LoginResponse:
    """Authenticate with email and password; set the session cookie.

    Unknown email and wrong password share one generic 401. Locked and
    pending-approval accounts get a specific 403, since those only show up
    after the password check (or for an account already locked).
    """
    user = authenticate_user(request.app.state.user_store, body.email, body.password)
    token = request.app.state.sessions.issue(user.id)
    set_session_cookie(response, token)
    return LoginResponse(user_id=user.id, is_approved=user.is_approved)


@router.post("/logout", response_model=OkResponse)
def logout(request: Request, response: Response) -> OkResponse:
    """Revoke the presented session (if any) and clear the cookie. Always 200."""
    request.app.state.sessions.revoke(request.cookies.get(SESSION_COOKIE))
    clear_session_cookie(response)
    return OkResponse()


# ---------------------------------------------------------------------------
# Approved-tier endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(require_approved)) -> MeResponse:
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        created_at=current_user.created_at,
        is_admin=current_user.is_admin,
        is_approved=current_user.is_approved,
    )


@router.post("/change-password", response_model=OkResponse)
def change_password(
    request: Request,
    response: Response,
    body: ChangePasswordRequest,
    current_user: User = Depends(require_approved),
) -> OkResponse:
    """Replace the caller's password and rotate their sessions.

    A wrong current password is 401 but does not count toward lockout; the
    caller already holds a valid session.
    """
    if not body.current_password.strip() or not body.new_password.strip():
        raise ValidationError("currentPassword and newPassword required.")
    validate_password(body.new_password)
    if not verify_password(body.current_password, current_user.password_hash):
        raise AuthError("Current password is incorrect.")

    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = request.app.state.sessions
    user_store.update_password(current_user.id, hash_password(body.new_password))
    revoked = sessions.revoke_all(current_user.id)
    set_session_cookie(response, sessions.issue(current_user.id))
    logger.info("Password changed: user_id=%s sessions_revoked=%d", current_user.id, revoked)
    return OkResponse()
