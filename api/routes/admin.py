"""
api/routes/admin.py -- User management for admins.

Routes (all require_admin):
  GET  /admin/users           -- every user, ordered by email case-insensitively
  POST /admin/promote         -- grant admin
  POST /admin/demote          -- revoke admin (not yourself)
  POST /admin/approve         -- approve account
  POST /admin/unapprove       -- unapprove account (not yourself)
  POST /admin/delete-user     -- hard delete (not yourself; 409 while they own protocols)
  POST /admin/reset-password  -- set a new password by email, clear lockout, end all their sessions
  POST /admin/unlock          -- clear failed attempts and lockout

Self-targeting guard: demote, unapprove, and delete against the caller's own id
are 403. Without it an admin could lock the last admin out of the system.

Unapproving a user does not touch their sessions here; their next request hits
require_approved, which revokes the session that presented itself.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import AdminUserRequest, ResetPasswordRequest, UserIdResponse, UserSummary
from auth.dependencies import require_admin
from auth.lockout import is_locked
from auth.models import User
from auth.policy import validate_password
from auth.store import UserStore
from auth.tokens import hash_password
from core.database import now_utc
from core.errors import ConflictError, ForbiddenError, NotFoundError

logger = logging.getLogger("logicgrid.api")

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])

_USER_NOT_FOUND = "User not found."


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _forbid_self(current_user: User, target_id: int, action: str) -> None:
    if current_user.id == target_id:
        raise ForbiddenError(f"You cannot {action} your own account.")


@router.get("/users", response_model=list[UserSummary])
def list_users(request: Request) -> list[UserSummary]:
    now = now_utc()
    return [
        UserSummary(
            id=u.id,
            email=u.email,
            is_admin=u.is_admin,
            is_approved=u.is_approved,
            locked=is_locked(u, now),
        )
        for u in _store(request).list_users()
    ]


@router.post("/promote", response_model=UserIdResponse)
def promote(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    if not _store(request).set_admin(body.user_id, True):
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s promoted user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)


@router.post("/demote", response_model=UserIdResponse)
def demote(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    _forbid_self(current_user, body.user_id, "demote")
    if not _store(request).set_admin(body.user_id, False):
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s demoted user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)


@router.post("/approve", response_model=UserIdResponse)
def approve(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    if not _store(request).set_approved(body.user_id, True):
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s approved user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)


@router.post("/unapprove", response_model=UserIdResponse)
def unapprove(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    _forbid_self(current_user, body.user_id, "unapprove")
    if not _store(request).set_approved(body.user_id, False):
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s unapproved user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)


@router.post("/delete-user", response_model=UserIdResponse)
def delete_user(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    """Hard-delete a user. Their sessions go with them (ON DELETE CASCADE)."""
    _forbid_self(current_user, body.user_id, "delete")
    try:
        deleted = _store(request).delete_user(body.user_id)
    except IntegrityError:
        raise ConflictError("Cannot delete a user who still owns protocols.") from None
    if not deleted:
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s deleted user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)


@router.post("/reset-password", response_model=UserIdResponse)
def reset_password(
    request: Request, body: ResetPasswordRequest, current_user: User = Depends(require_admin)
) -> UserIdResponse:
    """Set a new password for the user with this exact email.

    Also clears the lockout so the user can log in at once, and revokes every
    session they hold.
    """
    validate_password(body.new_password)
    user_store = _store(request)
    target = user_store.get_by_email(body.email)
    if target is None:
        raise NotFoundError(_USER_NOT_FOUND)
    user_store.update_password(target.id, hash_password(body.new_password), clear_lockout=True)
    revoked = request.app.state.sessions.revoke_all(target.id)
    logger.info(
        "Admin %s reset password for user_id=%s sessions_revoked=%d", current_user.id, target.id, revoked
    )
    return UserIdResponse(user_id=target.id)


@router.post("/unlock", response_model=UserIdResponse)
def unlock(request: Request, body: AdminUserRequest, current_user: User = Depends(require_admin)) -> UserIdResponse:
    if not _store(request).clear_lockout(body.user_id):
        raise NotFoundError(_USER_NOT_FOUND)
    logger.info("Admin %s unlocked user_id=%s", current_user.id, body.user_id)
    return UserIdResponse(user_id=body.user_id)
