"""
API request and response models for LogicGrid REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
protocols/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire names: the browser client sends and expects a mix of camelCase
(userId, newPassword, makePublic) and snake_case (is_admin, created_at). Each
field keeps its Python name and declares the wire name as an alias. FastAPI
serializes responses by alias.

Request models forbid unknown fields so a typo ("makepublic") fails loudly
with 400 instead of silently doing a plain save.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CredentialsRequest(_Request):
    """Body for POST /signup and POST /login."""

    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1)


class ChangePasswordRequest(_Request):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=1)


class AdminUserRequest(_Request):
    """Body for the admin endpoints that target one user by id."""

    user_id: int = Field(alias="userId", gt=0)


class ResetPasswordRequest(_Request):
    email: str = Field(min_length=1, max_length=320)
    new_password: str = Field(alias="newPassword", min_length=1)


class ProtocolWriteRequest(_Request):
    """Body for POST /api/protocols.

    One endpoint, three operations, chosen by flags:
      delete=true      -> delete protocol `id`
      makePublic=true  -> publish protocol `id` (name/data ignored)
      neither          -> save name/data, updating `id` when given
    Both flags together are rejected.
    """

    id: int = Field(default=0, ge=0)
    name: str = ""
    data: str = ""
    delete: bool = False
    make_public: bool = Field(default=False, alias="makePublic")


class SuggestRequest(_Request):
    prompt: str = Field(max_length=4000)
    protocol: Any = None  # client's current document, forwarded untouched


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class _Response(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class OkResponse(_Response):
    ok: bool = True


class UserIdResponse(_Response):
    ok: bool = True
    user_id: int = Field(alias="userId")


class SignupResponse(_Response):
    ok: bool = True
    user_id: int = Field(alias="userId")
    auto_login: bool = Field(alias="autoLogin")
    is_admin: bool
    is_approved: bool
    pending_approval: bool = Field(alias="pendingApproval")


class LoginResponse(_Response):
    ok: bool = True
    user_id: int = Field(alias="userId")
    is_approved: bool


class MeResponse(_Response):
    id: int
    email: str
    created_at: Optional[str] = None
    is_admin: bool
    is_approved: bool


class UserSummary(_Response):
    """One row of GET /admin/users."""

    id: int
    email: str
    is_admin: bool
    is_approved: bool
    locked: bool


class ProtocolSummary(_Response):
    """One protocol in a list. Owner ids are not exposed; is_owner tells the client what it may edit."""

    id: int
    name: str
    is_public: bool
    is_owner: bool
    created_at: str
    updated_at: str


class ProtocolDetail(ProtocolSummary):
    data: str


class SaveProtocolResponse(_Response):
    ok: bool = True
    id: int


class PublishResponse(_Response):
    ok: bool = True
    id: int
    is_public: bool = Field(default=True, alias="isPublic")


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
