"""
auth/tokens.py -- Password hashing, opaque token generation, and cookie helpers.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). bcrypt is the right
       choice for low-entropy secrets because its cost factor makes brute-force
       expensive. BCRYPT_ROUNDS is pinned so the work factor only changes with a
       deliberate code change; existing hashes keep verifying because bcrypt
       encodes the cost in each digest. _DUMMY_HASH enables timing equalization
       in auth/lockout.authenticate_user() so response time does not reveal
       whether an email exists.

  Session tokens and OAuth state: secrets.token_hex(32) gives 256 bits of
       entropy. They are opaque and stored verbatim; there is nothing to sign
       because the database row is the source of truth.

  Cookies: httpOnly + SameSite=Lax everywhere; Secure only when APP_ENV=prod.

Hashing is CPU-bound and intentionally slow. Every caller is a sync route
handler, which FastAPI runs in its threadpool, so a hash never blocks the
event loop.

Layer rule: no imports from api/, protocols/, or suggest/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import secrets

import bcrypt
from starlette.responses import Response

from core.config import get_settings

logger = logging.getLogger("logicgrid.auth")

_settings = get_settings()

SESSION_COOKIE = "session_id"
STATE_COOKIE = "oauth_state"

BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes. Newer releases raise instead of
# truncating, so both hash and verify cut the input the same way.
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt digest of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt digest.

    An empty or malformed digest (federation-only accounts store "") never
    matches; bcrypt raises ValueError for those and we treat it as a mismatch.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("logicgrid_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Run one bcrypt verification against a throwaway digest.

    Called when no real digest exists (unknown email) so the response takes as
    long as a real password check.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Opaque tokens
# ---------------------------------------------------------------------------


def generate_token() -> str:
    """Return 32 random bytes as 64 hex characters (256 bits of entropy)."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": sent on top-level navigations but not on cross-site POSTs.
    secure: only sent over HTTPS when APP_ENV=prod.

    No max_age: the session lives until logout or revocation, not a clock.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        SESSION_COOKIE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def cleared_session_cookie_headers() -> dict[str, str]:
    """Return a Set-Cookie header dict that deletes the session cookie.

    Used where no Response object exists yet, e.g. an HTTPException raised from
    a dependency that must also log the browser out.
    """
    scratch = Response()
    clear_session_cookie(scratch)
    return {"set-cookie": scratch.headers["set-cookie"]}


def set_state_cookie(response: Response, state: str) -> None:
    """Store the OAuth anti-forgery state in a short-lived cookie."""
    response.set_cookie(
        STATE_COOKIE,
        value=state,
        path="/",
        max_age=_settings.oauth_state_max_age,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def clear_state_cookie(response: Response) -> None:
    response.delete_cookie(
        STATE_COOKIE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
