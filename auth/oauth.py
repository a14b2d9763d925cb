"""
auth/oauth.py -- OIDC authorization-code federation merged into the local user table.

FederationConfig is built once from Settings in the app lifespan and handed to
IdentityFederation. Nothing in this module reads environment variables at
request time. When the provider is not configured, the lifespan stores None and
the federation routes answer 500 (start/callback) or redirect home (logout).

Flow:
  1. /login/ext      -- new_state() -> oauth_state cookie -> 302 to authorization_url(state)
  2. /oauth/callback -- verify_state() FIRST; only then complete(code):
                        exchange_code -> email_from_id_token -> resolve_user
  3. /logout/ext     -- local session revoked by the route, then 302 to logout_url()

Security notes:
  State is compared as UTF-8 bytes with secrets.compare_digest, which only
  accepts ASCII str arguments. Both sides must be non-empty. A mismatch
  never reaches the token endpoint.

  The id_token payload is decoded without signature verification. It arrives
  directly from the token endpoint over TLS in exchange for a one-time code,
  which is the trust anchor here.

  Account merge: resolve_user() adopts any existing row with the same email,
  including password accounts, without a linking step. Flags (admin, approved)
  are kept as they are. This is logged at INFO each time it happens so the
  behavior is visible in audits; see DESIGN.md.

Layer rule: no imports from api/, protocols/, or suggest/. Import from core/
is allowed -- core/ is the kernel layer.
"""

from __future__ import annotations

import base64
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import quote

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from auth.models import User
from auth.store import UserStore
from core.config import Settings
from core.errors import FederationError

logger = logging.getLogger("logicgrid.auth.oauth")

DEFAULT_SCOPES = ("openid", "email", "profile")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FederationConfig:
    domain: str
    client_id: str
    client_secret: str
    redirect_uri: str
    post_logout_redirect_uri: str = "http://localhost:8080/"
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    @property
    def authorize_url(self) -> str:
        return f"https://{self.domain}/authorize"

    @property
    def token_url(self) -> str:
        return f"https://{self.domain}/oauth/token"

    @property
    def logout_url(self) -> str:
        return (
            f"https://{self.domain}/oauth2/default/v1/logout"
            f"?post_logout_redirect_uri={quote(self.post_logout_redirect_uri, safe='')}"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> FederationConfig | None:
        """Return a config, or None when the provider is not fully configured."""
        if not settings.federation_enabled:
            return None
        return cls(
            domain=settings.oidc_domain,
            client_id=settings.oidc_client_id,
            client_secret=settings.oidc_client_secret,
            redirect_uri=settings.oidc_redirect_uri,
            post_logout_redirect_uri=settings.oidc_post_logout_redirect_uri,
        )


# ---------------------------------------------------------------------------
# id_token decoding
# ---------------------------------------------------------------------------


def email_from_id_token(raw_id_token: str) -> str:
    """Return the email claim from a JWT-shaped id_token.

    Only the payload segment is read: base64url-decoded after restoring the
    stripped padding, then parsed as JSON. Raises FederationError unless the
    payload holds a non-empty string "email".
    """
    parts = raw_id_token.split(".")
    if len(parts) < 2:
        raise FederationError("Malformed id_token.")
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except ValueError as exc:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueErrors
        raise FederationError("Malformed id_token.") from exc
    email = claims.get("email") if isinstance(claims, dict) else None
    if not isinstance(email, str) or not email:
        raise FederationError("id_token has no email claim.")
    return email


# ---------------------------------------------------------------------------
# Federation service
# ---------------------------------------------------------------------------


class IdentityFederation:
    """OIDC code flow against a single provider.

    session_factory builds the authlib OAuth2Session; tests pass a fake that
    records whether a token exchange was attempted.
    """

    def __init__(
        self,
        config: FederationConfig,
        user_store: UserStore,
        session_factory: Callable[..., OAuth2Session] = OAuth2Session,
    ) -> None:
        self.config = config
        self.user_store = user_store
        self._session_factory = session_factory

    def _client(self) -> OAuth2Session:
        return self._session_factory(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scope=" ".join(self.config.scopes),
            redirect_uri=self.config.redirect_uri,
        )

    @staticmethod
    def new_state() -> str:
        return secrets.token_hex(32)

    def authorization_url(self, state: str) -> str:
        url, _ = self._client().create_authorization_url(self.config.authorize_url, state=state)
        return url

    @staticmethod
    def verify_state(returned: str | None, stored: str | None) -> bool:
        """True only when both values are present and identical."""
        if not returned or not stored:
            return False
        return secrets.compare_digest(returned.encode("utf-8"), stored.encode("utf-8"))

    def exchange_code(self, code: str) -> str:
        """Trade the authorization code for tokens and return the raw id_token."""
        if not code:
            raise FederationError("Missing authorization code.")
        try:
            token = self._client().fetch_token(self.config.token_url, code=code)
        except (AuthlibBaseError, requests.RequestException, ValueError) as exc:
            logger.warning("Token exchange failed: %s", type(exc).__name__)
            raise FederationError("Token exchange failed.") from exc
        raw_id_token = token.get("id_token") if token else None
        if not isinstance(raw_id_token, str) or not raw_id_token:
            raise FederationError("Token response has no id_token.")
        return raw_id_token

    def resolve_user(self, email: str) -> User:
        """Find the user with this exact email, or create an approved non-admin one."""
        user = self.user_store.get_by_email(email)
        if user is not None:
            logger.info("Federated login adopted existing account: user_id=%s", user.id)
            return user
        user = User(email=email, password_hash="", is_admin=False, is_approved=True)
        user.id = self.user_store.create_user(user)
        logger.info("Federated account created: user_id=%s", user.id)
        return user

    def complete(self, code: str) -> User:
        """Finish a callback whose state has already been verified."""
        email = email_from_id_token(self.exchange_code(code))
        return self.resolve_user(email)

    def logout_url(self) -> str:
        return self.config.logout_url
