"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for LogicGrid happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. oidc_domain -> OIDC_DOMAIN). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to flag a half-configured identity
      provider at startup instead of at the first federated login.

Federation settings are read here but never consumed directly by auth/oauth.py.
The lifespan converts them into an immutable FederationConfig value once and
injects it, so no auth code reaches back into the environment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
protocols/, or suggest/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("logicgrid.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'logicgrid.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "prod" turns on the Secure flag for every cookie we set.
    app_env: str = "dev"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:8080", "http://127.0.0.1"]
    max_body_bytes: int = 1 << 20  # 1 MiB

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    # False: every signup after the first is approved immediately and logged in.
    signup_requires_approval: bool = False

    # ------------------------------------------------------------------
    # External identity provider (optional -- empty domain disables it)
    # ------------------------------------------------------------------

    oidc_domain: str = ""
    oidc_client_id: str = ""
    oidc_client_secret: str = ""
    oidc_redirect_uri: str = ""
    oidc_post_logout_redirect_uri: str = "http://localhost:8080/"
    oauth_state_max_age: int = 600

    # ------------------------------------------------------------------
    # Action suggestion collaborator
    # ------------------------------------------------------------------

    suggest_api_key: str = ""
    suggest_model: str = "gemini-2.5-flash"
    suggest_usage_limit: int = 25

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def secure_cookies(self) -> bool:
        return self.app_env == "prod"

    @property
    def federation_enabled(self) -> bool:
        return bool(self.oidc_domain and self.oidc_client_id and self.oidc_client_secret and self.oidc_redirect_uri)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def check_federation_settings(self) -> "Settings":
        """Warn when the identity provider is only partially configured.

        A partial configuration is not fatal: the provider is simply treated as
        disabled and GET /login/ext answers with an error. The warning makes the
        typo visible in the startup log rather than on the first login attempt.
        """
        values = [self.oidc_domain, self.oidc_client_id, self.oidc_client_secret, self.oidc_redirect_uri]
        if any(values) and not all(values):
            logger.warning(
                "Identity federation is partially configured; set OIDC_DOMAIN, OIDC_CLIENT_ID, "
                "OIDC_CLIENT_SECRET and OIDC_REDIRECT_URI to enable it."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
