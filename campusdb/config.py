"""Settings for campusdb, read from the environment or a local ``.env``.

Nothing else in the package touches ``os.environ``. The backend URL and
public API key may be left unset here so that offline pieces (design
tokens, the ``tokens`` command) import without them; they are checked when
the backend is bound (see ``campusdb.client.SupabaseBackend``).

``ENVIRONMENT`` picks a logging profile:
    - development: DEBUG, coloured console output
    - staging / production: JSON lines (production caps the level at INFO)
    - testing: ERROR only, never writes a log file

Example:
    >>> from campusdb.config import settings
    >>> settings.auth_flow_type
    'pkce'
    >>> settings.redact_key()
    'eyJhbGci...x9Qk'
"""

from enum import StrEnum
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from campusdb.utils import redact_token


class Environment(StrEnum):
    """Deployment the process runs in; selects the logging profile."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Backend credentials, auth behaviour, query caps and logging.

    Attributes:
        supabase_url: Supabase project URL (required to connect)
        supabase_anon_key: Public (anon) API key (required to connect)
        auth_flow_type: GoTrue auth flow, PKCE unless overridden
        auto_refresh_token: Refresh access tokens in the background
        persist_session: Keep the auth session across restarts
        request_timeout: PostgREST request timeout in seconds
        notification_limit: Maximum notifications fetched per call
        history_limit: Maximum closed sessions returned by history queries
        search_limit: Maximum profiles returned by username search
        notification_concurrency: Cap on concurrent notification enrichments
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Backend Connection
    supabase_url: str = Field(
        "",
        alias="SUPABASE_URL",
        description="Supabase project URL",
    )
    supabase_anon_key: str = Field(
        "",
        alias="SUPABASE_ANON_KEY",
        description="Supabase public (anon) API key",
    )

    # Auth Behaviour
    auth_flow_type: Literal["pkce", "implicit"] = Field(
        "pkce",
        description="Auth flow used by the SDK (authorization code exchange by default)",
    )
    auto_refresh_token: bool = Field(
        True,
        description="Refresh access tokens automatically",
    )
    persist_session: bool = Field(
        True,
        description="Persist the auth session across restarts",
    )
    request_timeout: int = Field(
        10,
        ge=1,
        le=120,
        description="PostgREST request timeout (seconds)",
    )

    # Query Parameters
    notification_limit: int = Field(
        50,
        ge=1,
        le=500,
        description="Maximum notifications fetched per call",
    )
    history_limit: int = Field(
        50,
        ge=1,
        le=500,
        description="Maximum closed sessions returned by history queries",
    )
    search_limit: int = Field(
        20,
        ge=1,
        le=100,
        description="Maximum profiles returned by username search",
    )
    notification_concurrency: Optional[int] = Field(
        None,
        ge=1,
        le=100,
        description="Cap on concurrent notification enrichments (unbounded when unset)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional log file path with rotation",
    )

    @field_validator("supabase_url", "supabase_anon_key", mode="before")
    @classmethod
    def strip_secret(cls, v: Optional[str]) -> str:
        """Trim surrounding whitespace; a missing value becomes empty."""
        return v.strip() if isinstance(v, str) else ""

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Force the logging options the selected environment requires."""
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.log_level = "ERROR"
            self.log_json = False
            self.log_file = None

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        return self.environment == Environment.STAGING

    def redact_key(self, key: Optional[str] = None) -> str:
        """Masked form of ``key`` (the anon key by default), safe to print."""
        return redact_token(key or self.supabase_anon_key)


def get_settings() -> Settings:
    """Load settings from the environment.

    Credentials are not checked here.

    Raises:
        pydantic.ValidationError: If a non-credential setting is out of range
    """
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
