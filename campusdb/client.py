"""Backend client binding for the hosted Supabase project.

``SupabaseBackend`` owns the one ``supabase.AsyncClient`` a process uses:

- Credentials are checked when the binding is constructed, not on first use
- The SDK client is created lazily on first ``await backend.client()``
- Auth is configured for the PKCE code-exchange flow with automatic token
  refresh and a persisted session (all overridable through settings)

Token refresh mutates the SDK client internally; this layer only reads it.

Example:
    >>> from campusdb.client import get_backend
    >>> backend = get_backend()
    >>> client = await backend.client()
    >>> rows = await client.table("tags").select("*").execute()

    >>> async with SupabaseBackend(url, key) as backend:
    ...     client = await backend.client()
"""

from typing import Any
from urllib.parse import urlparse

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from campusdb.config import settings
from campusdb.logging import logger
from campusdb.utils import redact_token


class BackendConfigError(RuntimeError):
    """The backend URL or API key is missing or malformed. Fatal at startup."""


class SupabaseBackend:
    """Lazily connected handle to the Supabase project.

    Args:
        url: Project URL (defaults to settings.supabase_url)
        key: Public API key (defaults to settings.supabase_anon_key)
        options: Custom SDK client options (defaults to the auth setup from settings)

    Raises:
        BackendConfigError: If the URL or key is missing or blank, or the URL
            is not an absolute http(s) URL
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        options: AsyncClientOptions | None = None,
    ) -> None:
        self._url = (url if url is not None else settings.supabase_url or "").strip()
        self._key = (key if key is not None else settings.supabase_anon_key or "").strip()

        if not self._url or not self._key:
            raise BackendConfigError(
                "Supabase URL and anon key must be provided "
                "(set SUPABASE_URL and SUPABASE_ANON_KEY)"
            )
        parsed = urlparse(self._url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise BackendConfigError(f"Supabase URL must be an http(s) URL, got {self._url!r}")
        self._url = self._url.rstrip("/")

        self._options = options or AsyncClientOptions(
            auto_refresh_token=settings.auto_refresh_token,
            persist_session=settings.persist_session,
            flow_type=settings.auth_flow_type,
            postgrest_client_timeout=settings.request_timeout,
        )
        self._client: AsyncClient | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def options(self) -> AsyncClientOptions:
        return self._options

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def client(self) -> AsyncClient:
        """Return the shared SDK client, creating it on first use."""
        if self._client is None:
            self._client = await acreate_client(self._url, self._key, options=self._options)
            logger.debug(
                f"Connected to {self._url} (key {redact_token(self._key)}, "
                f"flow={self._options.flow_type})"
            )
        return self._client

    async def __aenter__(self) -> "SupabaseBackend":
        await self.client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the PostgREST connection pool and drop the SDK client."""
        if self._client is not None:
            await self._client.postgrest.aclose()
            self._client = None


# =============================================================================
# Process-wide Binding
# =============================================================================

_backend: SupabaseBackend | None = None


def get_backend() -> SupabaseBackend:
    """Return the process-wide backend binding, constructing it once.

    Raises:
        BackendConfigError: On first call, if credentials are missing
    """
    global _backend
    if _backend is None:
        _backend = SupabaseBackend()
    return _backend


__all__ = ["BackendConfigError", "SupabaseBackend", "get_backend"]
