"""HTTP client for the SpacetimeDB schema endpoint.

Fetches the module schema as JSON from:
    GET {base_url}/v1/database/{database}/schema?version={version}

No authentication: the schema endpoint is public for published databases.
"""

import json
import logging
import urllib.parse
from typing import Any

import httpx

from spacetime_schema.config import settings

logger = logging.getLogger(__name__)


class SpacetimeClient:
    """Async HTTP client for the SpacetimeDB HTTP API.

    Stateless. Handles common error patterns from the server and turns
    them into ConnectionError / PermissionError / ValueError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        verify_ssl: bool | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = settings.timeout if timeout is None else timeout
        self._verify_ssl = settings.verify_ssl if verify_ssl is None else verify_ssl
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        """Base URL this client talks to."""
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                verify=self._verify_ssl,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    def _handle_request_error(self, e: Exception, database: str) -> None:
        """Handle common request errors.

        Args:
            e: The caught exception (TransportError or HTTPStatusError).
            database: The database being fetched, for error messages.

        Raises:
            ConnectionError: When the server is unreachable or the transfer fails.
            PermissionError: On 401/403.
            ValueError: On 404 or other HTTP errors.
        """
        if isinstance(e, (httpx.ConnectError, httpx.TimeoutException)):
            logger.error("Cannot connect to SpacetimeDB at %s: %s", self._base_url, e)
            raise ConnectionError(
                f"Cannot connect to SpacetimeDB at {self._base_url}. "
                "Verify the server is running and accessible."
            ) from e

        if isinstance(e, httpx.HTTPStatusError):
            status = e.response.status_code
            if status in (401, 403):
                logger.error("Access denied for database %s (%d)", database, status)
                raise PermissionError(
                    f"Access denied to schema of database '{database}' ({status})."
                ) from e
            if status == 404:
                logger.error("Database not found: %s", database)
                raise ValueError(
                    f"Database '{database}' not found on {self._base_url}. "
                    "Verify the database name and server."
                ) from e
            error_text = e.response.text[:500]
            logger.error("Schema fetch error %d: %s", status, error_text)
            raise ValueError(f"Schema fetch failed: {error_text or f'Status {status}'}") from e

        if isinstance(e, httpx.TransportError):
            # Dropped connections, protocol and read errors
            logger.error("Transport error talking to %s: %s", self._base_url, e)
            raise ConnectionError(
                f"Request to SpacetimeDB at {self._base_url} failed: {type(e).__name__}: {e}"
            ) from e

        raise e

    async def fetch_schema(self, database: str, version: str | None = None) -> dict[str, Any]:
        """Fetch the raw schema document for a database.

        Args:
            database: Database name or identity.
            version: Schema format version. Defaults to settings.schema_version.

        Returns:
            Parsed JSON document.

        Raises:
            ConnectionError: When the server is unreachable or the transfer fails.
            PermissionError: On 401/403.
            ValueError: On 404, other HTTP errors, or a non-JSON body.
        """
        client = await self._get_client()
        version = version or settings.schema_version
        path = f"/v1/database/{urllib.parse.quote(database, safe='')}/schema"
        logger.debug("GET %s%s?version=%s", self._base_url, path, version)
        try:
            response = await client.get(path, params={"version": version})
            response.raise_for_status()
        except (httpx.TransportError, httpx.HTTPStatusError) as e:
            self._handle_request_error(e, database)

        try:
            document = json.loads(response.text)
        except json.JSONDecodeError as e:
            logger.error("Schema response for %s is not JSON: %s", database, e)
            raise ValueError(f"Schema response for '{database}' is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise ValueError(
                f"Schema response for '{database}' is not a JSON object "
                f"(got {type(document).__name__})"
            )
        return document

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("SpacetimeDB client connection closed")
