"""Tests for the schema HTTP client and fetch orchestration.

No live SpacetimeDB server: the httpx client is replaced with mocks.
"""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from spacetime_schema.client import SpacetimeClient
from spacetime_schema.tools.schema import fetch_schema_document, get_schema


def _client_with_response(mock_response: MagicMock) -> tuple[SpacetimeClient, MagicMock]:
    client = SpacetimeClient("http://example.test/", timeout=5, verify_ssl=True)
    mock_http = MagicMock()
    mock_http.get = AsyncMock(return_value=mock_response)
    mock_http.is_closed = False
    client._client = mock_http
    return client, mock_http


def _ok_response(body: str) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.text = body
    mock_response.raise_for_status = MagicMock()
    return mock_response


def _error_response(status: int, body: str = "") -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status
    mock_response.text = body
    mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "error",
        request=MagicMock(),
        response=mock_response,
    )
    return mock_response


class TestSpacetimeClient:
    """Test SpacetimeClient.fetch_schema()."""

    def test_base_url_trailing_slash_stripped(self) -> None:
        assert SpacetimeClient("http://example.test/").base_url == "http://example.test"

    @pytest.mark.asyncio
    async def test_fetch_returns_json(self, game_doc: dict[str, Any]) -> None:
        client, mock_http = _client_with_response(_ok_response(json.dumps(game_doc)))

        result = await client.fetch_schema("mygame", "9")
        assert result == game_doc
        mock_http.get.assert_awaited_once_with(
            "/v1/database/mygame/schema", params={"version": "9"}
        )

    @pytest.mark.asyncio
    async def test_database_name_is_quoted(self) -> None:
        client, mock_http = _client_with_response(_ok_response("{}"))

        await client.fetch_schema("my game/x", "9")
        assert mock_http.get.call_args[0][0] == "/v1/database/my%20game%2Fx/schema"

    @pytest.mark.asyncio
    async def test_404_raises_valueerror(self) -> None:
        client, _ = _client_with_response(_error_response(404))

        with pytest.raises(ValueError, match="not found"):
            await client.fetch_schema("missing", "9")

    @pytest.mark.asyncio
    async def test_403_raises_permissionerror(self) -> None:
        client, _ = _client_with_response(_error_response(403))

        with pytest.raises(PermissionError):
            await client.fetch_schema("private", "9")

    @pytest.mark.asyncio
    async def test_500_includes_body(self) -> None:
        client, _ = _client_with_response(_error_response(500, "module panicked"))

        with pytest.raises(ValueError, match="Schema fetch failed: module panicked"):
            await client.fetch_schema("mygame", "9")

    @pytest.mark.asyncio
    async def test_connect_error_raises_connectionerror(self) -> None:
        client = SpacetimeClient("http://example.test")
        mock_http = MagicMock()
        mock_http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        mock_http.is_closed = False
        client._client = mock_http

        with pytest.raises(ConnectionError, match="example.test"):
            await client.fetch_schema("mygame", "9")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.RemoteProtocolError("Server disconnected"),
            httpx.ReadError("connection reset"),
            httpx.UnsupportedProtocol("Request URL has an unsupported protocol"),
        ],
    )
    async def test_transport_error_raises_connectionerror(self, error: Exception) -> None:
        client = SpacetimeClient("http://example.test")
        mock_http = MagicMock()
        mock_http.get = AsyncMock(side_effect=error)
        mock_http.is_closed = False
        client._client = mock_http

        with pytest.raises(ConnectionError, match=type(error).__name__) as exc:
            await client.fetch_schema("mygame", "9")
        assert exc.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        client, _ = _client_with_response(_ok_response("<html>oops</html>"))

        with pytest.raises(ValueError, match="not valid JSON"):
            await client.fetch_schema("mygame", "9")

    @pytest.mark.asyncio
    async def test_non_object_body(self) -> None:
        client, _ = _client_with_response(_ok_response("[1, 2]"))

        with pytest.raises(ValueError, match="not a JSON object"):
            await client.fetch_schema("mygame", "9")

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client, mock_http = _client_with_response(_ok_response("{}"))
        mock_http.aclose = AsyncMock()

        await client.close()
        mock_http.aclose.assert_awaited_once()


def _patched_client(document: dict[str, Any]) -> MagicMock:
    instance = MagicMock()
    instance.fetch_schema = AsyncMock(return_value=document)
    instance.close = AsyncMock()
    return MagicMock(return_value=instance)


class TestFetchSchemaDocument:
    @pytest.mark.asyncio
    async def test_cached_per_database(self, game_doc: dict[str, Any]) -> None:
        client_cls = _patched_client(game_doc)
        with patch("spacetime_schema.tools.schema.SpacetimeClient", client_cls):
            first = await fetch_schema_document("mygame", "http://example.test", "9")
            second = await fetch_schema_document("mygame", "http://example.test", "9")

        assert first == second == game_doc
        client_cls.assert_called_once_with("http://example.test")
        client_cls.return_value.fetch_schema.assert_awaited_once_with("mygame", "9")
        client_cls.return_value.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, game_doc: dict[str, Any]) -> None:
        client_cls = _patched_client(game_doc)
        with patch("spacetime_schema.tools.schema.SpacetimeClient", client_cls):
            await fetch_schema_document("mygame", "http://example.test", "9")
            await fetch_schema_document("mygame", "http://example.test", "9", refresh=True)

        assert client_cls.return_value.fetch_schema.await_count == 2

    @pytest.mark.asyncio
    async def test_client_closed_on_error(self) -> None:
        instance = MagicMock()
        instance.fetch_schema = AsyncMock(side_effect=ValueError("boom"))
        instance.close = AsyncMock()
        with patch(
            "spacetime_schema.tools.schema.SpacetimeClient", MagicMock(return_value=instance)
        ):
            with pytest.raises(ValueError):
                await fetch_schema_document("mygame", "http://example.test", "9")
        instance.close.assert_awaited_once()


class TestGetSchema:
    """get_schema never raises: errors come back as text."""

    @pytest.mark.asyncio
    async def test_renders_view(self, game_doc: dict[str, Any]) -> None:
        mock_fetch = AsyncMock(return_value=game_doc)
        with patch("spacetime_schema.tools.schema.fetch_schema_document", mock_fetch):
            result = await get_schema("mygame", server="http://example.test", table="users")

        assert result.startswith("TABLE: users")
        mock_fetch.assert_awaited_once_with("mygame", "http://example.test", "", False)

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        mock_fetch = AsyncMock(side_effect=ConnectionError("down"))
        with patch("spacetime_schema.tools.schema.fetch_schema_document", mock_fetch):
            result = await get_schema("mygame")
        assert result == "Connection error: down"

    @pytest.mark.asyncio
    async def test_permission_error(self) -> None:
        mock_fetch = AsyncMock(side_effect=PermissionError("denied"))
        with patch("spacetime_schema.tools.schema.fetch_schema_document", mock_fetch):
            result = await get_schema("mygame")
        assert result == "Authentication error: denied"

    @pytest.mark.asyncio
    async def test_decode_error(self) -> None:
        mock_fetch = AsyncMock(return_value={"typespace": {"types": []}})
        with patch("spacetime_schema.tools.schema.fetch_schema_document", mock_fetch):
            result = await get_schema("mygame")
        assert result.startswith("Error fetching schema: SchemaDecodeError")
