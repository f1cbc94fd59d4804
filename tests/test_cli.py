"""Tests for the spacetime-schema command line."""

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from spacetime_schema.cli import build_parser, main


class TestParser:
    def test_minimal(self) -> None:
        args = build_parser().parse_args(["--db", "mygame"])
        assert args.db == "mygame"
        assert args.format == "pretty"
        assert args.table is None and args.type_name is None
        assert args.enum_name is None and args.search is None
        assert args.cloud is False

    def test_filters(self) -> None:
        args = build_parser().parse_args(["--db", "g", "--type", "Pos"])
        assert args.type_name == "Pos"
        args = build_parser().parse_args(["--db", "g", "-s", "user"])
        assert args.search == "user"

    def test_db_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    @pytest.mark.parametrize(
        "extra",
        [
            ["--table", "a", "--type", "b"],
            ["--type", "a", "--enum", "b"],
            ["--table", "a", "--search", "b"],
            ["--cloud", "--server", "local"],
        ],
    )
    def test_mutually_exclusive(self, extra: list[str]) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--db", "g", *extra])

    def test_unknown_format(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--db", "g", "--format", "yaml"])


class TestMain:
    def test_pretty_table(self, game_doc: dict[str, Any], capsys: pytest.CaptureFixture) -> None:
        mock_fetch = AsyncMock(return_value=game_doc)
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit) as exc:
                main(["--db", "mygame", "--server", "http://example.test", "--table", "USERS"])

        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "Fetching schema from: http://example.test" in out
        assert "TABLE: users" in out
        assert "Primary Key: [0]" in out
        mock_fetch.assert_awaited_once_with("mygame", "http://example.test", "")

    def test_cloud_flag(self, game_doc: dict[str, Any], capsys: pytest.CaptureFixture) -> None:
        mock_fetch = AsyncMock(return_value=game_doc)
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit):
                main(["--db", "mygame", "--cloud", "--schema-version", "8"])

        mock_fetch.assert_awaited_once_with("mygame", "https://maincloud.spacetimedb.com", "8")

    def test_json_format(self, game_doc: dict[str, Any], capsys: pytest.CaptureFixture) -> None:
        mock_fetch = AsyncMock(return_value=game_doc)
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit):
                main(["--db", "g", "--server", "http://example.test", "--format", "json"])

        out = capsys.readouterr().out
        body = out[out.index("{") :]
        assert json.loads(body) == game_doc

    def test_not_found_is_success(
        self, game_doc: dict[str, Any], capsys: pytest.CaptureFixture
    ) -> None:
        mock_fetch = AsyncMock(return_value=game_doc)
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit) as exc:
                main(["--db", "g", "--server", "http://example.test", "--enum", "Nope"])

        assert exc.value.code == 0
        assert "Enum 'Nope' not found" in capsys.readouterr().out

    def test_fetch_failure_exits_1(self, capsys: pytest.CaptureFixture) -> None:
        mock_fetch = AsyncMock(side_effect=ValueError("Schema fetch failed: [boom]"))
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit) as exc:
                main(["--db", "g", "--server", "http://example.test"])

        assert exc.value.code == 1
        assert "ERROR: Schema fetch failed: [boom]" in capsys.readouterr().err

    def test_malformed_document_exits_1(self, capsys: pytest.CaptureFixture) -> None:
        mock_fetch = AsyncMock(return_value={"tables": []})
        with patch("spacetime_schema.cli.fetch_schema_document", mock_fetch):
            with pytest.raises(SystemExit) as exc:
                main(["--db", "g", "--server", "http://example.test"])

        assert exc.value.code == 1
        assert "ERROR:" in capsys.readouterr().err

    def test_dropped_connection_exits_1(self, capsys: pytest.CaptureFixture) -> None:
        dropped = AsyncMock(side_effect=httpx.RemoteProtocolError("Server disconnected"))
        with patch("httpx.AsyncClient.get", dropped):
            with pytest.raises(SystemExit) as exc:
                main(["--db", "mygame", "--server", "http://example.test"])

        assert exc.value.code == 1
        err = capsys.readouterr().err
        assert "ERROR:" in err
        assert "RemoteProtocolError" in err
