"""Shared test fixtures for spacetime-schema tests.

Provides a sample SATS schema document (see builders.game_document) so
tests can run without a live SpacetimeDB server.
"""

from typing import Any

import pytest
from builders import game_document

from spacetime_schema.formatter import build_type_names
from spacetime_schema.sats import SatsSchema, decode_schema


@pytest.fixture
def game_doc() -> dict[str, Any]:
    """Raw JSON schema document for the sample game module."""
    return game_document()


@pytest.fixture
def game_schema(game_doc: dict[str, Any]) -> SatsSchema:
    """Decoded sample schema."""
    return decode_schema(game_doc)


@pytest.fixture
def game_names(game_schema: SatsSchema) -> dict[int, str]:
    """Index -> name map for the sample schema."""
    return build_type_names(game_schema.types)


@pytest.fixture(autouse=True)
def _clear_schema_cache():
    """Each test starts with an empty schema cache."""
    from spacetime_schema.tools.schema import clear_schema_cache

    clear_schema_cache()
    yield
    clear_schema_cache()
