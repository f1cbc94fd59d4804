"""SpacetimeDB schema MCP server — Entry point.

Registers the schema tools with FastMCP.
Run via: uv run spacetime-schema-mcp
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from spacetime_schema.config import settings
from spacetime_schema.servers import list_servers
from spacetime_schema.tools.schema import clear_schema_cache, get_schema

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.WARNING),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastMCP) -> AsyncIterator[None]:
    """Server lifecycle: drop cached schemas on shutdown."""
    try:
        yield
    finally:
        clear_schema_cache()


mcp = FastMCP(
    "SpacetimeDB Schema",
    lifespan=lifespan,
    instructions=(
        "You can inspect SpacetimeDB module schemas (tables, structs, enums).\n"
        "\n"
        "WORKFLOW:\n"
        "1. Call stdb_get_schema(database) for an overview of all tables and types\n"
        "2. Drill in with table=, type_name= or enum_name= (case-insensitive)\n"
        "3. Use search= when unsure of exact names\n"
        "\n"
        "Types such as Identity, Timestamp, Option<T> and ScheduledAt are recognised "
        "from their structure. Schemas are cached per session; pass refresh=True "
        "after publishing a new module.\n"
    ),
)


# --- Register Tools ---
# Each function's docstring becomes the tool description.


@mcp.tool()
async def stdb_get_schema(
    database: str,
    server: str = "",
    table: str = "",
    type_name: str = "",
    enum_name: str = "",
    search: str = "",
    output_format: str = "pretty",
    version: str = "",
    refresh: bool = False,
) -> str:
    """Get the schema of a SpacetimeDB database.

    With no filters, lists every table (row type and fields), every
    standalone struct/enum, and summary counts. Only one filter is
    applied; precedence is table, type_name, enum_name, search.

    Args:
        database: Database name or identity.
        server: Server nickname (see stdb_list_servers) or full URL.
        table: Show one table's fields and primary key.
        type_name: Show one struct or enum.
        enum_name: Show one enum's variants.
        search: Substring match over table and type names.
        output_format: "pretty" (default), "json" or "raw".
        version: Schema format version (default "9").
        refresh: Re-fetch instead of using the cached schema.

    Returns:
        Formatted schema text. Unknown names return suggestions.
    """
    return await get_schema(
        database=database,
        server=server,
        version=version,
        table=table,
        type_name=type_name,
        enum_name=enum_name,
        search=search,
        output_format=output_format,
        refresh=refresh,
    )


@mcp.tool()
async def stdb_list_servers() -> str:
    """List known SpacetimeDB servers (CLI config nicknames and built-ins).

    Returns:
        Nickname -> URL listing.
    """
    try:
        return list_servers()
    except ValueError as e:
        return f"Config error: {e}"


def main() -> None:
    """Entry point for the MCP server."""
    logger.info("Starting SpacetimeDB schema MCP server")
    logger.info("Default server: %s", settings.server)
    mcp.run()


if __name__ == "__main__":
    main()
