"""SpacetimeDB schema CLI — fetch a module schema and browse it.

Usage:
    spacetime-schema --db mygame                     # full dump
    spacetime-schema --db mygame --table players
    spacetime-schema --db mygame --type Position
    spacetime-schema --db mygame --enum PlayerState
    spacetime-schema --db mygame -s player
    spacetime-schema --db mygame --cloud --format json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from rich.console import Console
from rich.markup import escape

from spacetime_schema.config import settings
from spacetime_schema.servers import resolve_server_url
from spacetime_schema.tools.schema import OUTPUT_FORMATS, fetch_schema_document, render_document

console = Console()
err_console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the spacetime-schema command."""
    parser = argparse.ArgumentParser(
        prog="spacetime-schema",
        description="SpacetimeDB schema inspection tool",
    )
    parser.add_argument("--db", required=True, help="Database name")

    where = parser.add_mutually_exclusive_group()
    where.add_argument(
        "--server",
        default="",
        help=f"Server nickname or URL (default: {settings.server})",
    )
    where.add_argument("--cloud", action="store_true", help="Use SpacetimeDB maincloud")

    parser.add_argument(
        "--schema-version",
        dest="version",
        default="",
        help=f"Schema version to fetch (default: {settings.schema_version})",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="pretty",
        help="Output format (default: pretty)",
    )

    view = parser.add_mutually_exclusive_group()
    view.add_argument("--table", help="Show only this table")
    view.add_argument("--type", dest="type_name", help="Show only this struct or enum")
    view.add_argument("--enum", dest="enum_name", help="Show only this enum")
    view.add_argument("--search", "-s", help="Search table/type/enum names")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Fetch and print the schema. Returns the process exit code."""
    server = "cloud" if args.cloud else (args.server or settings.server)
    base_url = resolve_server_url(server)
    console.print(f"[cyan]Fetching schema from:[/cyan] {base_url}", highlight=False)

    document = await fetch_schema_document(args.db, base_url, args.version)
    console.print(
        f"[green]Fetched[/green] {len(json.dumps(document, indent=2))} bytes", highlight=False
    )

    output = render_document(
        document,
        args.format,
        table=args.table,
        type_name=args.type_name,
        enum_name=args.enum_name,
        search=args.search,
    )
    # Schema text may contain [brackets]; print it verbatim
    console.print(output, markup=False, highlight=False, emoji=False, soft_wrap=True)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the spacetime-schema CLI."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    try:
        code = asyncio.run(run(args))
    except (ConnectionError, PermissionError, ValueError) as e:
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
