"""Schema display and lookup tools for SpacetimeDB databases.

Default behavior: fetch the module schema once per (server, database,
version), then render views from the cached document (instant).
Use refresh=True to re-fetch after publishing a new module version.

Views (mutually exclusive, first non-empty filter wins):
  table  : one table's row type, fields and primary key
  type   : one struct or enum with full expansion
  enum   : one enum with full variant expansion
  search : case-insensitive substring match over table and type names
  (none) : full dump: tables, standalone types, summary counts

A query that finds nothing is not an error: it returns a "not found"
message with suggestions.
"""

import json
import logging
from typing import Any

from spacetime_schema.client import SpacetimeClient
from spacetime_schema.config import settings
from spacetime_schema.formatter import (
    build_type_names,
    format_builtin,
    format_type,
    resolve_type_name,
)
from spacetime_schema.patterns import detect_special_product, detect_special_sum, is_unit_variant
from spacetime_schema.sats import (
    Builtin,
    ProductType,
    Ref,
    SatsSchema,
    SumType,
    TableInfo,
    decode_schema,
)
from spacetime_schema.servers import resolve_server_url

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("pretty", "json", "raw")

MAX_SUGGESTIONS = 5
MAX_ENUM_SUGGESTIONS = 10

_RULE = "-" * 40
_DOUBLE_RULE = "=" * 60


# --- Lookup helpers ---


def table_row_type_refs(schema: SatsSchema) -> set[int]:
    """Typespace indices used as some table's row type."""
    return {t.product_type_ref for t in schema.tables}


def _find_table(schema: SatsSchema, name: str) -> TableInfo | None:
    wanted = name.lower()
    for table in schema.tables:
        if table.name.lower() == wanted:
            return table
    return None


def _find_named(type_names: dict[int, str], name: str) -> list[tuple[int, str]]:
    """All (index, name) entries whose name equals `name` ignoring case."""
    wanted = name.lower()
    return [(idx, real) for idx, real in type_names.items() if real.lower() == wanted]


def _name_sort_key(name: str) -> tuple[str, str]:
    """Case-insensitive order, exact spelling breaks ties."""
    return (name.lower(), name)


def suggest_similar_types(type_names: dict[int, str], search: str) -> list[str]:
    """Pick up to five type names that look like `search`.

    A name qualifies if (case-insensitively) it contains the term, the term
    contains it, or it starts with the term's first three characters.
    """
    term = search.lower()
    prefix = term[:3]

    matches = []
    for name in type_names.values():
        lowered = name.lower()
        if term in lowered or lowered in term or lowered.startswith(prefix):
            matches.append(name)

    return sorted(matches, key=_name_sort_key)[:MAX_SUGGESTIONS]


def available_enums(schema: SatsSchema, type_names: dict[int, str]) -> list[str]:
    """Sorted names of Sum-kind named types, at most ten."""
    enums = [
        name
        for idx, name in type_names.items()
        if isinstance(schema.typespace.get(idx), SumType)
    ]
    return sorted(enums, key=_name_sort_key)[:MAX_ENUM_SUGGESTIONS]


# --- Field / variant lines ---


def _expand_variants(sum_type: SumType, type_names: dict[int, str]) -> list[str]:
    """Unit variants are shown bare, data variants as Name(Type)."""
    lines: list[str] = []
    for variant in sum_type.variants:
        if variant.name is None:
            continue
        if is_unit_variant(variant):
            lines.append(variant.name)
        else:
            lines.append(f"{variant.name}({format_type(variant.algebraic_type, type_names)})")
    return lines


def _named_fields(product: ProductType, type_names: dict[int, str]) -> list[str]:
    return [
        f"{e.name}: {format_type(e.algebraic_type, type_names)}"
        for e in product.elements
        if e.name is not None
    ]


def _tree(lines: list[str], indent: str = "    ") -> list[str]:
    """Prefix lines with tree connectors (last one gets the closing corner)."""
    out = []
    for i, line in enumerate(lines):
        connector = "└" if i == len(lines) - 1 else "├"
        out.append(f"{indent}{connector} {line}")
    return out


def _type_summary(name: str, type_def: Any) -> str | None:
    """One-line summary for a named struct/enum, idiom-tagged when detected."""
    if isinstance(type_def, SumType):
        special = detect_special_sum(type_def)
        if special:
            return f"{name}: {special} (SpacetimeDB type)"
        return f"{name} (enum with {len(type_def.variants)} variants)"
    if isinstance(type_def, ProductType):
        special = detect_special_product(type_def)
        if special:
            return f"{name}: {special} (SpacetimeDB type)"
        return f"{name} (struct with {len(type_def.elements)} fields)"
    return None


# --- Views ---


def format_full_schema(schema: SatsSchema, type_names: dict[int, str]) -> str:
    """Full dump: every table with fields, standalone types, summary counts."""
    lines: list[str] = ["SPACETIMEDB SCHEMA", _DOUBLE_RULE, ""]

    lines.append(f"TABLES ({len(schema.tables)})")
    for table in schema.tables:
        row_type = resolve_type_name(type_names, table.product_type_ref)
        lines.append(f"  ▸ {table.name} → {row_type}")
        product = schema.typespace.get(table.product_type_ref)
        if isinstance(product, ProductType):
            for field_line in _named_fields(product, type_names):
                lines.append(f"    ├ {field_line}")
        lines.append("")

    lines.append("OTHER TYPES (enums, structs)")
    lines.append(_RULE)

    table_refs = table_row_type_refs(schema)
    standalone = sorted(
        ((idx, name) for idx, name in type_names.items() if idx not in table_refs),
        key=lambda item: item[1].lower(),
    )
    for idx, name in standalone:
        type_def = schema.typespace.get(idx)
        summary = _type_summary(name, type_def)
        if summary is None:
            # Builtin and Ref slots are not shown here
            continue
        lines.append(f"  {summary}")

        if isinstance(type_def, SumType) and not detect_special_sum(type_def):
            lines.extend(_tree(_expand_variants(type_def, type_names)))
        elif isinstance(type_def, ProductType) and not detect_special_product(type_def):
            field_lines = [
                f"{e.name if e.name is not None else i}: "
                f"{format_type(e.algebraic_type, type_names)}"
                for i, e in enumerate(type_def.elements)
            ]
            lines.extend(_tree(field_lines))

    enum_count = sum(1 for t in schema.typespace.types if isinstance(t, SumType))
    lines.append("")
    lines.append("SUMMARY")
    lines.append(f"  {len(schema.tables)} tables")
    lines.append(f"  {len(schema.typespace)} types total")
    lines.append(f"  {enum_count} enums")
    return "\n".join(lines)


def format_table(schema: SatsSchema, type_names: dict[int, str], table_name: str) -> str:
    """Single table view, or a not-found message listing all tables."""
    table = _find_table(schema, table_name)
    if table is None:
        lines = [f"Table '{table_name}' not found", "", "Available tables:"]
        lines.extend(f"  - {t.name}" for t in schema.tables)
        return "\n".join(lines)

    lines = [f"TABLE: {table.name}", _RULE]
    lines.append(f"Type: {resolve_type_name(type_names, table.product_type_ref)}")

    product = schema.typespace.get(table.product_type_ref)
    if isinstance(product, ProductType):
        lines.append("")
        lines.append(f"Fields ({len(product.elements)}):")
        lines.extend(f"  ▸ {f}" for f in _named_fields(product, type_names))
    else:
        logger.debug(
            "Table %s row type %d is not a product", table.name, table.product_type_ref
        )

    if table.primary_key:
        lines.append("")
        lines.append(f"Primary Key: [{', '.join(str(i) for i in table.primary_key)}]")
    return "\n".join(lines)


def _format_enum_body(name: str, sum_type: SumType, type_names: dict[int, str]) -> str:
    lines = [f"ENUM: {name}", _RULE]
    special = detect_special_sum(sum_type)
    if special:
        lines.append(f"SpacetimeDB Type: {special}")
    lines.append("")
    lines.append(f"Variants ({len(sum_type.variants)}):")
    lines.extend(f"  ▸ {v}" for v in _expand_variants(sum_type, type_names))
    return "\n".join(lines)


def format_type_detail(schema: SatsSchema, type_names: dict[int, str], type_name: str) -> str:
    """Single struct/enum view, or not-found with "did you mean" suggestions."""
    found = _find_named(type_names, type_name)
    if not found:
        lines = [f"Type '{type_name}' not found", "", "Did you mean one of these?"]
        lines.extend(f"  - {s}" for s in suggest_similar_types(type_names, type_name))
        return "\n".join(lines)

    idx, real_name = found[0]
    type_def = schema.typespace.get(idx)

    if isinstance(type_def, SumType):
        return _format_enum_body(real_name, type_def, type_names)

    if isinstance(type_def, ProductType):
        lines = [f"STRUCT: {real_name}", _RULE]
        special = detect_special_product(type_def)
        if special:
            lines.append(f"SpacetimeDB Type: {special}")
        lines.append("")
        lines.append(f"Fields ({len(type_def.elements)}):")
        lines.extend(f"  ▸ {f}" for f in _named_fields(type_def, type_names))
        return "\n".join(lines)

    if isinstance(type_def, Builtin):
        detail = f" (builtin {format_builtin(type_def, type_names)})"
    elif isinstance(type_def, Ref):
        detail = f" (reference to {resolve_type_name(type_names, type_def.index)})"
    else:
        detail = f" (missing typespace entry {idx})"
    return f"'{type_name}' is not a struct or enum{detail}"


def format_enum(schema: SatsSchema, type_names: dict[int, str], enum_name: str) -> str:
    """Single enum view, or a not-found/not-an-enum message listing enums."""
    found = _find_named(type_names, enum_name)
    for idx, real_name in found:
        type_def = schema.typespace.get(idx)
        if isinstance(type_def, SumType):
            return _format_enum_body(real_name, type_def, type_names)

    if found:
        lines = [f"'{enum_name}' is not an enum"]
    else:
        lines = [f"Enum '{enum_name}' not found"]
    lines.append("")
    lines.append("Available enums:")
    lines.extend(f"  - {name}" for name in available_enums(schema, type_names))
    return "\n".join(lines)


def format_search_results(schema: SatsSchema, type_names: dict[int, str], pattern: str) -> str:
    """Substring search over table names and standalone type names."""
    term = pattern.lower()
    lines = [f"SEARCH RESULTS FOR: '{pattern}'", _DOUBLE_RULE]

    matching_tables = [t for t in schema.tables if term in t.name.lower()]
    if matching_tables:
        lines.append("")
        lines.append("TABLES:")
        for table in matching_tables:
            row_type = resolve_type_name(type_names, table.product_type_ref)
            lines.append(f"  ▸ {table.name} → {row_type}")

    # Row types were already reported with their table
    table_refs = table_row_type_refs(schema)
    summaries: list[str] = []
    for idx, name in sorted(type_names.items(), key=lambda item: item[1].lower()):
        if idx in table_refs or term not in name.lower():
            continue
        summary = _type_summary(name, schema.typespace.get(idx))
        if summary is not None:
            summaries.append(summary)

    if summaries:
        lines.append("")
        lines.append("OTHER TYPES:")
        lines.extend(f"  {s}" for s in summaries)

    if not matching_tables and not summaries:
        lines.append(f"No matches found for '{pattern}'")
    return "\n".join(lines)


def render_schema(
    schema: SatsSchema,
    *,
    table: str | None = None,
    type_name: str | None = None,
    enum_name: str | None = None,
    search: str | None = None,
) -> str:
    """Render the view selected by the filters.

    Precedence when several are given: table, type, enum, search.
    """
    type_names = build_type_names(schema.types)

    if table:
        return format_table(schema, type_names, table)
    if type_name:
        return format_type_detail(schema, type_names, type_name)
    if enum_name:
        return format_enum(schema, type_names, enum_name)
    if search:
        return format_search_results(schema, type_names, search)
    return format_full_schema(schema, type_names)


def render_document(document: dict[str, Any], output_format: str = "pretty", **filters: Any) -> str:
    """Render a raw schema document.

    json/raw return the document re-serialised as indented JSON; pretty
    decodes it and renders the view selected by `filters`.

    Raises:
        ValueError: Unknown output format.
        SchemaDecodeError: The document is not a valid SATS schema.
    """
    if output_format in ("json", "raw"):
        return json.dumps(document, indent=2)
    if output_format != "pretty":
        raise ValueError(
            f"Unknown output format '{output_format}'. Use one of: {', '.join(OUTPUT_FORMATS)}"
        )
    return render_schema(decode_schema(document), **filters)


# --- Fetching ---

# (base_url, database, version) -> raw schema document
_schema_cache: dict[tuple[str, str, str], dict[str, Any]] = {}


def clear_schema_cache() -> None:
    """Drop all cached schema documents."""
    _schema_cache.clear()


async def fetch_schema_document(
    database: str,
    server: str = "",
    version: str = "",
    refresh: bool = False,
) -> dict[str, Any]:
    """Fetch (or return cached) raw schema JSON for a database.

    Args:
        database: Database name or identity.
        server: Nickname or URL. Defaults to settings.server.
        version: Schema format version. Defaults to settings.schema_version.
        refresh: Bypass the cache.

    Raises:
        ConnectionError / PermissionError / ValueError from SpacetimeClient.
    """
    base_url = resolve_server_url(server or settings.server)
    version = version or settings.schema_version
    key = (base_url, database, version)

    if not refresh and key in _schema_cache:
        logger.debug("Schema cache hit for %s on %s", database, base_url)
        return _schema_cache[key]

    client = SpacetimeClient(base_url)
    try:
        document = await client.fetch_schema(database, version)
    finally:
        await client.close()

    logger.info("Fetched schema for %s from %s", database, base_url)
    _schema_cache[key] = document
    return document


async def get_schema(
    database: str,
    server: str = "",
    version: str = "",
    table: str = "",
    type_name: str = "",
    enum_name: str = "",
    search: str = "",
    output_format: str = "pretty",
    refresh: bool = False,
) -> str:
    """Get the schema of a SpacetimeDB database (tables, structs, enums).

    Args:
        database: Database name or identity.
        server: Server nickname (local, maincloud, or one from the
            SpacetimeDB CLI config) or a full URL. Defaults to settings.
        version: Schema format version. Default "9".
        table: Show only this table (case-insensitive exact name).
        type_name: Show only this struct or enum.
        enum_name: Show only this enum.
        search: Case-insensitive substring search over table/type names.
        output_format: "pretty" (default), "json" or "raw".
        refresh: Re-fetch instead of using the cached schema.

    Returns:
        Formatted schema text, or an error message.
    """
    try:
        document = await fetch_schema_document(database, server, version, refresh)
        return render_document(
            document,
            output_format,
            table=table,
            type_name=type_name,
            enum_name=enum_name,
            search=search,
        )
    except ConnectionError as e:
        return f"Connection error: {e}"
    except PermissionError as e:
        return f"Authentication error: {e}"
    except Exception as e:
        logger.exception("Error fetching schema")
        return f"Error fetching schema: {type(e).__name__}: {e}"
