"""Type name resolution and display formatting for SATS types.

Nested types render as compact summaries; only the top-level view a query
is displaying expands fields or variants (see tools/schema.py). A Ref is
always rendered as a name and never expanded, which keeps formatting
finite on cyclic schemas.
"""

from collections.abc import Iterable

from spacetime_schema.patterns import (
    detect_special_product,
    detect_special_sum,
    is_option_type,
    option_inner_type,
)
from spacetime_schema.sats import (
    AlgebraicType,
    ArrayType,
    Builtin,
    MapType,
    NamedType,
    ProductType,
    Ref,
    Scalar,
    SumType,
)

# Wire tag -> display token
SCALAR_TOKENS: dict[str, str] = {
    "Bool": "bool",
    "I8": "i8",
    "U8": "u8",
    "I16": "i16",
    "U16": "u16",
    "I32": "i32",
    "U32": "u32",
    "I64": "i64",
    "U64": "u64",
    "I128": "i128",
    "U128": "u128",
    "I256": "i256",
    "U256": "u256",
    "F32": "f32",
    "F64": "f64",
    "String": "String",
}


def build_type_names(named_types: Iterable[NamedType]) -> dict[int, str]:
    """Map typespace index -> display name.

    When several named types share an index, the last one wins.
    """
    type_names: dict[int, str] = {}
    for named in named_types:
        type_names[named.ty] = named.name.name
    return type_names


def resolve_type_name(type_names: dict[int, str], index: int) -> str:
    """Display name for a typespace index, or Type_<index> if unnamed."""
    return type_names.get(index, f"Type_{index}")


def format_type(alg_type: AlgebraicType | MapType, type_names: dict[int, str]) -> str:
    """Render an algebraic type as a Rust-like display string.

    Examples: u32, Vec<String>, Option<Identity>, (i32, f64),
    Product(3 fields), Sum(4 variants), ScheduledAt.
    """
    if isinstance(alg_type, Scalar):
        return SCALAR_TOKENS.get(alg_type.tag, alg_type.tag)

    if isinstance(alg_type, ArrayType):
        return f"Vec<{format_type(alg_type.element, type_names)}>"

    if isinstance(alg_type, MapType):
        key = format_type(alg_type.key, type_names)
        value = format_type(alg_type.value, type_names)
        return f"Map<{key}, {value}>"

    if isinstance(alg_type, Ref):
        return resolve_type_name(type_names, alg_type.index)

    if isinstance(alg_type, SumType):
        special = detect_special_sum(alg_type)
        if special:
            return special

        if is_option_type(alg_type):
            inner = option_inner_type(alg_type)
            if inner is None:
                return "Option<?>"
            return f"Option<{format_type(inner, type_names)}>"

        return f"Sum({len(alg_type.variants)} variants)"

    if isinstance(alg_type, ProductType):
        special = detect_special_product(alg_type)
        if special:
            return special

        if alg_type.is_unit:
            return "()"
        if all(e.name is None for e in alg_type.elements):
            parts = [format_type(e.algebraic_type, type_names) for e in alg_type.elements]
            return f"({', '.join(parts)})"
        return f"Product({len(alg_type.elements)} fields)"

    raise TypeError(f"Not an algebraic type: {alg_type!r}")


def format_builtin(builtin: Builtin, type_names: dict[int, str]) -> str:
    """Render a builtin typespace slot (scalar, array or map)."""
    return format_type(builtin.type, type_names)
