"""SATS (SpacetimeDB Algebraic Type System) schema model.

Decoded once from the JSON schema document, then read-only.

The typespace is a flat list of type definitions addressed by index;
every cross-reference is a plain integer (Ref), so cyclic schemas need
no special handling at decode time.

JSON variants are shape-discriminated, not tagged: {"U32": []},
{"Array": {...}}, {"Ref": 3}. Decoding walks an ordered candidate table
per variant set and commits to the first key that is present and whose
payload decodes. The order matters and mirrors the wire format:

  AlgebraicType: Bool I8 U8 I16 U16 I32 U32 I64 U64 I128 U128 I256 U256
                 F32 F64 String Array Product Sum Ref
  TypeDef:       Product Sum Builtin Ref
  Builtin:       Bool I8 U8 I16 U16 I32 U32 I64 U64 I128 U128
                 F32 F64 String Array Map
  OptionalName:  some none
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SchemaDecodeError(ValueError):
    """The schema document does not match the SATS JSON shape."""


# --- Model ---


@dataclass(frozen=True)
class Scalar:
    """A builtin scalar such as U32 or String. `tag` is the wire key."""

    tag: str


@dataclass(frozen=True)
class ArrayType:
    element: "AlgebraicType"


@dataclass(frozen=True)
class MapType:
    key: "AlgebraicType"
    value: "AlgebraicType"


@dataclass(frozen=True)
class Ref:
    """Index into the typespace."""

    index: int


@dataclass(frozen=True)
class Element:
    """A product field. name is None for positional (tuple) fields."""

    name: str | None
    algebraic_type: "AlgebraicType"


@dataclass(frozen=True)
class Variant:
    """A sum variant. Same shape as Element."""

    name: str | None
    algebraic_type: "AlgebraicType"


@dataclass(frozen=True)
class ProductType:
    elements: tuple[Element, ...] = ()

    @property
    def is_unit(self) -> bool:
        return not self.elements


@dataclass(frozen=True)
class SumType:
    variants: tuple[Variant, ...] = ()


@dataclass(frozen=True)
class Builtin:
    """Builtin typespace slot (scalar, array or map)."""

    type: Scalar | ArrayType | MapType


AlgebraicType = Scalar | ArrayType | ProductType | SumType | Ref
TypeDef = ProductType | SumType | Builtin | Ref


@dataclass(frozen=True)
class Typespace:
    types: tuple[TypeDef, ...] = ()

    def get(self, index: int) -> TypeDef | None:
        """Return the entry at index, or None if out of range."""
        if 0 <= index < len(self.types):
            return self.types[index]
        return None

    def __len__(self) -> int:
        return len(self.types)


@dataclass(frozen=True)
class TableInfo:
    name: str
    product_type_ref: int
    primary_key: tuple[int, ...] = ()


@dataclass(frozen=True)
class TypeName:
    scope: tuple[str, ...]
    name: str


@dataclass(frozen=True)
class NamedType:
    name: TypeName
    ty: int
    custom_ordering: bool = False


@dataclass(frozen=True)
class SatsSchema:
    typespace: Typespace
    tables: tuple[TableInfo, ...]
    types: tuple[NamedType, ...]


# Scalar wire keys in declaration order. Builtin slots have no 256-bit ints.
ALGEBRAIC_SCALARS: tuple[str, ...] = (
    "Bool",
    "I8",
    "U8",
    "I16",
    "U16",
    "I32",
    "U32",
    "I64",
    "U64",
    "I128",
    "U128",
    "I256",
    "U256",
    "F32",
    "F64",
    "String",
)
BUILTIN_SCALARS: tuple[str, ...] = tuple(
    t for t in ALGEBRAIC_SCALARS if t not in ("I256", "U256")
)


# --- Decoding ---


def _expect_dict(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise SchemaDecodeError(f"{what}: expected object, got {type(data).__name__}")
    return data


def _expect_list(data: Any, what: str) -> list[Any]:
    if not isinstance(data, list):
        raise SchemaDecodeError(f"{what}: expected array, got {type(data).__name__}")
    return data


def _expect_index(data: Any, what: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(data, bool) or not isinstance(data, int) or data < 0:
        raise SchemaDecodeError(f"{what}: expected non-negative integer, got {data!r}")
    return data


def _expect_str(data: Any, what: str) -> str:
    if not isinstance(data, str):
        raise SchemaDecodeError(f"{what}: expected string, got {type(data).__name__}")
    return data


def _scalar_decoder(tag: str) -> Callable[[Any], Scalar]:
    def decode(payload: Any) -> Scalar:
        _expect_list(payload, tag)
        return Scalar(tag)

    return decode


def _decode_untagged(
    data: Any, candidates: tuple[tuple[str, Callable[[Any], T]], ...], what: str
) -> T:
    """Decode a shape-discriminated value using an ordered candidate table.

    A candidate matches when its key is present and its payload decodes.
    A failing payload moves on to the next candidate.
    """
    obj = _expect_dict(data, what)
    failures: list[str] = []
    for key, decoder in candidates:
        if key not in obj:
            continue
        try:
            return decoder(obj[key])
        except SchemaDecodeError as e:
            logger.debug("%s candidate %s rejected: %s", what, key, e)
            failures.append(f"{key}: {e}")

    keys = ", ".join(sorted(obj)) or "<none>"
    detail = f" ({'; '.join(failures)})" if failures else ""
    raise SchemaDecodeError(f"{what}: no variant matches keys [{keys}]{detail}")


def decode_optional_name(data: Any) -> str | None:
    """Decode {"some": "name"} / {"none": []}."""
    return _decode_untagged(data, _OPTIONAL_NAME_CANDIDATES, "OptionalName")


def _decode_none_name(payload: Any) -> None:
    _expect_list(payload, "none")
    return None


def _decode_named_members(data: Any, what: str) -> list[tuple[str | None, AlgebraicType]]:
    members = []
    for raw in _expect_list(data, what):
        obj = _expect_dict(raw, what)
        if "name" not in obj or "algebraic_type" not in obj:
            raise SchemaDecodeError(f"{what}: missing 'name' or 'algebraic_type'")
        members.append(
            (decode_optional_name(obj["name"]), decode_algebraic_type(obj["algebraic_type"]))
        )
    return members


def _decode_product(payload: Any) -> ProductType:
    obj = _expect_dict(payload, "Product")
    if "elements" not in obj:
        raise SchemaDecodeError("Product: missing 'elements'")
    members = _decode_named_members(obj["elements"], "Product.elements")
    return ProductType(tuple(Element(name, ty) for name, ty in members))


def _decode_sum(payload: Any) -> SumType:
    obj = _expect_dict(payload, "Sum")
    if "variants" not in obj:
        raise SchemaDecodeError("Sum: missing 'variants'")
    members = _decode_named_members(obj["variants"], "Sum.variants")
    return SumType(tuple(Variant(name, ty) for name, ty in members))


def _decode_ref(payload: Any) -> Ref:
    return Ref(_expect_index(payload, "Ref"))


def _decode_array(payload: Any) -> ArrayType:
    return ArrayType(decode_algebraic_type(payload))


def _decode_map(payload: Any) -> MapType:
    obj = _expect_dict(payload, "Map")
    if "key_ty" not in obj or "ty" not in obj:
        raise SchemaDecodeError("Map: missing 'key_ty' or 'ty'")
    return MapType(decode_algebraic_type(obj["key_ty"]), decode_algebraic_type(obj["ty"]))


def _decode_builtin(payload: Any) -> Builtin:
    return Builtin(_decode_untagged(payload, _BUILTIN_CANDIDATES, "Builtin"))


def decode_algebraic_type(data: Any) -> AlgebraicType:
    """Decode a JSON AlgebraicType."""
    return _decode_untagged(data, _ALGEBRAIC_CANDIDATES, "AlgebraicType")


def decode_type_def(data: Any) -> TypeDef:
    """Decode one typespace entry."""
    return _decode_untagged(data, _TYPE_DEF_CANDIDATES, "TypeDef")


_OPTIONAL_NAME_CANDIDATES: tuple[tuple[str, Callable[[Any], str | None]], ...] = (
    ("some", lambda payload: _expect_str(payload, "some")),
    ("none", _decode_none_name),
)

_ALGEBRAIC_CANDIDATES: tuple[tuple[str, Callable[[Any], AlgebraicType]], ...] = (
    *((tag, _scalar_decoder(tag)) for tag in ALGEBRAIC_SCALARS),
    ("Array", _decode_array),
    ("Product", _decode_product),
    ("Sum", _decode_sum),
    ("Ref", _decode_ref),
)

_BUILTIN_CANDIDATES: tuple[tuple[str, Callable[[Any], Scalar | ArrayType | MapType]], ...] = (
    *((tag, _scalar_decoder(tag)) for tag in BUILTIN_SCALARS),
    ("Array", _decode_array),
    ("Map", _decode_map),
)

_TYPE_DEF_CANDIDATES: tuple[tuple[str, Callable[[Any], TypeDef]], ...] = (
    ("Product", _decode_product),
    ("Sum", _decode_sum),
    ("Builtin", _decode_builtin),
    ("Ref", _decode_ref),
)


def _decode_table(data: Any) -> TableInfo:
    obj = _expect_dict(data, "table")
    try:
        name = obj["name"]
        product_type_ref = obj["product_type_ref"]
        primary_key = obj["primary_key"]
    except KeyError as e:
        raise SchemaDecodeError(f"table: missing {e}") from e
    return TableInfo(
        name=_expect_str(name, "table.name"),
        product_type_ref=_expect_index(product_type_ref, "table.product_type_ref"),
        primary_key=tuple(
            _expect_index(i, "table.primary_key") for i in _expect_list(primary_key, "primary_key")
        ),
    )


def _decode_named_type(data: Any) -> NamedType:
    obj = _expect_dict(data, "type")
    try:
        raw_name = _expect_dict(obj["name"], "type.name")
        scope = raw_name["scope"]
        name = raw_name["name"]
        ty = obj["ty"]
        custom_ordering = obj["custom_ordering"]
    except KeyError as e:
        raise SchemaDecodeError(f"type: missing {e}") from e
    if not isinstance(custom_ordering, bool):
        raise SchemaDecodeError(f"type.custom_ordering: expected bool, got {custom_ordering!r}")
    return NamedType(
        name=TypeName(
            scope=tuple(_expect_str(s, "type.name.scope") for s in _expect_list(scope, "scope")),
            name=_expect_str(name, "type.name.name"),
        ),
        ty=_expect_index(ty, "type.ty"),
        custom_ordering=custom_ordering,
    )


def decode_schema(document: Any) -> SatsSchema:
    """Decode a full schema document.

    Args:
        document: Parsed JSON with "typespace", "tables" and "types".

    Returns:
        The decoded schema.

    Raises:
        SchemaDecodeError: If any part of the document has the wrong shape.
    """
    doc = _expect_dict(document, "schema")
    try:
        typespace = _expect_dict(doc["typespace"], "typespace")
        raw_types = typespace["types"]
        raw_tables = doc["tables"]
        raw_named = doc["types"]
    except KeyError as e:
        raise SchemaDecodeError(f"schema: missing {e}") from e

    schema = SatsSchema(
        typespace=Typespace(
            tuple(decode_type_def(t) for t in _expect_list(raw_types, "typespace.types"))
        ),
        tables=tuple(_decode_table(t) for t in _expect_list(raw_tables, "tables")),
        types=tuple(_decode_named_type(t) for t in _expect_list(raw_named, "types")),
    )
    logger.debug(
        "Decoded schema: %d types, %d tables, %d named types",
        len(schema.typespace),
        len(schema.tables),
        len(schema.types),
    )
    return schema
