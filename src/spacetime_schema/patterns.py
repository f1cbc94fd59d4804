"""Shape-based detection of well-known SpacetimeDB types.

SATS has no tag that marks a sum as "an Option" or a product as "an
Identity"; the module encodes them structurally. These predicates
recover the intent from shape alone and never look at resolved names.

Products (exactly one element, name and scalar must both match):
  __identity__                           : U256 -> Identity
  __timestamp_micros_since_unix_epoch__  : I64  -> Timestamp
  __time_duration_micros__               : I64  -> Duration

Sums (exactly two variants):
  {Interval, Time}                       -> ScheduledAt
  {Some, None}, or one unit + one data   -> Option<T>
"""

from spacetime_schema.sats import AlgebraicType, ProductType, Scalar, SumType, Variant

# Marker field name -> (scalar tag, display name)
SPECIAL_PRODUCTS: dict[str, tuple[str, str]] = {
    "__identity__": ("U256", "Identity"),
    "__timestamp_micros_since_unix_epoch__": ("I64", "Timestamp"),
    "__time_duration_micros__": ("I64", "Duration"),
}

SCHEDULED_AT_VARIANTS = frozenset({"Interval", "Time"})
OPTION_VARIANTS = frozenset({"Some", "None"})


def _is_unit(ty: AlgebraicType) -> bool:
    return isinstance(ty, ProductType) and ty.is_unit


def _variant_names(sum_type: SumType) -> list[str]:
    return [v.name for v in sum_type.variants if v.name is not None]


def is_unit_variant(variant: Variant) -> bool:
    """True if the variant carries no data (payload is the empty product)."""
    return _is_unit(variant.algebraic_type)


def detect_special_product(product: ProductType) -> str | None:
    """Return Identity / Timestamp / Duration, or None for ordinary products."""
    if len(product.elements) != 1:
        return None

    element = product.elements[0]
    if element.name is None or element.name not in SPECIAL_PRODUCTS:
        return None

    scalar_tag, display = SPECIAL_PRODUCTS[element.name]
    if element.algebraic_type == Scalar(scalar_tag):
        return display
    return None


def detect_special_sum(sum_type: SumType) -> str | None:
    """Return ScheduledAt for the {Interval, Time} sum, else None."""
    if len(sum_type.variants) != 2:
        return None
    if set(_variant_names(sum_type)) == SCHEDULED_AT_VARIANTS:
        return "ScheduledAt"
    return None


def is_option_type(sum_type: SumType) -> bool:
    """Check whether a sum represents Option<T>.

    Two rules, tried in order:
      1. Exactly two variants named Some and None.
      2. Exactly two variants, one carrying the empty product and the
         other carrying anything else. Names are ignored.
    """
    if len(sum_type.variants) != 2:
        return False

    names = _variant_names(sum_type)
    if len(names) == 2 and set(names) == OPTION_VARIANTS:
        return True

    has_unit = any(is_unit_variant(v) for v in sum_type.variants)
    has_data = any(not is_unit_variant(v) for v in sum_type.variants)
    return has_unit and has_data


def option_inner_type(sum_type: SumType) -> AlgebraicType | None:
    """Extract T from an Option<T>-shaped sum.

    A variant named Some wins and its payload is returned as-is. Otherwise
    the first data-carrying variant is used; a single-element product
    payload is unwrapped one level.
    """
    for variant in sum_type.variants:
        if variant.name == "Some":
            return variant.algebraic_type

    for variant in sum_type.variants:
        ty = variant.algebraic_type
        if isinstance(ty, ProductType):
            if ty.is_unit:
                continue
            if len(ty.elements) == 1:
                return ty.elements[0].algebraic_type
        return ty
    return None
