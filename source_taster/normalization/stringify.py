"""
Conversion of heterogeneous CSL metadata values into canonical strings.

Raw values are first classified into the `FieldValue` tagged union, then stringified with an exhaustive match.
Every function here is total: malformed values degrade to an empty or JSON string, they never raise.
"""

import json
import math
from typing import Any, Mapping

from source_taster.logic.functions import is_meaningful
from source_taster.logic.models import (
    ArrayValue,
    DateValue,
    EmptyValue,
    FieldValue,
    NameValue,
    ObjectValue,
    ScalarValue,
)


DATE_KEYS = frozenset({"date-parts", "raw", "season", "circa"})
NAME_KEYS = frozenset({"given", "family", "non-dropping-particle", "dropping-particle", "suffix", "literal"})


def to_field_value(value: Any) -> FieldValue:
    """
    Classify a raw metadata value into the FieldValue union.

    Mappings carrying any CSL date key are dates; mappings carrying any CSL name key are names. A mapping with
    only `literal` is treated as a name, which stringifies identically to a literal date.
    """
    if value is None:
        return EmptyValue()

    if isinstance(value, (str, int, float, bool)):
        return ScalarValue(value=value)

    if isinstance(value, (list, tuple)):
        return ArrayValue(items=tuple(to_field_value(item) for item in value))

    if isinstance(value, Mapping):
        keys = set(value.keys())

        if keys & DATE_KEYS:
            return DateValue(
                raw=value.get("raw"),
                literal=value.get("literal"),
                season=value.get("season"),
                date_parts=value.get("date-parts"),
                circa=value.get("circa"),
            )

        if keys & NAME_KEYS:
            return NameValue(
                literal=value.get("literal"),
                given=value.get("given"),
                non_dropping_particle=value.get("non-dropping-particle"),
                family=value.get("family"),
                dropping_particle=value.get("dropping-particle"),
                suffix=value.get("suffix"),
            )

    return ObjectValue(value=value)


def _stringify_scalar(scalar: Any) -> str:
    if isinstance(scalar, bool):
        return "true" if scalar else "false"

    if isinstance(scalar, float) and math.isfinite(scalar) and scalar.is_integer():
        return str(int(scalar))

    return str(scalar)


def _stringify_part(part: Any) -> str:
    if not is_meaningful(part):
        return ""
    return stringify(part)


def _stringify_name(name: NameValue) -> str:
    if is_meaningful(name.literal):
        return _stringify_part(name.literal)

    parts = (
        name.given,
        name.non_dropping_particle,
        name.family,
        name.dropping_particle,
        name.suffix,
    )
    return " ".join(s for s in (_stringify_part(p) for p in parts) if s)


def _circa_prefix(circa: Any) -> str:
    if circa is True:
        return "ca. "

    if circa is False or not is_meaningful(circa):
        return ""

    return f"{_stringify_part(circa)} "


def _stringify_date(date: DateValue) -> str:
    if isinstance(date.raw, str) and date.raw:
        return date.raw

    if isinstance(date.literal, str) and date.literal:
        return date.literal

    prefix = _circa_prefix(date.circa)

    if is_meaningful(date.season):
        return f"{prefix}{_stringify_part(date.season)}"

    if isinstance(date.date_parts, (list, tuple)) and date.date_parts:
        first = date.date_parts[0]
        if isinstance(first, (list, tuple)) and first:
            return prefix + "-".join(_stringify_part(p) for p in first)

    return prefix.strip()


def _stringify_object(value: Any) -> str:
    if not isinstance(value, Mapping):
        return str(value)

    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(value)


def stringify_field_value(field_value: FieldValue) -> str:
    match field_value:
        case EmptyValue():
            return ""
        case ScalarValue(value=scalar):
            return _stringify_scalar(scalar)
        case NameValue():
            return _stringify_name(field_value)
        case DateValue():
            return _stringify_date(field_value)
        case ArrayValue(items=items):
            return " ".join(stringify_field_value(item) for item in items)
        case ObjectValue(value=value):
            return _stringify_object(value)


def stringify(value: Any) -> str:
    """
    Convert a CSL metadata value (scalar, name, date, array or anything else) to a string.

    Examples:
        {"given": "Ada", "family": "Lovelace"} -> "Ada Lovelace"
        {"date-parts": [[2020, 5]], "circa": True} -> "ca. 2020-5"
        [{"family": "Smith"}, {"family": "Doe"}] -> "Smith Doe"
    """
    return stringify_field_value(to_field_value(value))
