"""Stringification and normalization of CSL metadata values.

Values are stringified into canonical text, then run through an ordered set of
normalization rules (typography, identifiers, accents, case, ...) before comparison.
"""

from source_taster.normalization.pipeline import (
    CANONICAL_RULE_ORDER,
    normalize,
    normalize_value,
    resolve_rules,
)
from source_taster.normalization.stringify import stringify, to_field_value

__all__ = [
    "CANONICAL_RULE_ORDER",
    "normalize",
    "normalize_value",
    "resolve_rules",
    "stringify",
    "to_field_value",
]
