"""
Ordered application of normalization rules.

Callers pass the set of enabled rules in any order; rules always execute in the canonical order declared by
`NormalizationRule`, because later transforms assume the output of earlier ones.
"""

from typing import Any, Callable, Dict, Iterable, Tuple

from source_taster.logic.enums import NormalizationRule
from source_taster.normalization import rules
from source_taster.normalization.stringify import stringify


CANONICAL_RULE_ORDER: Tuple[NormalizationRule, ...] = tuple(NormalizationRule)

# Bound on the passes over the rule set; real text is stable after the second
MAX_PASSES = 5

RULE_TRANSFORMS: Dict[NormalizationRule, Callable[[str], str]] = {
    NormalizationRule.TYPOGRAPHY: rules.fix_typography,
    NormalizationRule.CHARACTERS: rules.fix_characters,
    NormalizationRule.URLS: rules.normalize_urls,
    NormalizationRule.IDENTIFIERS: rules.normalize_identifiers,
    NormalizationRule.UMLAUTS: rules.fold_umlauts,
    NormalizationRule.ACCENTS: rules.remove_accents,
    NormalizationRule.UNICODE: rules.canonicalize_unicode,
    NormalizationRule.PUNCTUATION: rules.strip_punctuation,
    NormalizationRule.WHITESPACE: rules.normalize_whitespace,
    NormalizationRule.LOWERCASE: rules.to_lowercase,
}


def _coerce_rule(rule: NormalizationRule | str) -> NormalizationRule | None:
    if isinstance(rule, NormalizationRule):
        return rule
    try:
        return NormalizationRule(rule)
    except ValueError:
        return None


def resolve_rules(enabled_rules: Iterable[NormalizationRule | str]) -> Tuple[NormalizationRule, ...]:
    """
    The enabled rules in canonical execution order. Unknown rule tags are ignored.
    """
    enabled = {r for r in (_coerce_rule(rule) for rule in enabled_rules) if r is not None}
    return tuple(rule for rule in CANONICAL_RULE_ORDER if rule in enabled)


def normalize(text: str, enabled_rules: Iterable[NormalizationRule | str]) -> str:
    """
    Apply the enabled normalization rules to a text.

    A later rule can hand an earlier one new work (punctuation stripping turns "ISBN, 0-306-40615-2" into a labelled
    ISBN, a dropped URL query can leave a mangled character next to a space), so the rules are re-applied until the
    text is stable.

    Args:
        text: str
        enabled_rules: Iterable[NormalizationRule | str], rule enums or their string tags
    """
    rules_in_order = resolve_rules(enabled_rules)

    normalized = text
    for _ in range(MAX_PASSES):
        previous = normalized
        for rule in rules_in_order:
            normalized = RULE_TRANSFORMS[rule](normalized)
        if normalized == previous:
            break

    return normalized


def normalize_value(value: Any, enabled_rules: Iterable[NormalizationRule | str]) -> str:
    """
    Stringify a raw metadata value, then normalize it.
    """
    return normalize(stringify(value), enabled_rules)
