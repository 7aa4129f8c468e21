"""
Similarity scores in [0, 1] between metadata values.

Values are stringified and normalized with the enabled rules before comparison. None of these functions raise on
malformed metadata: missing values degrade to neutral (0.5) or low (0.1) scores.
"""

import re
from typing import Any, Iterable, List, Sequence

import attrs
from rapidfuzz.distance import DamerauLevenshtein

from source_taster.logic.enums import NormalizationRule
from source_taster.normalization.pipeline import normalize_value
from source_taster.normalization.stringify import stringify


type TRules = Iterable[NormalizationRule | str]

BOTH_EMPTY_SCORE = 0.5
ONE_EMPTY_SCORE = 0.1


############
# Generic
############


def edit_similarity(s1: str, s2: str) -> float:
    """
    Normalized Damerau-Levenshtein similarity of two already normalized strings.
    """
    if s1 == "" and s2 == "":
        return BOTH_EMPTY_SCORE

    if s1 == "" or s2 == "":
        return ONE_EMPTY_SCORE

    return DamerauLevenshtein.normalized_similarity(s1, s2)


def similarity(a: Any, b: Any, rules: TRules) -> float:
    """
    Symmetric similarity of two raw metadata values.

    Example:
        similarity("Deep Learning", "Deep learning.", [PUNCTUATION, LOWERCASE]) -> 1.0
    """
    rules = tuple(rules)
    return edit_similarity(normalize_value(a, rules), normalize_value(b, rules))


def compare_arrays(reference_items: Sequence[Any], candidate_items: Sequence[Any], rules: TRules) -> float:
    """
    Mean, over the reference items, of each item's best similarity against any candidate item.

    Not symmetric: a reference list of one author fully contained in a candidate list of five scores 1.0, the
    reverse does not.
    """
    if len(reference_items) == 0 and len(candidate_items) == 0:
        return BOTH_EMPTY_SCORE

    if len(reference_items) == 0 or len(candidate_items) == 0:
        return ONE_EMPTY_SCORE

    rules = tuple(rules)
    normalized_candidates = [normalize_value(item, rules) for item in candidate_items]

    best_scores: List[float] = []
    for item in reference_items:
        normalized = normalize_value(item, rules)
        best_scores.append(max(edit_similarity(normalized, candidate) for candidate in normalized_candidates))

    return sum(best_scores) / len(best_scores)


############
# Numeric tokens (volume, issue)
############

_INTEGER = re.compile(r"\d+")


def extract_integers(text: str) -> List[int]:
    return [int(token) for token in _INTEGER.findall(text)]


def contains_numeric_token(reference_value: Any, candidate_value: Any, rules: TRules) -> bool:
    """
    Whether the candidate's first integer occurs anywhere among the reference's integers.

    References often pack volume, issue and supplement into one field: "Vol. 12, Suppl. 3" contains "12".
    """
    rules = tuple(rules)
    reference_numbers = extract_integers(normalize_value(reference_value, rules))
    candidate_numbers = extract_integers(normalize_value(candidate_value, rules))

    if not reference_numbers or not candidate_numbers:
        return False

    return candidate_numbers[0] in reference_numbers


############
# Page ranges
############


@attrs.define(frozen=True, slots=True)
class PageRange:
    """
    An inclusive page range, `start <= end`. A single page has `start == end`.
    """

    start: int
    end: int

    @property
    def is_single_page(self) -> bool:
        return self.start == self.end

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def contains(self, other: "PageRange") -> bool:
        return self.start <= other.start and other.end <= self.end


_PAGE_RANGE = re.compile(
    r"^\s*(?:pp?\.?\s*)?(\d+)\s*(?:[-\u2010-\u2015\u2212]+\s*(\d+))?\s*$",
    re.IGNORECASE,
)


def _expand_shorthand(first: str, second: str) -> int:
    """
    "123-45" means 123-145: a second number with fewer digits borrows the first number's leading digits.
    """
    if len(second) < len(first):
        return int(first[: len(first) - len(second)] + second)
    return int(second)


def parse_page_range(text: str) -> PageRange | None:
    """
    Parse "123", "123-145", "123-45", "pp. 123–145" into a PageRange. Returns None for anything else.
    """
    match = _PAGE_RANGE.match(text)
    if match is None:
        return None

    first, second = match.group(1), match.group(2)
    start = int(first)
    if second is None:
        return PageRange(start=start, end=start)

    end = _expand_shorthand(first, second)
    if end < start:
        start, end = end, start

    return PageRange(start=start, end=end)


def range_overlap(reference: PageRange, candidate: PageRange) -> float:
    """
    1.0 when one range contains the other, otherwise the Jaccard index over the pages of both ranges.
    """
    if reference.is_single_page and candidate.is_single_page:
        return 1.0 if reference.start == candidate.start else 0.0

    if reference.contains(candidate) or candidate.contains(reference):
        return 1.0

    intersection = max(0, min(reference.end, candidate.end) - max(reference.start, candidate.start) + 1)
    union = reference.length + candidate.length - intersection
    return intersection / union


def page_similarity(reference_value: Any, candidate_value: Any, rules: TRules) -> float | None:
    """
    Overlap of two page fields, or None when either side is not a page range.

    Examples:
        "123-145" vs "130-140" -> 1.0
        "123" vs "123-145" -> 1.0
        "1-10" vs "20-30" -> 0.0
    """
    rules = tuple(rules)
    reference_range = parse_page_range(normalize_value(reference_value, rules))
    candidate_range = parse_page_range(normalize_value(candidate_value, rules))

    if reference_range is None or candidate_range is None:
        return None

    return range_overlap(reference_range, candidate_range)



############
# Container titles
############

# A parenthesized all-caps acronym, "(JAMA)" or "(J.A.M.A.)"; "(Online)" is not one
_ACRONYM_IN_PARENTHESES = re.compile(r"\s*\(\s*[A-Z][A-Z0-9&.\-]+\s*\)")


def strip_acronyms(text: str) -> str:
    stripped = _ACRONYM_IN_PARENTHESES.sub("", text).strip()
    # A title that is nothing but an acronym stays as it is
    return stripped or text


def container_title_similarity(reference_value: Any, candidate_value: Any, rules: TRules) -> float:
    """
    Similarity of two container titles after dropping parenthesized acronyms from both.

    Example:
        "Journal of the American Medical Association (JAMA)" vs "Journal of the American Medical Association" -> 1.0
    """
    return similarity(strip_acronyms(stringify(reference_value)), strip_acronyms(stringify(candidate_value)), rules)
