"""Matching of references against candidate records.

Field similarities (edit distance, author lists, volume/issue numbers, page ranges)
are aggregated into one weighted overall score per candidate, and candidates are
ranked best first.
"""

from source_taster.matching.comparator import (
    calculate_field_scores,
    calculate_overall_score,
    comparable_fields,
    match_reference,
    score_field,
)
from source_taster.matching.coordinator import (
    best_evaluation,
    evaluate_all_candidates,
    evaluate_single_candidate,
)
from source_taster.matching.similarity import (
    PageRange,
    compare_arrays,
    container_title_similarity,
    contains_numeric_token,
    page_similarity,
    parse_page_range,
    similarity,
    strip_acronyms,
)

__all__ = [
    "PageRange",
    "best_evaluation",
    "calculate_field_scores",
    "calculate_overall_score",
    "comparable_fields",
    "compare_arrays",
    "container_title_similarity",
    "contains_numeric_token",
    "evaluate_all_candidates",
    "evaluate_single_candidate",
    "match_reference",
    "page_similarity",
    "parse_page_range",
    "score_field",
    "similarity",
    "strip_acronyms",
]
