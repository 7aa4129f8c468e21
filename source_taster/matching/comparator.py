from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from aletk.utils import get_logger

from source_taster.logic.enums import NormalizationRule
from source_taster.logic.functions import is_meaningful, round_half_up
from source_taster.logic.models import Candidate, FieldDetail, MatchDetails, Reference, TMetadata
from source_taster.matching.similarity import (
    compare_arrays,
    container_title_similarity,
    contains_numeric_token,
    page_similarity,
    similarity,
)
from source_taster.ports.settings import FieldConfig, MatchingSettings


logger = get_logger(__name__)


NUMERIC_TOKEN_FIELDS = frozenset({"volume", "issue"})
PAGE_FIELDS = frozenset({"page", "pages"})
CONTAINER_TITLE_FIELDS = frozenset({"container-title"})


def comparable_fields(
    reference_metadata: TMetadata,
    candidate_metadata: TMetadata,
    field_configurations: Mapping[str, FieldConfig],
) -> Tuple[str, ...]:
    """
    Fields that are enabled with a positive weight and carry a meaningful value on both sides, in the reference's
    field order.
    """
    fields: List[str] = []
    for field in reference_metadata:
        config = field_configurations.get(field)
        if config is None or not config.enabled or config.weight <= 0:
            continue

        if field not in candidate_metadata:
            continue

        if is_meaningful(reference_metadata[field]) and is_meaningful(candidate_metadata[field]):
            fields.append(field)

    return tuple(fields)


def _compare_values(reference_value: Any, candidate_value: Any, rules: Sequence[NormalizationRule | str]) -> float:
    if isinstance(reference_value, (list, tuple)) and isinstance(candidate_value, (list, tuple)):
        return compare_arrays(reference_value, candidate_value, rules)

    return similarity(reference_value, candidate_value, rules)


def score_field(
    field: str,
    reference_value: Any,
    candidate_value: Any,
    rules: Iterable[NormalizationRule | str],
) -> float:
    """
    Similarity in [0, 1] of one field, with dedicated comparators for volume/issue numbers and page ranges.

    Container titles score the better of a plain comparison and one that ignores parenthesized acronyms, so
    "Journal of the American Medical Association (JAMA)" fully matches "Journal of the American Medical Association".
    """
    rules = tuple(rules)

    if field in NUMERIC_TOKEN_FIELDS and contains_numeric_token(reference_value, candidate_value, rules):
        return 1.0

    if field in PAGE_FIELDS:
        overlap = page_similarity(reference_value, candidate_value, rules)
        if overlap is not None:
            return overlap

    base = _compare_values(reference_value, candidate_value, rules)

    if field in CONTAINER_TITLE_FIELDS:
        return max(base, container_title_similarity(reference_value, candidate_value, rules))

    return base


def calculate_field_scores(
    reference_metadata: TMetadata,
    candidate_metadata: TMetadata,
    field_configurations: Mapping[str, FieldConfig],
    rules: Iterable[NormalizationRule | str],
) -> Tuple[FieldDetail, ...]:
    rules = tuple(rules)
    details: List[FieldDetail] = []

    for field in comparable_fields(reference_metadata, candidate_metadata, field_configurations):
        score = score_field(field, reference_metadata[field], candidate_metadata[field], rules)
        details.append(FieldDetail(field=field, field_score=round_half_up(score * 100)))

    return tuple(details)


def calculate_overall_score(
    field_details: Sequence[FieldDetail],
    field_configurations: Mapping[str, FieldConfig],
) -> int:
    """
    Weighted sum of the field scores divided by 100, the sum of all enabled weights.

    Fields missing on either side add nothing, so an incomplete candidate cannot reach a perfect score.
    """
    if not field_details:
        return 0

    weighted = sum(detail.field_score * field_configurations[detail.field].weight for detail in field_details)
    return round_half_up(weighted / 100)


def match_reference(reference: Reference, candidate: Candidate, settings: MatchingSettings) -> MatchDetails:
    """
    Compare a reference against a candidate.

    Args:
        reference: Reference
        candidate: Candidate
        settings: MatchingSettings, field configurations and normalization rules

    Returns:
        MatchDetails with one FieldDetail per compared field and the weighted overall score
    """
    field_configurations = settings.field_configurations
    field_details = calculate_field_scores(
        reference.metadata,
        candidate.metadata,
        field_configurations,
        settings.normalization_rules,
    )
    overall_score = calculate_overall_score(field_details, field_configurations)

    logger.debug(
        f"Reference '{reference.id}' vs candidate '{candidate.id}' ({candidate.source}): "
        f"overall {overall_score}, fields {[(d.field, d.field_score) for d in field_details]}"
    )

    return MatchDetails(field_details=field_details, overall_score=overall_score)
