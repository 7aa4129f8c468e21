import math
from typing import Any, Mapping

from source_taster.logic.enums import MatchQuality


def is_meaningful(value: Any) -> bool:
    """
    A metadata value is meaningful unless it is None, an empty string, an empty sequence or an empty mapping.
    """
    if value is None:
        return False

    if isinstance(value, str):
        return value != ""

    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0

    return True


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from negative infinity (0.5 -> 1, 2.5 -> 3).

    Python's `round` rounds halves to even, which would turn a 92.5 into 92.
    """
    return math.floor(value + 0.5)


def classify_match_quality(score: int, exact_threshold: int = 95, high_threshold: int = 70) -> MatchQuality:
    if score >= exact_threshold:
        return MatchQuality.EXACT

    if score >= high_threshold:
        return MatchQuality.HIGH

    return MatchQuality.NONE
