from __future__ import annotations
from typing import Any, Mapping, Tuple
import attrs

from source_taster.logic.enums import VerificationPhase


type TMetadata = Mapping[str, Any]
"""
CSL-like bibliographic metadata: field name (`title`, `author`, `issued`, `DOI`, ...) to raw value.
"""


############
# Reference
############


@attrs.define(frozen=True, slots=True)
class Reference:
    """
    A bibliographic reference produced by the extractor. Never mutated by the matching core.

    Args:
        id: str
        metadata: TMetadata
    """

    id: str
    metadata: TMetadata = attrs.field(factory=dict)


############
# Candidate
############


@attrs.define(frozen=True, slots=True)
class Candidate:
    """
    A record returned by an external search provider for a reference.

    Args:
        id: str
        source: str
        metadata: TMetadata
        url: str | None = None
    """

    id: str
    source: str
    metadata: TMetadata = attrs.field(factory=dict)
    url: str | None = None


############
# Match results
############


@attrs.define(frozen=True, slots=True)
class FieldDetail:
    """
    Score (0-100) of one metadata field.
    """

    field: str
    field_score: int


@attrs.define(frozen=True, slots=True)
class MatchDetails:
    """
    Outcome of comparing one reference against one candidate.

    Args:
        field_details: Tuple[FieldDetail, ...]
        overall_score: int, weighted score in 0..100
    """

    field_details: Tuple[FieldDetail, ...]
    overall_score: int


@attrs.define(frozen=True, slots=True)
class CandidateEvaluation:
    """
    Match details of a candidate, keyed by the candidate id.

    Ids are only unique within one source, so the evaluated candidate itself travels along.
    """

    candidate_id: str
    match_details: MatchDetails
    candidate: Candidate | None = None


############
# Verification
############


@attrs.define(frozen=True, slots=True)
class VerificationState:
    """
    Progress of a single reference through a verification run.

    Args:
        phase: VerificationPhase
        updated_at: float, unix timestamp of the last transition
        source: str | None, the source currently being searched
        score: int | None, best overall score seen so far
        error: str | None
    """

    phase: VerificationPhase
    updated_at: float
    source: str | None = None
    score: int | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (VerificationPhase.DONE, VerificationPhase.ERROR, VerificationPhase.CANCELLED)


@attrs.define(frozen=True, slots=True)
class ProgressSummary:
    """
    Aggregate progress of a run. `finished` counts references in a terminal phase.
    """

    total: int
    finished: int
    percent: int


############
# Field values
############


@attrs.define(frozen=True, slots=True)
class EmptyValue:
    """A missing value (None)."""


@attrs.define(frozen=True, slots=True)
class ScalarValue:
    value: str | int | float | bool


@attrs.define(frozen=True, slots=True)
class NameValue:
    """
    A CSL name object. `literal` wins over the name parts.
    """

    literal: Any = None
    given: Any = None
    non_dropping_particle: Any = None
    family: Any = None
    dropping_particle: Any = None
    suffix: Any = None


@attrs.define(frozen=True, slots=True)
class DateValue:
    """
    A CSL date object.
    """

    raw: Any = None
    literal: Any = None
    season: Any = None
    date_parts: Any = None
    circa: Any = None


@attrs.define(frozen=True, slots=True)
class ArrayValue:
    items: Tuple[FieldValue, ...]


@attrs.define(frozen=True, slots=True)
class ObjectValue:
    """
    Anything else; stringified as JSON as a last resort.
    """

    value: Any


type FieldValue = EmptyValue | ScalarValue | NameValue | DateValue | ArrayValue | ObjectValue
