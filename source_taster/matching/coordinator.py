from typing import List, Sequence

from source_taster.logic.models import Candidate, CandidateEvaluation, Reference
from source_taster.matching.comparator import match_reference
from source_taster.ports.settings import MatchingSettings


def evaluate_single_candidate(
    reference: Reference,
    candidate: Candidate,
    settings: MatchingSettings,
) -> CandidateEvaluation:
    return CandidateEvaluation(
        candidate_id=candidate.id,
        match_details=match_reference(reference, candidate, settings),
        candidate=candidate,
    )


def evaluate_all_candidates(
    reference: Reference,
    candidates: Sequence[Candidate],
    settings: MatchingSettings,
) -> List[CandidateEvaluation]:
    """
    Score a reference against every candidate, best first.

    Candidates with equal overall scores keep their input order (`sorted` is stable).
    """
    evaluations = [evaluate_single_candidate(reference, candidate, settings) for candidate in candidates]
    return sorted(evaluations, key=lambda evaluation: evaluation.match_details.overall_score, reverse=True)


def best_evaluation(evaluations: Sequence[CandidateEvaluation]) -> CandidateEvaluation | None:
    """
    The first evaluation with the highest overall score, or None when there are none.
    """
    best: CandidateEvaluation | None = None
    for evaluation in evaluations:
        if best is None or evaluation.match_details.overall_score > best.match_details.overall_score:
            best = evaluation
    return best
