from source_taster.logic.models import Candidate, CandidateEvaluation, MatchDetails
from source_taster.matching.comparator import match_reference
from source_taster.matching.coordinator import best_evaluation, evaluate_all_candidates, evaluate_single_candidate


def _evaluation(candidate_id: str, score: int) -> CandidateEvaluation:
    return CandidateEvaluation(
        candidate_id=candidate_id,
        match_details=MatchDetails(field_details=(), overall_score=score),
    )


class TestEvaluateSingleCandidate:
    def test_wraps_match_details(self, deep_learning_reference, deep_learning_candidate, matching_settings) -> None:
        evaluation = evaluate_single_candidate(deep_learning_reference, deep_learning_candidate, matching_settings)

        assert evaluation.candidate_id == "cand-1"
        assert evaluation.candidate == deep_learning_candidate
        assert evaluation.match_details == match_reference(
            deep_learning_reference, deep_learning_candidate, matching_settings
        )


class TestEvaluateAllCandidates:
    def test_best_first(
        self, deep_learning_reference, deep_learning_candidate, unrelated_candidate, matching_settings
    ) -> None:
        evaluations = evaluate_all_candidates(
            deep_learning_reference, [unrelated_candidate, deep_learning_candidate], matching_settings
        )
        assert [evaluation.candidate_id for evaluation in evaluations] == ["cand-1", "cand-2"]

    def test_ties_keep_input_order(self, deep_learning_reference, deep_learning_candidate, matching_settings) -> None:
        twins = [
            Candidate(id=candidate_id, source="s", metadata=deep_learning_candidate.metadata)
            for candidate_id in ("a", "b", "c")
        ]

        forward = evaluate_all_candidates(deep_learning_reference, twins, matching_settings)
        backward = evaluate_all_candidates(deep_learning_reference, list(reversed(twins)), matching_settings)

        assert [evaluation.candidate_id for evaluation in forward] == ["a", "b", "c"]
        assert [evaluation.candidate_id for evaluation in backward] == ["c", "b", "a"]

    def test_no_candidates(self, deep_learning_reference, matching_settings) -> None:
        assert evaluate_all_candidates(deep_learning_reference, [], matching_settings) == []


class TestBestEvaluation:
    def test_empty(self) -> None:
        assert best_evaluation([]) is None

    def test_highest_score_wins(self) -> None:
        best = best_evaluation([_evaluation("a", 40), _evaluation("b", 90), _evaluation("c", 60)])
        assert best is not None
        assert best.candidate_id == "b"

    def test_first_of_equal_scores_wins(self) -> None:
        best = best_evaluation([_evaluation("a", 90), _evaluation("b", 90)])
        assert best is not None
        assert best.candidate_id == "a"
