"""Tests for generic, array, numeric-token and page-range similarity."""

import pytest

from source_taster.logic.enums import NormalizationRule
from source_taster.matching.similarity import (
    PageRange,
    compare_arrays,
    container_title_similarity,
    contains_numeric_token,
    edit_similarity,
    extract_integers,
    page_similarity,
    parse_page_range,
    range_overlap,
    similarity,
    strip_acronyms,
)


PUNCTUATION_AND_CASE = [NormalizationRule.PUNCTUATION, NormalizationRule.LOWERCASE]


# ============================================================================
# Generic scorer
# ============================================================================


class TestSimilarity:
    def test_identical_after_normalization(self) -> None:
        assert similarity("Deep Learning", "Deep learning.", PUNCTUATION_AND_CASE) == 1.0

    def test_case_matters_without_rules(self) -> None:
        assert similarity("Deep Learning", "deep learning", []) < 1.0

    def test_symmetric(self) -> None:
        assert similarity("kitten", "sitting", []) == similarity("sitting", "kitten", [])
        assert similarity("kitten", "sitting", []) == pytest.approx(1 - 3 / 7)

    def test_transposition_counts_once(self) -> None:
        assert edit_similarity("abcd", "abdc") == pytest.approx(0.75)

    def test_both_empty_is_neutral(self) -> None:
        assert similarity(None, "", []) == 0.5

    def test_one_empty_is_low(self) -> None:
        assert similarity("Deep Learning", None, []) == 0.1
        assert similarity("", "Deep Learning", []) == 0.1

    def test_empty_after_normalization(self) -> None:
        assert similarity("...", "!!!", [NormalizationRule.PUNCTUATION]) == 0.5

    def test_stringifies_structured_values(self) -> None:
        assert similarity({"date-parts": [[2020]]}, "2020", []) == 1.0


# ============================================================================
# Array scorer
# ============================================================================


class TestCompareArrays:
    def test_subset_scores_full(self) -> None:
        reference = [{"family": "Smith"}]
        candidate = [{"family": "Smith"}, {"family": "Jones"}]
        assert compare_arrays(reference, candidate, []) == 1.0

    def test_not_symmetric(self) -> None:
        reference = [{"family": "Smith"}]
        candidate = [{"family": "Smith"}, {"family": "Jones"}]
        assert compare_arrays(candidate, reference, []) == pytest.approx(0.5)
        assert compare_arrays(reference, candidate, []) != compare_arrays(candidate, reference, [])

    def test_best_match_per_item_is_averaged(self) -> None:
        reference = ["abcd", "wxyz"]
        candidate = ["abdc", "wxyz"]
        assert compare_arrays(reference, candidate, []) == pytest.approx((0.75 + 1.0) / 2)

    def test_empty_arrays(self) -> None:
        assert compare_arrays([], [], []) == 0.5
        assert compare_arrays([], ["a"], []) == 0.1
        assert compare_arrays(["a"], [], []) == 0.1


# ============================================================================
# Numeric tokens
# ============================================================================


class TestNumericTokens:
    def test_extract_integers(self) -> None:
        assert extract_integers("Vol. 12, Suppl. 3") == [12, 3]
        assert extract_integers("none") == []

    def test_supplement_volume_contains_volume(self) -> None:
        assert contains_numeric_token("Vol. 12, Suppl. 3", "12", []) is True

    def test_only_first_candidate_number_counts(self) -> None:
        assert contains_numeric_token("12", "3-12", []) is False

    def test_mismatch(self) -> None:
        assert contains_numeric_token("Vol. 12", "13", []) is False

    def test_missing_numbers(self) -> None:
        assert contains_numeric_token("no numbers", "12", []) is False
        assert contains_numeric_token("12", "", []) is False


# ============================================================================
# Page ranges
# ============================================================================


class TestParsePageRange:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("123", PageRange(start=123, end=123)),
            ("123-145", PageRange(start=123, end=145)),
            ("123-45", PageRange(start=123, end=145)),
            ("pp. 123–145", PageRange(start=123, end=145)),
            ("p 7", PageRange(start=7, end=7)),
            ("145-123", PageRange(start=123, end=145)),
            ("5-9", PageRange(start=5, end=9)),
            ("129-5", PageRange(start=125, end=129)),
        ],
    )
    def test_parses(self, text: str, expected: PageRange) -> None:
        assert parse_page_range(text) == expected

    @pytest.mark.parametrize("text", ["", "e1234", "12a", "xii-xv", "1-2-3"])
    def test_rejects(self, text: str) -> None:
        assert parse_page_range(text) is None


class TestPageSimilarity:
    def test_range_inside_range(self) -> None:
        assert page_similarity("123-145", "130-140", []) == 1.0

    def test_single_page_inside_range(self) -> None:
        assert page_similarity("123", "123-145", []) == 1.0
        assert page_similarity("130-140", "135", []) == 1.0

    def test_disjoint_ranges(self) -> None:
        assert page_similarity("1-10", "20-30", []) == 0.0

    def test_single_pages(self) -> None:
        assert page_similarity("10", "10", []) == 1.0
        assert page_similarity("10", "11", []) == 0.0

    def test_partial_overlap_is_jaccard(self) -> None:
        assert page_similarity("1-10", "6-15", []) == pytest.approx(5 / 15)

    def test_shorthand(self) -> None:
        assert page_similarity("123-45", "123-145", []) == 1.0

    def test_unparseable(self) -> None:
        assert page_similarity("e1234", "1-10", []) is None

    def test_range_overlap_directly(self) -> None:
        assert range_overlap(PageRange(start=1, end=4), PageRange(start=3, end=6)) == pytest.approx(2 / 6)


# ============================================================================
# Container titles
# ============================================================================


class TestContainerTitles:
    def test_strip_acronyms(self) -> None:
        assert strip_acronyms("Journal of the American Medical Association (JAMA)") == (
            "Journal of the American Medical Association"
        )
        assert strip_acronyms("Proc. (P.N.A.S.) of the Academy") == "Proc. of the Academy"

    def test_words_in_parentheses_are_kept(self) -> None:
        assert strip_acronyms("Nature (Online)") == "Nature (Online)"

    def test_acronym_on_one_side(self) -> None:
        reference = "Journal of the American Medical Association (JAMA)"
        candidate = "Journal of the American Medical Association"
        assert container_title_similarity(reference, candidate, PUNCTUATION_AND_CASE) == 1.0
        assert container_title_similarity(candidate, reference, PUNCTUATION_AND_CASE) == 1.0

    def test_unrelated_titles_stay_unrelated(self) -> None:
        assert container_title_similarity("Nature (NAT)", "Science (SCI)", []) == similarity("Nature", "Science", [])

    def test_acronym_only_title_is_kept(self) -> None:
        assert strip_acronyms("(JAMA)") == "(JAMA)"
