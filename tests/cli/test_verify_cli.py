import csv
import json

import pytest

from source_taster.adapters.json_file.json_reader import read_match_input, read_verification_input
from source_taster.cli.verify_cli import (
    MATCH_COLUMNS,
    SETTINGS_ENV_VAR,
    build_parser,
    build_verification_rows,
    default_verification_settings,
    resolve_settings_path,
    run_match,
    run_verification,
    write_rows_to_csv,
)
from source_taster.logic.enums import VerificationPhase
from source_taster.ports.settings import DEFAULT_MATCHING_SETTINGS


REFERENCE = {"id": "ref-1", "metadata": {"title": "Deep Learning", "author": [{"family": "Smith"}], "issued": "2020"}}
GOOD_CANDIDATE = {
    "id": "c1",
    "source": "crossref",
    "url": "https://doi.org/10.1000/dl",
    "metadata": {"title": "Deep learning.", "author": [{"family": "Smith"}], "issued": "2020"},
}
BAD_CANDIDATE = {
    "id": "c2",
    "source": "crossref",
    "metadata": {"title": "Medieval Agriculture", "author": [{"family": "Jones"}], "issued": "1987"},
}


@pytest.fixture
def match_file(tmp_path):
    path = tmp_path / "match.json"
    path.write_text(json.dumps({"reference": REFERENCE, "candidates": [BAD_CANDIDATE, GOOD_CANDIDATE]}), encoding="utf-8")
    return path


@pytest.fixture
def verification_file(tmp_path):
    path = tmp_path / "verify.json"
    path.write_text(
        json.dumps(
            {
                "references": [REFERENCE, {"id": "ref-2", "metadata": {"title": "Unknown Work"}}],
                "candidates": {
                    "crossref": {"ref-1": [BAD_CANDIDATE]},
                    "openalex": {"ref-1": [{**GOOD_CANDIDATE, "source": "openalex"}]},
                },
            }
        ),
        encoding="utf-8",
    )
    return path


# ============================================================================
# Arguments and settings
# ============================================================================


class TestArguments:
    def test_parser(self) -> None:
        args = build_parser().parse_args(["verify", "in.json", "-s", "settings.json", "-o", "out.csv"])

        assert args.command == "verify"
        assert args.input == "in.json"
        assert args.settings == "settings.json"
        assert args.output == "out.csv"

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_settings_path_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv(SETTINGS_ENV_VAR, "/etc/source-taster.json")

        assert resolve_settings_path(None) == "/etc/source-taster.json"
        assert resolve_settings_path("local.json") == "local.json"

    def test_no_settings_path(self, monkeypatch) -> None:
        monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
        assert resolve_settings_path(None) is None

    def test_default_sources_follow_the_input(self, verification_file) -> None:
        settings = default_verification_settings(read_verification_input(verification_file))

        assert settings.sources == ["crossref", "openalex"]
        assert settings.matching_settings == DEFAULT_MATCHING_SETTINGS


# ============================================================================
# Commands
# ============================================================================


class TestRunMatch:
    def test_rows_best_first(self, match_file, matching_settings) -> None:
        rows = run_match(read_match_input(match_file), matching_settings)

        assert [row["candidate_id"] for row in rows] == ["c1", "c2"]
        assert rows[0]["rank"] == "1"
        assert rows[0]["overall_score"] == "100"
        assert rows[0]["match_quality"] == "exact"
        assert rows[0]["url"] == "https://doi.org/10.1000/dl"
        assert rows[0]["field_scores"] == "title=100; author=100; issued=100"
        assert rows[1]["match_quality"] == "none"

    def test_same_id_from_two_sources(self, tmp_path, matching_settings) -> None:
        good = {**GOOD_CANDIDATE, "id": "dup"}
        bad = {**BAD_CANDIDATE, "id": "dup", "source": "openalex", "url": "https://openalex.org/W1"}
        path = tmp_path / "match.json"
        path.write_text(json.dumps({"reference": REFERENCE, "candidates": [bad, good]}), encoding="utf-8")

        rows = run_match(read_match_input(path), matching_settings)

        assert [(row["source"], row["url"]) for row in rows] == [
            ("crossref", "https://doi.org/10.1000/dl"),
            ("openalex", "https://openalex.org/W1"),
        ]

    def test_invalid_reference(self, tmp_path, matching_settings) -> None:
        path = tmp_path / "match.json"
        path.write_text(json.dumps({"reference": {"metadata": {}}, "candidates": []}), encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid reference"):
            run_match(read_match_input(path), matching_settings)


class TestRunVerification:
    @pytest.mark.asyncio
    async def test_second_source_resolves_the_reference(self, verification_file, make_verification_settings) -> None:
        settings = make_verification_settings(["crossref", "openalex"])

        orchestrator = await run_verification(read_verification_input(verification_file), settings)

        assert orchestrator.states["ref-1"].phase is VerificationPhase.DONE
        assert orchestrator.states["ref-1"].score == 100
        best = orchestrator.best_evaluation_for("ref-1")
        assert best is not None and best.candidate_id == "c1"
        assert orchestrator.states["ref-2"].score == 0

    @pytest.mark.asyncio
    async def test_rows_name_the_source_of_the_best_candidate(self, tmp_path, make_verification_settings) -> None:
        path = tmp_path / "verify.json"
        path.write_text(
            json.dumps(
                {
                    "references": [REFERENCE],
                    "candidates": {
                        "crossref": {"ref-1": [{**BAD_CANDIDATE, "id": "dup"}]},
                        "openalex": {"ref-1": [{**GOOD_CANDIDATE, "id": "dup", "source": "openalex"}]},
                    },
                }
            ),
            encoding="utf-8",
        )
        settings = make_verification_settings(["crossref", "openalex"], early_termination=False)

        orchestrator = await run_verification(read_verification_input(path), settings)
        rows = build_verification_rows(orchestrator, DEFAULT_MATCHING_SETTINGS.matching_config.match_thresholds)

        assert rows[0]["best_candidate_id"] == "dup"
        assert rows[0]["best_candidate_source"] == "openalex"
        assert rows[0]["best_candidate_url"] == "https://doi.org/10.1000/dl"


# ============================================================================
# Output
# ============================================================================


class TestWriteRows:
    def test_to_file(self, tmp_path) -> None:
        path = tmp_path / "out.csv"
        row = {column: "" for column in MATCH_COLUMNS} | {"candidate_id": "c1", "overall_score": "100"}

        write_rows_to_csv([row], MATCH_COLUMNS, str(path))

        with open(path, newline="", encoding="utf-8") as f:
            read_back = list(csv.DictReader(f))
        assert read_back == [row]

    def test_to_stdout(self, capsys) -> None:
        write_rows_to_csv([], MATCH_COLUMNS, None)
        assert capsys.readouterr().out.strip() == ",".join(MATCH_COLUMNS)
