"""
CLI entry point for matching and verifying references.

This is the imperative shell: it parses arguments, loads settings and JSON inputs, wires the in-memory search
providers and calls the matching core. Results are written as CSV.

    source-taster match match_input.json [--settings settings.json] [--output evaluations.csv]
    source-taster verify verification_input.json [--settings settings.json] [--output results.csv]

The settings file may also be given through the SOURCE_TASTER_SETTINGS environment variable (or a .env file).
"""

import os
import csv
import sys
import asyncio
import argparse
from typing import Dict, Iterable, List, Mapping, Sequence

from dotenv import load_dotenv
from aletk.ResultMonad import main_try_except_wrapper
from aletk.utils import get_logger

from source_taster.adapters.json_file.json_reader import (
    MatchInput,
    VerificationInput,
    read_match_input,
    read_verification_input,
)
from source_taster.adapters.static.static_search_provider import StaticSearchProvider
from source_taster.domain.parsing_result import ParsingError, is_parsing_success, partition_results
from source_taster.logic.functions import classify_match_quality
from source_taster.logic.models import Candidate, CandidateEvaluation
from source_taster.matching.coordinator import evaluate_all_candidates
from source_taster.ports.settings import (
    DEFAULT_MATCHING_SETTINGS,
    MatchingSettings,
    MatchQualityThresholds,
    VerificationSettings,
    load_verification_settings,
)
from source_taster.procedures.verification import VerificationOrchestrator

# Load .env file at module import
load_dotenv()

lgr = get_logger(__name__)


SETTINGS_ENV_VAR = "SOURCE_TASTER_SETTINGS"

MATCH_COLUMNS = ["rank", "candidate_id", "source", "url", "overall_score", "match_quality", "field_scores"]
VERIFICATION_COLUMNS = [
    "reference_id",
    "phase",
    "score",
    "match_quality",
    "best_candidate_id",
    "best_candidate_source",
    "best_candidate_url",
    "error",
]


# ============================================================================
# Infrastructure Setup (Imperative)
# ============================================================================


def resolve_settings_path(cli_value: str | None) -> str | None:
    """The --settings argument wins over the environment variable."""
    if cli_value:
        return cli_value
    return os.getenv(SETTINGS_ENV_VAR) or None


def default_verification_settings(verification_input: VerificationInput) -> VerificationSettings:
    """Balanced matching settings, sources in the order of the input file."""
    return VerificationSettings(
        matching_settings=DEFAULT_MATCHING_SETTINGS,
        sources=list(verification_input.candidates_by_source.keys()),
    )


def build_providers(
    candidates_by_source: Mapping[str, Mapping[str, Sequence[Candidate]]],
) -> Dict[str, StaticSearchProvider]:
    return {
        source: StaticSearchProvider(name=source, candidates_by_reference_id=by_reference)
        for source, by_reference in candidates_by_source.items()
    }


def _log_parsing_errors(errors: Iterable[ParsingError], what: str) -> None:
    for error in errors:
        lgr.warning(f"Skipping {what}: {error['message']} ({error['context']})")


# ============================================================================
# Rows
# ============================================================================


def format_field_scores(evaluation: CandidateEvaluation) -> str:
    return "; ".join(f"{d.field}={d.field_score}" for d in evaluation.match_details.field_details)


def build_match_rows(
    evaluations: Sequence[CandidateEvaluation],
    thresholds: MatchQualityThresholds,
) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []

    for rank, evaluation in enumerate(evaluations, start=1):
        candidate = evaluation.candidate
        score = evaluation.match_details.overall_score
        quality = classify_match_quality(score, thresholds.exact_match_threshold, thresholds.high_match_threshold)
        rows.append(
            {
                "rank": str(rank),
                "candidate_id": evaluation.candidate_id,
                "source": "" if candidate is None else candidate.source,
                "url": "" if candidate is None or candidate.url is None else candidate.url,
                "overall_score": str(score),
                "match_quality": quality.value,
                "field_scores": format_field_scores(evaluation),
            }
        )

    return rows


def build_verification_rows(
    orchestrator: VerificationOrchestrator,
    thresholds: MatchQualityThresholds,
) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []

    for reference_id, state in orchestrator.states.items():
        best = orchestrator.best_evaluation_for(reference_id)
        candidate = None if best is None else best.candidate

        quality = ""
        if state.score is not None:
            quality = classify_match_quality(
                state.score, thresholds.exact_match_threshold, thresholds.high_match_threshold
            ).value

        rows.append(
            {
                "reference_id": reference_id,
                "phase": state.phase.value,
                "score": "" if state.score is None else str(state.score),
                "match_quality": quality,
                "best_candidate_id": "" if best is None else best.candidate_id,
                "best_candidate_source": "" if candidate is None else candidate.source,
                "best_candidate_url": "" if candidate is None or candidate.url is None else candidate.url,
                "error": state.error or "",
            }
        )

    return rows


def write_rows_to_csv(rows: Iterable[Mapping[str, str]], fieldnames: List[str], output_path: str | None) -> None:
    """Write rows to a CSV file, or to stdout when no path is given."""
    if output_path is None:
        writer = csv.DictWriter(sys.stdout, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
        return

    with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)

    lgr.info(f"Wrote results to {output_path}")


# ============================================================================
# Commands
# ============================================================================


def run_match(match_input: MatchInput, matching_settings: MatchingSettings) -> List[Dict[str, str]]:
    reference_result = match_input.reference
    if not is_parsing_success(reference_result):
        raise ValueError(f"Invalid reference: {reference_result['message']}")

    reference = reference_result["out"]
    candidates, errors = partition_results(match_input.candidates)
    _log_parsing_errors(errors, "candidate")

    lgr.info(f"Matching reference '{reference.id}' against {len(candidates)} candidate(s)...")
    evaluations = evaluate_all_candidates(reference, candidates, matching_settings)

    return build_match_rows(evaluations, matching_settings.matching_config.match_thresholds)


async def run_verification(
    verification_input: VerificationInput,
    settings: VerificationSettings,
) -> VerificationOrchestrator:
    references, reference_errors = partition_results(verification_input.references)
    _log_parsing_errors(reference_errors, "reference")

    candidates_by_source: Dict[str, Dict[str, List[Candidate]]] = {}
    for source, by_reference in verification_input.candidates_by_source.items():
        candidates_by_source[source] = {}
        for reference_id, results in by_reference.items():
            candidates, candidate_errors = partition_results(results)
            _log_parsing_errors(candidate_errors, f"{source} candidate")
            candidates_by_source[source][reference_id] = candidates

    orchestrator = VerificationOrchestrator(providers=build_providers(candidates_by_source), settings=settings)
    await orchestrator.verify(references)

    return orchestrator


@main_try_except_wrapper(lgr)
def main_match(input_path: str, settings_path: str | None, output_path: str | None) -> None:
    match_input = read_match_input(input_path)

    matching_settings = match_input.matching_settings
    if matching_settings is None and settings_path is not None:
        matching_settings = load_verification_settings(settings_path).matching_settings
    if matching_settings is None:
        matching_settings = DEFAULT_MATCHING_SETTINGS

    rows = run_match(match_input, matching_settings)
    write_rows_to_csv(rows, MATCH_COLUMNS, output_path)


@main_try_except_wrapper(lgr)
def main_verify(input_path: str, settings_path: str | None, output_path: str | None) -> None:
    verification_input = read_verification_input(input_path)

    if settings_path is not None:
        settings = load_verification_settings(settings_path)
    else:
        settings = default_verification_settings(verification_input)

    orchestrator = asyncio.run(run_verification(verification_input, settings))

    if orchestrator.error is not None:
        lgr.error(f"Verification failed: {orchestrator.error}")

    progress = orchestrator.progress()
    lgr.info(f"Verified {progress.finished}/{progress.total} reference(s).")

    thresholds = settings.matching_settings.matching_config.match_thresholds
    write_rows_to_csv(build_verification_rows(orchestrator, thresholds), VERIFICATION_COLUMNS, output_path)


# ============================================================================
# CLI
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="source-taster",
        description="Score bibliographic references against candidate records from external databases.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    match_parser = subparsers.add_parser("match", help="Rank the candidates of a single reference.")
    verify_parser = subparsers.add_parser("verify", help="Verify references against candidates per source.")

    for subparser in (match_parser, verify_parser):
        subparser.add_argument("input", type=str, help="Path to the JSON input file.")
        subparser.add_argument(
            "--settings",
            "-s",
            type=str,
            default=None,
            help=f"Path to a JSON settings file. Defaults to ${SETTINGS_ENV_VAR}, then to the balanced preset.",
        )
        subparser.add_argument(
            "--output",
            "-o",
            type=str,
            default=None,
            help="Path to the output CSV file. Defaults to stdout.",
        )

    return parser


def cli() -> None:
    args = build_parser().parse_args()
    settings_path = resolve_settings_path(args.settings)

    if args.command == "match":
        main_match(args.input, settings_path, args.output)
    else:
        main_verify(args.input, settings_path, args.output)


if __name__ == "__main__":
    cli()
