"""
JSON input for the command line tools.

A match input file holds one reference, its candidates and optionally matching settings:

    {"reference": {"id": ..., "metadata": {...}}, "candidates": [{"id": ..., "source": ..., "metadata": {...}}],
     "matchingSettings": {...}}

A verification input file holds the references and, per source, the candidates that source returns for each
reference id:

    {"references": [...], "candidates": {"crossref": {"ref-1": [...]}, "openalex": {...}}}
"""

import json
from pathlib import Path
from typing import Any, Dict, List, NamedTuple

from pydantic import BaseModel, Field
from aletk.utils import get_logger, remove_extra_whitespace

from source_taster.domain.parsing_result import ParsedResult
from source_taster.logic.models import Candidate, Reference
from source_taster.ports.settings import MatchingSettings


lgr = get_logger(__name__)


# ============================================================================
# Raw records (Pydantic at boundary)
# ============================================================================


class RawReference(BaseModel):
    id: str = Field(min_length=1)
    metadata: Dict[str, Any] = {}


class RawCandidate(BaseModel):
    id: str = Field(min_length=1)
    source: str = ""
    metadata: Dict[str, Any] = {}
    url: str | None = None


def parse_reference(raw_object: Dict[Any, Any]) -> ParsedResult[Reference]:
    try:
        raw = RawReference.model_validate(raw_object)
        return {
            "out": Reference(id=remove_extra_whitespace(raw.id), metadata=raw.metadata),
            "parsing_status": "success",
        }

    except Exception as e:
        return {
            "parsing_status": "error",
            "message": f"Failed to parse reference: {e}",
            "context": raw_object.__str__(),
        }


def parse_candidate(raw_object: Dict[Any, Any], default_source: str = "") -> ParsedResult[Candidate]:
    """
    Parse a candidate record. Records without a `source` take `default_source`.
    """
    try:
        raw = RawCandidate.model_validate(raw_object)
        source = raw.source or default_source
        if not source:
            raise ValueError("Candidate has no source.")

        return {
            "out": Candidate(id=remove_extra_whitespace(raw.id), source=source, metadata=raw.metadata, url=raw.url),
            "parsing_status": "success",
        }

    except Exception as e:
        return {
            "parsing_status": "error",
            "message": f"Failed to parse candidate: {e}",
            "context": raw_object.__str__(),
        }


# ============================================================================
# Files
# ============================================================================


class MatchInput(NamedTuple):
    reference: ParsedResult[Reference]
    candidates: List[ParsedResult[Candidate]]
    matching_settings: MatchingSettings | None


class VerificationInput(NamedTuple):
    references: List[ParsedResult[Reference]]
    candidates_by_source: Dict[str, Dict[str, List[ParsedResult[Candidate]]]]


def read_json_file(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_match_input(path: str | Path) -> MatchInput:
    """
    Raises:
        FileNotFoundError, json.JSONDecodeError, ValueError when the file is not a JSON object,
        pydantic.ValidationError when matching settings are present but invalid
    """
    raw = read_json_file(path)
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(raw).__name__}.")

    raw_settings = raw.get("matchingSettings")
    matching_settings = MatchingSettings.model_validate(raw_settings) if raw_settings is not None else None

    candidates = [parse_candidate(item) for item in raw.get("candidates", [])]
    lgr.debug(f"Read {len(candidates)} candidate(s) from {path}")

    return MatchInput(
        reference=parse_reference(raw.get("reference", {})),
        candidates=candidates,
        matching_settings=matching_settings,
    )


def read_verification_input(path: str | Path) -> VerificationInput:
    """
    Raises:
        FileNotFoundError, json.JSONDecodeError, ValueError when the file is not a JSON object
    """
    raw = read_json_file(path)
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(raw).__name__}.")

    references = [parse_reference(item) for item in raw.get("references", [])]

    candidates_by_source: Dict[str, Dict[str, List[ParsedResult[Candidate]]]] = {}
    for source, by_reference in raw.get("candidates", {}).items():
        candidates_by_source[source] = {
            reference_id: [parse_candidate(item, default_source=source) for item in items]
            for reference_id, items in by_reference.items()
        }

    lgr.debug(f"Read {len(references)} reference(s) and {len(candidates_by_source)} source(s) from {path}")
    return VerificationInput(references=references, candidates_by_source=candidates_by_source)
