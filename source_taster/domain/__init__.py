"""Domain logic module - pure functions with no I/O or side effects."""

from source_taster.domain.parsing_result import (
    ParsedResult,
    ParsingSuccess,
    ParsingError,
    is_parsing_success,
    partition_results,
)

__all__ = [
    "ParsedResult",
    "ParsingSuccess",
    "ParsingError",
    "is_parsing_success",
    "partition_results",
]
