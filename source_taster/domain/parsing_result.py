"""
Parsing result types for raw input records.

Raw references and candidates (JSON records from files or providers) are converted into domain objects without
raising: every conversion returns either the object or a description of what was wrong with the record.
"""

from typing import Iterable, List, Tuple, TypedDict, TypeGuard
from typing_extensions import Literal


class ParsingSuccess[T](TypedDict, total=True):
    """
    A record converted into a domain object.
    """

    out: T
    parsing_status: Literal["success"]


class ParsingError(TypedDict, total=True):
    """
    A record that could not be converted.
    """

    parsing_status: Literal["error"]
    message: str
    context: str  # The offending record, for debugging


type ParsedResult[T] = ParsingSuccess[T] | ParsingError


def is_parsing_success[T](result: ParsedResult[T]) -> TypeGuard[ParsingSuccess[T]]:
    return result.get("parsing_status") == "success"


def partition_results[T](results: Iterable[ParsedResult[T]]) -> Tuple[List[T], List[ParsingError]]:
    """
    Split parsing results into the converted objects and the errors, both in input order.
    """
    successes: List[T] = []
    errors: List[ParsingError] = []

    for result in results:
        if is_parsing_success(result):
            successes.append(result["out"])
        else:
            errors.append(result)

    return successes, errors
