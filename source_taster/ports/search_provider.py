"""
Abstract search provider interface.

One provider per external bibliographic database (Crossref, OpenAlex, Semantic Scholar, Europe PMC, arXiv, ...).
Providers own their I/O, rate limiting and retries; the verification orchestrator only awaits them.
"""

from typing import Any, Mapping, Protocol, Sequence

from source_taster.logic.models import Candidate


class SearchProvider(Protocol):
    """
    Protocol for search providers that return candidate records for a reference.
    """

    async def search(self, metadata: Mapping[str, Any]) -> Sequence[Candidate]:
        """
        Search the external database for records matching a reference.

        Args:
            metadata: The reference metadata, with `id` set to the reference id

        Returns:
            Zero or more candidates

        Raises:
            Any exception; the orchestrator wraps it in SearchProviderError
        """
        ...


class SearchProviderError(Exception):
    """Raised when a search provider fails or times out."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source
        self.message = message
