"""
In-memory search provider.

Serves pre-fetched candidates by reference id, e.g. candidates saved from an earlier run of the real database
clients, so verification can be replayed offline.
"""

from typing import Any, Dict, List, Mapping, Sequence

from aletk.utils import get_logger

from source_taster.logic.models import Candidate
from source_taster.ports.search_provider import SearchProviderError


lgr = get_logger(__name__)


class StaticSearchProvider:
    """
    Args:
        name: str, the source name
        candidates_by_reference_id: Mapping[str, Sequence[Candidate]]
        failing_reference_ids: frozenset of reference ids whose search fails, to replay outages
    """

    def __init__(
        self,
        name: str,
        candidates_by_reference_id: Mapping[str, Sequence[Candidate]],
        failing_reference_ids: frozenset[str] = frozenset(),
    ) -> None:
        self.name = name
        self._candidates: Dict[str, List[Candidate]] = {
            reference_id: list(candidates) for reference_id, candidates in candidates_by_reference_id.items()
        }
        self._failing_reference_ids = failing_reference_ids
        self.queried_reference_ids: List[str] = []

    async def search(self, metadata: Mapping[str, Any]) -> Sequence[Candidate]:
        reference_id = str(metadata.get("id", ""))
        self.queried_reference_ids.append(reference_id)

        if reference_id in self._failing_reference_ids:
            raise SearchProviderError(self.name, f"Search failed for reference '{reference_id}'")

        found = self._candidates.get(reference_id, [])
        lgr.debug(f"{self.name}: {len(found)} stored candidate(s) for reference '{reference_id}'")
        return list(found)
