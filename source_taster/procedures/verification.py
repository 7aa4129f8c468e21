"""
Multi-source verification of references.

For every enabled source, in priority order, each unresolved reference is searched, its accumulated candidates are
scored, and the reference is resolved early once its best score reaches the early termination threshold. Every
reference moves through an explicit state machine:

    idle -> searching(source) -> matching -> searching(next source) | done | error | cancelled

Sources and references are processed sequentially; the only suspension points are the provider searches. A run is
cancelled cooperatively through its CancellationToken, checked before every search and every match step. A search
already in flight is raced against the token, and its late result is discarded.
"""

import asyncio
import time
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Sequence

import attrs
from aletk.utils import get_logger

from source_taster.logic.enums import FailurePolicy, VerificationPhase
from source_taster.logic.functions import round_half_up
from source_taster.logic.models import (
    Candidate,
    CandidateEvaluation,
    ProgressSummary,
    Reference,
    VerificationState,
)
from source_taster.matching.coordinator import best_evaluation, evaluate_all_candidates
from source_taster.ports.search_provider import SearchProvider, SearchProviderError
from source_taster.ports.settings import VerificationSettings


lgr = get_logger(__name__)


# ============================================================================
# Errors and cancellation
# ============================================================================


class VerificationCancelled(Exception):
    """Unwinds a run once its cancellation token is set. Never escapes `verify`."""


class MatchComputationError(Exception):
    """Raised when scoring the candidates of a reference fails unexpectedly."""


class VerificationStateError(Exception):
    """Raised on an illegal verification phase transition."""


class CancellationToken:
    """
    One-shot cancellation signal shared by every step of a verification run.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise VerificationCancelled()


# ============================================================================
# State machine
# ============================================================================


ALLOWED_TRANSITIONS: Dict[VerificationPhase, FrozenSet[VerificationPhase]] = {
    VerificationPhase.IDLE: frozenset(
        {VerificationPhase.SEARCHING, VerificationPhase.ERROR, VerificationPhase.CANCELLED}
    ),
    VerificationPhase.SEARCHING: frozenset(
        {VerificationPhase.MATCHING, VerificationPhase.ERROR, VerificationPhase.CANCELLED}
    ),
    VerificationPhase.MATCHING: frozenset(
        {
            VerificationPhase.SEARCHING,
            VerificationPhase.MATCHING,
            VerificationPhase.DONE,
            VerificationPhase.ERROR,
            VerificationPhase.CANCELLED,
        }
    ),
    VerificationPhase.DONE: frozenset(),
    VerificationPhase.ERROR: frozenset(),
    VerificationPhase.CANCELLED: frozenset(),
}


@attrs.define(slots=True)
class VerificationRun:
    """
    Mutable bookkeeping of a single `verify` call. Owned by the orchestrator; a superseded run only ever writes to
    its own maps.
    """

    token: CancellationToken
    states: Dict[str, VerificationState]
    candidates: Dict[str, List[Candidate]]
    evaluations: Dict[str, List[CandidateEvaluation]]
    error: str | None = None
    finished: bool = False


def _discard_late_result(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return

    exception = task.exception()
    if exception is not None:
        lgr.debug(f"Discarded failure of a cancelled search: {exception!r}")


# ============================================================================
# Orchestrator
# ============================================================================


class VerificationOrchestrator:
    """
    Drives verification runs over a fixed set of search providers.

    Args:
        providers: Mapping[str, SearchProvider], by source name; every source in `settings.sources` needs one
        settings: VerificationSettings
        clock: Callable[[], float], timestamp source for state updates
    """

    def __init__(
        self,
        providers: Mapping[str, SearchProvider],
        settings: VerificationSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        missing = [source for source in settings.sources if source not in providers]
        if missing:
            raise ValueError(f"No search provider registered for source(s): {', '.join(missing)}")

        self._providers = dict(providers)
        self._settings = settings
        self._clock = clock
        self._run: VerificationRun | None = None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def states(self) -> Dict[str, VerificationState]:
        if self._run is None:
            return {}
        return dict(self._run.states)

    @property
    def error(self) -> str | None:
        return None if self._run is None else self._run.error

    @property
    def is_verifying(self) -> bool:
        return self._run is not None and not self._run.finished

    def evaluations_for(self, reference_id: str) -> List[CandidateEvaluation]:
        if self._run is None:
            return []
        return list(self._run.evaluations.get(reference_id, []))

    def best_evaluation_for(self, reference_id: str) -> CandidateEvaluation | None:
        return best_evaluation(self.evaluations_for(reference_id))

    def candidates_for(self, reference_id: str) -> List[Candidate]:
        if self._run is None:
            return []
        return list(self._run.candidates.get(reference_id, []))

    def progress(self) -> ProgressSummary:
        states = self.states
        total = len(states)
        finished = sum(1 for state in states.values() if state.is_terminal)
        percent = round_half_up(finished * 100 / total) if total else 0
        return ProgressSummary(total=total, finished=finished, percent=percent)

    def cancel(self) -> None:
        """
        Cancel the run in flight, if any. Its non-terminal references end up cancelled once `verify` unwinds.
        """
        if self._run is not None and not self._run.finished:
            lgr.info("Cancelling verification run...")
            self._run.token.cancel()

    def reset(self) -> None:
        """
        Cancel the run in flight, if any, and forget all states.
        """
        self.cancel()
        self._run = None

    async def verify(self, references: Sequence[Reference]) -> None:
        """
        Verify references against every enabled source. Supersedes (cancels) a run already in flight.

        Never raises for provider failures, matching failures or cancellation: they are reported through `states`
        and `error`. An external `asyncio.CancelledError` marks the references cancelled and is re-raised.
        """
        if self._run is not None:
            self._run.token.cancel()

        unique_references = self._deduplicate(references)
        run = VerificationRun(
            token=CancellationToken(),
            states={
                reference.id: VerificationState(phase=VerificationPhase.IDLE, updated_at=self._clock())
                for reference in unique_references
            },
            candidates={reference.id: [] for reference in unique_references},
            evaluations={reference.id: [] for reference in unique_references},
        )
        self._run = run

        lgr.info(
            f"Verifying {len(unique_references)} reference(s) against source(s) {', '.join(self._settings.sources)}..."
        )

        try:
            await self._execute(run, unique_references)
            lgr.info("Verification run completed.")

        except VerificationCancelled:
            self._cancel_unresolved(run)
            lgr.info("Verification run cancelled.")

        except asyncio.CancelledError:
            self._cancel_unresolved(run)
            raise

        except (SearchProviderError, MatchComputationError) as e:
            run.error = str(e)
            self._cancel_unresolved(run)
            lgr.error(f"Verification run aborted: {e}")

        finally:
            run.finished = True

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    @staticmethod
    def _deduplicate(references: Sequence[Reference]) -> List[Reference]:
        seen: Dict[str, Reference] = {}
        for reference in references:
            if reference.id in seen:
                lgr.warning(f"Duplicate reference id '{reference.id}', keeping its first occurrence.")
                continue
            seen[reference.id] = reference
        return list(seen.values())

    async def _execute(self, run: VerificationRun, references: List[Reference]) -> None:
        unresolved = references

        for source in self._settings.sources:
            if not unresolved:
                break

            provider = self._providers[source]
            still_unresolved: List[Reference] = []

            for reference in unresolved:
                resolved = await self._verify_with_source(run, reference, source, provider)
                if not resolved:
                    still_unresolved.append(reference)

            unresolved = still_unresolved

        for reference in unresolved:
            run.token.raise_if_cancelled()

            if not self._settings.early_termination.enabled:
                try:
                    self._transition(run, reference.id, VerificationPhase.MATCHING)
                    self._match(run, reference)
                except MatchComputationError as e:
                    self._fail(run, reference, e)
                    continue

            score = run.states[reference.id].score
            self._transition(run, reference.id, VerificationPhase.DONE, score=score or 0)

    async def _verify_with_source(
        self,
        run: VerificationRun,
        reference: Reference,
        source: str,
        provider: SearchProvider,
    ) -> bool:
        """
        One search and match step. Returns whether the reference is resolved (done or failed).
        """
        try:
            run.token.raise_if_cancelled()
            self._transition(run, reference.id, VerificationPhase.SEARCHING, source=source)
            found = await self._search(run, reference, source, provider)
            run.candidates[reference.id].extend(found)

            run.token.raise_if_cancelled()
            self._transition(run, reference.id, VerificationPhase.MATCHING)
            best_score = self._match(run, reference)

        except (SearchProviderError, MatchComputationError) as e:
            self._fail(run, reference, e)
            return True

        early_termination = self._settings.early_termination
        if early_termination.enabled and best_score >= early_termination.threshold:
            lgr.info(
                f"Reference '{reference.id}' resolved by {source} with score {best_score} "
                f"(threshold {early_termination.threshold})."
            )
            self._transition(run, reference.id, VerificationPhase.DONE, score=best_score)
            return True

        return False

    async def _search(
        self,
        run: VerificationRun,
        reference: Reference,
        source: str,
        provider: SearchProvider,
    ) -> List[Candidate]:
        metadata = {**reference.metadata, "id": reference.id}

        async def _call_provider() -> Sequence[Candidate]:
            return await provider.search(metadata)

        search_task = asyncio.ensure_future(_call_provider())
        cancel_task = asyncio.ensure_future(run.token.wait())

        try:
            await asyncio.wait({search_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            search_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if run.token.is_cancelled:
            search_task.add_done_callback(_discard_late_result)
            raise VerificationCancelled()

        try:
            found = list(search_task.result())
        except SearchProviderError:
            raise
        except Exception as e:
            raise SearchProviderError(source, str(e) or type(e).__name__) from e

        lgr.debug(f"{source} returned {len(found)} candidate(s) for reference '{reference.id}'")
        return found

    def _match(self, run: VerificationRun, reference: Reference) -> int:
        try:
            evaluations = evaluate_all_candidates(
                reference,
                run.candidates[reference.id],
                self._settings.matching_settings,
            )
        except Exception as e:
            raise MatchComputationError(f"Scoring the candidates of reference '{reference.id}' failed: {e}") from e

        run.evaluations[reference.id] = evaluations
        best_score = evaluations[0].match_details.overall_score if evaluations else 0

        state = run.states[reference.id]
        run.states[reference.id] = attrs.evolve(state, score=best_score, updated_at=self._clock())
        return best_score

    def _fail(self, run: VerificationRun, reference: Reference, error: Exception) -> None:
        """
        Mark a single reference failed. Under the abort policy the error is re-raised and ends the run.
        """
        self._transition(run, reference.id, VerificationPhase.ERROR, error=str(error))
        if self._settings.failure_policy is FailurePolicy.ABORT:
            raise error

        lgr.warning(f"Verification of reference '{reference.id}' failed: {error}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, run: VerificationRun, reference_id: str, phase: VerificationPhase, **changes: Any) -> None:
        current = run.states[reference_id]
        if phase not in ALLOWED_TRANSITIONS[current.phase]:
            raise VerificationStateError(
                f"Illegal transition {current.phase.value} -> {phase.value} for reference '{reference_id}'"
            )

        run.states[reference_id] = attrs.evolve(current, phase=phase, updated_at=self._clock(), **changes)
        lgr.debug(f"Reference '{reference_id}': {current.phase.value} -> {phase.value}")

    def _cancel_unresolved(self, run: VerificationRun) -> None:
        for reference_id, state in run.states.items():
            if not state.is_terminal:
                self._transition(run, reference_id, VerificationPhase.CANCELLED)
