"""Two-Pass Orchestrator.

Runs a batch in three phases:

1. Survey: every seed at survey fidelity, keeping a fixed-size record.
2. Selection: Tier A/B/C seeds picked from the survey distribution.
3. Re-simulation: Tier A at full fidelity, Tier B at lean fidelity.

Work is issued in chunks. ``iter_chunks`` yields a progress update after
each chunk, which is the only point where a host can yield control or
cancel; ``run`` drives the generator to completion.

Example:
    >>> orchestrator = TwoPassOrchestrator(request)
    >>> for update in orchestrator.iter_chunks():
    ...     print(f"{update.phase}: {update.fraction:.0%}")
    >>> outcome = orchestrator.outcome
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Callable, Iterator

from encounter_sim.core.config import Settings, get_settings
from encounter_sim.core.exceptions import CancelledError, InternalInvariantError
from encounter_sim.core.logging import bind_context, clear_context, get_logger
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.enums import BatchStatus, FidelityMode, SeedTier
from encounter_sim.models.results import (
    DayResult,
    LightweightRun,
    ProgressUpdate,
    SelectedSeed,
    SimulationOutcome,
    SimulationResultBundle,
)
from encounter_sim.models.timeline import SimulationRequest
from encounter_sim.orchestration.analysis import build_analysis, partial_statistics
from encounter_sim.orchestration.cache import RunCache
from encounter_sim.orchestration.runner import AdventuringDayRunner
from encounter_sim.orchestration.seed_selection import (
    at_percentile,
    select_seeds,
    select_tier_c,
    sort_runs,
)


logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]


class CancellationToken:
    """Cooperative cancellation signal, checked between chunks."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next chunk boundary."""
        self._cancelled = True


class TwoPassOrchestrator:
    """Runs a simulation request as a chunked two-pass batch.

    Attributes:
        request: The frozen simulation request.
        iterations: Number of survey runs.
        base_seed: Seed of run 0; run ``i`` uses ``base_seed + i``.
        lightweight: Whether the memory guard limits the batch to the survey.
        outcome: Terminal outcome, set once the generator finishes.
    """

    def __init__(
        self,
        request: SimulationRequest,
        *,
        settings: Settings | None = None,
        template_cache: TemplateCache | None = None,
        run_cache: RunCache | None = None,
        cancel_token: CancellationToken | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            request: Simulation request.
            settings: Simulator settings; defaults to the global settings.
            template_cache: Template cache shared across batches.
            run_cache: Survey cache shared across batches.
            cancel_token: Cancellation signal.
            progress_callback: Called with every progress update by ``run``.
        """
        self.request = request
        self.settings = settings or get_settings()
        batch = self.settings.batch
        version = self.settings.engine_version

        self.template_cache = template_cache or TemplateCache(
            batch.template_cache_capacity, version=version
        )
        self.template_cache.ensure_version(version)
        self.run_cache = run_cache or RunCache(batch.run_cache_capacity, version=version)
        self.run_cache.ensure_version(version)

        self.cancel_token = cancel_token or CancellationToken()
        self.progress_callback = progress_callback
        self.iterations = request.iterations or batch.default_iterations
        self.base_seed = request.seed if request.seed is not None else secrets.randbelow(2**31)
        self.max_k = request.max_k or batch.tier_b_buckets
        self.include_death_runs = (
            request.include_death_runs
            if request.include_death_runs is not None
            else batch.include_death_runs
        )
        self.lightweight = self.iterations > batch.lightweight_threshold
        self.outcome: SimulationOutcome | None = None

        self._runner = AdventuringDayRunner(
            request.party,
            request.timeline,
            settings=self.settings,
            template_cache=self.template_cache,
        )
        self._scenario = request.scenario_hash()
        self._diagnostics: list[str] = []

    # =========================================================================
    # Driving
    # =========================================================================

    def run(self) -> SimulationOutcome:
        """Run the batch to completion (or cancellation).

        Returns:
            The terminal outcome.
        """
        for update in self.iter_chunks():
            if self.progress_callback is not None:
                self.progress_callback(update)
        assert self.outcome is not None
        return self.outcome

    def iter_chunks(self) -> Iterator[ProgressUpdate]:
        """Run the batch, yielding a progress update after every chunk.

        Yields:
            Progress updates; the last one has phase ``done`` unless the
            batch was cancelled.
        """
        bind_context(batch_id=uuid.uuid4().hex[:8], base_seed=self.base_seed)
        try:
            yield from self._execute()
        finally:
            clear_context()

    def _cancelled(self, completed: int, total: int) -> bool:
        if not self.cancel_token.cancelled:
            return False
        error = CancelledError(completed=completed, total=total)
        logger.info("Batch cancelled", completed=completed, total=total)
        self.outcome = SimulationOutcome(status=BatchStatus.CANCELLED, error=error.to_dict())
        return True

    def _execute(self) -> Iterator[ProgressUpdate]:
        logger.info(
            "Batch started",
            iterations=self.iterations,
            lightweight=self.lightweight,
            chunk_size=self.settings.batch.chunk_size,
        )

        runs: list[LightweightRun] = []
        for update in self._survey(runs):
            if update is None:
                return
            yield update

        if self.lightweight:
            representative = self._median_replay(runs)
            bundle = self._bundle(runs, select_tier_c(runs), [], [], representative)
        else:
            selections = select_seeds(
                runs, max_k=self.max_k, include_death_runs=self.include_death_runs
            )
            detailed: list[DayResult] = []
            lean: list[DayResult] = []
            for update in self._resimulate(runs, selections, detailed, lean):
                if update is None:
                    return
                yield update
            representative = self._representative(selections, detailed)
            bundle = self._bundle(runs, selections, detailed, lean, representative)

        self.outcome = SimulationOutcome(status=BatchStatus.COMPLETED, result=bundle)
        logger.info(
            "Batch complete",
            completed_runs=bundle.analysis.completed_runs,
            failed_runs=bundle.analysis.failed_runs,
            win_rate=bundle.analysis.win_rate,
        )
        yield ProgressUpdate(
            phase="done",
            completed=self.iterations,
            total=self.iterations,
            partial=partial_statistics(runs),
        )

    # =========================================================================
    # Phase 1: survey
    # =========================================================================

    def survey_one(self, seed: int) -> LightweightRun:
        """Survey one seed, through the run cache."""
        key = (self._scenario, seed)
        cached = self.run_cache.get(key)
        if cached is not None:
            return cached
        run = self._runner.survey(seed)
        self.run_cache.put(key, run)
        if run.error is not None:
            self._diagnostics.append(f"seed {seed}: {run.error['kind']}: {run.error['message']}")
        return run

    def _survey(self, runs: list[LightweightRun]) -> Iterator[ProgressUpdate | None]:
        chunk_size = self.settings.batch.chunk_size
        for start in range(0, self.iterations, chunk_size):
            if self._cancelled(start, self.iterations):
                yield None
                return
            stop = min(start + chunk_size, self.iterations)
            for index in range(start, stop):
                runs.append(self.survey_one(self.base_seed + index))
            logger.debug("Survey chunk complete", completed=stop, total=self.iterations)
            yield ProgressUpdate(
                phase="survey",
                completed=stop,
                total=self.iterations,
                partial=partial_statistics(runs),
            )

    # =========================================================================
    # Phase 3: re-simulation
    # =========================================================================

    def _resimulate(
        self,
        runs: list[LightweightRun],
        selections: list[SelectedSeed],
        detailed: list[DayResult],
        lean: list[DayResult],
    ) -> Iterator[ProgressUpdate | None]:
        surveyed = {r.seed: r for r in runs}
        work: list[tuple[int, FidelityMode]] = []
        seen: set[int] = set()
        for selection in selections:
            if selection.tier is SeedTier.C or selection.seed in seen:
                continue
            seen.add(selection.seed)
            fidelity = FidelityMode.FULL if selection.tier is SeedTier.A else FidelityMode.LEAN
            work.append((selection.seed, fidelity))

        chunk_size = self.settings.batch.chunk_size
        total = len(work)
        for start in range(0, total, chunk_size):
            if self._cancelled(start, total):
                yield None
                return
            for seed, fidelity in work[start : start + chunk_size]:
                day = self._runner.run(seed, fidelity)
                if fidelity is FidelityMode.FULL:
                    self._check_consistency(day, surveyed[seed])
                    detailed.append(day)
                else:
                    lean.append(day)
            yield ProgressUpdate(
                phase="resimulate",
                completed=min(start + chunk_size, total),
                total=total,
            )

    def _check_consistency(self, day: DayResult, survey: LightweightRun) -> None:
        """A re-run seed must reproduce its surveyed score."""
        if day.final_score == survey.final_score:
            return
        error = InternalInvariantError(
            "Re-simulated score differs from the survey",
            current_state=str(day.final_score),
            expected_states=[str(survey.final_score)],
            details={"seed": day.seed},
        )
        logger.error("Two-pass consistency violated", seed=day.seed, error=str(error))
        self._diagnostics.append(str(error))

    # =========================================================================
    # Results
    # =========================================================================

    def _median_replay(self, runs: list[LightweightRun]) -> DayResult | None:
        sorted_runs = sort_runs(runs)
        if not sorted_runs:
            return None
        return self._runner.run(at_percentile(sorted_runs, 50).seed, FidelityMode.FULL)

    @staticmethod
    def _representative(
        selections: list[SelectedSeed],
        detailed: list[DayResult],
    ) -> DayResult | None:
        """The full replay of the Tier A median seed."""
        median = next(
            (s.seed for s in selections if s.tier is SeedTier.A and s.target_percentile == 50),
            None,
        )
        return next((d for d in detailed if d.seed == median), None)

    def _bundle(
        self,
        runs: list[LightweightRun],
        selections: list[SelectedSeed],
        detailed: list[DayResult],
        lean: list[DayResult],
        representative: DayResult | None,
    ) -> SimulationResultBundle:
        analysis = build_analysis(
            runs,
            iterations=self.iterations,
            selections=selections,
            detailed_runs=detailed,
            lean_runs=lean,
        )
        return SimulationResultBundle(
            engine_version=self.settings.engine_version,
            base_seed=self.base_seed,
            lightweight=self.lightweight,
            runs=runs,
            analysis=analysis,
            selected_seeds=selections,
            detailed_runs=detailed,
            lean_runs=lean,
            representative=representative,
            diagnostics=list(self._diagnostics),
        )


__all__ = ["CancellationToken", "ProgressCallback", "TwoPassOrchestrator"]
