"""Result schemas returned across the presentation boundary.

Covers per-encounter and per-day results at each fidelity, the fixed-size
survey record, seed selections, aggregate analysis, progress updates and
the auto-balancer's assessments.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import (
    BatchStatus,
    DifficultyTier,
    EncounterOutcome,
    FidelityMode,
    MonsterRole,
    RunStatus,
    SeedTier,
    Side,
)
from encounter_sim.models.events import Event


_FROZEN = ConfigDict(frozen=True)


# =============================================================================
# Per-run results
# =============================================================================


class CombatantSnapshot(BaseModel):
    """Point-in-time view of one combatant."""

    model_config = _FROZEN

    id: str
    creature_id: str
    name: str
    side: Side
    hp: float
    max_hp: float
    temp_hp: float = 0.0
    alive: bool = True


class RoundSummary(BaseModel):
    """Lean per-round record used for aggregate timelines."""

    model_config = _FROZEN

    round: int
    party_hp: float
    monster_hp: float
    party_alive: int
    monsters_alive: int
    combatants: list[CombatantSnapshot] = Field(default_factory=list)


class EncounterResult(BaseModel):
    """Outcome of one encounter within a run.

    Attributes:
        index: Position of the encounter among the day's encounters.
        outcome: How the encounter ended.
        rounds: Rounds started.
        turns: Turns taken.
        score: Run score after this encounter.
        deaths: Party members dead at the end.
        survivors: Party members alive at the end.
        party_hp: Party hit points remaining.
        monster_hp: Monster hit points remaining.
        resources_start_pct: Party resource value entering, as % of full.
        resources_end_pct: Party resource value leaving, as % of full.
        final_state: Snapshot of every combatant at the end.
        round_summaries: Per-round records (lean and full fidelity).
        events: Retained events (full fidelity, or a capped tail).
        events_dropped: Events emitted but not retained.
        diagnostics: Non-fatal problems seen while running.
    """

    model_config = _FROZEN

    index: int
    name: str = "Encounter"
    outcome: EncounterOutcome
    rounds: int
    turns: int
    score: float
    deaths: int
    survivors: int
    party_hp: float
    monster_hp: float
    resources_start_pct: float
    resources_end_pct: float
    final_state: list[CombatantSnapshot] = Field(default_factory=list)
    round_summaries: list[RoundSummary] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    events_dropped: int = 0
    diagnostics: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resource_drain_pct(self) -> float:
        """Resources spent in this encounter, as % of full."""
        return max(0.0, self.resources_start_pct - self.resources_end_pct)


class DayResult(BaseModel):
    """Outcome of one full adventuring day."""

    model_config = _FROZEN

    seed: int
    fidelity: FidelityMode
    status: RunStatus = RunStatus.OK
    encounters: list[EncounterResult] = Field(default_factory=list)
    final_score: float = 0.0
    tpk_encounter: int | None = None
    error: dict[str, Any] | None = None


class LightweightRun(BaseModel):
    """Fixed-size survey record of one run.

    Its size does not grow with encounter length: only per-encounter
    numbers are kept.
    """

    model_config = _FROZEN

    seed: int
    status: RunStatus = RunStatus.OK
    encounter_scores: list[float] = Field(default_factory=list)
    encounter_deaths: list[int] = Field(default_factory=list)
    encounter_drain: list[float] = Field(default_factory=list)
    encounter_outcomes: list[EncounterOutcome] = Field(default_factory=list)
    final_score: float = 0.0
    hp_lost: float = 0.0
    survivors: int = 0
    deaths: int = 0
    first_death_encounter: int | None = None
    tpk_encounter: int | None = None
    total_rounds: int = 0
    error: dict[str, Any] | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def won(self) -> bool:
        """Whether the party won every encounter of the day."""
        return (
            self.status is RunStatus.OK
            and self.tpk_encounter is None
            and bool(self.encounter_outcomes)
            and all(o is EncounterOutcome.PLAYERS_WIN for o in self.encounter_outcomes)
        )


# =============================================================================
# Seed selection and analysis
# =============================================================================


class SelectedSeed(BaseModel):
    """A seed picked for re-simulation or reporting."""

    model_config = _FROZEN

    seed: int
    tier: SeedTier
    score: float
    target_percentile: float | None = None
    encounter_index: int | None = None
    label: str | None = None


class TimelinePoint(BaseModel):
    """Party and monster HP at the end of one round."""

    model_config = _FROZEN

    encounter: int
    round: int
    party_hp: float
    monster_hp: float


class PercentileTimeline(BaseModel):
    """HP over the day for the run selected at one percentile."""

    model_config = _FROZEN

    percentile: float
    seed: int
    score: float
    tier: SeedTier
    points: list[TimelinePoint] = Field(default_factory=list)


class DecileStats(BaseModel):
    """Summary of one tenth of the runs, ordered by score."""

    model_config = _FROZEN

    decile: int = Field(ge=1, le=10)
    runs: int
    mean_score: float
    win_rate: float
    mean_hp_lost: float
    mean_survivors: float
    mean_rounds: float
    median_seed: int | None = None


class DurationDistribution(BaseModel):
    """Distribution of total rounds per run."""

    model_config = _FROZEN

    histogram: dict[int, int] = Field(default_factory=dict)
    mean: float = 0.0
    median: float = 0.0


class EncounterExtremes(BaseModel):
    """Min, median and max surveyed score of one encounter."""

    model_config = _FROZEN

    encounter_index: int
    min_seed: int
    min_score: float
    median_seed: int
    median_score: float
    max_seed: int
    max_score: float


class AggregateAnalysis(BaseModel):
    """Aggregate statistics over a completed batch."""

    model_config = _FROZEN

    iterations: int
    completed_runs: int
    failed_runs: int
    win_rate: float
    mean_score: float
    score_percentiles: dict[int, float] = Field(default_factory=dict)
    death_percentiles: dict[int, int] = Field(default_factory=dict)
    deciles: list[DecileStats] = Field(default_factory=list)
    duration: DurationDistribution = Field(default_factory=DurationDistribution)
    percentile_timelines: list[PercentileTimeline] = Field(default_factory=list)
    bucket_timelines: list[PercentileTimeline] = Field(default_factory=list)
    encounter_extremes: list[EncounterExtremes] = Field(default_factory=list)


class PartialStatistics(BaseModel):
    """Running statistics available before a batch finishes."""

    model_config = _FROZEN

    completed: int
    win_rate: float
    mean_score: float
    mean_deaths: float
    failed_runs: int = 0


class ProgressUpdate(BaseModel):
    """Progress report yielded once per chunk."""

    model_config = _FROZEN

    phase: Literal["survey", "resimulate", "done"]
    completed: int
    total: int
    partial: PartialStatistics | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fraction(self) -> float:
        """Fraction of the batch complete, from 0 to 1."""
        return self.completed / self.total if self.total else 1.0


class SimulationResultBundle(BaseModel):
    """Final result of a completed batch.

    Attributes:
        engine_version: Engine version that produced the results.
        base_seed: Seed of run 0.
        lightweight: Whether only the survey ran (memory guard).
        runs: One survey record per run, in seed order.
        analysis: Aggregate analysis.
        selected_seeds: Tier A, B and C selections.
        detailed_runs: Tier A re-simulations with full event logs.
        lean_runs: Tier B re-simulations with per-round summaries.
        representative: Full-fidelity replay of the median run.
        diagnostics: Non-fatal problems seen in the batch.
    """

    model_config = _FROZEN

    engine_version: str
    base_seed: int
    lightweight: bool = False
    runs: list[LightweightRun] = Field(default_factory=list)
    analysis: AggregateAnalysis
    selected_seeds: list[SelectedSeed] = Field(default_factory=list)
    detailed_runs: list[DayResult] = Field(default_factory=list)
    lean_runs: list[DayResult] = Field(default_factory=list)
    representative: DayResult | None = None
    diagnostics: list[str] = Field(default_factory=list)


class SimulationOutcome(BaseModel):
    """Terminal state of a batch: completed with a bundle, or cancelled."""

    model_config = _FROZEN

    status: BatchStatus
    result: SimulationResultBundle | None = None
    error: dict[str, Any] | None = None


# =============================================================================
# Auto-balancer results
# =============================================================================


class EncounterMetrics(BaseModel):
    """Death and drain figures that drive tier classification.

    P1 is the worst 1% of outcomes, P99 the best 1%.
    """

    model_config = _FROZEN

    deaths_p1: int = Field(ge=0)
    deaths_p50: int = Field(ge=0)
    deaths_p99: int = Field(ge=0)
    drain_pct: float = Field(ge=0)
    party_size: int = Field(ge=1)


class EncounterAssessment(BaseModel):
    """Isolated and contextual tier of one encounter."""

    model_config = _FROZEN

    metrics: EncounterMetrics
    isolated_tier: DifficultyTier
    contextual_tier: DifficultyTier
    resources_remaining_pct: float


class StatDelta(BaseModel):
    """Cumulative change proposed for one monster."""

    model_config = _FROZEN

    creature_id: str
    role: MonsterRole
    hp: float = 0.0
    ac: float = 0.0
    save_bonus: float = 0.0


class AutoAdjustResult(BaseModel):
    """Advisory stat-delta proposal plus the analysis behind it."""

    model_config = _FROZEN

    target_tier: DifficultyTier
    required_isolated_tier: DifficultyTier | None
    reached: bool
    steps: int
    deltas: list[StatDelta] = Field(default_factory=list)
    adjusted_monsters: list[Creature] = Field(default_factory=list)
    before: EncounterAssessment
    after: EncounterAssessment


__all__ = [
    "CombatantSnapshot",
    "RoundSummary",
    "EncounterResult",
    "DayResult",
    "LightweightRun",
    "SelectedSeed",
    "TimelinePoint",
    "PercentileTimeline",
    "DecileStats",
    "DurationDistribution",
    "EncounterExtremes",
    "AggregateAnalysis",
    "PartialStatistics",
    "ProgressUpdate",
    "SimulationResultBundle",
    "SimulationOutcome",
    "EncounterMetrics",
    "EncounterAssessment",
    "StatDelta",
    "AutoAdjustResult",
]
