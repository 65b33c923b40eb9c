"""Aggregate analysis of a completed batch.

Everything here is computed from the fixed-size survey records plus the
re-simulated Tier A and Tier B runs; no full event log is needed.
"""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Sequence

from encounter_sim.models.enums import RunStatus, SeedTier
from encounter_sim.models.results import (
    AggregateAnalysis,
    DayResult,
    DecileStats,
    DurationDistribution,
    EncounterExtremes,
    LightweightRun,
    PartialStatistics,
    PercentileTimeline,
    SelectedSeed,
    TimelinePoint,
)
from encounter_sim.orchestration.seed_selection import at_percentile, sort_runs


SCORE_PERCENTILES = (1, 5, 10, 25, 50, 75, 90, 95, 99)
"""Percentiles reported for scores and deaths."""


def _mean(values: Sequence[float]) -> float:
    return statistics.fmean(values) if values else 0.0


# =============================================================================
# Distribution summaries
# =============================================================================


def score_percentiles(sorted_runs: Sequence[LightweightRun]) -> dict[int, float]:
    """Nearest-rank score at each reported percentile."""
    if not sorted_runs:
        return {}
    return {p: at_percentile(sorted_runs, p).final_score for p in SCORE_PERCENTILES}


def death_percentiles(sorted_runs: Sequence[LightweightRun]) -> dict[int, int]:
    """Deaths of the run at each reported percentile of score.

    Runs are ordered worst first, so P1 is the worst 1% of outcomes.
    """
    if not sorted_runs:
        return {}
    return {p: at_percentile(sorted_runs, p).deaths for p in SCORE_PERCENTILES}


def decile_stats(sorted_runs: Sequence[LightweightRun]) -> list[DecileStats]:
    """Summaries of ten equal slices of the runs, worst first.

    Args:
        sorted_runs: Successful runs ordered by (score, seed).

    Returns:
        One entry per non-empty decile.
    """
    count = len(sorted_runs)
    deciles = []
    for decile in range(10):
        chunk = sorted_runs[decile * count // 10 : (decile + 1) * count // 10]
        if not chunk:
            continue
        deciles.append(
            DecileStats(
                decile=decile + 1,
                runs=len(chunk),
                mean_score=_mean([r.final_score for r in chunk]),
                win_rate=sum(1 for r in chunk if r.won) / len(chunk),
                mean_hp_lost=_mean([r.hp_lost for r in chunk]),
                mean_survivors=_mean([r.survivors for r in chunk]),
                mean_rounds=_mean([r.total_rounds for r in chunk]),
                median_seed=chunk[len(chunk) // 2].seed,
            )
        )
    return deciles


def duration_distribution(runs: Sequence[LightweightRun]) -> DurationDistribution:
    """Histogram, mean and median of total rounds per run."""
    rounds = [r.total_rounds for r in runs]
    if not rounds:
        return DurationDistribution()
    return DurationDistribution(
        histogram=dict(sorted(Counter(rounds).items())),
        mean=statistics.fmean(rounds),
        median=float(statistics.median(rounds)),
    )


def encounter_extremes(selections: Sequence[SelectedSeed]) -> list[EncounterExtremes]:
    """Group Tier C selections into per-encounter min/median/max records."""
    grouped: dict[int, dict[str, SelectedSeed]] = {}
    for selection in selections:
        if selection.tier is SeedTier.C and selection.encounter_index is not None:
            grouped.setdefault(selection.encounter_index, {})[selection.label or ""] = selection
    extremes = []
    for index, picks in sorted(grouped.items()):
        extremes.append(
            EncounterExtremes(
                encounter_index=index,
                min_seed=picks["min"].seed,
                min_score=picks["min"].score,
                median_seed=picks["median"].seed,
                median_score=picks["median"].score,
                max_seed=picks["max"].seed,
                max_score=picks["max"].score,
            )
        )
    return extremes


# =============================================================================
# Timelines
# =============================================================================


def timeline_points(day: DayResult) -> list[TimelinePoint]:
    """Party and monster HP at the end of every round of a day."""
    points = []
    for encounter in day.encounters:
        for summary in encounter.round_summaries:
            points.append(
                TimelinePoint(
                    encounter=encounter.index,
                    round=summary.round,
                    party_hp=summary.party_hp,
                    monster_hp=summary.monster_hp,
                )
            )
    return points


def percentile_timelines(
    selections: Sequence[SelectedSeed],
    runs_by_seed: dict[int, DayResult],
    tier: SeedTier,
) -> list[PercentileTimeline]:
    """HP timelines for the selections of one tier that have a re-run."""
    timelines = []
    for selection in selections:
        if selection.tier is not tier or selection.target_percentile is None:
            continue
        day = runs_by_seed.get(selection.seed)
        if day is None:
            continue
        timelines.append(
            PercentileTimeline(
                percentile=selection.target_percentile,
                seed=selection.seed,
                score=selection.score,
                tier=tier,
                points=timeline_points(day),
            )
        )
    return timelines


# =============================================================================
# Aggregates
# =============================================================================


def partial_statistics(runs: Sequence[LightweightRun]) -> PartialStatistics:
    """Running statistics over the runs surveyed so far."""
    ok = [r for r in runs if r.status is RunStatus.OK]
    return PartialStatistics(
        completed=len(runs),
        win_rate=sum(1 for r in ok if r.won) / len(ok) if ok else 0.0,
        mean_score=_mean([r.final_score for r in ok]),
        mean_deaths=_mean([r.deaths for r in ok]),
        failed_runs=len(runs) - len(ok),
    )


def build_analysis(
    runs: Sequence[LightweightRun],
    *,
    iterations: int,
    selections: Sequence[SelectedSeed] = (),
    detailed_runs: Sequence[DayResult] = (),
    lean_runs: Sequence[DayResult] = (),
) -> AggregateAnalysis:
    """Aggregate a completed survey and its re-simulations.

    Args:
        runs: Every survey record.
        iterations: Requested iteration count.
        selections: Seeds selected from the survey.
        detailed_runs: Tier A re-simulations.
        lean_runs: Tier B re-simulations.

    Returns:
        The aggregate analysis.
    """
    sorted_runs = sort_runs(runs)
    completed = len(sorted_runs)
    return AggregateAnalysis(
        iterations=iterations,
        completed_runs=completed,
        failed_runs=len(runs) - completed,
        win_rate=sum(1 for r in sorted_runs if r.won) / completed if completed else 0.0,
        mean_score=_mean([r.final_score for r in sorted_runs]),
        score_percentiles=score_percentiles(sorted_runs),
        death_percentiles=death_percentiles(sorted_runs),
        deciles=decile_stats(sorted_runs),
        duration=duration_distribution(sorted_runs),
        percentile_timelines=percentile_timelines(
            selections, {d.seed: d for d in detailed_runs}, SeedTier.A
        ),
        bucket_timelines=percentile_timelines(
            selections, {d.seed: d for d in lean_runs}, SeedTier.B
        ),
        encounter_extremes=encounter_extremes(selections),
    )


__all__ = [
    "SCORE_PERCENTILES",
    "score_percentiles",
    "death_percentiles",
    "decile_stats",
    "duration_distribution",
    "encounter_extremes",
    "timeline_points",
    "percentile_timelines",
    "partial_statistics",
    "build_analysis",
]
