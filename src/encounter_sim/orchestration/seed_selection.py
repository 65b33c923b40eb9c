"""Seed selection from the survey distribution.

All selection is nearest-rank over the surveyed runs: no interpolation
and no re-simulation. Runs are ordered by ``(score, seed)`` so that ties
are broken the same way every time.

Tiers:
    A: one run per global percentile target (P5 ... P95), re-run at full fidelity.
    B: one run per one-percent bucket midpoint, re-run at lean fidelity.
    C: min, median and max run per encounter, reported from survey data only.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from encounter_sim.core.constants import TIER_A_PERCENTILES
from encounter_sim.models.enums import RunStatus, SeedTier
from encounter_sim.models.results import LightweightRun, SelectedSeed


def nearest_rank(percentile: float, count: int) -> int:
    """Index of the nearest-rank element for a percentile.

    Args:
        percentile: Target percentile, 0 to 100.
        count: Number of sorted elements.

    Returns:
        ``floor(P / 100 * (N - 1) + 0.5)``, clamped to the valid range.

    Raises:
        ValueError: If ``count`` is zero.

    Example:
        >>> nearest_rank(50, 11)
        5
        >>> nearest_rank(5, 100)
        5
    """
    if count <= 0:
        raise ValueError("cannot select a percentile from an empty distribution")
    index = math.floor(percentile / 100 * (count - 1) + 0.5)
    return min(max(index, 0), count - 1)


def sort_runs(runs: Iterable[LightweightRun]) -> list[LightweightRun]:
    """Successful runs ordered by (final score, seed)."""
    return sorted(
        (r for r in runs if r.status is RunStatus.OK),
        key=lambda r: (r.final_score, r.seed),
    )


def at_percentile(sorted_runs: Sequence[LightweightRun], percentile: float) -> LightweightRun:
    """The run at a percentile of an already sorted list."""
    return sorted_runs[nearest_rank(percentile, len(sorted_runs))]


def select_tier_a(
    sorted_runs: Sequence[LightweightRun],
    percentiles: Sequence[float] = TIER_A_PERCENTILES,
) -> list[SelectedSeed]:
    """Select the runs at each global percentile target.

    Two targets may land on the same run; each target still gets an
    entry so every percentile has a timeline.
    """
    if not sorted_runs:
        return []
    selected = []
    for percentile in percentiles:
        run = at_percentile(sorted_runs, percentile)
        selected.append(
            SelectedSeed(
                seed=run.seed,
                tier=SeedTier.A,
                score=run.final_score,
                target_percentile=float(percentile),
                label=f"P{percentile}",
            )
        )
    return selected


def bucket_targets(max_k: int) -> list[float]:
    """Midpoint percentiles of ``max_k`` equal buckets."""
    return [(i + 0.5) * 100 / max_k for i in range(max_k)]


def select_tier_b(
    sorted_runs: Sequence[LightweightRun],
    max_k: int,
    *,
    include_death_runs: bool = False,
    exclude: Iterable[int] = (),
) -> list[SelectedSeed]:
    """Select one run per bucket midpoint, de-duplicated.

    Args:
        sorted_runs: Runs ordered by (score, seed).
        max_k: Number of buckets.
        include_death_runs: Also select every run with at least one death.
        exclude: Seeds already selected by a higher tier.

    Returns:
        Tier B selections in bucket order.
    """
    taken = set(exclude)
    selected = []
    if not sorted_runs:
        return selected
    for target in bucket_targets(max_k):
        run = at_percentile(sorted_runs, target)
        if run.seed in taken:
            continue
        taken.add(run.seed)
        selected.append(
            SelectedSeed(
                seed=run.seed,
                tier=SeedTier.B,
                score=run.final_score,
                target_percentile=target,
            )
        )
    if include_death_runs:
        for run in sorted_runs:
            if run.deaths > 0 and run.seed not in taken:
                taken.add(run.seed)
                selected.append(
                    SelectedSeed(seed=run.seed, tier=SeedTier.B, score=run.final_score, label="death")
                )
    return selected


def select_tier_c(runs: Iterable[LightweightRun]) -> list[SelectedSeed]:
    """Select the min, median and max run of each encounter.

    Runs are ranked by their score after that encounter. Runs that ended
    before reaching an encounter do not take part in its ranking.
    """
    runs = [r for r in runs if r.status is RunStatus.OK]
    encounter_count = max((len(r.encounter_scores) for r in runs), default=0)
    selected = []
    for index in range(encounter_count):
        ranked = sorted(
            (r for r in runs if len(r.encounter_scores) > index),
            key=lambda r: (r.encounter_scores[index], r.seed),
        )
        picks = (("min", ranked[0]), ("median", at_percentile(ranked, 50)), ("max", ranked[-1]))
        for label, run in picks:
            selected.append(
                SelectedSeed(
                    seed=run.seed,
                    tier=SeedTier.C,
                    score=run.encounter_scores[index],
                    encounter_index=index,
                    label=label,
                )
            )
    return selected


def select_seeds(
    runs: Sequence[LightweightRun],
    *,
    max_k: int = 100,
    include_death_runs: bool = False,
) -> list[SelectedSeed]:
    """Run all three selection tiers over a survey.

    Tier A wins over Tier B when both pick a seed; Tier C is reporting
    only and may repeat seeds from the other tiers.

    Args:
        runs: Survey records, any order.
        max_k: Number of Tier B buckets.
        include_death_runs: Add runs with deaths to Tier B.

    Returns:
        Tier A, then Tier B, then Tier C selections.
    """
    sorted_runs = sort_runs(runs)
    tier_a = select_tier_a(sorted_runs)
    tier_b = select_tier_b(
        sorted_runs,
        max_k,
        include_death_runs=include_death_runs,
        exclude={s.seed for s in tier_a},
    )
    return tier_a + tier_b + select_tier_c(runs)


__all__ = [
    "nearest_rank",
    "sort_runs",
    "at_percentile",
    "select_tier_a",
    "bucket_targets",
    "select_tier_b",
    "select_tier_c",
    "select_seeds",
]
