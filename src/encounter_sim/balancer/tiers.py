"""Difficulty tiers from survey outcomes.

An encounter's isolated tier comes from death counts at the worst-1%,
median and best-1% outcomes plus the median resource drain. Its
contextual tier shifts that upward by how depleted the party is when it
enters the encounter.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass

from encounter_sim.core.constants import CONTEXT_PENALTY_BANDS, MAX_CONTEXT_PENALTY
from encounter_sim.models.enums import DifficultyTier
from encounter_sim.models.results import EncounterMetrics, LightweightRun
from encounter_sim.orchestration.seed_selection import at_percentile, sort_runs


@dataclass(frozen=True)
class TierBand:
    """Death and drain thresholds of one tier.

    Attributes:
        tier: The tier the band describes.
        max_p99: Most deaths allowed in the best 1% of outcomes.
        min_p50: Fewest deaths required in the median outcome.
        max_p50: Most deaths allowed in the median outcome.
        max_p1: Most deaths allowed in the worst 1% of outcomes.
        min_drain: Lowest resource drain, inclusive.
        max_drain: Highest resource drain, inclusive.
    """

    tier: DifficultyTier
    max_p99: int
    min_p50: int
    max_p50: int
    max_p1: int
    min_drain: float
    max_drain: float

    def deaths_hold(self, metrics: EncounterMetrics) -> bool:
        """Whether the death thresholds hold."""
        return (
            metrics.deaths_p99 <= self.max_p99
            and self.min_p50 <= metrics.deaths_p50 <= self.max_p50
            and metrics.deaths_p1 <= self.max_p1
        )

    def drain_holds(self, metrics: EncounterMetrics) -> bool:
        """Whether the drain falls in the band."""
        return self.min_drain <= metrics.drain_pct <= self.max_drain


TIER_BANDS = (
    TierBand(DifficultyTier.SAFE, max_p99=0, min_p50=0, max_p50=0, max_p1=1, min_drain=10.0, max_drain=30.0),
    TierBand(DifficultyTier.CHALLENGING, max_p99=1, min_p50=0, max_p50=1, max_p1=2, min_drain=30.0, max_drain=50.0),
    TierBand(DifficultyTier.BOSS, max_p99=2, min_p50=1, max_p50=3, max_p1=4, min_drain=50.0, max_drain=80.0),
)
"""Safe, Challenging and Boss bands, mildest first."""

TRIVIAL_MAX_DRAIN = 10.0


def classify_tier(metrics: EncounterMetrics) -> DifficultyTier:
    """Classify an encounter in isolation.

    A party wipe in the worst 1% of outcomes is Failed. Otherwise the
    first band whose death and drain thresholds both hold wins, checked
    mildest first so boundary values go to the milder tier. An encounter
    that fits no band is outside acceptable bounds and counts as Failed.

    Args:
        metrics: Survey metrics of the encounter.

    Returns:
        The isolated tier.

    Example:
        >>> classify_tier(EncounterMetrics(deaths_p1=1, deaths_p50=0, deaths_p99=0,
        ...                                drain_pct=20.0, party_size=4))
        <DifficultyTier.SAFE: 0>
    """
    if metrics.deaths_p1 >= metrics.party_size:
        return DifficultyTier.FAILED
    if (
        metrics.deaths_p1 == 0
        and metrics.deaths_p50 == 0
        and metrics.deaths_p99 == 0
        and metrics.drain_pct < TRIVIAL_MAX_DRAIN
    ):
        return DifficultyTier.TRIVIAL
    for band in TIER_BANDS:
        if band.deaths_hold(metrics) and band.drain_holds(metrics):
            return band.tier
    return DifficultyTier.FAILED


def context_penalty(resources_remaining_pct: float) -> int:
    """Tier shift for a party entering with this share of its resources."""
    for floor, penalty in CONTEXT_PENALTY_BANDS:
        if resources_remaining_pct >= floor:
            return penalty
    return MAX_CONTEXT_PENALTY


def contextual_tier(isolated: DifficultyTier, resources_remaining_pct: float) -> DifficultyTier:
    """Shift an isolated tier by the party's remaining resources.

    Args:
        isolated: Tier at full resources.
        resources_remaining_pct: Resources left entering the encounter.

    Returns:
        The contextual tier, clamped at Failed.

    Example:
        >>> contextual_tier(DifficultyTier.SAFE, 10.0)
        <DifficultyTier.FAILED: 3>
    """
    if isolated is DifficultyTier.FAILED:
        return DifficultyTier.FAILED
    shifted = isolated + context_penalty(resources_remaining_pct)
    return DifficultyTier(min(shifted, DifficultyTier.FAILED))


def required_isolated_tier(
    target: DifficultyTier,
    resources_remaining_pct: float,
) -> DifficultyTier | None:
    """Isolated tier needed to land on a contextual target.

    Args:
        target: Desired contextual tier.
        resources_remaining_pct: Resources left entering the encounter.

    Returns:
        The isolated tier, or None when even Trivial would overshoot.
    """
    if target is DifficultyTier.FAILED:
        return DifficultyTier.FAILED
    needed = target - context_penalty(resources_remaining_pct)
    if needed < DifficultyTier.TRIVIAL:
        return None
    return DifficultyTier(needed)


def compute_metrics(
    runs: Sequence[LightweightRun],
    party_size: int,
    *,
    encounter_index: int = 0,
) -> EncounterMetrics:
    """Reduce a survey of one encounter to tier metrics.

    Runs are ranked by score, worst first, so P1 is the worst 1% of
    outcomes and P99 the best 1%.

    Args:
        runs: Survey records.
        party_size: Number of party members.
        encounter_index: Encounter whose deaths and drain are measured.

    Returns:
        The encounter metrics; an empty survey counts as a wipe.
    """
    ranked = [r for r in sort_runs(runs) if len(r.encounter_deaths) > encounter_index]
    if not ranked:
        return EncounterMetrics(
            deaths_p1=party_size,
            deaths_p50=party_size,
            deaths_p99=party_size,
            drain_pct=100.0,
            party_size=max(1, party_size),
        )

    def deaths_at(percentile: float) -> int:
        return at_percentile(ranked, percentile).encounter_deaths[encounter_index]

    return EncounterMetrics(
        deaths_p1=deaths_at(1),
        deaths_p50=deaths_at(50),
        deaths_p99=deaths_at(99),
        drain_pct=float(statistics.median(r.encounter_drain[encounter_index] for r in ranked)),
        party_size=max(1, party_size),
    )


__all__ = [
    "TierBand",
    "TIER_BANDS",
    "classify_tier",
    "context_penalty",
    "contextual_tier",
    "required_isolated_tier",
    "compute_metrics",
]
