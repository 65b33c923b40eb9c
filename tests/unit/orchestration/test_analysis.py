"""Tests for batch aggregation."""

from __future__ import annotations

import pytest

from encounter_sim.models.enums import EncounterOutcome, RunStatus, SeedTier
from encounter_sim.models.results import LightweightRun, SelectedSeed
from encounter_sim.orchestration.analysis import (
    build_analysis,
    decile_stats,
    duration_distribution,
    encounter_extremes,
    partial_statistics,
    score_percentiles,
)
from encounter_sim.orchestration.seed_selection import sort_runs


def _run(seed: int, *, won: bool = True, rounds: int = 3, deaths: int = 0) -> LightweightRun:
    outcome = EncounterOutcome.PLAYERS_WIN if won else EncounterOutcome.MONSTERS_WIN
    return LightweightRun(
        seed=seed,
        final_score=float(seed),
        encounter_scores=[float(seed)],
        encounter_outcomes=[outcome],
        total_rounds=rounds,
        deaths=deaths,
        tpk_encounter=None if won else 0,
    )


class TestDistributions:
    """Tests for distribution summaries."""

    def test_score_percentiles(self) -> None:
        """Test nearest-rank score percentiles."""
        percentiles = score_percentiles(sort_runs([_run(s) for s in range(101)]))

        assert percentiles[50] == 50.0
        assert percentiles[1] == 1.0
        assert percentiles[99] == 99.0

    def test_deciles(self) -> None:
        """Test ten equal slices, worst first."""
        runs = sort_runs([_run(s, won=s >= 4) for s in range(20)])

        deciles = decile_stats(runs)

        assert len(deciles) == 10
        assert deciles[0].runs == 2
        assert deciles[0].win_rate == 0.0
        assert deciles[-1].win_rate == 1.0
        assert deciles[0].mean_score == pytest.approx(0.5)

    def test_deciles_small_batch(self) -> None:
        """Test that empty deciles are skipped."""
        assert len(decile_stats(sort_runs([_run(1), _run(2), _run(3)]))) == 3

    def test_duration(self) -> None:
        """Test the rounds histogram."""
        runs = [_run(1, rounds=2), _run(2, rounds=2), _run(3, rounds=5)]

        duration = duration_distribution(runs)

        assert duration.histogram == {2: 2, 5: 1}
        assert duration.mean == pytest.approx(3.0)
        assert duration.median == 2.0

    def test_extremes(self) -> None:
        """Test grouping Tier C selections."""
        selections = [
            SelectedSeed(seed=1, tier=SeedTier.C, score=1.0, encounter_index=0, label="min"),
            SelectedSeed(seed=2, tier=SeedTier.C, score=2.0, encounter_index=0, label="median"),
            SelectedSeed(seed=3, tier=SeedTier.C, score=3.0, encounter_index=0, label="max"),
        ]

        extremes = encounter_extremes(selections)

        assert len(extremes) == 1
        assert (extremes[0].min_seed, extremes[0].median_seed, extremes[0].max_seed) == (1, 2, 3)


class TestAggregates:
    """Tests for partial and final aggregates."""

    def test_partial_statistics(self) -> None:
        """Test running statistics with a failed run."""
        runs = [_run(1), _run(2, won=False, deaths=2), LightweightRun(seed=3, status=RunStatus.FAILED)]

        partial = partial_statistics(runs)

        assert partial.completed == 3
        assert partial.failed_runs == 1
        assert partial.win_rate == 0.5
        assert partial.mean_deaths == 1.0

    def test_build_analysis(self) -> None:
        """Test the final aggregate of a survey."""
        runs = [_run(s, won=s % 4 != 0) for s in range(40)]

        analysis = build_analysis(runs, iterations=40)

        assert analysis.completed_runs == 40
        assert analysis.failed_runs == 0
        assert analysis.win_rate == pytest.approx(0.75)
        assert analysis.score_percentiles[50] == 20.0
        assert analysis.percentile_timelines == []

    def test_empty_analysis(self) -> None:
        """Test that an empty survey aggregates to zeros."""
        analysis = build_analysis([], iterations=10)

        assert analysis.completed_runs == 0
        assert analysis.win_rate == 0.0
        assert analysis.score_percentiles == {}
