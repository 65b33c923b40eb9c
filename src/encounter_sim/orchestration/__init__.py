"""Batch orchestration: many seeded runs of an adventuring day.

Submodules:
    scoring: Run score and party resource valuation
    runner: One seed through the whole timeline, with rests
    cache: Survey results shared across batches
    seed_selection: Nearest-rank Tier A/B/C seed selection
    analysis: Aggregate statistics and HP timelines
    two_pass: Chunked survey / selection / re-simulation batches

Example:
    >>> from encounter_sim.orchestration import TwoPassOrchestrator
    >>> outcome = TwoPassOrchestrator(request).run()
    >>> outcome.result.analysis.win_rate
"""

from __future__ import annotations

from encounter_sim.orchestration.analysis import build_analysis, partial_statistics
from encounter_sim.orchestration.cache import RunCache
from encounter_sim.orchestration.runner import (
    AdventuringDayRunner,
    long_rest,
    short_rest,
    summarize,
)
from encounter_sim.orchestration.scoring import (
    full_resource_value,
    member_resource_value,
    party_resources_pct,
    run_score,
)
from encounter_sim.orchestration.seed_selection import nearest_rank, select_seeds, sort_runs
from encounter_sim.orchestration.two_pass import (
    CancellationToken,
    ProgressCallback,
    TwoPassOrchestrator,
)


__all__ = [
    "build_analysis",
    "partial_statistics",
    "RunCache",
    "AdventuringDayRunner",
    "long_rest",
    "short_rest",
    "summarize",
    "full_resource_value",
    "member_resource_value",
    "party_resources_pct",
    "run_score",
    "nearest_rank",
    "select_seeds",
    "sort_runs",
    "CancellationToken",
    "ProgressCallback",
    "TwoPassOrchestrator",
]
