"""Encounter Simulator - Monte Carlo difficulty engine for 5E encounters.

Predicts how a party fares against an adventuring day of encounters and
rests by running it many times with seeded dice, then summarizes the
outcomes as percentile statistics and difficulty tiers.

DETERMINISM:
- A run is a pure function of (party, timeline, seed, engine version)
- Every mutation of combat state flows through the Turn Context
- Surveys and full replays of the same seed produce the same score

Example:
    >>> from encounter_sim import run_simulation
    >>>
    >>> outcome = run_simulation({
    ...     "party": [fighter.model_dump()],
    ...     "timeline": [{"kind": "combat", "monsters": [goblin.model_dump()]}],
    ...     "iterations": 500,
    ...     "seed": 7,
    ... })
    >>> outcome.result.analysis.win_rate

Modules:
    core: Configuration, logging, exceptions and constants.
    models: Pydantic V2 request, event and result schemas.
    engine: Single-encounter resolution (dice, reactions, AI, turn loop).
    orchestration: Adventuring-day runs and two-pass batches.
    balancer: Difficulty tiers and stat-delta proposals.
    service: Validated entry points for a presentation layer.
"""

from __future__ import annotations

# Core
from encounter_sim.core.config import Settings, clear_settings_cache, get_settings
from encounter_sim.core.exceptions import EncounterSimError, ValidationError
from encounter_sim.core.logging import configure_logging, get_logger

# Models
from encounter_sim.models import (
    AutoAdjustRequest,
    AutoAdjustResult,
    Creature,
    DifficultyTier,
    Encounter,
    FidelityMode,
    SimulationOutcome,
    SimulationRequest,
)

# Orchestration
from encounter_sim.orchestration import (
    AdventuringDayRunner,
    CancellationToken,
    TwoPassOrchestrator,
)

# Balancer
from encounter_sim.balancer import AutoBalancer, classify_tier, contextual_tier

# Service
from encounter_sim.service import (
    auto_adjust,
    run_simulation,
    validate_auto_adjust_request,
    validate_simulation_request,
)


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "EncounterSimError",
    "ValidationError",
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "configure_logging",
    "get_logger",
    # Models
    "AutoAdjustRequest",
    "AutoAdjustResult",
    "Creature",
    "DifficultyTier",
    "Encounter",
    "FidelityMode",
    "SimulationOutcome",
    "SimulationRequest",
    # Orchestration
    "AdventuringDayRunner",
    "CancellationToken",
    "TwoPassOrchestrator",
    # Balancer
    "AutoBalancer",
    "classify_tier",
    "contextual_tier",
    # Service
    "auto_adjust",
    "run_simulation",
    "validate_auto_adjust_request",
    "validate_simulation_request",
]
