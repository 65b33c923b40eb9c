"""Simulator-wide constants.

Rules constants that are not meant to be tuned per deployment live here;
tunable values live in :mod:`encounter_sim.core.config`.
"""

from __future__ import annotations

# =============================================================================
# Versioning
# =============================================================================

ENGINE_VERSION = "0.1.0"
"""Engine version. Determinism is only promised within one version."""

# =============================================================================
# Rules Constants
# =============================================================================

DEFAULT_MOVEMENT = 30
"""Movement budget registered for every combatant, reset each turn."""

DEFAULT_SAVE_DC = 13
"""Save DC used by templates that do not override it."""

CONCENTRATION_MIN_DC = 10
"""Minimum DC of a concentration save after taking damage."""

RECHARGE_DIE = "1d6"
"""Die rolled at turn start to recharge a Recharge ability."""

SHORT_REST_CLASS_RESOURCES = frozenset(
    {
        "ki",
        "action surge",
        "superiority dice",
        "wild shape",
        "channel divinity",
        "bardic inspiration",
        "second wind",
    }
)
"""Class resources (lower-cased) that come back on a short rest."""

# =============================================================================
# Scoring
# =============================================================================

SURVIVOR_WEIGHT = 1000.0
"""Multiplier on (survivors x party max HP) in the run score."""

MONSTER_HP_WEIGHT = 2.0
"""Penalty per remaining monster hit point in the run score."""

FALLBACK_PARTY_HP = 100.0
"""Survivor weight used when the party max HP is zero."""

# =============================================================================
# Seed Selection
# =============================================================================

TIER_A_PERCENTILES = (5, 15, 25, 35, 45, 50, 55, 65, 75, 85, 95)
"""Global percentile targets re-simulated at full fidelity."""

# =============================================================================
# Effective HP Weights (resource drain)
# =============================================================================

HP_WEIGHT = 1.0
"""Value of one hit point."""

HIT_DIE_WEIGHT = 8.0
"""Value of one unspent hit die."""

SPELL_SLOT_BASE = 15.0
"""Base value of a spell slot, scaled by level ** 1.5."""

SHORT_REST_FEATURE_WEIGHT = 15.0
"""Value of one charge of a short-rest class resource."""

LONG_REST_FEATURE_WEIGHT = 30.0
"""Value of one charge of a long-rest class resource."""

# =============================================================================
# Contextual Difficulty
# =============================================================================

CONTEXT_PENALTY_BANDS = ((85.0, 0), (70.0, 1), (40.0, 2))
"""(minimum resources remaining %, tier penalty); anything lower is +3."""

MAX_CONTEXT_PENALTY = 3
"""Tier penalty below the lowest band."""
