"""Difficulty classification and auto-adjustment.

Submodules:
    tiers: Tier bands, contextual shift and survey metrics
    adjuster: Monster roles and stat-delta proposals

Example:
    >>> from encounter_sim.balancer import AutoBalancer
    >>> assessment = AutoBalancer().assess(party, encounter, resources_remaining_pct=60)
    >>> assessment.contextual_tier.label
"""

from __future__ import annotations

from encounter_sim.balancer.adjuster import AutoBalancer, detect_role
from encounter_sim.balancer.tiers import (
    TIER_BANDS,
    TierBand,
    classify_tier,
    compute_metrics,
    context_penalty,
    contextual_tier,
    required_isolated_tier,
)


__all__ = [
    "AutoBalancer",
    "detect_role",
    "TIER_BANDS",
    "TierBand",
    "classify_tier",
    "compute_metrics",
    "context_penalty",
    "contextual_tier",
    "required_isolated_tier",
]
