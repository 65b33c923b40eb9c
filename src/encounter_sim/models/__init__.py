"""Pydantic V2 schemas for the encounter simulator.

Everything that crosses the presentation boundary is defined here:
creature and action definitions, reaction templates, timeline requests,
events and result bundles.

Submodules:
    enums: Enumeration types (Side, ActionKind, EventKind, DifficultyTier, etc.)
    actions: Action union, costs, requirements and frequency
    buffs: Buff modifier payload
    reactions: Reaction templates, triggers and effects
    creature: Creature and MagicItem definitions
    timeline: Encounters, rests and request documents
    events: Event records and HP replay
    results: Run, batch and balancer results

Example:
    >>> from encounter_sim.models import AttackAction, Creature, Side
    >>> fighter = Creature(
    ...     id="fighter", name="Fighter", mode=Side.PLAYER, hp=44, ac=18,
    ...     actions=[AttackAction(id="sword", name="Longsword", dpr="1d8+4", to_hit=7)],
    ... )
"""

from __future__ import annotations

# =============================================================================
# Enumerations
# =============================================================================
from encounter_sim.models.enums import (
    ActionKind,
    BatchStatus,
    BuffDuration,
    CombatCondition,
    Condition,
    DifficultyTier,
    EncounterOutcome,
    EventKind,
    FidelityMode,
    FrequencyKind,
    MonsterRole,
    ResetType,
    ResourceType,
    RunStatus,
    SeedTier,
    Side,
    TargetStrategy,
    TemplateName,
    TriggerCondition,
    TriggerEffectKind,
    TriggerRequirementKind,
)

# =============================================================================
# Definitions
# =============================================================================
from encounter_sim.models.common import DiceFormula
from encounter_sim.models.buffs import Buff
from encounter_sim.models.actions import (
    Action,
    ActionBase,
    ActionCost,
    ActionRequirement,
    AttackAction,
    BuffAction,
    CombatStateRequirement,
    CustomRequirement,
    DebuffAction,
    DiscreteCost,
    Frequency,
    HealAction,
    ResolvedAction,
    ResourceAvailableRequirement,
    RiderEffect,
    StatusEffectRequirement,
    TemplateAction,
    TemplateOptions,
    VariableCost,
    action_kind,
)
from encounter_sim.models.reactions import (
    CompositeTrigger,
    ReactionTemplate,
    TriggerEffect,
    TriggerRequirement,
    TriggerSpec,
)
from encounter_sim.models.creature import ABILITIES, Creature, MagicItem
from encounter_sim.models.timeline import (
    AutoAdjustRequest,
    Encounter,
    LongRest,
    ShortRest,
    SimulationRequest,
    TimelineStep,
)

# =============================================================================
# Events & Results
# =============================================================================
from encounter_sim.models.events import Event, reconstruct_hp
from encounter_sim.models.results import (
    AggregateAnalysis,
    AutoAdjustResult,
    CombatantSnapshot,
    DayResult,
    DecileStats,
    DurationDistribution,
    EncounterAssessment,
    EncounterExtremes,
    EncounterMetrics,
    EncounterResult,
    LightweightRun,
    PartialStatistics,
    PercentileTimeline,
    ProgressUpdate,
    RoundSummary,
    SelectedSeed,
    SimulationOutcome,
    SimulationResultBundle,
    StatDelta,
    TimelinePoint,
)


__all__ = [
    # Enumerations
    "ActionKind",
    "BatchStatus",
    "BuffDuration",
    "CombatCondition",
    "Condition",
    "DifficultyTier",
    "EncounterOutcome",
    "EventKind",
    "FidelityMode",
    "FrequencyKind",
    "MonsterRole",
    "ResetType",
    "ResourceType",
    "RunStatus",
    "SeedTier",
    "Side",
    "TargetStrategy",
    "TemplateName",
    "TriggerCondition",
    "TriggerEffectKind",
    "TriggerRequirementKind",
    # Definitions
    "DiceFormula",
    "Buff",
    "Action",
    "ActionBase",
    "ActionCost",
    "ActionRequirement",
    "AttackAction",
    "BuffAction",
    "CombatStateRequirement",
    "CustomRequirement",
    "DebuffAction",
    "DiscreteCost",
    "Frequency",
    "HealAction",
    "ResolvedAction",
    "ResourceAvailableRequirement",
    "RiderEffect",
    "StatusEffectRequirement",
    "TemplateAction",
    "TemplateOptions",
    "VariableCost",
    "action_kind",
    "CompositeTrigger",
    "ReactionTemplate",
    "TriggerEffect",
    "TriggerRequirement",
    "TriggerSpec",
    "ABILITIES",
    "Creature",
    "MagicItem",
    "AutoAdjustRequest",
    "Encounter",
    "LongRest",
    "ShortRest",
    "SimulationRequest",
    "TimelineStep",
    # Events & results
    "Event",
    "reconstruct_hp",
    "AggregateAnalysis",
    "AutoAdjustResult",
    "CombatantSnapshot",
    "DayResult",
    "DecileStats",
    "DurationDistribution",
    "EncounterAssessment",
    "EncounterExtremes",
    "EncounterMetrics",
    "EncounterResult",
    "LightweightRun",
    "PartialStatistics",
    "PercentileTimeline",
    "ProgressUpdate",
    "RoundSummary",
    "SelectedSeed",
    "SimulationOutcome",
    "SimulationResultBundle",
    "StatDelta",
    "TimelinePoint",
]
