"""Simulation engine for a single encounter.

This module provides everything needed to resolve one encounter:
dice, resource ledgers, runtime combatants, the event bus and Turn
Context, the Reaction Manager, action resolvers, AI scoring, initiative
tracking and the Execution Engine that drives them.

Submodules:
    dice: Dice rolling through the d20 library
    resources: Per-combatant resource ledger
    context: Turn Context, the single state authority
    reactions: Reaction Manager
    resolvers: Per-kind action resolution and template expansion
    ai: Heuristic action scoring
    turn_manager: Initiative and round/turn caps
    execution: Encounter loop

Example:
    >>> from encounter_sim.engine import DiceRoller, ExecutionEngine, instantiate_party
    >>>
    >>> engine = ExecutionEngine(dice=DiceRoller(seed=3), settings=get_settings())
    >>> party = instantiate_party(request.party, engine.dice)
    >>> run = engine.run_encounter(party, request.encounters[0])
"""

from __future__ import annotations

# =============================================================================
# Dice and Resources
# =============================================================================
from encounter_sim.engine.dice import D20Roll, DiceRoller, RollType
from encounter_sim.engine.resources import (
    ResourceLedger,
    build_ledger,
    effective_costs,
    ledger_key,
    usage_key,
)

# =============================================================================
# State and Events
# =============================================================================
from encounter_sim.engine.combatant import ActiveEffect, Combatant, CombatantState
from encounter_sim.engine.context import ImmediateAction, RollModification, TurnContext
from encounter_sim.engine.event_bus import EventBus

# =============================================================================
# Resolution
# =============================================================================
from encounter_sim.engine.ai import ActionScorer
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resolvers import (
    ActionResolver,
    ResolutionResult,
    ResolutionStatus,
    resolve_template,
)
from encounter_sim.engine.targeting import hit_chance, select_targets
from encounter_sim.engine.template_cache import TemplateCache, template_key

# =============================================================================
# Encounter Loop
# =============================================================================
from encounter_sim.engine.execution import (
    EncounterRun,
    ExecutionEngine,
    PartyMember,
    instantiate_party,
    retention_for,
)
from encounter_sim.engine.turn_manager import InitiativeEntry, InitiativeTracker


__all__ = [
    # Dice and resources
    "D20Roll",
    "DiceRoller",
    "RollType",
    "ResourceLedger",
    "build_ledger",
    "effective_costs",
    "ledger_key",
    "usage_key",
    # State and events
    "ActiveEffect",
    "Combatant",
    "CombatantState",
    "ImmediateAction",
    "RollModification",
    "TurnContext",
    "EventBus",
    # Resolution
    "ActionScorer",
    "ReactionManager",
    "ActionResolver",
    "ResolutionResult",
    "ResolutionStatus",
    "resolve_template",
    "hit_chance",
    "select_targets",
    "TemplateCache",
    "template_key",
    # Encounter loop
    "EncounterRun",
    "ExecutionEngine",
    "PartyMember",
    "instantiate_party",
    "retention_for",
    "InitiativeEntry",
    "InitiativeTracker",
]
