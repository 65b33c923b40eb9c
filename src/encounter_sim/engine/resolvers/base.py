"""Shared pieces of the per-kind action resolvers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum

from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resources import requirement_met
from encounter_sim.models.actions import (
    ActionBase,
    CombatStateRequirement,
    CustomRequirement,
    ResourceAvailableRequirement,
    StatusEffectRequirement,
)
from encounter_sim.models.enums import CombatCondition


class ResolutionStatus(StrEnum):
    """How an action resolution ended."""

    RESOLVED = "resolved"
    SKIPPED = "skipped"
    INTERRUPTED = "interrupted"


@dataclass
class ResolutionResult:
    """Outcome of resolving one action.

    Attributes:
        status: How the resolution ended.
        action_id: Action resolved.
        targets: Targets affected, in order.
        reason: Why the action was skipped or interrupted.
    """

    status: ResolutionStatus
    action_id: str
    targets: list[str] = field(default_factory=list)
    reason: str | None = None

    @property
    def resolved(self) -> bool:
        """Whether the action ran to completion."""
        return self.status is ResolutionStatus.RESOLVED


def combat_state_holds(ctx: TurnContext, actor: Combatant, condition: CombatCondition) -> bool:
    """Evaluate a combat-state predicate for an actor."""
    if condition is CombatCondition.HAS_TEMP_HP:
        return actor.state.temp_hp > 0
    if condition is CombatCondition.IS_SURPRISED:
        return actor.state.surprised
    if condition is CombatCondition.SELF_BLOODIED:
        return actor.state.bloodied
    if condition is CombatCondition.TARGET_BLOODIED:
        return any(enemy.state.bloodied for enemy in ctx.enemies(actor))
    if condition is CombatCondition.ALLY_INJURED:
        return any(ally.state.injured for ally in ctx.allies(actor))
    return False


def unmet_requirement(ctx: TurnContext, actor: Combatant, action: ActionBase) -> str | None:
    """Find the first requirement of an action that does not hold.

    Custom requirements are opaque to the engine and never hold.

    Returns:
        A short description of the unmet requirement, or None.
    """
    for requirement in action.requirements:
        if isinstance(requirement, ResourceAvailableRequirement):
            if not requirement_met(actor.state.ledger, requirement):
                return f"resource_available:{requirement.resource.value}"
        elif isinstance(requirement, CombatStateRequirement):
            if not combat_state_holds(ctx, actor, requirement.condition):
                return f"combat_state:{requirement.condition.value}"
        elif isinstance(requirement, StatusEffectRequirement):
            if not actor.has_effect(requirement.effect):
                return f"status_effect:{requirement.effect}"
        elif isinstance(requirement, CustomRequirement):
            return f"custom:{requirement.description}"
    return None


class KindResolver(ABC):
    """Resolution strategy for one action kind.

    Resolvers are written as a sequence of checkpoints: after each step
    that can provoke reactions they call ``checkpoint`` and stop if a
    reaction interrupted the action.
    """

    def __init__(self, ctx: TurnContext, reactions: ReactionManager) -> None:
        self.ctx = ctx
        self.reactions = reactions

    def checkpoint(self) -> bool:
        """Run pending reactions.

        Returns:
            False if the action in flight was interrupted.
        """
        self.reactions.process_pending()
        return not self.ctx.action_interrupted

    @abstractmethod
    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        """Apply the action's effects through the Turn Context."""


__all__ = [
    "ResolutionStatus",
    "ResolutionResult",
    "combat_state_holds",
    "unmet_requirement",
    "KindResolver",
]
