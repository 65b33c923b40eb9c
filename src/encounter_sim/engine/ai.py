"""Heuristic action selection.

Each affordable action gets a score from its kind; the highest positive
score wins and ties go to the action declared first. The weights are
tuned heuristics and live in ``AIScoringSettings`` so they can be changed
without touching the engine.
"""

from __future__ import annotations

from encounter_sim.core.config import AIScoringSettings
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.resolvers import ActionResolver
from encounter_sim.engine.resources import effective_costs
from encounter_sim.models.actions import (
    ActionBase,
    AttackAction,
    BuffAction,
    DebuffAction,
    HealAction,
    TemplateAction,
)
from encounter_sim.models.enums import TargetStrategy


logger = get_logger(__name__)


class ActionScorer:
    """Scores and picks actions for the acting combatant."""

    def __init__(
        self,
        ctx: TurnContext,
        resolver: ActionResolver,
        weights: AIScoringSettings,
    ) -> None:
        """Initialize the scorer.

        Args:
            ctx: Turn Context of the encounter.
            resolver: Used to expand templates before scoring them.
            weights: Scoring weights.
        """
        self.ctx = ctx
        self.resolver = resolver
        self.weights = weights

    @property
    def early(self) -> bool:
        """Whether the encounter is still in its opening rounds."""
        return self.ctx.round <= self.weights.early_rounds

    def affordable(self, actor: Combatant, action: ActionBase) -> bool:
        """Whether the actor can pay for the action now."""
        return self.ctx.can_afford(actor.id, effective_costs(action))

    def score(self, actor: Combatant, action: ActionBase) -> float:
        """Score one action for the actor; zero means never pick it."""
        if isinstance(action, AttackAction):
            return self._score_attack(actor, action)
        if isinstance(action, HealAction):
            return self._score_heal(actor, action)
        if isinstance(action, BuffAction):
            return self._score_buff(actor, action)
        if isinstance(action, DebuffAction):
            return self._score_debuff(actor, action)
        if isinstance(action, TemplateAction):
            return self._score_template(actor, action)
        return 0.0

    def choose(self, actor: Combatant, exclude: set[str] | None = None) -> ActionBase | None:
        """Pick the best affordable action.

        Args:
            actor: Acting combatant.
            exclude: Action ids already attempted this turn.

        Returns:
            The best action, or None when nothing scores above zero.
        """
        exclude = exclude or set()
        best: ActionBase | None = None
        best_score = 0.0
        for action in actor.actions:
            if action.id in exclude or not self.affordable(actor, action):
                continue
            value = self.score(actor, action)
            if value > best_score:
                best, best_score = action, value
        if best is not None:
            logger.debug("Action chosen", actor=actor.id, action=best.id, score=best_score)
        return best

    # -------------------------------------------------------------------------
    # Per-kind scores
    # -------------------------------------------------------------------------

    def _score_attack(self, actor: Combatant, action: AttackAction) -> float:
        enemies = len(self.ctx.enemies(actor))
        if enemies == 0:
            return 0.0
        expected = self.ctx.dice.average(action.dpr) * min(action.targets, enemies)
        return max(1.0, expected * self.weights.attack_weight)

    def _score_heal(self, actor: Combatant, action: HealAction) -> float:
        allies = self.ctx.allies(actor)
        if action.temp_hp:
            needy = [a for a in allies if a.state.temp_hp <= 0]
        else:
            needy = [a for a in allies if a.state.injured]
        if not needy:
            return 0.0
        value = self.ctx.dice.average(action.amount) * len(needy) * self.weights.heal_weight
        return max(self.weights.heal_floor, value)

    def _unbuffed(self, actor: Combatant, action: BuffAction) -> list[Combatant]:
        if action.target is TargetStrategy.SELF:
            candidates = [actor]
        else:
            candidates = self.ctx.allies(actor)
        return [c for c in candidates if not c.has_effect(action.buff.name)]

    def _score_buff(self, actor: Combatant, action: BuffAction) -> float:
        if action.buff.concentration and actor.state.concentrating_on is not None:
            return 0.0
        if not self._unbuffed(actor, action):
            return 0.0
        return self.weights.buff_early if self.early else self.weights.buff_late

    def _score_debuff(self, actor: Combatant, action: DebuffAction) -> float:
        enemies = self.ctx.enemies(actor)
        if not enemies:
            return 0.0
        if all(enemy.has_effect(action.buff.name) for enemy in enemies):
            return 0.0
        dangerous = sum(1 for e in enemies if e.state.hp > self.weights.dangerous_enemy_hp)
        if dangerous == 0:
            return self.weights.debuff_floor
        return self.weights.debuff_per_enemy * dangerous

    def _score_template(self, actor: Combatant, action: TemplateAction) -> float:
        concrete = self.resolver.concrete(action)
        if isinstance(concrete, BuffAction):
            if not self._unbuffed(actor, concrete):
                return 0.0
        elif isinstance(concrete, DebuffAction):
            enemies = self.ctx.enemies(actor)
            if not enemies or all(e.has_effect(concrete.buff.name) for e in enemies):
                return 0.0
        if actor.state.concentrating_on is not None:
            return self.weights.template_concentrating
        return self.weights.template_early if self.early else self.weights.template_late


__all__ = ["ActionScorer"]
