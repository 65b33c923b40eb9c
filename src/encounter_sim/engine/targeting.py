"""Target selection strategies and the combat estimates they rank by.

Selection is a pure function of the current state, plus the run's random
state for the RANDOM strategy, so replays pick the same targets.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.models.actions import ActionBase, AttackAction
from encounter_sim.models.enums import TargetStrategy


BASELINE_AC = 15.0
"""Armor class assumed when estimating a combatant's damage output."""

BASELINE_ATTACK_BONUS = 5.0
"""Attack bonus assumed when estimating a combatant's survivability."""


def hit_chance(ac: float, attack_bonus: float) -> float:
    """Probability that d20 + bonus meets AC, bounded by natural 1 and 20.

    Args:
        ac: Target armor class.
        attack_bonus: Attack roll bonus.

    Returns:
        Probability between 0.05 and 0.95.
    """
    needed = ac - attack_bonus
    if needed <= 2:
        return 0.95
    if needed >= 20:
        return 0.05
    return (21 - needed) / 20


def attack_dpr(actions: Iterable[ActionBase]) -> float:
    """Expected damage of the best attack in a list against baseline AC."""
    best = 0.0
    for action in actions:
        if isinstance(action, AttackAction):
            expected = (
                DiceRoller.average(action.dpr)
                * action.targets
                * hit_chance(BASELINE_AC, DiceRoller.average(action.to_hit))
            )
            best = max(best, expected)
    return best


def estimate_dpr(combatant: Combatant) -> float:
    """Expected damage of the combatant's best attack against baseline AC."""
    return attack_dpr(combatant.actions)


def survivability(combatant: Combatant, ctx: TurnContext) -> float:
    """Effective hit points against a baseline attacker."""
    pool = combatant.state.hp + combatant.state.temp_hp
    return pool / hit_chance(ctx.armor_class(combatant), BASELINE_ATTACK_BONUS)


def _ranking(
    strategy: TargetStrategy,
    ctx: TurnContext,
    prefer_concentrating: bool,
) -> Callable[[Combatant], tuple]:
    def primary(c: Combatant) -> float:
        if strategy is TargetStrategy.LEAST_HP:
            return c.state.hp
        if strategy is TargetStrategy.MOST_HP:
            return -c.state.hp
        if strategy is TargetStrategy.HIGHEST_DPR:
            return -estimate_dpr(c)
        if strategy is TargetStrategy.LOWEST_AC:
            return ctx.armor_class(c)
        if strategy is TargetStrategy.HIGHEST_SURVIVABILITY:
            return -survivability(c, ctx)
        return 0.0

    def key(c: Combatant) -> tuple:
        concentrating = prefer_concentrating and c.state.concentrating_on is not None
        return (primary(c), not concentrating, ctx.armor_class(c), c.state.hp, c.id)

    return key


def select_targets(
    ctx: TurnContext,
    actor: Combatant,
    strategy: TargetStrategy,
    candidates: list[Combatant],
    count: int = 1,
    *,
    hostile: bool = True,
) -> list[Combatant]:
    """Pick targets among living candidates.

    Ties on the strategy's measure go to concentrating enemies (hostile
    selections only), then lower AC, then lower HP, then combatant id.

    Args:
        ctx: Turn Context.
        actor: Combatant choosing.
        strategy: Selection strategy.
        candidates: Eligible combatants.
        count: Number of targets wanted.
        hostile: Whether the candidates are enemies of the actor.

    Returns:
        Up to ``count`` distinct targets (every candidate for ALL).
    """
    if strategy is TargetStrategy.SELF:
        return [actor] if actor.alive else []
    pool = sorted((c for c in candidates if c.alive), key=lambda c: c.id)
    if not pool:
        return []
    if strategy is TargetStrategy.ALL:
        return pool
    if strategy is TargetStrategy.RANDOM:
        chosen = []
        while pool and len(chosen) < count:
            pick = ctx.dice.choice(pool)
            pool.remove(pick)
            chosen.append(pick)
        return chosen
    pool.sort(key=_ranking(strategy, ctx, prefer_concentrating=hostile))
    return pool[:count]


__all__ = [
    "BASELINE_AC",
    "BASELINE_ATTACK_BONUS",
    "hit_chance",
    "attack_dpr",
    "estimate_dpr",
    "survivability",
    "select_targets",
]
