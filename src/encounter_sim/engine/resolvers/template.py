"""Template resolution: named spells expanded into concrete actions.

A template action names one of a handful of well-known spells plus
optional overrides. The first use resolves it into a Buff or Debuff
action, which is cached under the action id, template name and sorted
overrides.
"""

from __future__ import annotations

from collections.abc import Callable

from encounter_sim.core.constants import DEFAULT_SAVE_DC
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resolvers.base import KindResolver, ResolutionResult
from encounter_sim.engine.template_cache import TemplateCache, template_key
from encounter_sim.models.actions import (
    ActionBase,
    BuffAction,
    DebuffAction,
    ResolvedAction,
    TemplateAction,
)
from encounter_sim.models.buffs import Buff
from encounter_sim.models.enums import BuffDuration, Condition, TargetStrategy, TemplateName


logger = get_logger(__name__)

ENEMY_TEMPLATES = frozenset(
    {
        TemplateName.BANE,
        TemplateName.HEX,
        TemplateName.HUNTERS_MARK,
        TemplateName.HYPNOTIC_PATTERN,
    }
)
"""Templates that target enemies; every other template targets allies."""


def _negate(formula: int | float | str) -> int | float | str:
    if isinstance(formula, str):
        return f"-({formula})"
    return -formula


def _buff_for(name: TemplateName, amount: int | float | str | None) -> Buff:
    if name is TemplateName.BLESS:
        die = amount if amount is not None else "1d4"
        return Buff(display_name="Bless", to_hit=die, save=die, concentration=True)
    if name is TemplateName.BANE:
        die = _negate(amount) if amount is not None else "-1d4"
        return Buff(display_name="Bane", to_hit=die, save=die, concentration=True)
    if name is TemplateName.HASTE:
        return Buff(display_name="Haste", ac=amount if amount is not None else 2, concentration=True)
    if name is TemplateName.SHIELD:
        return Buff(
            display_name="Shield",
            ac=amount if amount is not None else 5,
            duration=BuffDuration.ONE_ROUND,
        )
    if name is TemplateName.HUNTERS_MARK:
        return Buff(display_name="Hunter's Mark", concentration=True)
    if name is TemplateName.HEX:
        return Buff(display_name="Hex", concentration=True)
    return Buff(
        display_name="Hypnotic Pattern",
        condition=Condition.INCAPACITATED,
        concentration=True,
    )


def resolve_template(action: TemplateAction) -> ResolvedAction:
    """Expand a template action into a concrete action.

    The concrete action keeps the template's id, name, cost, requirements,
    tags, frequency and target count.

    Args:
        action: The template action.

    Returns:
        A BuffAction for ally templates, a DebuffAction for enemy ones.
    """
    options = action.template_options
    name = options.template_name
    tags = list(action.tags)
    if not any(tag.lower() == "spell" for tag in tags):
        tags.append("spell")
    shared = {
        "id": action.id,
        "name": action.name,
        "cost": action.cost,
        "requirements": action.requirements,
        "tags": tags,
        "freq": action.freq,
        "targets": action.targets,
    }
    buff = _buff_for(name, options.amount)
    if name in ENEMY_TEMPLATES:
        return DebuffAction(
            **shared,
            target=options.target or TargetStrategy.LEAST_HP,
            save_dc=options.save_dc or DEFAULT_SAVE_DC,
            buff=buff,
        )
    default_target = TargetStrategy.SELF if name is TemplateName.SHIELD else TargetStrategy.LEAST_HP
    return BuffAction(**shared, target=options.target or default_target, buff=buff)


class TemplateResolver(KindResolver):
    """Resolves template actions through the cache, then delegates."""

    def __init__(
        self,
        ctx: TurnContext,
        reactions: ReactionManager,
        *,
        cache: TemplateCache,
        delegate: Callable[[Combatant, ActionBase], ResolutionResult],
    ) -> None:
        """Initialize the template resolver.

        Args:
            ctx: Turn Context.
            reactions: Reaction Manager.
            cache: Shared template cache.
            delegate: Resolves the concrete action.
        """
        super().__init__(ctx, reactions)
        self.cache = cache
        self.delegate = delegate

    def concrete(self, action: TemplateAction) -> ResolvedAction:
        """Get the cached concrete action, resolving it on a miss."""
        key = template_key(action)
        resolved = self.cache.get(key)
        if resolved is None:
            resolved = resolve_template(action)
            self.cache.put(key, resolved)
            logger.debug("Template resolved", action=action.id, template=key[1])
        return resolved

    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        assert isinstance(action, TemplateAction)
        return self.delegate(actor, self.concrete(action))


__all__ = ["ENEMY_TEMPLATES", "resolve_template", "TemplateResolver"]
