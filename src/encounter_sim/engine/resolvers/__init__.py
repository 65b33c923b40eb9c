"""Action resolution: one action intent into Turn Context mutations.

``ActionResolver`` checks requirements, pays costs, announces the action
and dispatches to the resolver for the action's kind. Template actions
are expanded through the shared template cache first.
"""

from __future__ import annotations

from encounter_sim.core.exceptions import ResourceError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resolvers.attack import AttackResolver
from encounter_sim.engine.resolvers.base import (
    KindResolver,
    ResolutionResult,
    ResolutionStatus,
    combat_state_holds,
    unmet_requirement,
)
from encounter_sim.engine.resolvers.support import BuffResolver, DebuffResolver, HealResolver
from encounter_sim.engine.resolvers.template import TemplateResolver, resolve_template
from encounter_sim.engine.resources import effective_costs
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.actions import ActionBase, TemplateAction, action_kind
from encounter_sim.models.enums import ActionKind, EventKind


logger = get_logger(__name__)


class ActionResolver:
    """Turns action intents into state changes and events.

    Example:
        >>> resolver = ActionResolver(ctx, reactions, template_cache=TemplateCache())
        >>> result = resolver.execute(fighter, fighter.actions[0])
    """

    def __init__(
        self,
        ctx: TurnContext,
        reactions: ReactionManager,
        *,
        template_cache: TemplateCache,
    ) -> None:
        """Initialize the resolver and its per-kind strategies.

        Args:
            ctx: Turn Context of the encounter.
            reactions: Reaction Manager of the encounter.
            template_cache: Cache shared by every run of a batch.
        """
        self.ctx = ctx
        self.reactions = reactions
        self.templates = TemplateResolver(
            ctx, reactions, cache=template_cache, delegate=self._dispatch
        )
        self._resolvers: dict[ActionKind, KindResolver] = {
            ActionKind.ATTACK: AttackResolver(ctx, reactions),
            ActionKind.HEAL: HealResolver(ctx, reactions),
            ActionKind.BUFF: BuffResolver(ctx, reactions),
            ActionKind.DEBUFF: DebuffResolver(ctx, reactions),
            ActionKind.TEMPLATE: self.templates,
        }

    def concrete(self, action: ActionBase) -> ActionBase:
        """The action with templates expanded."""
        if isinstance(action, TemplateAction):
            return self.templates.concrete(action)
        return action

    def _dispatch(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        return self._resolvers[action_kind(action)].resolve(actor, action)

    def _skip(self, actor: Combatant, action: ActionBase, reason: str, **detail: object) -> ResolutionResult:
        self.ctx.emit(
            EventKind.ACTION_SKIPPED,
            actor_id=actor.id,
            action_id=action.id,
            detail={"reason": reason, **detail},
        )
        logger.debug("Action skipped", actor=actor.id, action=action.id, reason=reason)
        return ResolutionResult(status=ResolutionStatus.SKIPPED, action_id=action.id, reason=reason)

    def execute(self, actor: Combatant, action: ActionBase, *, pay: bool = True) -> ResolutionResult:
        """Resolve one action for an actor.

        Unmet requirements or unaffordable costs skip the action with an
        ACTION_SKIPPED event and no further effects; requirements are
        checked before anything is paid.

        Args:
            actor: Acting combatant.
            action: Action to resolve.
            pay: Charge the action's costs (False for granted actions).

        Returns:
            The resolution result.
        """
        ctx = self.ctx
        ctx.action_interrupted = False
        if not actor.can_act:
            return self._skip(actor, action, "cannot_act")

        concrete = self.concrete(action)
        unmet = unmet_requirement(ctx, actor, concrete)
        if unmet is not None:
            return self._skip(actor, action, "requirements", requirement=unmet)
        if pay:
            try:
                ctx.pay_costs(actor.id, effective_costs(action), action_id=action.id)
            except ResourceError as exc:
                return self._skip(actor, action, "resources", resource=exc.details.get("resource"))

        ctx.emit(
            EventKind.ACTION_STARTED,
            actor_id=actor.id,
            action_id=action.id,
            detail={"kind": action_kind(concrete).value, "name": action.name, "granted": not pay},
        )
        if concrete.is_spell:
            ctx.emit(EventKind.CAST_SPELL, actor_id=actor.id, action_id=action.id, detail={"name": action.name})
        self.reactions.process_pending()
        if ctx.action_interrupted:
            result = ResolutionResult(
                status=ResolutionStatus.INTERRUPTED, action_id=action.id, reason="interrupted"
            )
        else:
            result = self._dispatch(actor, concrete)
        self.reactions.process_pending()
        ctx.action_interrupted = False
        return result


__all__ = [
    "ActionResolver",
    "KindResolver",
    "ResolutionResult",
    "ResolutionStatus",
    "combat_state_holds",
    "unmet_requirement",
    "resolve_template",
]
