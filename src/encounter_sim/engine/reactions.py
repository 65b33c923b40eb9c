"""Reaction Manager: decides which reactions fire on which events.

The manager subscribes to the encounter bus and queues every event a
trigger could match. Nothing fires from inside the subscription; the
action resolver and the engine call ``process_pending`` at explicit
checkpoints, where queued events are matched against the registered
reactions and effects are applied in a deterministic order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from encounter_sim.core.exceptions import ResourceError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.context import ImmediateAction, RollModification, TurnContext
from encounter_sim.engine.resources import REACTION, ledger_key, reaction_usage_cost
from encounter_sim.models.actions import DiscreteCost, VariableCost
from encounter_sim.models.enums import (
    EventKind,
    ResourceType,
    TriggerCondition,
    TriggerEffectKind,
    TriggerRequirementKind,
)
from encounter_sim.models.events import Event
from encounter_sim.models.reactions import (
    CompositeTrigger,
    ReactionTemplate,
    TriggerEffect,
    TriggerSpec,
)


logger = get_logger(__name__)

_REACTION_COST = DiscreteCost(resource=ResourceType.REACTION)

TRIGGER_EVENT_KINDS = frozenset(
    {
        EventKind.ATTACK_ROLLED,
        EventKind.ATTACK_HIT,
        EventKind.ATTACK_MISSED,
        EventKind.DAMAGE_TAKEN,
        EventKind.UNIT_DIED,
        EventKind.CAST_SPELL,
        EventKind.SAVE_RESULT,
        EventKind.ABILITY_CHECK_MADE,
        EventKind.CONCENTRATION_BROKEN,
    }
)
"""Event kinds any trigger condition can match."""


@dataclass(frozen=True)
class Registration:
    """A reaction registered for one combatant."""

    owner_id: str
    template: ReactionTemplate
    order: int


class ReactionManager:
    """Matches queued events against registered reactions and fires them.

    Budget: a reaction that consumes the reaction resource can fire at
    most once per owner per round. The budget is reset on ROUND_STARTED.
    Once-per-encounter reactions are charged against a separate counter
    that is never reset during the encounter.
    """

    def __init__(self, ctx: TurnContext, *, chain_limit: int = 32) -> None:
        """Register every combatant's reactions and subscribe to the bus.

        Args:
            ctx: Turn Context of the encounter.
            chain_limit: Maximum reactions fired per checkpoint.
        """
        self.ctx = ctx
        self.chain_limit = chain_limit
        self._registrations: list[Registration] = []
        self._pending: deque[Event] = deque()
        self._used_this_round: set[str] = set()
        self._processing = False
        for combatant in ctx.combatants.values():
            for template in combatant.creature.triggers:
                self.register(combatant.id, template)
        self._unsubscribe = ctx.bus.subscribe(self._on_event)

    @property
    def registrations(self) -> list[Registration]:
        """Registered reactions in registration order."""
        return list(self._registrations)

    @property
    def pending(self) -> int:
        """Number of queued events."""
        return len(self._pending)

    def register(self, owner_id: str, template: ReactionTemplate) -> bool:
        """Register a reaction for a combatant.

        Unknown owners are reported in diagnostics instead of raising.

        Returns:
            Whether the reaction was registered.
        """
        if owner_id not in self.ctx.combatants:
            self.ctx.report(
                f"reaction '{template.id}' references unknown combatant '{owner_id}'",
                owner=owner_id,
            )
            return False
        self._registrations.append(
            Registration(owner_id=owner_id, template=template, order=len(self._registrations))
        )
        return True

    def close(self) -> None:
        """Stop listening to the bus."""
        self._unsubscribe()
        self._pending.clear()

    def _on_event(self, event: Event) -> None:
        if event.kind is EventKind.ROUND_STARTED:
            self._used_this_round.clear()
            return
        if self._registrations and event.kind in TRIGGER_EVENT_KINDS:
            self._pending.append(event)

    # =========================================================================
    # Matching
    # =========================================================================

    def _relation(self, owner: Combatant, other_id: str | None) -> str | None:
        if other_id is None or other_id not in self.ctx.combatants:
            return None
        if other_id == owner.id:
            return "self"
        return "ally" if self.ctx.combatants[other_id].side is owner.side else "enemy"

    def _condition_matches(self, condition: TriggerCondition, owner: Combatant, event: Event) -> bool:
        actor = self._relation(owner, event.actor_id)
        target = self._relation(owner, event.target_id)
        kind = event.kind
        if condition is TriggerCondition.ON_HIT:
            return kind is EventKind.ATTACK_HIT and actor == "self"
        if condition is TriggerCondition.ON_CRITICAL_HIT:
            return kind is EventKind.ATTACK_HIT and actor == "self" and bool(event.detail.get("critical"))
        if condition is TriggerCondition.ON_MISS:
            return kind is EventKind.ATTACK_MISSED and actor == "self"
        if condition is TriggerCondition.ON_BEING_ATTACKED:
            return kind is EventKind.ATTACK_ROLLED and target == "self"
        if condition is TriggerCondition.ON_ALLY_ATTACKED:
            return kind is EventKind.ATTACK_ROLLED and target == "ally"
        if condition is TriggerCondition.ON_BEING_HIT:
            return kind is EventKind.ATTACK_HIT and target == "self"
        if condition is TriggerCondition.ON_BEING_DAMAGED:
            return (
                kind is EventKind.DAMAGE_TAKEN
                and target == "self"
                and float(event.detail.get("incoming", 0.0)) > 0
            )
        if condition is TriggerCondition.ON_ENEMY_DEATH:
            return kind is EventKind.UNIT_DIED and target == "enemy"
        if condition is TriggerCondition.ON_CAST_SPELL:
            return kind is EventKind.CAST_SPELL and actor == "enemy"
        if condition is TriggerCondition.ON_SAVE_FAILED:
            return kind is EventKind.SAVE_RESULT and actor == "self" and not event.detail.get("success")
        if condition is TriggerCondition.ON_SAVE_SUCCEEDED:
            return kind is EventKind.SAVE_RESULT and actor == "self" and bool(event.detail.get("success"))
        if condition is TriggerCondition.ON_ABILITY_CHECK:
            return kind is EventKind.ABILITY_CHECK_MADE and actor == "self"
        if condition is TriggerCondition.ON_CONCENTRATION_BROKEN:
            return kind is EventKind.CONCENTRATION_BROKEN and actor == "self"
        return False

    def trigger_matches(self, trigger: TriggerSpec, owner: Combatant, event: Event) -> bool:
        """Evaluate a trigger, recursing through composites.

        Args:
            trigger: Condition or composite.
            owner: Combatant owning the reaction.
            event: Candidate event.

        Returns:
            Whether the trigger matches the event from the owner's view.
        """
        if isinstance(trigger, CompositeTrigger):
            results = (self.trigger_matches(c, owner, event) for c in trigger.conditions)
            if trigger.op == "and":
                return all(results)
            if trigger.op == "or":
                return any(results)
            return not next(results)
        return self._condition_matches(trigger, owner, event)

    def _requirements_hold(self, registration: Registration, owner: Combatant, event: Event) -> bool:
        for requirement in registration.template.requirements:
            if requirement.kind is TriggerRequirementKind.HAS_TEMP_HP:
                if owner.state.temp_hp <= 0:
                    return False
            elif requirement.kind is TriggerRequirementKind.DAMAGE_TYPE:
                damage_type = str(event.detail.get("damage_type", "")).lower()
                if damage_type != (requirement.value or "").lower():
                    return False
            elif requirement.kind is TriggerRequirementKind.ACTION_TAG:
                if not self._provoking_action_has_tag(event, requirement.value or ""):
                    return False
        return True

    def _provoking_action_has_tag(self, event: Event, tag: str) -> bool:
        if event.actor_id is None or event.action_id is None:
            return False
        actor = self.ctx.combatants.get(event.actor_id)
        action = actor.action(event.action_id) if actor else None
        if action is None:
            return False
        return tag.lower() in (t.lower() for t in action.tags)

    def _costs(self, template: ReactionTemplate) -> list[DiscreteCost | VariableCost]:
        costs: list[DiscreteCost | VariableCost] = []
        if template.consumes_reaction:
            costs.append(_REACTION_COST)
        costs.extend(template.cost)
        if template.uses_per_encounter is not None:
            costs.append(reaction_usage_cost(template.id))
        return costs

    def is_eligible(self, registration: Registration, event: Event) -> bool:
        """Whether a registered reaction can fire on this event now."""
        owner = self.ctx.combatants.get(registration.owner_id)
        if owner is None or not owner.can_act:
            return False
        template = registration.template
        if template.consumes_reaction and owner.id in self._used_this_round:
            return False
        if not self.trigger_matches(template.trigger, owner, event):
            return False
        if not self._requirements_hold(registration, owner, event):
            return False
        return self.ctx.can_afford(owner.id, self._costs(template))

    # =========================================================================
    # Firing
    # =========================================================================

    def process_pending(self) -> int:
        """Fire reactions for every queued event, cascades included.

        Matches for one event are ordered by descending priority, then
        owner id. Eligibility is re-checked right before each firing since
        an earlier reaction may have changed the state.

        Returns:
            Number of reactions fired.
        """
        if self._processing:
            return 0
        self._processing = True
        fired = 0
        try:
            while self._pending:
                event = self._pending.popleft()
                matches = sorted(
                    (r for r in self._registrations if self.is_eligible(r, event)),
                    key=lambda r: (-r.template.priority, r.owner_id, r.order),
                )
                for registration in matches:
                    if fired >= self.chain_limit:
                        self.ctx.report(
                            "reaction chain limit reached",
                            limit=self.chain_limit,
                            dropped=len(self._pending),
                        )
                        self._pending.clear()
                        return fired
                    if not self.is_eligible(registration, event):
                        continue
                    self._fire(registration, event)
                    fired += 1
        finally:
            self._processing = False
        return fired

    def _fire(self, registration: Registration, event: Event) -> None:
        template = registration.template
        owner = self.ctx.get(registration.owner_id)
        try:
            self.ctx.pay_costs(owner.id, self._costs(template), action_id=template.id)
        except ResourceError:
            return
        if template.consumes_reaction:
            self._used_this_round.add(owner.id)
        self.ctx.emit(
            EventKind.REACTION_TRIGGERED,
            actor_id=owner.id,
            target_id=event.actor_id,
            action_id=template.id,
            detail={
                "reaction": template.name,
                "trigger_event": event.sequence,
                "trigger_kind": event.kind.value,
                "priority": template.priority,
            },
        )
        logger.debug(
            "Reaction fired",
            owner=owner.id,
            reaction=template.id,
            trigger=event.kind.value,
            round=self.ctx.round,
        )
        self._apply_effect(template.effect, owner, template, event)

    def _apply_effect(
        self,
        effect: TriggerEffect,
        owner: Combatant,
        template: ReactionTemplate,
        event: Event,
    ) -> None:
        ctx = self.ctx
        kind = effect.kind
        provoker = event.actor_id if event.actor_id != owner.id else event.target_id

        if kind is TriggerEffectKind.DEAL_DAMAGE:
            if provoker is None or provoker not in ctx.combatants:
                ctx.report(f"reaction '{template.id}' has no unit to damage", owner=owner.id)
                return
            ctx.apply_damage(
                provoker,
                ctx.dice.roll_damage(effect.amount or 0),
                effect.damage_type,
                source_id=owner.id,
                action_id=template.id,
            )
        elif kind is TriggerEffectKind.REDUCE_DAMAGE:
            owner.state.pending_reductions.append(max(0.0, ctx.dice.evaluate(effect.amount or 0)))
        elif kind is TriggerEffectKind.RESTORE_RESOURCE:
            assert effect.resource is not None
            amount = ctx.dice.evaluate(effect.amount) if effect.amount is not None else None
            ctx.restore_resource(owner.id, ledger_key(effect.resource, effect.resource_key), amount)
        elif kind is TriggerEffectKind.APPLY_BUFF:
            assert effect.buff is not None
            ctx.add_buff(owner.id, effect.buff, source_id=owner.id, action_id=template.id)
        elif kind is TriggerEffectKind.REMOVE_BUFF:
            ctx.remove_buffs_named(owner.id, effect.buff_name or "", reason="reaction")
        elif kind is TriggerEffectKind.CHAIN:
            for sub_effect in effect.effects:
                self._apply_effect(sub_effect, owner, template, event)
        elif kind is TriggerEffectKind.ADD_TO_ROLL:
            roller = event.actor_id or owner.id
            ctx.queue_roll_modification(
                RollModification(roller_id=roller, source_id=owner.id, kind="add", amount=effect.amount or 0)
            )
        elif kind is TriggerEffectKind.FORCE_SELF_REROLL:
            ctx.queue_roll_modification(
                RollModification(roller_id=owner.id, source_id=owner.id, kind="reroll_high")
            )
        elif kind is TriggerEffectKind.FORCE_TARGET_REROLL:
            if provoker is None:
                ctx.report(f"reaction '{template.id}' has no roll to reroll", owner=owner.id)
                return
            ctx.queue_roll_modification(
                RollModification(roller_id=provoker, source_id=owner.id, kind="reroll_low")
            )
        elif kind is TriggerEffectKind.INTERRUPT_ACTION:
            ctx.action_interrupted = True
        elif kind is TriggerEffectKind.GRANT_IMMEDIATE_ACTION:
            action_id = effect.action_id or ""
            if owner.action(action_id) is None:
                ctx.report(
                    f"reaction '{template.id}' grants unknown action '{action_id}'",
                    owner=owner.id,
                )
                return
            ctx.grant_immediate_action(
                ImmediateAction(combatant_id=owner.id, action_id=action_id, reaction_id=template.id)
            )
        elif kind is TriggerEffectKind.CONSUME_REACTION:
            if owner.id not in self._used_this_round and owner.state.ledger.amount(REACTION) >= 1:
                ctx.pay_costs(owner.id, [_REACTION_COST], action_id=template.id)
                self._used_this_round.add(owner.id)


__all__ = ["TRIGGER_EVENT_KINDS", "Registration", "ReactionManager"]
