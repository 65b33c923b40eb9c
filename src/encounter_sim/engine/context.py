"""Turn Context: the single authority over encounter state.

Every HP, resource and effect change goes through a TurnContext method,
and each one is recorded as exactly one event on the context's bus. The
context also carries the cooperative flags that reactions use to steer
the action in flight (interrupts, immediate actions, roll modifications).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal

from encounter_sim.core.config import EngineSettings
from encounter_sim.core.constants import CONCENTRATION_MIN_DC
from encounter_sim.core.exceptions import InternalInvariantError, ResourceError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import ActiveEffect, Combatant
from encounter_sim.engine.dice import D20Roll, DiceRoller, RollType
from encounter_sim.engine.event_bus import EventBus
from encounter_sim.engine.resources import Charge
from encounter_sim.models.actions import DiscreteCost, VariableCost
from encounter_sim.models.buffs import Buff
from encounter_sim.models.enums import BuffDuration, EventKind, ResetType, Side
from encounter_sim.models.events import Event


logger = get_logger(__name__)


@dataclass(frozen=True)
class RollModification:
    """A queued change to a combatant's next d20 roll.

    Attributes:
        roller_id: Combatant whose roll is modified.
        source_id: Combatant whose reaction queued the change.
        kind: ``add`` adds ``amount``; ``reroll_high`` and ``reroll_low``
            roll again and keep the better or worse face.
        amount: Formula added for ``add``.
    """

    roller_id: str
    source_id: str
    kind: Literal["add", "reroll_high", "reroll_low"]
    amount: int | float | str = 0


@dataclass(frozen=True)
class ImmediateAction:
    """An out-of-turn action granted by a reaction."""

    combatant_id: str
    action_id: str
    reaction_id: str


class TurnContext:
    """State authority and event emitter for one encounter.

    Attributes:
        combatants: Combatants keyed by id, in roster order.
        bus: Event log.
        dice: Dice roller shared by the run.
        settings: Engine settings.
        round: Current round (0 before the first).
        turn: Turns taken so far.
        active_id: Combatant whose turn it is.
        action_interrupted: Set by reactions to abort the action in flight.
        diagnostics: Non-fatal problems seen during the encounter.
    """

    def __init__(
        self,
        combatants: Iterable[Combatant],
        *,
        dice: DiceRoller,
        settings: EngineSettings,
        retention: int | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            combatants: Every participant, in roster order.
            dice: Dice roller for the run.
            settings: Engine settings.
            retention: Events retained on the bus (None keeps all).
        """
        self.combatants: dict[str, Combatant] = {c.id: c for c in combatants}
        self.bus = EventBus(retention=retention)
        self.dice = dice
        self.settings = settings
        self.round = 0
        self.turn = 0
        self.active_id: str | None = None
        self.action_interrupted = False
        self.diagnostics: list[str] = []
        self._effect_counter = 0
        self._roll_modifications: list[RollModification] = []
        self._immediate_actions: list[ImmediateAction] = []

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, combatant_id: str) -> Combatant:
        """Look up a combatant.

        Raises:
            InternalInvariantError: If the id is not in the encounter.
        """
        combatant = self.combatants.get(combatant_id)
        if combatant is None:
            raise InternalInvariantError(
                "Event references a combatant that is not in the encounter",
                current_state=combatant_id,
                expected_states=sorted(self.combatants),
            )
        return combatant

    def living(self, side: Side | None = None) -> list[Combatant]:
        """Living combatants, optionally on one side, in roster order."""
        return [
            c for c in self.combatants.values() if c.alive and (side is None or c.side is side)
        ]

    def allies(self, combatant: Combatant) -> list[Combatant]:
        """Living combatants on the same side, including the combatant."""
        return self.living(combatant.side)

    def enemies(self, combatant: Combatant) -> list[Combatant]:
        """Living combatants on the opposing side."""
        return self.living(combatant.side.opponent)

    def is_over(self) -> bool:
        """Whether one side has no living combatants."""
        return not self.living(Side.PLAYER) or not self.living(Side.MONSTER)

    def armor_class(self, combatant: Combatant) -> float:
        """Base AC plus the average of every active AC modifier."""
        bonus = sum(self.dice.average(e.buff.ac) for e in combatant.state.effects if e.buff.ac)
        return combatant.creature.ac + bonus

    def effects_sorted(self, combatant: Combatant) -> list[ActiveEffect]:
        """Active effects ordered by effect id, the order their dice are rolled in."""
        return sorted(combatant.state.effects, key=lambda e: e.id)

    # =========================================================================
    # Events
    # =========================================================================

    def emit(self, kind: EventKind, **fields: Any) -> Event:
        """Publish an event stamped with the current round and turn."""
        return self.bus.publish(kind, round=self.round, turn=self.turn, **fields)

    def report(self, message: str, **context: Any) -> None:
        """Record a non-fatal problem in the diagnostics."""
        self.diagnostics.append(message)
        logger.debug("Diagnostic recorded", message=message, **context)

    def start(self) -> Event:
        """Emit ENCOUNTER_STARTED with a snapshot replays can start from."""
        snapshot = {
            c.id: {
                "hp": c.state.hp,
                "max_hp": c.state.max_hp,
                "temp_hp": c.state.temp_hp,
                "side": c.side.value,
            }
            for c in self.combatants.values()
        }
        return self.emit(EventKind.ENCOUNTER_STARTED, detail={"combatants": snapshot})

    # =========================================================================
    # Hit points
    # =========================================================================

    def apply_damage(
        self,
        target_id: str,
        amount: float,
        damage_type: str = "bludgeoning",
        *,
        source_id: str | None = None,
        action_id: str | None = None,
    ) -> float:
        """Route damage through reductions, absorption, temp HP and HP.

        Order: incoming multipliers, flat reductions (effects, then queued
        reaction reductions), arcane ward, temporary HP, hit points. Each
        absorbing layer emits DAMAGE_PREVENTED; the HP loss is one
        DAMAGE_TAKEN; reaching zero emits UNIT_DIED once.

        Args:
            target_id: Combatant taking damage.
            amount: Raw damage.
            damage_type: Damage type, used by reaction requirements.
            source_id: Combatant dealing damage.
            action_id: Action dealing damage.

        Returns:
            Hit points actually lost.
        """
        target = self.get(target_id)
        state = target.state
        if state.dead:
            return 0.0

        incoming = max(0.0, amount)
        for effect in self.effects_sorted(target):
            if effect.buff.damage_taken_multiplier is not None:
                incoming *= effect.buff.damage_taken_multiplier

        reduction = 0.0
        for effect in self.effects_sorted(target):
            if effect.buff.damage_reduction is not None:
                reduction += max(0.0, self.dice.evaluate(effect.buff.damage_reduction))
        if state.pending_reductions:
            reduction += sum(state.pending_reductions)
            state.pending_reductions.clear()

        common = {"actor_id": source_id, "target_id": target_id, "action_id": action_id}
        prevented = min(incoming, reduction)
        if prevented > 0:
            self.emit(EventKind.DAMAGE_PREVENTED, amount=prevented, detail={"layer": "reduction"}, **common)
        remaining = max(0.0, incoming - reduction)
        if remaining <= 0:
            return 0.0

        if state.arcane_ward > 0:
            absorbed = min(state.arcane_ward, remaining)
            state.arcane_ward -= absorbed
            remaining -= absorbed
            self.emit(EventKind.DAMAGE_PREVENTED, amount=absorbed, detail={"layer": "arcane_ward"}, **common)
        if remaining > 0 and state.temp_hp > 0:
            absorbed = min(state.temp_hp, remaining)
            state.temp_hp -= absorbed
            remaining -= absorbed
            self.emit(EventKind.DAMAGE_PREVENTED, amount=absorbed, detail={"layer": "temp_hp"}, **common)

        hp_lost = min(state.hp, remaining)
        taken = incoming - prevented
        state.hp -= hp_lost
        self.emit(
            EventKind.DAMAGE_TAKEN,
            amount=hp_lost,
            detail={"damage_type": damage_type, "incoming": taken},
            **common,
        )

        if state.hp <= 0:
            state.hp = 0.0
            self._kill(target, source_id=source_id, action_id=action_id)
        elif state.concentrating_on is not None:
            self._concentration_check(target, taken)
        return hp_lost

    def _kill(self, target: Combatant, *, source_id: str | None, action_id: str | None) -> None:
        if target.state.dead:
            return
        target.state.dead = True
        self.emit(
            EventKind.UNIT_DIED,
            actor_id=source_id,
            target_id=target.id,
            action_id=action_id,
            detail={"side": target.side.value},
        )
        logger.debug("Combatant died", combatant=target.id, round=self.round)
        if target.state.concentrating_on is not None:
            self.break_concentration(target.id, reason="died")
        for other in self.combatants.values():
            for effect in [e for e in other.state.effects if e.source_id == target.id]:
                if effect in other.state.effects:
                    self._drop_effect(other, effect, EventKind.BUFF_REMOVED, reason="source_died")
        target.state.pending_reductions.clear()

    def _concentration_check(self, target: Combatant, damage: float) -> None:
        dc = max(CONCENTRATION_MIN_DC, int(damage // 2))
        spell = target.state.concentrating_on
        if self.roll_save(target.id, dc, ability="con", reason="concentration"):
            self.emit(
                EventKind.CONCENTRATION_MAINTAINED,
                actor_id=target.id,
                target_id=target.id,
                amount=float(dc),
                detail={"spell": spell},
            )
        else:
            self.break_concentration(target.id, reason="damage")

    def apply_healing(
        self,
        target_id: str,
        amount: float,
        *,
        temp: bool = False,
        source_id: str | None = None,
        action_id: str | None = None,
    ) -> float:
        """Restore hit points or grant temporary hit points.

        Hit points never exceed the maximum. Temporary hit points do not
        stack: the larger pool is kept. Dead combatants cannot be healed.

        Args:
            target_id: Combatant being healed.
            amount: Healing rolled.
            temp: Grant temporary hit points instead.
            source_id: Healer.
            action_id: Healing action.

        Returns:
            Hit points (or temporary hit points) actually gained.
        """
        target = self.get(target_id)
        state = target.state
        if state.dead:
            self.report(f"healing on dead combatant {target_id} ignored", target=target_id)
            return 0.0
        amount = max(0.0, amount)
        common = {"actor_id": source_id, "target_id": target_id, "action_id": action_id}
        if temp:
            gained = max(0.0, amount - state.temp_hp)
            state.temp_hp = max(state.temp_hp, amount)
            self.emit(EventKind.TEMP_HP_GRANTED, amount=gained, detail={"granted": amount}, **common)
            return gained
        gained = min(amount, state.max_hp - state.hp)
        state.hp += gained
        self.emit(EventKind.HEALING_APPLIED, amount=gained, detail={"rolled": amount}, **common)
        return gained

    # =========================================================================
    # Resources
    # =========================================================================

    def can_afford(self, combatant_id: str, costs: list[DiscreteCost | VariableCost]) -> bool:
        """Whether the combatant could pay every cost now."""
        return not isinstance(self.get(combatant_id).state.ledger.plan(costs), str)

    def pay_costs(
        self,
        combatant_id: str,
        costs: list[DiscreteCost | VariableCost],
        *,
        action_id: str | None = None,
    ) -> list[Charge]:
        """Charge costs against the combatant's ledger.

        Nothing is charged unless everything can be paid.

        Args:
            combatant_id: Paying combatant.
            costs: Costs to pay.
            action_id: Action being paid for.

        Returns:
            The charges applied.

        Raises:
            ResourceError: If any resource is insufficient.
        """
        ledger = self.get(combatant_id).state.ledger
        plan = ledger.plan(costs)
        if isinstance(plan, str):
            raise ResourceError(
                "Insufficient resource",
                resource=plan,
                combatant_id=combatant_id,
                round_number=self.round,
            )
        for charge in plan:
            if charge.amount <= 0:
                continue
            remaining = ledger.consume(charge.key, charge.amount)
            self.emit(
                EventKind.RESOURCE_CONSUMED,
                actor_id=combatant_id,
                action_id=action_id,
                amount=charge.amount,
                resource=charge.key,
            )
            if remaining <= 0:
                self.emit(
                    EventKind.RESOURCE_DEPLETED,
                    actor_id=combatant_id,
                    action_id=action_id,
                    resource=charge.key,
                )
        return plan

    def restore_resource(self, combatant_id: str, key: str, amount: float | None = None) -> float:
        """Add to one ledger entry and record the change.

        Returns:
            Amount actually restored.
        """
        previous, new = self.get(combatant_id).state.ledger.restore(key, amount)
        if new != previous:
            self.emit(
                EventKind.RESOURCE_RESTORED,
                actor_id=combatant_id,
                amount=new - previous,
                resource=key,
            )
        return new - previous

    def reset_resources(self, combatant_id: str, period: ResetType) -> None:
        """Reset a combatant's ledger at a period boundary."""
        for key, previous, new in self.get(combatant_id).state.ledger.reset(period):
            self.emit(
                EventKind.RESOURCE_RESTORED,
                actor_id=combatant_id,
                amount=new - previous,
                resource=key,
                detail={"reset": period.name.lower()},
            )

    # =========================================================================
    # Effects
    # =========================================================================

    def add_buff(
        self,
        target_id: str,
        buff: Buff,
        *,
        source_id: str,
        action_id: str | None = None,
        save_dc: float | None = None,
    ) -> ActiveEffect | None:
        """Apply a buff to a combatant.

        A concentration buff ties the source to one spell: applying a
        different concentration spell breaks the previous one first.

        Args:
            target_id: Combatant receiving the buff.
            buff: Modifier payload.
            source_id: Combatant applying it.
            action_id: Action applying it.
            save_dc: Repeat-save DC for debuffs.

        Returns:
            The new effect, or None if the target is dead.
        """
        target = self.get(target_id)
        if target.state.dead:
            return None
        if buff.concentration:
            source = self.get(source_id)
            spell = action_id or buff.name
            current = source.state.concentrating_on
            if current is not None and current != spell:
                self.break_concentration(source_id, reason="replaced")
            source.state.concentrating_on = spell

        self._effect_counter += 1
        effect = ActiveEffect(
            id=f"fx-{self._effect_counter:05d}",
            buff=buff,
            source_id=source_id,
            target_id=target_id,
            action_id=action_id,
            rounds_remaining=buff.initial_rounds,
            save_dc=save_dc,
        )
        target.state.effects.append(effect)
        self.emit(
            EventKind.BUFF_APPLIED,
            actor_id=source_id,
            target_id=target_id,
            action_id=action_id,
            detail={"effect_id": effect.id, "name": effect.name, "concentration": buff.concentration},
        )
        if buff.condition is not None:
            self.emit(
                EventKind.CONDITION_ADDED,
                actor_id=source_id,
                target_id=target_id,
                action_id=action_id,
                detail={"condition": buff.condition.value, "effect_id": effect.id},
            )
        return effect

    def find_effect(self, effect_id: str) -> tuple[Combatant, ActiveEffect] | None:
        """Locate an active effect by id."""
        for combatant in self.combatants.values():
            for effect in combatant.state.effects:
                if effect.id == effect_id:
                    return combatant, effect
        return None

    def remove_buff(self, effect_id: str, *, reason: str = "removed", expired: bool = False) -> bool:
        """Remove an active effect.

        Removing a concentration effect ends its source's concentration,
        which removes every other effect of that spell as well.

        Args:
            effect_id: Effect to remove.
            reason: Reason recorded on the event.
            expired: Emit BUFF_EXPIRED instead of BUFF_REMOVED.

        Returns:
            False if the effect was not active.
        """
        found = self.find_effect(effect_id)
        if found is None:
            return False
        holder, effect = found
        kind = EventKind.BUFF_EXPIRED if expired else EventKind.BUFF_REMOVED
        self._drop_effect(holder, effect, kind, reason=reason)
        if effect.concentration:
            self.break_concentration(effect.source_id, reason=reason)
        return True

    def remove_buffs_named(self, combatant_id: str, name: str, *, reason: str = "removed") -> int:
        """Remove every effect on a combatant with this display name.

        Returns:
            Number of effects removed.
        """
        wanted = name.strip().lower()
        target = self.get(combatant_id)
        matching = [e.id for e in target.state.effects if e.name.lower() == wanted]
        return sum(1 for effect_id in matching if self.remove_buff(effect_id, reason=reason))

    def break_concentration(self, source_id: str, *, reason: str) -> None:
        """End a combatant's concentration and remove its dependent effects."""
        source = self.get(source_id)
        spell = source.state.concentrating_on
        for holder in self.combatants.values():
            for effect in [
                e for e in holder.state.effects if e.source_id == source_id and e.concentration
            ]:
                self._drop_effect(holder, effect, EventKind.BUFF_REMOVED, reason="concentration")
        if spell is None:
            return
        source.state.concentrating_on = None
        self.emit(
            EventKind.CONCENTRATION_BROKEN,
            actor_id=source_id,
            target_id=source_id,
            detail={"spell": spell, "reason": reason},
        )

    def _drop_effect(
        self,
        holder: Combatant,
        effect: ActiveEffect,
        kind: EventKind,
        *,
        reason: str,
    ) -> None:
        holder.state.effects.remove(effect)
        self.emit(
            kind,
            actor_id=effect.source_id,
            target_id=holder.id,
            action_id=effect.action_id,
            detail={"effect_id": effect.id, "name": effect.name, "reason": reason},
        )
        if effect.buff.condition is not None:
            self.emit(
                EventKind.CONDITION_REMOVED,
                actor_id=effect.source_id,
                target_id=holder.id,
                detail={"condition": effect.buff.condition.value, "effect_id": effect.id},
            )

    def expire_effects(self, combatant_id: str, duration: BuffDuration) -> None:
        """Expire every effect of one duration kind on a combatant."""
        holder = self.get(combatant_id)
        for effect in [e for e in holder.state.effects if e.duration is duration]:
            self.remove_buff(effect.id, reason=duration.value, expired=True)

    def repeat_saves(self, combatant_id: str) -> None:
        """Let a combatant save against each repeat-save effect on it."""
        holder = self.get(combatant_id)
        for effect in [
            e
            for e in self.effects_sorted(holder)
            if e.duration is BuffDuration.REPEAT_SAVE_EACH_ROUND and e.save_dc is not None
        ]:
            if effect not in holder.state.effects or not holder.alive:
                continue
            if self.roll_save(holder.id, effect.save_dc, reason=effect.name):
                self.remove_buff(effect.id, reason="saved")

    def tick_durations(self) -> None:
        """Count down round-limited effects at the end of a round."""
        for holder in list(self.combatants.values()):
            for effect in list(holder.state.effects):
                if effect.rounds_remaining is None or effect not in holder.state.effects:
                    continue
                effect.rounds_remaining -= 1
                if effect.rounds_remaining <= 0:
                    self.remove_buff(effect.id, reason="duration", expired=True)

    # =========================================================================
    # Rolls
    # =========================================================================

    def queue_roll_modification(self, modification: RollModification) -> None:
        """Queue a change for the roller's next d20 roll."""
        self._roll_modifications.append(modification)

    def take_roll_modifications(self, roller_id: str) -> list[RollModification]:
        """Remove and return the queued modifications for a roller."""
        taken = [m for m in self._roll_modifications if m.roller_id == roller_id]
        if taken:
            self._roll_modifications = [
                m for m in self._roll_modifications if m.roller_id != roller_id
            ]
        return taken

    def apply_roll_modifications(
        self,
        roll: D20Roll,
        modifications: list[RollModification],
    ) -> tuple[D20Roll, float]:
        """Apply queued modifications to a d20 roll.

        Args:
            roll: The roll so far.
            modifications: Modifications taken from the queue.

        Returns:
            The (possibly rerolled) d20 and the flat amount to add.
        """
        bonus = 0.0
        for modification in modifications:
            if modification.kind == "add":
                bonus += self.dice.evaluate(modification.amount)
                continue
            again = self.dice.roll_d20().natural
            keep = max if modification.kind == "reroll_high" else min
            roll = D20Roll(
                natural=keep(roll.natural, again),
                rolls=roll.rolls + (again,),
                roll_type=roll.roll_type,
            )
        return roll, bonus

    def roll_save(
        self,
        combatant_id: str,
        dc: float,
        *,
        ability: str | None = None,
        source_id: str | None = None,
        action_id: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Roll a saving throw and record it.

        Args:
            combatant_id: Saving combatant.
            dc: Difficulty class.
            ability: Ability for a per-ability save bonus.
            source_id: Combatant forcing the save.
            action_id: Action forcing the save.
            reason: Label recorded on the events.

        Returns:
            Whether the save succeeded.
        """
        saver = self.get(combatant_id)
        bonus = saver.creature.save_for(ability)
        for effect in self.effects_sorted(saver):
            if effect.buff.save is not None:
                bonus += self.dice.evaluate(effect.buff.save)
        common = {"actor_id": combatant_id, "target_id": source_id, "action_id": action_id}
        self.emit(EventKind.SAVE_ATTEMPTED, amount=float(dc), detail={"reason": reason}, **common)
        roll, extra = self.apply_roll_modifications(
            self.dice.roll_d20(roll_type=RollType.NORMAL),
            self.take_roll_modifications(combatant_id),
        )
        total = roll.natural + bonus + extra
        success = total >= dc
        self.emit(
            EventKind.SAVE_RESULT,
            amount=total,
            detail={"dc": dc, "success": success, "natural": roll.natural, "reason": reason},
            **common,
        )
        return success

    # =========================================================================
    # Reaction flags
    # =========================================================================

    def grant_immediate_action(self, action: ImmediateAction) -> None:
        """Queue an out-of-turn action to run after the current one."""
        self._immediate_actions.append(action)

    def take_immediate_actions(self) -> list[ImmediateAction]:
        """Remove and return the queued out-of-turn actions."""
        taken, self._immediate_actions = self._immediate_actions, []
        return taken


__all__ = ["RollModification", "ImmediateAction", "TurnContext"]
