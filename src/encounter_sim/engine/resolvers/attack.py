"""Attack resolution.

Each attack of a multi-attack action picks its target anew and runs the
checkpoint sequence: roll, defensive reactions, hit or miss, reactions,
damage, reactions, rider effect.
"""

from __future__ import annotations

from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.dice import RollType
from encounter_sim.engine.resolvers.base import KindResolver, ResolutionResult, ResolutionStatus
from encounter_sim.engine.targeting import select_targets
from encounter_sim.models.actions import ActionBase, AttackAction
from encounter_sim.models.enums import BuffDuration, Condition, EventKind


logger = get_logger(__name__)


class AttackResolver(KindResolver):
    """Resolves weapon and spell attacks, including save-based ones."""

    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        """Resolve every attack of the action.

        Args:
            actor: Attacking combatant.
            action: An AttackAction.

        Returns:
            The resolution result with every target attacked.
        """
        assert isinstance(action, AttackAction)
        result = ResolutionResult(status=ResolutionStatus.RESOLVED, action_id=action.id)
        for _ in range(action.targets):
            if self.ctx.action_interrupted:
                break
            if not actor.alive:
                break
            picked = select_targets(self.ctx, actor, action.target, self.ctx.enemies(actor), 1)
            if not picked:
                break
            target = picked[0]
            result.targets.append(target.id)
            if action.use_saves:
                self._resolve_save_attack(actor, target, action)
            else:
                self._resolve_attack_roll(actor, target, action)
        if self.ctx.action_interrupted:
            result.status = ResolutionStatus.INTERRUPTED
            result.reason = "interrupted"
        return result

    # -------------------------------------------------------------------------
    # Attack rolls
    # -------------------------------------------------------------------------

    def _roll_type(self, actor: Combatant, target: Combatant) -> RollType:
        target_conditions = target.conditions
        actor_conditions = actor.conditions
        advantage = Condition.INVISIBLE in actor_conditions or any(
            c.grants_advantage_to_attackers for c in target_conditions
        )
        disadvantage = Condition.INVISIBLE in target_conditions or any(
            c.imposes_attack_disadvantage for c in actor_conditions
        )
        return RollType.combine(advantage, disadvantage)

    def _to_hit_bonus(self, actor: Combatant, action: AttackAction) -> float:
        bonus = self.ctx.dice.evaluate(action.to_hit)
        for effect in self.ctx.effects_sorted(actor):
            if effect.buff.to_hit is not None:
                bonus += self.ctx.dice.evaluate(effect.buff.to_hit)
        return bonus

    def _resolve_attack_roll(self, actor: Combatant, target: Combatant, action: AttackAction) -> None:
        ctx = self.ctx
        roll_type = self._roll_type(actor, target)
        roll, extra = ctx.apply_roll_modifications(
            ctx.dice.roll_d20(roll_type=roll_type),
            ctx.take_roll_modifications(actor.id),
        )
        bonus = self._to_hit_bonus(actor, action) + extra
        common = {"actor_id": actor.id, "target_id": target.id, "action_id": action.id}
        ctx.emit(
            EventKind.ATTACK_ROLLED,
            amount=roll.natural + bonus,
            detail={"natural": roll.natural, "roll_type": roll_type.value},
            **common,
        )
        if not self.checkpoint():
            return

        # Reactions to the roll (e.g. a shield spell or a bardic die) land now.
        roll, late_extra = ctx.apply_roll_modifications(roll, ctx.take_roll_modifications(actor.id))
        total = roll.natural + bonus + late_extra
        armor_class = ctx.armor_class(target)
        critical = roll.natural >= ctx.settings.crit_threshold
        hit = not roll.is_fumble and (critical or total >= armor_class)

        ctx.expire_effects(actor.id, BuffDuration.UNTIL_NEXT_ATTACK_MADE)
        ctx.expire_effects(target.id, BuffDuration.UNTIL_NEXT_ATTACK_TAKEN)

        detail = {
            "natural": roll.natural,
            "total": total,
            "ac": armor_class,
            "critical": critical and hit,
            "damage_type": action.damage_type,
        }
        ctx.emit(EventKind.ATTACK_HIT if hit else EventKind.ATTACK_MISSED, amount=total, detail=detail, **common)
        logger.debug(
            "Attack resolved",
            actor=actor.id,
            target=target.id,
            total=total,
            ac=armor_class,
            hit=hit,
            critical=critical and hit,
        )
        if not self.checkpoint() or not hit:
            return

        damage = self._damage(actor, action, critical=critical)
        ctx.apply_damage(target.id, damage, action.damage_type, source_id=actor.id, action_id=action.id)
        if not self.checkpoint():
            return
        self._apply_rider(actor, target, action)

    def _damage(self, actor: Combatant, action: AttackAction, *, critical: bool) -> float:
        dice = self.ctx.dice
        damage = dice.roll_damage(action.dpr, is_critical=critical)
        multiplier = 1.0
        for effect in self.ctx.effects_sorted(actor):
            if effect.buff.damage is not None:
                damage += dice.roll_damage(effect.buff.damage, is_critical=critical)
            if effect.buff.damage_multiplier is not None:
                multiplier *= effect.buff.damage_multiplier
        return damage * multiplier

    def _apply_rider(self, actor: Combatant, target: Combatant, action: AttackAction) -> None:
        rider = action.rider_effect
        if rider is None or not target.alive:
            return
        saved = self.ctx.roll_save(target.id, rider.dc, source_id=actor.id, action_id=action.id)
        if not saved:
            self.ctx.add_buff(
                target.id,
                rider.buff,
                source_id=actor.id,
                action_id=action.id,
                save_dc=rider.dc,
            )
        self.checkpoint()

    # -------------------------------------------------------------------------
    # Save-based attacks
    # -------------------------------------------------------------------------

    def _resolve_save_attack(self, actor: Combatant, target: Combatant, action: AttackAction) -> None:
        ctx = self.ctx
        dc = action.save_dc or 0.0
        saved = ctx.roll_save(target.id, dc, source_id=actor.id, action_id=action.id)
        ctx.emit(
            EventKind.SPELL_SAVED if saved else EventKind.SPELL_FAILED,
            actor_id=actor.id,
            target_id=target.id,
            action_id=action.id,
            amount=float(dc),
            detail={"damage_type": action.damage_type},
        )
        if not self.checkpoint():
            return
        damage = self._damage(actor, action, critical=False)
        if saved:
            damage = damage / 2 if action.half_on_save else 0.0
        if damage > 0:
            ctx.apply_damage(target.id, damage, action.damage_type, source_id=actor.id, action_id=action.id)
            if not self.checkpoint():
                return
        if not saved:
            self._apply_rider(actor, target, action)


__all__ = ["AttackResolver"]
