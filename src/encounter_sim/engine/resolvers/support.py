"""Heal, buff and debuff resolution."""

from __future__ import annotations

from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.resolvers.base import KindResolver, ResolutionResult, ResolutionStatus
from encounter_sim.engine.targeting import select_targets
from encounter_sim.models.actions import ActionBase, BuffAction, DebuffAction, HealAction
from encounter_sim.models.enums import EventKind, TargetStrategy


def _finish(result: ResolutionResult, interrupted: bool) -> ResolutionResult:
    if interrupted:
        result.status = ResolutionStatus.INTERRUPTED
        result.reason = "interrupted"
    return result


class HealResolver(KindResolver):
    """Restores hit points, or grants temporary hit points, to allies."""

    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        assert isinstance(action, HealAction)
        result = ResolutionResult(status=ResolutionStatus.RESOLVED, action_id=action.id)
        allies = self.ctx.allies(actor)
        if not action.temp_hp:
            allies = [ally for ally in allies if ally.state.injured]
        targets = select_targets(
            self.ctx, actor, action.target, allies, action.targets, hostile=False
        )
        for target in targets:
            if self.ctx.action_interrupted:
                break
            amount = self.ctx.dice.evaluate(action.amount)
            self.ctx.apply_healing(
                target.id,
                amount,
                temp=action.temp_hp,
                source_id=actor.id,
                action_id=action.id,
            )
            result.targets.append(target.id)
            self.checkpoint()
        return _finish(result, self.ctx.action_interrupted)


class BuffResolver(KindResolver):
    """Applies a buff to allies that do not already carry it."""

    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        assert isinstance(action, BuffAction)
        result = ResolutionResult(status=ResolutionStatus.RESOLVED, action_id=action.id)
        name = action.buff.name.lower()
        candidates = [
            ally
            for ally in self.ctx.allies(actor)
            if action.target is TargetStrategy.SELF or not ally.has_effect(name)
        ]
        targets = select_targets(
            self.ctx, actor, action.target, candidates, action.targets, hostile=False
        )
        for target in targets:
            if self.ctx.action_interrupted:
                break
            self.ctx.add_buff(target.id, action.buff, source_id=actor.id, action_id=action.id)
            result.targets.append(target.id)
            self.checkpoint()
        return _finish(result, self.ctx.action_interrupted)


class DebuffResolver(KindResolver):
    """Applies a buff to enemies that fail a saving throw."""

    def resolve(self, actor: Combatant, action: ActionBase) -> ResolutionResult:
        assert isinstance(action, DebuffAction)
        result = ResolutionResult(status=ResolutionStatus.RESOLVED, action_id=action.id)
        name = action.buff.name.lower()
        candidates = [enemy for enemy in self.ctx.enemies(actor) if not enemy.has_effect(name)]
        targets = select_targets(self.ctx, actor, action.target, candidates, action.targets)
        for target in targets:
            if self.ctx.action_interrupted:
                break
            result.targets.append(target.id)
            saved = self.ctx.roll_save(
                target.id, action.save_dc, source_id=actor.id, action_id=action.id
            )
            self.ctx.emit(
                EventKind.SPELL_SAVED if saved else EventKind.SPELL_FAILED,
                actor_id=actor.id,
                target_id=target.id,
                action_id=action.id,
                amount=float(action.save_dc),
            )
            if not self.checkpoint():
                break
            if not saved:
                self.ctx.add_buff(
                    target.id,
                    action.buff,
                    source_id=actor.id,
                    action_id=action.id,
                    save_dc=action.save_dc,
                )
                self.checkpoint()
        return _finish(result, self.ctx.action_interrupted)


__all__ = ["HealResolver", "BuffResolver", "DebuffResolver"]
