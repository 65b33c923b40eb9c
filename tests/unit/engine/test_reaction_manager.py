"""Tests for reaction matching, ordering and budgets."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from encounter_sim.core.config import EngineSettings, Settings
from encounter_sim.engine.combatant import Combatant, CombatantState
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.execution import ExecutionEngine, instantiate_party
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resolvers import ActionResolver, ResolutionStatus
from encounter_sim.engine.resources import build_ledger, ledger_key
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.actions import AttackAction, DiscreteCost
from encounter_sim.models.buffs import Buff
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import EventKind, FidelityMode, ResetType, ResourceType, Side
from encounter_sim.models.reactions import CompositeTrigger, ReactionTemplate
from encounter_sim.models.timeline import Encounter


def _combatant(creature: Creature) -> Combatant:
    return Combatant(
        id=f"{creature.id}-0",
        name=creature.name,
        side=Side(creature.mode),
        creature=creature,
        creature_index=0,
        state=CombatantState(hp=creature.hp, max_hp=creature.hp, ledger=build_ledger(creature)),
        actions=list(creature.all_actions),
    )


def _context(*creatures: Creature) -> TurnContext:
    ctx = TurnContext(
        [_combatant(c) for c in creatures],
        dice=DiceRoller(seed=5),
        settings=EngineSettings(),
    )
    ctx.start()
    return ctx


def _rebuke(**overrides: Any) -> ReactionTemplate:
    fields: dict[str, Any] = {
        "id": "rebuke",
        "name": "Hellish Rebuke",
        "trigger": "on_being_damaged",
        "effect": {"kind": "deal_damage", "amount": 10, "damage_type": "fire"},
    }
    fields.update(overrides)
    return ReactionTemplate.model_validate(fields)


@pytest.fixture
def warlock(make_creature: Callable[..., Creature]) -> Creature:
    """Create a warlock with Hellish Rebuke."""
    return make_creature("warlock", mode="player", hp=30, ac=13, triggers=[_rebuke()])


class TestFiring:
    """Tests for reaction firing."""

    def test_fires_on_damage(self, warlock: Creature, ogre: Creature) -> None:
        """Test that damage to the owner triggers the rebuke against the attacker."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("warlock-0", 5, source_id="ogre-0")
        fired = manager.process_pending()

        assert fired == 1
        assert ctx.get("ogre-0").state.hp == 49
        assert ctx.get("warlock-0").state.ledger.amount("Reaction") == 0
        triggered = ctx.bus.query(kinds={EventKind.REACTION_TRIGGERED})[0]
        assert triggered.actor_id == "warlock-0"
        assert triggered.target_id == "ogre-0"

    def test_nothing_fires_inside_publish(self, warlock: Creature, ogre: Creature) -> None:
        """Test that events are only queued until a checkpoint."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("warlock-0", 5, source_id="ogre-0")

        assert manager.pending == 1
        assert ctx.get("ogre-0").state.hp == 59

    def test_once_per_round(self, warlock: Creature, ogre: Creature) -> None:
        """Test the one-reaction-per-round budget."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("warlock-0", 2, source_id="ogre-0")
        ctx.apply_damage("warlock-0", 2, source_id="ogre-0")
        assert manager.process_pending() == 1

        ctx.emit(EventKind.ROUND_STARTED)
        ctx.reset_resources("warlock-0", ResetType.ROUND)
        ctx.apply_damage("warlock-0", 2, source_id="ogre-0")
        assert manager.process_pending() == 1

    def test_uses_per_encounter(self, make_creature: Callable[..., Creature], ogre: Creature) -> None:
        """Test that once-per-encounter reactions stop after their uses."""
        owner = make_creature(
            "sorcerer",
            mode="player",
            hp=30,
            triggers=[_rebuke(consumes_reaction=False, uses_per_encounter=1)],
        )
        ctx = _context(owner, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("sorcerer-0", 1, source_id="ogre-0")
        ctx.apply_damage("sorcerer-0", 1, source_id="ogre-0")

        assert manager.process_pending() == 1
        assert ctx.get("sorcerer-0").state.ledger.amount("Reaction") == 1

    def test_incapacitated_owner_cannot_react(self, warlock: Creature, ogre: Creature) -> None:
        """Test that owners who cannot act do not react."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)
        ctx.add_buff("warlock-0", Buff(display_name="Stun", condition="stunned"), source_id="ogre-0")

        ctx.apply_damage("warlock-0", 3, source_id="ogre-0")

        assert manager.process_pending() == 0

    def test_reduce_damage_applies_to_next_hit(self, make_creature: Callable[..., Creature], ogre: Creature) -> None:
        """Test that a reduction queued on being hit softens the damage that follows."""
        owner = make_creature(
            "monk",
            mode="player",
            hp=40,
            triggers=[
                ReactionTemplate(
                    id="deflect",
                    name="Deflect Missiles",
                    trigger="on_being_hit",
                    effect={"kind": "reduce_damage", "amount": 6},
                )
            ],
        )
        ctx = _context(owner, ogre)
        manager = ReactionManager(ctx)

        ctx.emit(EventKind.ATTACK_HIT, actor_id="ogre-0", target_id="monk-0")
        manager.process_pending()
        lost = ctx.apply_damage("monk-0", 10, source_id="ogre-0")

        assert lost == 4


class TestOrdering:
    """Tests for deterministic ordering and the chain limit."""

    def _party(self, make_creature: Callable[..., Creature]) -> tuple[Creature, Creature]:
        cheer = {"kind": "apply_buff", "buff": {"display_name": "Inspired", "to_hit": 1}}
        paladin = make_creature(
            "paladin",
            mode="player",
            hp=40,
            triggers=[ReactionTemplate(id="zeal", name="Zeal", trigger="on_enemy_death", effect=cheer, priority=5)],
        )
        bard = make_creature(
            "bard",
            mode="player",
            hp=30,
            triggers=[ReactionTemplate(id="song", name="Song", trigger="on_enemy_death", effect=cheer)],
        )
        return paladin, bard

    def test_priority_then_owner(self, make_creature: Callable[..., Creature], ogre: Creature) -> None:
        """Test that higher priority fires first regardless of owner id."""
        paladin, bard = self._party(make_creature)
        ctx = _context(paladin, bard, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("ogre-0", 100, source_id="paladin-0")
        manager.process_pending()

        owners = [e.actor_id for e in ctx.bus.query(kinds={EventKind.REACTION_TRIGGERED})]
        assert owners == ["paladin-0", "bard-0"]

    def test_chain_limit(self, make_creature: Callable[..., Creature], ogre: Creature) -> None:
        """Test that the cascade stops at the chain limit with a diagnostic."""
        paladin, bard = self._party(make_creature)
        ctx = _context(paladin, bard, ogre)
        manager = ReactionManager(ctx, chain_limit=1)

        ctx.apply_damage("ogre-0", 100, source_id="paladin-0")

        assert manager.process_pending() == 1
        assert "reaction chain limit reached" in ctx.diagnostics
        assert manager.pending == 0


class TestMatching:
    """Tests for trigger evaluation."""

    def test_composite_trigger(self, warlock: Creature, ogre: Creature) -> None:
        """Test and/not composites from the owner's view."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)
        owner = ctx.get("warlock-0")
        attacked_and_missed = CompositeTrigger(
            op="and",
            conditions=["on_being_attacked", CompositeTrigger(op="not", conditions=["on_hit"])],
        )

        rolled = ctx.emit(EventKind.ATTACK_ROLLED, actor_id="ogre-0", target_id="warlock-0")
        other = ctx.emit(EventKind.ATTACK_ROLLED, actor_id="warlock-0", target_id="ogre-0")

        assert manager.trigger_matches(attacked_and_missed, owner, rolled)
        assert not manager.trigger_matches(attacked_and_missed, owner, other)

    def test_damage_type_requirement(self, make_creature: Callable[..., Creature], ogre: Creature) -> None:
        """Test that requirements filter matching events."""
        owner = make_creature(
            "wizard",
            mode="player",
            hp=20,
            triggers=[
                _rebuke(requirements=[{"kind": "damage_type", "value": "fire"}]),
            ],
        )
        ctx = _context(owner, ogre)
        manager = ReactionManager(ctx)

        ctx.apply_damage("wizard-0", 3, "cold", source_id="ogre-0")
        assert manager.process_pending() == 0

        ctx.apply_damage("wizard-0", 3, "fire", source_id="ogre-0")
        assert manager.process_pending() == 1

    def test_unknown_owner_reported(self, warlock: Creature, ogre: Creature) -> None:
        """Test that reactions for unknown combatants are reported, not raised."""
        ctx = _context(warlock, ogre)
        manager = ReactionManager(ctx)

        assert not manager.register("ghost-0", _rebuke())
        assert ctx.diagnostics
        assert len(manager.registrations) == 1


class TestInterrupts:
    """Tests for reactions that stop or add actions."""

    def test_parry_stops_attack_after_roll(
        self, make_creature: Callable[..., Creature], fighter: Creature
    ) -> None:
        """Test that an interrupt on being attacked cancels the hit and the damage."""
        parry = ReactionTemplate(
            id="parry",
            name="Parry",
            trigger="on_being_attacked",
            effect={"kind": "interrupt_action"},
        )
        brute = make_creature("brute", hp=59, ac=11, triggers=[parry])
        ctx = _context(fighter, brute)
        resolver = ActionResolver(ctx, ReactionManager(ctx), template_cache=TemplateCache(capacity=4))
        attacker = ctx.get("fighter-0")

        result = resolver.execute(attacker, attacker.actions[0])

        assert result.status is ResolutionStatus.INTERRUPTED
        assert not ctx.action_interrupted
        kinds = [event.kind for event in ctx.bus.events()]
        assert kinds.count(EventKind.ATTACK_ROLLED) == 1
        assert kinds.index(EventKind.ATTACK_ROLLED) < kinds.index(EventKind.REACTION_TRIGGERED)
        assert EventKind.ATTACK_HIT not in kinds
        assert EventKind.ATTACK_MISSED not in kinds
        assert EventKind.DAMAGE_TAKEN not in kinds
        assert ctx.get("brute-0").state.hp == 59

    def test_granted_action_runs_once_unpaid(self, make_creature: Callable[..., Creature]) -> None:
        """Test that a riposte runs out of turn exactly once without paying its cost."""
        riposte = AttackAction(
            id="riposte",
            name="Riposte",
            dpr="1d4",
            to_hit=5,
            cost=[
                DiscreteCost(resource="action"),
                DiscreteCost(resource="class_resource", resource_key="superiority dice"),
            ],
        )
        counter = ReactionTemplate(
            id="counter",
            name="Counter",
            trigger="on_being_attacked",
            effect={"kind": "grant_immediate_action", "action_id": "riposte"},
            uses_per_encounter=1,
        )
        duelist = make_creature(
            "duelist",
            mode="player",
            hp=500,
            ac=14,
            actions=[AttackAction(id="rapier", name="Rapier", dpr="1d8+4", to_hit=7), riposte],
            triggers=[counter],
            class_resources={"superiority dice": 1},
        )
        bandit = make_creature("bandit", hp=60, ac=12, dpr="1d6+1", to_hit=3)
        engine = ExecutionEngine(dice=DiceRoller(seed=8), settings=Settings())
        party = instantiate_party([duelist], engine.dice)

        run = engine.run_encounter(party, Encounter(monsters=[bandit]), fidelity=FidelityMode.FULL)

        ripostes = [
            e for e in run.events if e.kind is EventKind.ACTION_STARTED and e.action_id == "riposte"
        ]
        assert len(ripostes) == 1
        assert ripostes[0].actor_id == "duelist-0"
        assert ripostes[0].detail["granted"] is True
        key = ledger_key(ResourceType.CLASS_RESOURCE, "superiority dice")
        assert party[0].ledger.amount(key) == 1
