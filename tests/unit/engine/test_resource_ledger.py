"""Tests for the resource ledger."""

from __future__ import annotations

from encounter_sim.engine.resources import (
    ACTION,
    BONUS_ACTION,
    HIT_DICE,
    MOVEMENT,
    REACTION,
    Charge,
    ResourceLedger,
    build_ledger,
    effective_costs,
    ledger_key,
    reaction_usage_key,
    requirement_met,
    usage_key,
)
from encounter_sim.models.actions import (
    AttackAction,
    DiscreteCost,
    Frequency,
    ResourceAvailableRequirement,
    VariableCost,
)
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import FrequencyKind, ResetType, ResourceType
from encounter_sim.models.reactions import ReactionTemplate


class TestLedgerKeys:
    """Tests for ledger key construction."""

    def test_fixed_keys(self) -> None:
        """Test per-turn economy keys."""
        assert ledger_key(ResourceType.ACTION) == "Action"
        assert ledger_key(ResourceType.BONUS_ACTION) == "BonusAction"
        assert ledger_key(ResourceType.HIT_DICE) == "HitDice"

    def test_parameterised_keys(self) -> None:
        """Test keyed resources."""
        assert ledger_key(ResourceType.SPELL_SLOT, "3") == "SpellSlot(3)"
        assert ledger_key(ResourceType.CLASS_RESOURCE, "Ki") == "ClassResource(ki)"
        assert usage_key("breath") == "ActionUsage(breath)"
        assert reaction_usage_key("shield") == "Custom(reaction:shield)"


class TestResourceLedger:
    """Tests for ResourceLedger operations."""

    def _ledger(self) -> ResourceLedger:
        ledger = ResourceLedger()
        ledger.register(ACTION, 1, ResetType.ROUND)
        ledger.register("SpellSlot(1)", 2, ResetType.LONG_REST)
        ledger.register("ClassResource(ki)", 4, ResetType.SHORT_REST)
        return ledger

    def test_plan_success(self) -> None:
        """Test planning affordable costs."""
        plan = self._ledger().plan(
            [DiscreteCost(resource="action"), DiscreteCost(resource="spell_slot", resource_key="1")]
        )

        assert plan == [Charge(key="Action", amount=1.0), Charge(key="SpellSlot(1)", amount=1.0)]

    def test_plan_accumulates_same_key(self) -> None:
        """Test that two costs on one key need two units."""
        result = self._ledger().plan([DiscreteCost(resource="action"), DiscreteCost(resource="action")])

        assert result == "Action"

    def test_plan_unknown_resource(self) -> None:
        """Test that unknown resources cannot be afforded."""
        assert self._ledger().plan([DiscreteCost(resource="spell_slot", resource_key="9")]) == "SpellSlot(9)"

    def test_plan_variable_cost(self) -> None:
        """Test that variable costs take as much as is available up to max."""
        plan = self._ledger().plan(
            [VariableCost(resource="class_resource", resource_key="ki", min=1, max=6)]
        )

        assert plan == [Charge(key="ClassResource(ki)", amount=4.0)]

    def test_consume_and_restore(self) -> None:
        """Test deduction and capped restoration."""
        ledger = self._ledger()

        assert ledger.consume("ClassResource(ki)", 3) == 1.0
        assert ledger.restore("ClassResource(ki)", 1) == (1.0, 2.0)
        assert ledger.restore("ClassResource(ki)", 10) == (2.0, 4.0)
        assert ledger.restore("missing") == (0.0, 0.0)

    def test_consume_floors_at_zero(self) -> None:
        """Test that balances never go negative."""
        ledger = self._ledger()

        assert ledger.consume("SpellSlot(1)", 5) == 0.0

    def test_reset_cascades(self) -> None:
        """Test that a longer period resets every shorter one."""
        ledger = self._ledger()
        ledger.consume(ACTION, 1)
        ledger.consume("SpellSlot(1)", 1)
        ledger.consume("ClassResource(ki)", 2)

        changed = ledger.reset(ResetType.SHORT_REST)

        assert [key for key, _, _ in changed] == ["Action", "ClassResource(ki)"]
        assert ledger.amount("SpellSlot(1)") == 1.0

    def test_never_does_not_reset(self) -> None:
        """Test that NEVER entries are not restored."""
        ledger = ResourceLedger()
        ledger.register("Custom(potion)", 1, ResetType.NEVER, current=0)

        assert ledger.reset(ResetType.LONG_REST) == []
        assert ledger.amount("Custom(potion)") == 0.0

    def test_copy_is_independent(self) -> None:
        """Test that copies do not share balances."""
        ledger = self._ledger()
        clone = ledger.copy()
        clone.consume(ACTION, 1)

        assert ledger.amount(ACTION) == 1.0
        assert clone.balances()["Action"] == 0.0


class TestBuildLedger:
    """Tests for creating a full ledger from a creature."""

    def test_fighter_ledger(self, fighter: Creature) -> None:
        """Test turn economy, class resources and hit dice."""
        ledger = build_ledger(fighter)

        assert ledger.amount(ACTION) == 1
        assert ledger.amount(BONUS_ACTION) == 1
        assert ledger.amount(REACTION) == 1
        assert ledger.amount(MOVEMENT) == 30
        assert ledger.amount(HIT_DICE) == 5
        assert ledger.entry("ClassResource(action surge)").reset is ResetType.SHORT_REST

    def test_spell_slots(self, cleric: Creature) -> None:
        """Test spell slot registration."""
        ledger = build_ledger(cleric)

        assert ledger.amount("SpellSlot(1)") == 4
        assert ledger.amount("SpellSlot(3)") == 2
        assert ledger.entry("SpellSlot(1)").reset is ResetType.LONG_REST

    def test_usage_counters(self) -> None:
        """Test that limited actions and reactions get counters."""
        creature = Creature(
            id="dragon",
            name="Dragon",
            mode="monster",
            hp=200,
            ac=19,
            class_resources={"Legendary Resistance": 3},
            actions=[
                AttackAction(
                    id="breath",
                    name="Fire Breath",
                    dpr="12d6",
                    freq=Frequency(kind=FrequencyKind.RECHARGE, recharge_on=5),
                ),
            ],
            triggers=[
                ReactionTemplate(
                    id="tail",
                    name="Tail Swipe",
                    trigger="on_being_hit",
                    effect={"kind": "deal_damage", "amount": "2d8"},
                    uses_per_encounter=2,
                )
            ],
        )

        ledger = build_ledger(creature)

        assert ledger.entry("ActionUsage(breath)").reset is ResetType.ENCOUNTER
        assert ledger.amount("Custom(reaction:tail)") == 2
        assert ledger.entry("ClassResource(legendary resistance)").reset is ResetType.LONG_REST


class TestCosts:
    """Tests for effective costs and requirements."""

    def test_effective_costs_adds_usage(self) -> None:
        """Test that limited actions also charge their usage counter."""
        action = AttackAction(
            id="smite",
            name="Smite",
            dpr="2d8",
            freq=Frequency(kind=FrequencyKind.ONCE_PER_FIGHT),
        )

        costs = effective_costs(action)

        assert [c.resource for c in costs] == [ResourceType.ACTION, ResourceType.ACTION_USAGE]

    def test_at_will_has_declared_costs_only(self) -> None:
        """Test at-will actions."""
        action = AttackAction(id="bite", name="Bite", dpr=3)

        assert len(effective_costs(action)) == 1

    def test_requirement_met(self, cleric: Creature) -> None:
        """Test resource availability requirements."""
        ledger = build_ledger(cleric)

        assert requirement_met(
            ledger, ResourceAvailableRequirement(resource="spell_slot", resource_key="3", amount=2)
        )
        assert not requirement_met(
            ledger, ResourceAvailableRequirement(resource="spell_slot", resource_key="4")
        )
