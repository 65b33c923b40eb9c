"""Tests for initiative order and the round and turn caps."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from encounter_sim.core.exceptions import EncounterTimeout, TurnManagementError
from encounter_sim.engine.combatant import Combatant, CombatantState
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.resources import build_ledger
from encounter_sim.engine.turn_manager import InitiativeTracker
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import Side


def _combatant(creature: Creature, index: int = 0) -> Combatant:
    return Combatant(
        id=f"{creature.id}-{index}",
        name=creature.name,
        side=Side(creature.mode),
        creature=creature,
        creature_index=0,
        state=CombatantState(hp=creature.hp, max_hp=creature.hp, ledger=build_ledger(creature)),
    )


@pytest.fixture
def tracker() -> InitiativeTracker:
    """Provide a tracker with small caps."""
    return InitiativeTracker(DiceRoller(seed=9), max_rounds=3, max_turns=5)


class TestInitiativeOrder:
    """Tests for rolling and ordering initiative."""

    def test_highest_first(
        self, tracker: InitiativeTracker, make_creature: Callable[..., Creature]
    ) -> None:
        """Test that a large bonus always acts first."""
        slow = _combatant(make_creature("slug", initiative_bonus=-50))
        fast = _combatant(make_creature("hawk", initiative_bonus=50))

        order = tracker.roll_all([slow, fast])

        assert [entry.combatant_id for entry in order] == ["hawk-0", "slug-0"]
        assert fast.initiative == order[0].roll
        assert 1 <= order[0].natural <= 20

    def test_ties_break_by_id(
        self, tracker: InitiativeTracker, monkeypatch: pytest.MonkeyPatch, goblin: Creature
    ) -> None:
        """Test that equal totals are ordered by combatant id."""
        from encounter_sim.engine.dice import D20Roll, RollType

        def roll_d20(*, roll_type: RollType = RollType.NORMAL) -> D20Roll:
            return D20Roll(natural=10, rolls=(10,), roll_type=roll_type)

        monkeypatch.setattr(tracker._dice, "roll_d20", roll_d20)

        order = tracker.roll_all([_combatant(goblin, 2), _combatant(goblin, 0), _combatant(goblin, 1)])

        assert [entry.combatant_id for entry in order] == ["goblin-0", "goblin-1", "goblin-2"]

    def test_same_seed_same_order(self, make_creature: Callable[..., Creature]) -> None:
        """Test that initiative is a pure function of the seed."""
        creatures = [make_creature(name) for name in ("a", "b", "c", "d")]

        def order(seed: int) -> list[str]:
            tracker = InitiativeTracker(DiceRoller(seed=seed), max_rounds=3, max_turns=5)
            return [e.combatant_id for e in tracker.roll_all([_combatant(c) for c in creatures])]

        assert order(77) == order(77)

    def test_remove_combatant(self, tracker: InitiativeTracker, goblin: Creature) -> None:
        """Test removing a combatant from the order."""
        tracker.roll_all([_combatant(goblin, 0), _combatant(goblin, 1)])

        tracker.remove_combatant("goblin-0")

        assert [entry.combatant_id for entry in tracker.initiative_order] == ["goblin-1"]

    def test_remove_unknown(self, tracker: InitiativeTracker) -> None:
        """Test that removing an unknown combatant raises."""
        with pytest.raises(TurnManagementError):
            tracker.remove_combatant("ghost-0")


class TestCaps:
    """Tests for round and turn caps."""

    def test_round_needs_combatants(self, tracker: InitiativeTracker) -> None:
        """Test that a round cannot start without initiative."""
        with pytest.raises(TurnManagementError):
            tracker.start_round()

    def test_round_cap(self, tracker: InitiativeTracker, goblin: Creature) -> None:
        """Test that the round after the cap times out."""
        tracker.roll_all([_combatant(goblin)])

        rounds = [tracker.start_round() for _ in range(3)]

        assert rounds == [1, 2, 3]
        with pytest.raises(EncounterTimeout) as exc_info:
            tracker.start_round()
        assert exc_info.value.details["round_number"] == 3

    def test_turn_cap(self, tracker: InitiativeTracker, goblin: Creature) -> None:
        """Test that the turn after the cap times out."""
        tracker.roll_all([_combatant(goblin)])
        tracker.start_round()

        for _ in range(5):
            tracker.start_turn("goblin-0")

        assert tracker.turns_taken == 5
        with pytest.raises(EncounterTimeout):
            tracker.start_turn("goblin-0")

    def test_reset(self, tracker: InitiativeTracker, goblin: Creature) -> None:
        """Test resetting for a new encounter."""
        tracker.roll_all([_combatant(goblin)])
        tracker.start_round()

        tracker.reset()

        assert tracker.current_round == 0
        assert tracker.initiative_order == []
