"""Tests for run scores and resource valuation."""

from __future__ import annotations

import pytest

from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.execution import instantiate_party
from encounter_sim.models.creature import Creature
from encounter_sim.orchestration.scoring import (
    class_resource_value,
    full_resource_value,
    member_resource_value,
    party_resources_pct,
    run_score,
    spell_slot_value,
)


class TestRunScore:
    """Tests for the run score formula."""

    def test_formula(self) -> None:
        """Test survivors, party HP and monster HP weights."""
        assert run_score(2, 60, 45, 0) == 120045.0
        assert run_score(1, 60, 10, 20) == 60000 + 10 - 40

    def test_survivor_outweighs_hp(self) -> None:
        """Test that one more survivor beats any HP difference."""
        assert run_score(2, 100, 1, 100) > run_score(1, 100, 100, 0)

    def test_zero_max_hp_fallback(self) -> None:
        """Test the fallback weight for a party with no maximum HP."""
        assert run_score(1, 0, 0, 0) == 100000.0


class TestResourceValue:
    """Tests for effective-HP resource valuation."""

    def test_slot_values_grow_with_level(self) -> None:
        """Test the spell slot price curve."""
        assert spell_slot_value(1) == pytest.approx(15.0)
        assert spell_slot_value(4) == pytest.approx(120.0)

    def test_class_resource_values(self) -> None:
        """Test short-rest and long-rest feature prices."""
        assert class_resource_value("Action Surge") == 15.0
        assert class_resource_value("rage") == 30.0

    def test_full_value(self, fighter: Creature) -> None:
        """Test HP, hit dice and a short-rest feature."""
        assert full_resource_value(fighter) == pytest.approx(44 + 8 * 5 + 15)

    def test_full_party_is_full(self, fighter: Creature, cleric: Creature) -> None:
        """Test that a fresh party has all of its resources."""
        members = instantiate_party([fighter, cleric], DiceRoller(seed=1))

        assert member_resource_value(members[0]) == pytest.approx(full_resource_value(fighter))
        assert party_resources_pct(members) == pytest.approx(100.0)

    def test_damage_drains(self, fighter: Creature) -> None:
        """Test that lost HP lowers the remaining percentage."""
        members = instantiate_party([fighter], DiceRoller(seed=1))
        members[0].hp = 22

        assert party_resources_pct(members) == pytest.approx(100.0 * 77 / 99)

    def test_temp_hp_capped(self, fighter: Creature) -> None:
        """Test that temporary HP cannot push the figure past full."""
        members = instantiate_party([fighter], DiceRoller(seed=1))
        members[0].temp_hp = 50

        assert party_resources_pct(members) == 100.0

    def test_empty_party(self) -> None:
        """Test that an empty party counts as full."""
        assert party_resources_pct([]) == 100.0
