"""Tests for dice rolling mechanics."""

from __future__ import annotations

import pytest

from encounter_sim.core.exceptions import DiceRollError
from encounter_sim.engine.dice import D20Roll, DiceRoller, RollType


class TestDiceRoller:
    """Tests for the DiceRoller class."""

    def test_roll_in_range(self, dice_roller: DiceRoller) -> None:
        """Test simple roll bounds."""
        for _ in range(50):
            assert 3 <= dice_roller.roll("1d6+2") <= 8

    def test_same_seed_same_rolls(self) -> None:
        """Test that reseeding reproduces the same stream."""
        roller = DiceRoller(seed=7)
        first = [roller.roll("1d20") for _ in range(20)]
        roller.reseed(7)
        second = [roller.roll("1d20") for _ in range(20)]

        assert first == second

    def test_empty_expression(self, dice_roller: DiceRoller) -> None:
        """Test that empty expressions raise DiceRollError."""
        with pytest.raises(DiceRollError):
            dice_roller.roll("   ")

    def test_invalid_expression(self, dice_roller: DiceRoller) -> None:
        """Test that invalid expressions raise DiceRollError."""
        with pytest.raises(DiceRollError) as exc_info:
            dice_roller.roll("2d")

        assert exc_info.value.details["expression"] == "2d"

    def test_evaluate_numbers(self, dice_roller: DiceRoller) -> None:
        """Test that flat values are returned as floats."""
        assert dice_roller.evaluate(5) == 5.0
        assert dice_roller.evaluate("7") == 7.0

    def test_chance_extremes(self, dice_roller: DiceRoller) -> None:
        """Test Bernoulli trials at 0 and 1."""
        assert not dice_roller.chance(0.0)
        assert dice_roller.chance(1.0)

    def test_choice(self, dice_roller: DiceRoller) -> None:
        """Test uniform choice stays within the items."""
        assert dice_roller.choice(["a", "b", "c"]) in {"a", "b", "c"}


class TestD20Rolls:
    """Tests for natural d20 rolls."""

    def test_normal_roll(self, dice_roller: DiceRoller) -> None:
        """Test a normal roll keeps its only die."""
        result = dice_roller.roll_d20()

        assert isinstance(result, D20Roll)
        assert len(result.rolls) == 1
        assert result.natural == result.rolls[0]

    def test_advantage_keeps_highest(self, dice_roller: DiceRoller) -> None:
        """Test advantage keeps the higher die."""
        for _ in range(20):
            result = dice_roller.roll_d20(roll_type=RollType.ADVANTAGE)
            assert len(result.rolls) == 2
            assert result.natural == max(result.rolls)

    def test_disadvantage_keeps_lowest(self, dice_roller: DiceRoller) -> None:
        """Test disadvantage keeps the lower die."""
        for _ in range(20):
            result = dice_roller.roll_d20(roll_type=RollType.DISADVANTAGE)
            assert result.natural == min(result.rolls)

    def test_fumble(self) -> None:
        """Test natural 1 detection."""
        assert D20Roll(natural=1, rolls=(1,), roll_type=RollType.NORMAL).is_fumble
        assert not D20Roll(natural=2, rolls=(2,), roll_type=RollType.NORMAL).is_fumble

    @pytest.mark.parametrize(
        ("advantage", "disadvantage", "expected"),
        [
            (True, False, RollType.ADVANTAGE),
            (False, True, RollType.DISADVANTAGE),
            (True, True, RollType.NORMAL),
            (False, False, RollType.NORMAL),
        ],
    )
    def test_combine(self, advantage: bool, disadvantage: bool, expected: RollType) -> None:
        """Test that advantage and disadvantage cancel."""
        assert RollType.combine(advantage, disadvantage) is expected


class TestDamage:
    """Tests for damage rolls and critical hits."""

    def test_flat_damage_doubles_on_crit(self, dice_roller: DiceRoller) -> None:
        """Test that flat damage is doubled on a critical hit."""
        assert dice_roller.roll_damage(6) == 6.0
        assert dice_roller.roll_damage(6, is_critical=True) == 12.0

    def test_double_dice_crit(self, dice_roller: DiceRoller) -> None:
        """Test that RAW crits double the dice, not the modifier."""
        for _ in range(30):
            assert 5 <= dice_roller.roll_damage("1d6+3", is_critical=True) <= 15

    def test_double_dice_keeps_operators(self, dice_roller: DiceRoller) -> None:
        """Test that doubled dice keep their minimum operator."""
        for _ in range(30):
            assert 7 <= dice_roller.roll_damage("1d6mi2+3", is_critical=True) <= 15

    def test_double_damage_rule(self) -> None:
        """Test the double-damage critical rule."""
        roller = DiceRoller(seed=3, critical_rule="double_damage")

        for _ in range(30):
            total = roller.roll_damage("1d6+3", is_critical=True)
            assert 8 <= total <= 18
            assert total % 2 == 0

    def test_max_plus_roll_rule(self) -> None:
        """Test the max-plus-roll critical rule."""
        roller = DiceRoller(seed=3, critical_rule="max_plus_roll")

        for _ in range(30):
            assert 13 <= roller.roll_damage("1d6+3", is_critical=True) <= 18

    def test_damage_never_negative(self, dice_roller: DiceRoller) -> None:
        """Test that penalties cannot produce negative damage."""
        assert dice_roller.roll_damage("1d4-10") == 0.0


class TestStaticAnalysis:
    """Tests for averages, maxima and validation."""

    @pytest.mark.parametrize(
        ("formula", "expected"),
        [
            (None, 0.0),
            (5, 5.0),
            ("2d6+3", 10.0),
            ("1d8+1d6", 8.0),
            ("3*(1d4)", 7.5),
            ("2d20kh1", 13.825),
            ("2d20kl1", 7.175),
            ("4d6kh3", 15869 / 1296),
            ("4d6pl1", 15869 / 1296),
            ("1d6mi2", 22 / 6),
            ("1d6ma3", 2.5),
            ("1d4rr1", 3.0),
            ("1d6ro1", 23.5 / 6),
            ("1d6e6", 4.2),
            ("1d%", 45.0),
            ("-1d4+5", 2.5),
            ("2d6-1d4", 4.5),
        ],
    )
    def test_average(self, formula: object, expected: float) -> None:
        """Test expected values of formulas."""
        assert DiceRoller.average(formula) == pytest.approx(expected)

    def test_maximum(self) -> None:
        """Test maximum values of formulas."""
        assert DiceRoller.maximum("2d6+3") == 15.0
        assert DiceRoller.maximum("4d6kh3") == 18.0
        assert DiceRoller.maximum("2d6-1d4") == 11.0
        assert DiceRoller.maximum("1d6mi2*2") == 12.0

    def test_validate_accepts(self, dice_roller: DiceRoller) -> None:
        """Test that valid formulas pass validation."""
        dice_roller.validate("1d20+5")
        dice_roller.validate("1d6mi2")
        dice_roller.validate("1d8ro1+2")
        dice_roller.validate(3)

    def test_validate_rejects(self, dice_roller: DiceRoller) -> None:
        """Test that malformed formulas fail validation."""
        with pytest.raises(DiceRollError):
            dice_roller.validate("1d20+")

    def test_validate_rejects_unanalysable(self, dice_roller: DiceRoller) -> None:
        """Test that formulas d20 parses but cannot be averaged are rejected."""
        with pytest.raises(DiceRollError):
            dice_roller.validate("1d6/1d4")

    def test_average_rejects_malformed(self) -> None:
        """Test that averaging uses the same grammar as rolling."""
        with pytest.raises(DiceRollError):
            DiceRoller.average("2d6+")
