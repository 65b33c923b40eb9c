"""Dice rolling for the combat engine.

All randomness in a run flows through the module-level ``random`` state
that the d20 library draws from. ``DiceRoller.reseed`` resets it at the
start of every run so that a run is a pure function of its seed.

Averages and maxima are computed from the same tree ``d20.parse``
builds for rolling, so any formula d20 rolls is analysed by the same
grammar.
"""

from __future__ import annotations

import itertools
import math
import operator
import random
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import Any, TypeVar

import d20
from d20 import ast as dice_ast
from d20.utils import tree_map

from encounter_sim.core.exceptions import DiceRollError
from encounter_sim.core.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

Formula = int | float | str

# Mixed keep/drop selectors are analysed by enumerating this many outcomes at most.
_POOL_ENUMERATION_LIMIT = 200_000
_EXPLODE_DEPTH = 64
_NEGLIGIBLE = 1e-12


class RollType(StrEnum):
    """Types of d20 rolls."""

    NORMAL = "normal"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"

    @classmethod
    def combine(cls, advantage: bool, disadvantage: bool) -> RollType:
        """Resolve advantage and disadvantage sources into one roll type.

        Args:
            advantage: Whether any source grants advantage.
            disadvantage: Whether any source imposes disadvantage.

        Returns:
            NORMAL when both or neither apply.
        """
        if advantage and not disadvantage:
            return cls.ADVANTAGE
        if disadvantage and not advantage:
            return cls.DISADVANTAGE
        return cls.NORMAL


@dataclass(frozen=True)
class D20Roll:
    """A natural d20 result plus the dice it was chosen from.

    Attributes:
        natural: The kept d20 face.
        rolls: Every d20 rolled (two with advantage or disadvantage).
        roll_type: How the kept face was chosen.
    """

    natural: int
    rolls: tuple[int, ...]
    roll_type: RollType

    @property
    def is_fumble(self) -> bool:
        """Whether the kept face is a natural 1."""
        return self.natural == 1


def _is_numeric(formula: Formula) -> bool:
    if isinstance(formula, (int, float)):
        return True
    try:
        float(formula)
    except ValueError:
        return False
    return True



# -----------------------------------------------------------------------------
# Static analysis over the d20 parse tree
# -----------------------------------------------------------------------------

_Faces = dict[float, float]
"""Face value to probability for one die; missing mass is a dropped die."""

_CONSTANT_OPS: dict[str, Callable[[float, float], float]] = {
    "//": operator.floordiv,
    "%": operator.mod,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class _Bounds:
    """Expected value and range of a formula subtree."""

    mean: float
    low: float
    high: float

    @classmethod
    def constant(cls, value: float) -> _Bounds:
        return cls(value, value, value)

    @property
    def is_constant(self) -> bool:
        return self.low == self.high


def _die_faces(size: int | str) -> _Faces:
    if size == "%":
        return {float(face): 0.1 for face in range(0, 100, 10)}
    if int(size) < 1:
        raise ValueError("dice need at least one side")
    return {float(face): 1 / int(size) for face in range(1, int(size) + 1)}


def _merge(*parts: _Faces) -> _Faces:
    merged: defaultdict[float, float] = defaultdict(float)
    for part in parts:
        for value, probability in part.items():
            merged[value] += probability
    return dict(merged)


def _value_matcher(operation: dice_ast.SetOperator) -> Callable[[float], bool]:
    """Build a per-die test for literal, ``<`` and ``>`` selectors."""
    for selector in operation.sels:
        if selector.cat in ("h", "l"):
            raise ValueError(f"'{operation}' ranks the pool and is only supported by k and p")

    def matches(value: float) -> bool:
        for selector in operation.sels:
            if selector.cat is None and value == selector.num:
                return True
            if selector.cat == "<" and value < selector.num:
                return True
            if selector.cat == ">" and value > selector.num:
                return True
        return False

    return matches


def _explosion_chain(base: _Faces, matches: Callable[[float], bool]) -> _Faces:
    """Distribution of a freshly rolled die that keeps exploding."""
    if all(matches(value) for value in base):
        raise ValueError("every face explodes")
    settled: defaultdict[float, float] = defaultdict(float)
    pending: _Faces = {0.0: 1.0}
    for _ in range(_EXPLODE_DEPTH):
        following: defaultdict[float, float] = defaultdict(float)
        for offset, weight in pending.items():
            for value, probability in base.items():
                target = following if matches(value) else settled
                target[offset + value] += weight * probability
        pending = dict(following)
        if sum(pending.values()) < _NEGLIGIBLE:
            break
    return _merge(settled, pending)


def _apply_to_die(operation: dice_ast.SetOperator, faces: _Faces, base: _Faces) -> _Faces:
    """Apply a per-die operator to one die's distribution."""
    if operation.op in ("mi", "ma"):
        selector = operation.sels[-1]
        if selector.cat is not None:
            raise ValueError(f"{selector} is not a valid selector for {operation.op}")
        clamp = max if operation.op == "mi" else min
        return _merge(*({clamp(value, selector.num): p} for value, p in faces.items()))

    matches = _value_matcher(operation)
    hit = {value: p for value, p in faces.items() if matches(value)}
    miss = {value: p for value, p in faces.items() if not matches(value)}
    hit_chance = sum(hit.values())

    if operation.op == "k":
        return hit
    if operation.op == "p":
        return miss
    if operation.op == "rr":
        survivors = {value: p for value, p in base.items() if not matches(value)}
        if not survivors:
            raise ValueError("every face is rerolled")
        share = sum(survivors.values())
        return _merge(miss, {value: hit_chance * p / share for value, p in survivors.items()})
    if operation.op == "ro":
        return _merge(miss, {value: hit_chance * p for value, p in base.items()})
    if operation.op == "e":
        chain = _explosion_chain(base, matches)
        exploded = [
            {value + extra: p * q for extra, q in chain.items()} for value, p in hit.items()
        ]
        return _merge(miss, *exploded)
    raise ValueError(f"unsupported dice operator '{operation.op}'")


def _pool_sum(count: int, faces: _Faces) -> _Bounds:
    values = list(faces)
    if 1 - sum(faces.values()) > _NEGLIGIBLE:
        values.append(0.0)
    if not values:
        return _Bounds.constant(0.0)
    mean = sum(value * p for value, p in faces.items())
    return _Bounds(count * mean, count * min(values), count * max(values))


def _rank_reached(count: int, rank: int, share: float) -> float:
    """Chance that at least ``rank`` of ``count`` dice land in a region of probability ``share``."""
    share = min(max(share, 0.0), 1.0)
    return sum(
        math.comb(count, hits) * share**hits * (1 - share) ** (count - hits)
        for hits in range(rank, count + 1)
    )


def _ranked_means(count: int, faces: _Faces) -> list[float]:
    """Expected value of each die of a pool, highest first."""
    means = []
    for rank in range(1, count + 1):
        expected = 0.0
        at_least = 1.0
        for value in sorted(faces):
            above = at_least - faces[value]
            expected += value * (
                _rank_reached(count, rank, at_least) - _rank_reached(count, rank, above)
            )
            at_least = above
        means.append(expected)
    return means


def _select_ranked(sels: list[dice_ast.SetSelector], kept: list[float]) -> set[int]:
    order = sorted(range(len(kept)), key=lambda i: kept[i])
    chosen: set[int] = set()
    for selector in sels:
        if selector.cat == "h":
            chosen.update(order[::-1][: selector.num])
        elif selector.cat == "l":
            chosen.update(order[: selector.num])
        elif selector.cat == "<":
            chosen.update(i for i in order if kept[i] < selector.num)
        elif selector.cat == ">":
            chosen.update(i for i in order if kept[i] > selector.num)
        else:
            chosen.update(i for i in order if kept[i] == selector.num)
    return chosen


def _enumerate_pool(count: int, faces: _Faces, operation: dice_ast.SetOperator) -> _Bounds:
    outcomes: list[tuple[float | None, float]] = list(faces.items())
    dropped = 1 - sum(faces.values())
    if dropped > _NEGLIGIBLE:
        outcomes.append((None, dropped))
    if len(outcomes) ** count > _POOL_ENUMERATION_LIMIT:
        raise ValueError(f"too many outcomes to analyse '{operation}'")

    mean = 0.0
    low = math.inf
    high = -math.inf
    for combo in itertools.product(outcomes, repeat=count):
        kept = [value for value, _ in combo if value is not None]
        chosen = _select_ranked(operation.sels, kept)
        total = sum(v for i, v in enumerate(kept) if (i in chosen) == (operation.op == "k"))
        mean += math.prod(p for _, p in combo) * total
        low = min(low, total)
        high = max(high, total)
    return _Bounds(mean, low, high)


def _ranked_pool(count: int, faces: _Faces, operation: dice_ast.SetOperator) -> _Bounds:
    """Keep or drop the highest/lowest dice of a pool."""
    dropped = 1 - sum(faces.values())
    if len(operation.sels) > 1 or dropped > _NEGLIGIBLE:
        return _enumerate_pool(count, faces, operation)

    selector = operation.sels[0]
    ranked = _ranked_means(count, faces)
    n = min(selector.num, count)
    picked = ranked[:n] if selector.cat == "h" else ranked[count - n :]
    if operation.op == "k":
        chosen, mean = n, sum(picked)
    else:
        chosen, mean = count - n, sum(ranked) - sum(picked)
    return _Bounds(mean, chosen * min(faces), chosen * max(faces))


def _explode_once(count: int, faces: _Faces, base: _Faces, operation: dice_ast.SetOperator) -> _Bounds:
    """One extra die when any die of the pool matches."""
    matches = _value_matcher(operation)
    hit_chance = sum(p for value, p in faces.items() if matches(value))
    pool = _pool_sum(count, faces)
    extra = _pool_sum(1, base)
    if count == 0 or hit_chance == 0:
        return pool
    chance = 1 - (1 - hit_chance) ** count
    return _Bounds(pool.mean + chance * extra.mean, pool.low, pool.high + extra.high)


def _dice_bounds(dice: dice_ast.Dice, operations: list[dice_ast.SetOperator]) -> _Bounds:
    base = _die_faces(dice.size)
    faces = dict(base)
    for index, operation in enumerate(operations):
        ranked = operation.op in ("k", "p") and any(s.cat in ("h", "l") for s in operation.sels)
        if ranked or operation.op == "ra":
            if index != len(operations) - 1:
                raise ValueError(f"'{operation}' must be the last operator on {dice}")
            if ranked:
                return _ranked_pool(dice.num, faces, operation)
            return _explode_once(dice.num, faces, base, operation)
        faces = _apply_to_die(operation, faces, base)
    return _pool_sum(dice.num, faces)


def _binop_bounds(op: str, left: _Bounds, right: _Bounds) -> _Bounds:
    if op == "+":
        return _Bounds(left.mean + right.mean, left.low + right.low, left.high + right.high)
    if op == "-":
        return _Bounds(left.mean - right.mean, left.low - right.high, left.high - right.low)
    if op == "*":
        corners = [a * b for a in (left.low, left.high) for b in (right.low, right.high)]
        return _Bounds(left.mean * right.mean, min(corners), max(corners))
    if op == "/":
        if not right.is_constant:
            raise ValueError("division by a dice roll is not supported")
        if right.mean == 0:
            raise ZeroDivisionError("division by zero in dice formula")
        ends = (left.low / right.mean, left.high / right.mean)
        return _Bounds(left.mean / right.mean, min(ends), max(ends))
    if op in _CONSTANT_OPS and left.is_constant and right.is_constant:
        return _Bounds.constant(float(_CONSTANT_OPS[op](left.mean, right.mean)))
    raise ValueError(f"operator '{op}' is only supported between constants")


def _bounds(node: Any) -> _Bounds:
    """Walk a d20 parse tree bottom-up."""
    if isinstance(node, dice_ast.Expression):
        return _bounds(node.roll)
    if isinstance(node, (dice_ast.AnnotatedNumber, dice_ast.Parenthetical)):
        return _bounds(node.value)
    if isinstance(node, dice_ast.Literal):
        return _Bounds.constant(float(node.value))
    if isinstance(node, dice_ast.UnOp):
        inner = _bounds(node.value)
        if node.op == "-":
            return _Bounds(-inner.mean, -inner.high, -inner.low)
        return inner
    if isinstance(node, dice_ast.BinOp):
        return _binop_bounds(node.op, _bounds(node.left), _bounds(node.right))
    if isinstance(node, dice_ast.OperatedDice):
        return _dice_bounds(node.value, node.operations)
    if isinstance(node, dice_ast.Dice):
        return _dice_bounds(node, [])
    if isinstance(node, dice_ast.NumberSet):
        parts = [_bounds(value) for value in node.values]
        return _Bounds(
            sum(p.mean for p in parts), sum(p.low for p in parts), sum(p.high for p in parts)
        )
    raise ValueError(f"cannot analyse '{node}'")


@lru_cache(maxsize=4096)
def _analyse(expression: str) -> _Bounds:
    return _bounds(d20.parse(expression))


def _double_dice(expression: str) -> Any:
    """Copy of the parse tree with every dice count doubled."""

    def double(node: Any) -> Any:
        if isinstance(node, dice_ast.Dice):
            return dice_ast.Dice(node.num * 2, node.size)
        return node

    return tree_map(double, d20.parse(expression))


class DiceRoller:
    """Formula evaluation and d20 rolls with 5E critical-hit rules.

    Example:
        >>> roller = DiceRoller(seed=42)
        >>> roller.evaluate("1d6+3")
        7.0
        >>> roller.average("2d6+3")
        10.0
    """

    def __init__(self, *, seed: int | None = None, critical_rule: str = "double_dice") -> None:
        """Initialize the dice roller.

        Args:
            seed: Optional seed applied to the shared random state.
            critical_rule: How critical damage is computed:
                - 'double_dice': Double the number of dice (RAW D&D 5E)
                - 'double_damage': Roll normal, then double the total
                - 'max_plus_roll': Max damage + normal roll
        """
        self.critical_rule = critical_rule
        if seed is not None:
            self.reseed(seed)

    def reseed(self, seed: int) -> None:
        """Reset the shared random state for a new run.

        Args:
            seed: The run seed.
        """
        random.seed(seed)

    # -------------------------------------------------------------------------
    # Rolling
    # -------------------------------------------------------------------------

    def roll(self, expression: str) -> int:
        """Roll a dice expression through d20.

        Args:
            expression: Dice expression (e.g., '1d20+5', '2d6+3').

        Returns:
            The rolled total.

        Raises:
            DiceRollError: If the expression is invalid.
        """
        return self._roll(expression)

    def _roll(self, expression: str, *, doubled: bool = False) -> int:
        if not expression or not expression.strip():
            raise DiceRollError("Empty dice expression", expression=expression)
        try:
            result = d20.roll(_double_dice(expression) if doubled else expression)
        except Exception as exc:
            raise DiceRollError(
                f"Invalid dice expression: {exc}",
                expression=expression,
            ) from exc
        return result.total

    def roll_d20(self, *, roll_type: RollType = RollType.NORMAL) -> D20Roll:
        """Roll a natural d20, twice under advantage or disadvantage.

        Args:
            roll_type: Type of roll.

        Returns:
            The kept face and every face rolled.
        """
        first = self.roll("1d20")
        if roll_type is RollType.NORMAL:
            return D20Roll(natural=first, rolls=(first,), roll_type=roll_type)
        second = self.roll("1d20")
        kept = max(first, second) if roll_type is RollType.ADVANTAGE else min(first, second)
        return D20Roll(natural=kept, rolls=(first, second), roll_type=roll_type)

    def evaluate(self, formula: Formula) -> float:
        """Evaluate a flat number or roll a dice formula.

        Args:
            formula: Number or dice notation.

        Returns:
            The value as a float.
        """
        if _is_numeric(formula):
            return float(formula)
        return float(self.roll(str(formula)))

    def roll_damage(self, formula: Formula, *, is_critical: bool = False) -> float:
        """Roll damage with the configured critical-hit rule.

        Flat damage is doubled on a critical hit under every rule.

        Args:
            formula: Damage formula (e.g., '2d6+3').
            is_critical: Whether this is a critical hit.

        Returns:
            Damage rolled, never below zero.
        """
        if not is_critical:
            return max(0.0, self.evaluate(formula))
        if _is_numeric(formula):
            return max(0.0, float(formula) * 2)

        expression = str(formula)
        if self.critical_rule == "double_damage":
            total = self.evaluate(expression) * 2
        elif self.critical_rule == "max_plus_roll":
            total = self.maximum(expression) + self.evaluate(expression)
        else:
            if self.critical_rule != "double_dice":
                logger.warning(
                    "Unknown critical rule, defaulting to double_dice",
                    critical_rule=self.critical_rule,
                )
            total = float(self._roll(expression, doubled=True))
        return max(0.0, total)

    def chance(self, probability: float) -> bool:
        """Draw a Bernoulli trial from the run's random state."""
        return random.random() < probability

    def choice(self, items: Sequence[T]) -> T:
        """Pick one item uniformly from the run's random state."""
        return items[random.randrange(len(items))]

    # -------------------------------------------------------------------------
    # Static analysis
    # -------------------------------------------------------------------------

    @staticmethod
    def average(formula: Formula | None) -> float:
        """Expected value of a formula, computed without rolling.

        Args:
            formula: Number or dice notation; None counts as zero.

        Returns:
            The expected value.

        Raises:
            DiceRollError: If the formula cannot be analysed.
        """
        if formula is None:
            return 0.0
        if _is_numeric(formula):
            return float(formula)
        try:
            return _analyse(str(formula).strip()).mean
        except (d20.RollError, ValueError, ZeroDivisionError) as exc:
            raise DiceRollError(f"Cannot average dice formula: {exc}", expression=str(formula)) from exc

    @staticmethod
    def maximum(formula: Formula) -> float:
        """Largest value a formula can roll.

        Exploding dice are cut off once further explosions become negligible.

        Args:
            formula: Number or dice notation.

        Returns:
            The maximum value.

        Raises:
            DiceRollError: If the formula cannot be analysed.
        """
        if _is_numeric(formula):
            return float(formula)
        try:
            return _analyse(str(formula).strip()).high
        except (d20.RollError, ValueError, ZeroDivisionError) as exc:
            raise DiceRollError(f"Cannot bound dice formula: {exc}", expression=str(formula)) from exc

    def validate(self, formula: Formula) -> None:
        """Check that a formula parses with d20 and can be averaged.

        Does not consume randomness.

        Args:
            formula: Number or dice notation.

        Raises:
            DiceRollError: If the formula is malformed.
        """
        if _is_numeric(formula):
            return
        expression = str(formula)
        try:
            d20.parse(expression)
        except Exception as exc:
            raise DiceRollError(
                f"Invalid dice expression: {exc}",
                expression=expression,
            ) from exc
        self.average(expression)


__all__ = [
    "Formula",
    "RollType",
    "D20Roll",
    "DiceRoller",
]
