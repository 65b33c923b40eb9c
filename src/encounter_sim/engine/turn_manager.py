"""Initiative and turn tracking for one encounter.

This module rolls initiative, fixes the turn order for the encounter and
counts rounds and turns against the hard caps that guarantee every
encounter terminates.
"""

from __future__ import annotations

from dataclasses import dataclass

from encounter_sim.core.exceptions import EncounterTimeout, TurnManagementError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.combatant import Combatant
from encounter_sim.engine.dice import DiceRoller, RollType


logger = get_logger(__name__)


@dataclass
class InitiativeEntry:
    """An entry in the initiative order.

    Attributes:
        combatant_id: ID of the combatant.
        name: Display name of the combatant.
        roll: Initiative total (d20 plus bonus).
        natural: The d20 face kept.
        is_active: Whether this combatant is still in the order.
    """

    combatant_id: str
    name: str
    roll: float
    natural: int
    is_active: bool = True


class InitiativeTracker:
    """Track initiative order and round/turn progression.

    The order is rolled once per encounter, highest first, with ties
    broken by combatant id so the order is a pure function of the rolls.

    Example:
        >>> tracker = InitiativeTracker(DiceRoller(seed=1), max_rounds=50, max_turns=200)
        >>> tracker.roll_all(combatants)
        >>> tracker.start_round()
        1
    """

    def __init__(self, dice: DiceRoller, *, max_rounds: int, max_turns: int) -> None:
        """Initialize the tracker.

        Args:
            dice: Dice roller of the run.
            max_rounds: Round cap.
            max_turns: Turn cap.
        """
        self._dice = dice
        self._entries: list[InitiativeEntry] = []
        self._round = 0
        self._turns = 0
        self.max_rounds = max_rounds
        self.max_turns = max_turns

    @property
    def current_round(self) -> int:
        """Current round number (0 before the first round)."""
        return self._round

    @property
    def turns_taken(self) -> int:
        """Turns started so far in the encounter."""
        return self._turns

    @property
    def initiative_order(self) -> list[InitiativeEntry]:
        """Active entries in turn order."""
        return [e for e in self._entries if e.is_active]

    def roll_initiative(self, combatant: Combatant) -> InitiativeEntry:
        """Roll initiative for one combatant and store it on the combatant.

        Args:
            combatant: The combatant to roll for.

        Returns:
            The created InitiativeEntry.
        """
        creature = combatant.creature
        roll_type = RollType.ADVANTAGE if creature.initiative_advantage else RollType.NORMAL
        d20 = self._dice.roll_d20(roll_type=roll_type)
        total = d20.natural + self._dice.evaluate(creature.initiative_bonus)
        combatant.initiative = total
        entry = InitiativeEntry(
            combatant_id=combatant.id,
            name=combatant.name,
            roll=total,
            natural=d20.natural,
        )
        self._entries.append(entry)
        self._sort_initiative()
        logger.debug("Initiative rolled", combatant=combatant.id, roll=total)
        return entry

    def roll_all(self, combatants: list[Combatant]) -> list[InitiativeEntry]:
        """Roll initiative for every combatant, in roster order."""
        for combatant in combatants:
            self.roll_initiative(combatant)
        return self.initiative_order

    def _sort_initiative(self) -> None:
        """Sort entries by initiative (highest first, id as tiebreaker)."""
        self._entries.sort(key=lambda e: (-e.roll, e.combatant_id))

    def remove_combatant(self, combatant_id: str) -> None:
        """Take a combatant out of the order.

        Raises:
            TurnManagementError: If the combatant is not in the order.
        """
        for entry in self._entries:
            if entry.combatant_id == combatant_id:
                entry.is_active = False
                return
        raise TurnManagementError(
            f"Combatant not found in initiative: {combatant_id}",
            details={"combatant_id": combatant_id},
        )

    def start_round(self) -> int:
        """Advance to the next round.

        Returns:
            The new round number.

        Raises:
            TurnManagementError: If no initiative has been rolled.
            EncounterTimeout: If the round cap would be exceeded.
        """
        if not self._entries:
            raise TurnManagementError("Cannot start a round: no combatants in initiative")
        if self._round >= self.max_rounds:
            raise EncounterTimeout(
                f"Round cap of {self.max_rounds} reached",
                round_number=self._round,
            )
        self._round += 1
        return self._round

    def start_turn(self, combatant_id: str) -> int:
        """Count a turn against the turn cap.

        Returns:
            The number of turns started, including this one.

        Raises:
            EncounterTimeout: If the turn cap would be exceeded.
        """
        if self._turns >= self.max_turns:
            raise EncounterTimeout(
                f"Turn cap of {self.max_turns} reached",
                combatant_id=combatant_id,
                round_number=self._round,
            )
        self._turns += 1
        return self._turns

    def reset(self) -> None:
        """Reset the tracker for a new encounter."""
        self._entries.clear()
        self._round = 0
        self._turns = 0


__all__ = ["InitiativeEntry", "InitiativeTracker"]
