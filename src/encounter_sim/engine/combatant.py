"""Runtime combatants and their mutable state.

A Combatant is one side-assigned copy of a Creature inside one encounter.
Its CombatantState is mutated only through the Turn Context.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from encounter_sim.engine.resources import ResourceLedger
from encounter_sim.models.actions import ActionBase
from encounter_sim.models.buffs import Buff
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import BuffDuration, Condition, Side
from encounter_sim.models.results import CombatantSnapshot


@dataclass
class ActiveEffect:
    """A buff applied to a combatant.

    Attributes:
        id: Identifier, unique within the encounter.
        buff: Modifier payload.
        source_id: Combatant that applied the effect.
        target_id: Combatant carrying the effect.
        action_id: Action that applied the effect.
        rounds_remaining: Rounds left, or None until removed.
        save_dc: DC of the repeat save for debuffs.
    """

    id: str
    buff: Buff
    source_id: str
    target_id: str
    action_id: str | None = None
    rounds_remaining: int | None = None
    save_dc: float | None = None

    @property
    def name(self) -> str:
        """Display name of the underlying buff."""
        return self.buff.name

    @property
    def concentration(self) -> bool:
        """Whether the effect depends on its source's concentration."""
        return self.buff.concentration

    @property
    def duration(self) -> BuffDuration:
        """Lifetime kind of the underlying buff."""
        return self.buff.duration


@dataclass
class CombatantState:
    """Mutable state of one combatant.

    Attributes:
        hp: Current hit points, between zero and ``max_hp``.
        max_hp: Maximum hit points.
        temp_hp: Temporary hit points.
        arcane_ward: Absorption pool hit before temp HP.
        max_arcane_ward: Size of the absorption pool.
        ledger: Resource balances.
        effects: Active effects, in application order.
        dead: Set once, when the combatant dies.
        surprised: Skips its first round.
        concentrating_on: Name of the concentration spell held, if any.
        pending_reductions: Damage reductions queued by reactions.
    """

    hp: float
    max_hp: float
    ledger: ResourceLedger
    temp_hp: float = 0.0
    arcane_ward: float = 0.0
    max_arcane_ward: float = 0.0
    effects: list[ActiveEffect] = field(default_factory=list)
    dead: bool = False
    surprised: bool = False
    concentrating_on: str | None = None
    pending_reductions: list[float] = field(default_factory=list)

    @property
    def alive(self) -> bool:
        """Whether the combatant is still in the fight."""
        return not self.dead and self.hp > 0

    @property
    def bloodied(self) -> bool:
        """At or below half of maximum hit points."""
        return self.hp <= self.max_hp / 2

    @property
    def injured(self) -> bool:
        """Below maximum hit points."""
        return self.hp < self.max_hp


@dataclass
class Combatant:
    """A battle participant instantiated from a Creature.

    Attributes:
        id: Identifier, ``<creature id>-<copy index>``.
        name: Display name.
        side: Team.
        creature: Originating definition.
        creature_index: Index of the creature in its roster.
        state: Mutable state.
        actions: Actions available this encounter, in declaration order.
        initiative: Initiative result for the encounter.
    """

    id: str
    name: str
    side: Side
    creature: Creature
    creature_index: int
    state: CombatantState
    actions: list[ActionBase] = field(default_factory=list)
    initiative: float = 0.0

    @property
    def alive(self) -> bool:
        """Whether the combatant is still in the fight."""
        return self.state.alive

    @property
    def conditions(self) -> set[Condition]:
        """Conditions imposed by active effects."""
        return {e.buff.condition for e in self.state.effects if e.buff.condition is not None}

    @property
    def can_act(self) -> bool:
        """Alive and free of action-preventing conditions."""
        return self.alive and not any(c.prevents_actions for c in self.conditions)

    def has_effect(self, name: str) -> bool:
        """Whether an active effect or condition carries this name.

        Args:
            name: Buff display name or condition value, case-insensitive.

        Returns:
            True if found.
        """
        wanted = name.strip().lower()
        if any(e.name.lower() == wanted for e in self.state.effects):
            return True
        return any(c.value == wanted for c in self.conditions)

    def action(self, action_id: str) -> ActionBase | None:
        """Look up one of the combatant's actions by id."""
        for candidate in self.actions:
            if candidate.id == action_id:
                return candidate
        return None

    def snapshot(self) -> CombatantSnapshot:
        """Point-in-time view of the combatant."""
        return CombatantSnapshot(
            id=self.id,
            creature_id=self.creature.id,
            name=self.name,
            side=self.side,
            hp=self.state.hp,
            max_hp=self.state.max_hp,
            temp_hp=self.state.temp_hp,
            alive=self.alive,
        )


__all__ = ["ActiveEffect", "CombatantState", "Combatant"]
