"""Pydantic V2 schema for creature definitions.

A Creature is the static, caller-owned definition that the engine copies
into one or more runtime combatants per encounter. It is frozen: nothing
in the simulator mutates a Creature once a batch starts.
"""

from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from encounter_sim.models.actions import Action, ActionBase
from encounter_sim.models.buffs import Buff
from encounter_sim.models.common import DiceFormula
from encounter_sim.models.enums import Side
from encounter_sim.models.reactions import ReactionTemplate


_HIT_DICE_PATTERN = re.compile(r"^(\d+)d(\d+)$", re.IGNORECASE)

ABILITIES = ("str", "dex", "con", "int", "wis", "cha")


class MagicItem(BaseModel):
    """An item that contributes extra actions and starting buffs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    actions: list[Action] = Field(default_factory=list)
    buffs: list[Buff] = Field(default_factory=list)


class Creature(BaseModel):
    """Static definition of a player character or monster.

    Attributes:
        id: Identifier, unique within a request.
        name: Display name.
        mode: Which side the creature fights for.
        count: Number of copies; fractional values are sampled per run.
        hp: Maximum hit points.
        ac: Armor class.
        save_bonus: Aggregate saving throw bonus.
        str_save: Strength save override (likewise for the other abilities).
        initiative_bonus: Bonus added to initiative rolls.
        initiative_advantage: Whether initiative is rolled with advantage.
        actions: Actions the creature can take.
        triggers: Reactions the creature can take.
        spell_slots: Spell slot counts keyed by slot level.
        class_resources: Class resource counts keyed by resource name.
        hit_dice: Hit dice pool as ``"<count>d<sides>"``.
        con_modifier: Constitution modifier added to each hit die spent.
        magic_items: Items granting extra actions and buffs.
        max_arcane_ward_hp: Absorption pool that is hit before temp HP.
        initial_buffs: Buffs active when each encounter starts.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    mode: Side
    count: float = Field(default=1.0, gt=0, le=100)
    hp: float = Field(gt=0, le=100000)
    ac: float = Field(ge=0, le=50)
    save_bonus: float = Field(default=0.0, ge=-10, le=30)
    str_save: float | None = None
    dex_save: float | None = None
    con_save: float | None = None
    int_save: float | None = None
    wis_save: float | None = None
    cha_save: float | None = None
    initiative_bonus: DiceFormula = 0
    initiative_advantage: bool = False
    actions: list[Action] = Field(default_factory=list)
    triggers: list[ReactionTemplate] = Field(default_factory=list)
    spell_slots: dict[Annotated[int, Field(ge=1, le=9)], Annotated[int, Field(ge=0)]] = Field(
        default_factory=dict
    )
    class_resources: dict[str, Annotated[int, Field(ge=0)]] = Field(default_factory=dict)
    hit_dice: str | None = None
    con_modifier: int = Field(default=0, ge=-5, le=10)
    magic_items: list[MagicItem] = Field(default_factory=list)
    max_arcane_ward_hp: float = Field(default=0.0, ge=0)
    initial_buffs: list[Buff] = Field(default_factory=list)

    @field_validator("hit_dice")
    @classmethod
    def validate_hit_dice(cls, value: str | None) -> str | None:
        """Hit dice must look like ``5d10``."""
        if value is None:
            return value
        value = value.strip().lower()
        if not _HIT_DICE_PATTERN.match(value):
            raise ValueError(f"hit dice must be '<count>d<sides>', got {value!r}")
        return value

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "Creature":
        """Action and reaction ids must be unique within the creature."""
        action_ids = [action.id for action in self.all_actions]
        duplicates = sorted({a for a in action_ids if action_ids.count(a) > 1})
        if duplicates:
            raise ValueError(f"duplicate action ids: {duplicates}")
        trigger_ids = [trigger.id for trigger in self.triggers]
        if len(set(trigger_ids)) != len(trigger_ids):
            raise ValueError("duplicate reaction ids")
        return self

    @property
    def all_actions(self) -> list[ActionBase]:
        """Own actions followed by magic item actions, in declaration order."""
        actions: list[ActionBase] = list(self.actions)
        for item in self.magic_items:
            actions.extend(item.actions)
        return actions

    @property
    def all_initial_buffs(self) -> list[Buff]:
        """Own starting buffs followed by magic item buffs."""
        buffs = list(self.initial_buffs)
        for item in self.magic_items:
            buffs.extend(item.buffs)
        return buffs

    @property
    def hit_dice_pool(self) -> tuple[int, int]:
        """Hit dice as (count, sides); (0, 0) when the creature has none."""
        if not self.hit_dice:
            return (0, 0)
        match = _HIT_DICE_PATTERN.match(self.hit_dice)
        assert match is not None
        return (int(match.group(1)), int(match.group(2)))

    def save_for(self, ability: str | None = None) -> float:
        """Get the saving throw bonus for an ability.

        Args:
            ability: Three-letter ability code, or None for the aggregate.

        Returns:
            The ability override if set, otherwise the aggregate bonus.
        """
        if ability is None:
            return self.save_bonus
        override = getattr(self, f"{ability.lower()}_save", None)
        return self.save_bonus if override is None else override


__all__ = ["ABILITIES", "MagicItem", "Creature"]
