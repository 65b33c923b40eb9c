"""Buff schema: the modifier payload carried by active effects."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from encounter_sim.models.common import DiceFormula
from encounter_sim.models.enums import BuffDuration, Condition


class Buff(BaseModel):
    """A modifier payload applied to a combatant.

    Formula fields are rolled when used (``to_hit``, ``damage``, ``save``,
    ``damage_reduction``) except ``ac``, which contributes its average so
    that armor class stays a stable number during a round.

    Attributes:
        display_name: Name shown in events; also used to match status requirements.
        duration: Lifetime of the effect.
        rounds: Explicit round count, overriding the duration's default.
        ac: Armor class modifier.
        to_hit: Attack roll modifier.
        damage: Extra damage on each hit.
        damage_reduction: Flat reduction on each incoming damage instance.
        damage_multiplier: Multiplier on outgoing damage.
        damage_taken_multiplier: Multiplier on incoming damage.
        save: Saving throw modifier.
        condition: Condition imposed while the buff lasts.
        concentration: Whether the buff is tied to its source's concentration.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    display_name: str | None = Field(default=None, max_length=100)
    duration: BuffDuration = BuffDuration.ENTIRE_ENCOUNTER
    rounds: Annotated[int, Field(ge=1, le=100)] | None = None
    ac: DiceFormula | None = None
    to_hit: DiceFormula | None = None
    damage: DiceFormula | None = None
    damage_reduction: DiceFormula | None = None
    damage_multiplier: Annotated[float, Field(ge=0)] | None = None
    damage_taken_multiplier: Annotated[float, Field(ge=0)] | None = None
    save: DiceFormula | None = None
    condition: Condition | None = None
    concentration: bool = False

    @property
    def name(self) -> str:
        """Display name with a fallback."""
        return self.display_name or "Buff"

    @property
    def initial_rounds(self) -> int | None:
        """Rounds the effect lasts, or None when it lasts until removed."""
        if self.rounds is not None:
            return self.rounds
        if self.duration is BuffDuration.ONE_ROUND:
            return 1
        return None


__all__ = ["Buff"]
