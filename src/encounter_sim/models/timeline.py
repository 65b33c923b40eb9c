"""Request documents: the adventuring-day timeline and batch parameters."""

from __future__ import annotations

import hashlib
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import DifficultyTier, Side


class Encounter(BaseModel):
    """One combat segment of the day.

    Attributes:
        kind: Segment tag.
        name: Display name.
        monsters: Opposing creatures.
        players_surprised: Party skips its first round.
        monsters_surprised: Monsters skip their first round.
        short_rest_after: Take a short rest once this encounter ends.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["combat"] = "combat"
    name: str = Field(default="Encounter", max_length=100)
    monsters: list[Creature] = Field(min_length=1)
    players_surprised: bool = False
    monsters_surprised: bool = False
    short_rest_after: bool = False

    @model_validator(mode="after")
    def validate_monsters(self) -> "Encounter":
        """Monsters must be monster-mode creatures with unique ids."""
        ids = [monster.id for monster in self.monsters]
        if len(set(ids)) != len(ids):
            raise ValueError("duplicate monster ids in encounter")
        for monster in self.monsters:
            if monster.mode is not Side.MONSTER:
                raise ValueError(f"creature '{monster.id}' in an encounter must be a monster")
        return self


class ShortRest(BaseModel):
    """A short rest between encounters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["short_rest"] = "short_rest"


class LongRest(BaseModel):
    """A long rest between encounters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["long_rest"] = "long_rest"


TimelineStep = Annotated[Encounter | ShortRest | LongRest, Field(discriminator="kind")]


def _validate_party(party: list[Creature]) -> list[Creature]:
    ids = [member.id for member in party]
    if len(set(ids)) != len(ids):
        raise ValueError("duplicate party member ids")
    for member in party:
        if member.mode is not Side.PLAYER:
            raise ValueError(f"party member '{member.id}' must be a player")
    return party


class SimulationRequest(BaseModel):
    """A batch simulation request.

    The request is frozen so it cannot change while a batch runs.

    Attributes:
        party: Player characters, carried across the whole day.
        timeline: Ordered encounters and rests.
        iterations: Number of runs; None uses the configured default.
        seed: Base seed; run ``i`` uses ``seed + i``. None picks one.
        max_k: Number of one-percent buckets for Tier B selection.
        include_death_runs: Add runs with deaths to Tier B.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    party: list[Creature] = Field(min_length=1)
    timeline: list[TimelineStep] = Field(min_length=1)
    iterations: int | None = Field(default=None, ge=1, le=1_000_000)
    seed: int | None = Field(default=None, ge=0)
    max_k: int | None = Field(default=None, ge=1, le=1000)
    include_death_runs: bool | None = None

    @field_validator("party")
    @classmethod
    def validate_party(cls, party: list[Creature]) -> list[Creature]:
        """Party members must be unique player-mode creatures."""
        return _validate_party(party)

    @model_validator(mode="after")
    def validate_timeline(self) -> "SimulationRequest":
        """The timeline must hold at least one encounter."""
        if not self.encounters:
            raise ValueError("timeline must contain at least one encounter")
        return self

    @property
    def encounters(self) -> list[Encounter]:
        """Encounters in timeline order."""
        return [step for step in self.timeline if isinstance(step, Encounter)]

    def scenario_hash(self) -> str:
        """Hash of the scenario, excluding batch parameters.

        Returns:
            Hex sha256 digest of the party and timeline.
        """
        payload = self.model_dump_json(include={"party", "timeline"})
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AutoAdjustRequest(BaseModel):
    """Request to classify one encounter and propose stat deltas.

    Attributes:
        party: Player characters at full resources.
        encounter: Encounter to classify and adjust.
        target_tier: Contextual tier the adjustment aims for.
        resources_remaining_pct: Party resources left entering the encounter.
        iterations: Survey runs per step; None uses the configured default.
        seed: Base seed for the surveys.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    party: list[Creature] = Field(min_length=1)
    encounter: Encounter
    target_tier: DifficultyTier = DifficultyTier.CHALLENGING
    resources_remaining_pct: float = Field(default=100.0, ge=0, le=100)
    iterations: int | None = Field(default=None, ge=1, le=100_000)
    seed: int = Field(default=0, ge=0)

    @field_validator("party")
    @classmethod
    def validate_party(cls, party: list[Creature]) -> list[Creature]:
        """Party members must be unique player-mode creatures."""
        return _validate_party(party)

    @field_validator("target_tier", mode="before")
    @classmethod
    def parse_tier(cls, value: object) -> object:
        """Accept tier names such as ``"safe"`` as well as tier values."""
        if isinstance(value, str) and not value.lstrip("-").isdigit():
            try:
                return DifficultyTier[value.strip().upper()]
            except KeyError as exc:
                raise ValueError(f"unknown difficulty tier {value!r}") from exc
        return value


__all__ = [
    "Encounter",
    "ShortRest",
    "LongRest",
    "TimelineStep",
    "SimulationRequest",
    "AutoAdjustRequest",
]
