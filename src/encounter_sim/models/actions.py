"""Pydantic V2 schemas for actions, their costs, requirements and frequency.

An Action is a tagged union over attack, heal, buff, debuff and template
actions, discriminated by ``kind``. Template actions name a spell template
that is resolved lazily into one of the concrete kinds at first use.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from encounter_sim.models.buffs import Buff
from encounter_sim.models.common import DiceFormula
from encounter_sim.models.enums import (
    ActionKind,
    CombatCondition,
    FrequencyKind,
    ResetType,
    ResourceType,
    TargetStrategy,
    TemplateName,
)


# =============================================================================
# Costs
# =============================================================================


class DiscreteCost(BaseModel):
    """A fixed amount of one resource.

    Attributes:
        resource: Resource type charged.
        resource_key: Sub-key, e.g. spell slot level or class resource name.
        amount: Amount charged.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["discrete"] = "discrete"
    resource: ResourceType
    resource_key: str | None = None
    amount: float = Field(default=1.0, gt=0)


class VariableCost(BaseModel):
    """A ranged amount of one resource, such as movement.

    Affordable when at least ``min`` is available; charges as much of
    ``max`` as is available.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["variable"] = "variable"
    resource: ResourceType
    resource_key: str | None = None
    min: float = Field(default=0.0, ge=0)
    max: float = Field(gt=0)

    @model_validator(mode="after")
    def validate_range(self) -> "VariableCost":
        """Ensure the range is ordered."""
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


ActionCost = Annotated[DiscreteCost | VariableCost, Field(discriminator="type")]


def _default_cost() -> list[DiscreteCost]:
    return [DiscreteCost(resource=ResourceType.ACTION)]


# =============================================================================
# Requirements
# =============================================================================


class ResourceAvailableRequirement(BaseModel):
    """The actor must hold at least ``amount`` of a resource."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["resource_available"] = "resource_available"
    resource: ResourceType
    resource_key: str | None = None
    amount: float = Field(default=1.0, gt=0)


class CombatStateRequirement(BaseModel):
    """A combat-state predicate must hold."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["combat_state"] = "combat_state"
    condition: CombatCondition


class StatusEffectRequirement(BaseModel):
    """The actor must carry a buff or condition with this name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["status_effect"] = "status_effect"
    effect: str = Field(min_length=1)


class CustomRequirement(BaseModel):
    """An opaque predicate the engine cannot evaluate; never satisfied."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["custom"] = "custom"
    description: str


ActionRequirement = Annotated[
    ResourceAvailableRequirement
    | CombatStateRequirement
    | StatusEffectRequirement
    | CustomRequirement,
    Field(discriminator="type"),
]


# =============================================================================
# Frequency
# =============================================================================


class Frequency(BaseModel):
    """How often an action can be used.

    Attributes:
        kind: Frequency kind.
        uses: Charges for LIMITED actions.
        reset: Reset period for LIMITED actions.
        recharge_on: Minimum d6 roll that recharges a RECHARGE action.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: FrequencyKind = FrequencyKind.AT_WILL
    uses: int = Field(default=1, ge=1, le=100)
    reset: ResetType | None = None
    recharge_on: int = Field(default=5, ge=2, le=6)

    @property
    def usage_limit(self) -> tuple[int, ResetType] | None:
        """Charges and reset period of the usage counter, if any.

        Returns:
            (max uses, reset period), or None for at-will actions.
        """
        if self.kind is FrequencyKind.AT_WILL:
            return None
        if self.kind is FrequencyKind.ONCE_PER_FIGHT:
            return (1, ResetType.ENCOUNTER)
        if self.kind is FrequencyKind.ONCE_PER_DAY:
            return (1, ResetType.LONG_REST)
        if self.kind is FrequencyKind.RECHARGE:
            return (1, ResetType.ENCOUNTER)
        return (self.uses, self.reset or ResetType.LONG_REST)


# =============================================================================
# Actions
# =============================================================================


class ActionBase(BaseModel):
    """Fields shared by every action kind.

    Attributes:
        id: Identifier, unique within a creature.
        name: Display name.
        cost: Resources charged when the action resolves.
        requirements: Predicates checked at resolution time.
        tags: Free-form tags; ``spell`` marks an action as a spell.
        freq: Usage frequency.
        targets: Number of targets (for attacks: number of attacks).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    cost: list[ActionCost] = Field(default_factory=_default_cost)
    requirements: list[ActionRequirement] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    freq: Frequency = Field(default_factory=Frequency)
    targets: int = Field(default=1, ge=1, le=20)

    @property
    def is_spell(self) -> bool:
        """Whether the action is tagged as a spell."""
        return any(tag.lower() == "spell" for tag in self.tags)


class RiderEffect(BaseModel):
    """A buff an attack applies on hit unless the target saves."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dc: float = Field(ge=1, le=40)
    buff: Buff


class AttackAction(ActionBase):
    """A weapon or spell attack.

    With ``use_saves`` the targets roll a save against ``save_dc`` instead
    of the attacker rolling to hit; ``half_on_save`` halves the damage on
    a successful save.
    """

    kind: Literal["attack"] = "attack"
    dpr: DiceFormula
    to_hit: DiceFormula = 0
    target: TargetStrategy = TargetStrategy.LEAST_HP
    damage_type: str = "bludgeoning"
    use_saves: bool = False
    save_dc: float | None = Field(default=None, ge=1, le=40)
    half_on_save: bool = False
    rider_effect: RiderEffect | None = None

    @model_validator(mode="after")
    def validate_save_attack(self) -> "AttackAction":
        """Save-based attacks need a DC."""
        if self.use_saves and self.save_dc is None:
            raise ValueError("use_saves requires save_dc")
        return self


class HealAction(ActionBase):
    """Restores hit points or grants temporary hit points."""

    kind: Literal["heal"] = "heal"
    amount: DiceFormula
    temp_hp: bool = False
    target: TargetStrategy = TargetStrategy.LEAST_HP


class BuffAction(ActionBase):
    """Applies a buff to allies."""

    kind: Literal["buff"] = "buff"
    target: TargetStrategy = TargetStrategy.SELF
    buff: Buff


class DebuffAction(ActionBase):
    """Applies a buff to enemies that fail a save."""

    kind: Literal["debuff"] = "debuff"
    target: TargetStrategy = TargetStrategy.MOST_HP
    save_dc: float = Field(ge=1, le=40)
    buff: Buff


class TemplateOptions(BaseModel):
    """Template name plus the overrides that parameterize it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    template_name: TemplateName
    save_dc: float | None = Field(default=None, ge=1, le=40)
    amount: DiceFormula | None = None
    target: TargetStrategy | None = None

    @field_validator("template_name", mode="before")
    @classmethod
    def normalize_name(cls, value: object) -> object:
        """Accept template names in any case."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def overrides(self) -> tuple[tuple[str, str], ...]:
        """Sorted override list used as part of the cache key.

        Returns:
            Tuple of (name, value) pairs for the overrides that are set.
        """
        pairs = []
        if self.save_dc is not None:
            pairs.append(("save_dc", repr(float(self.save_dc))))
        if self.amount is not None:
            pairs.append(("amount", repr(self.amount)))
        if self.target is not None:
            pairs.append(("target", self.target.value))
        return tuple(sorted(pairs))


class TemplateAction(ActionBase):
    """A named spell template resolved lazily into a concrete action."""

    kind: Literal["template"] = "template"
    template_options: TemplateOptions

    @property
    def is_spell(self) -> bool:
        """Templates are always spells."""
        return True


Action = Annotated[
    AttackAction | HealAction | BuffAction | DebuffAction | TemplateAction,
    Field(discriminator="kind"),
]

ResolvedAction = AttackAction | HealAction | BuffAction | DebuffAction
"""What a template resolves into."""


def action_kind(action: ActionBase) -> ActionKind:
    """Get the kind tag of an action.

    Args:
        action: Any action model.

    Returns:
        The ActionKind matching its ``kind`` literal.
    """
    return ActionKind(action.kind)  # type: ignore[attr-defined]


__all__ = [
    "DiscreteCost",
    "VariableCost",
    "ActionCost",
    "ResourceAvailableRequirement",
    "CombatStateRequirement",
    "StatusEffectRequirement",
    "CustomRequirement",
    "ActionRequirement",
    "Frequency",
    "ActionBase",
    "RiderEffect",
    "AttackAction",
    "HealAction",
    "BuffAction",
    "DebuffAction",
    "TemplateOptions",
    "TemplateAction",
    "Action",
    "ResolvedAction",
    "action_kind",
]
