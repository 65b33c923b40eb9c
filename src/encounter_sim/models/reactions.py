"""Pydantic V2 schemas for reaction templates.

A reaction pairs a trigger (one condition, or an and/or/not composite of
conditions) with optional requirements and one effect. Triggers are always
evaluated relative to the combatant that owns the reaction.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from encounter_sim.models.actions import ActionCost
from encounter_sim.models.buffs import Buff
from encounter_sim.models.common import DiceFormula
from encounter_sim.models.enums import (
    ResourceType,
    TriggerCondition,
    TriggerEffectKind,
    TriggerRequirementKind,
)


class CompositeTrigger(BaseModel):
    """Boolean combination of trigger conditions.

    ``not`` takes exactly one operand and matches when it does not.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    op: Literal["and", "or", "not"]
    conditions: list["TriggerSpec"] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_arity(self) -> "CompositeTrigger":
        """``not`` is unary."""
        if self.op == "not" and len(self.conditions) != 1:
            raise ValueError("'not' takes exactly one condition")
        return self


TriggerSpec = Union[TriggerCondition, CompositeTrigger]


class TriggerRequirement(BaseModel):
    """Extra predicate on the triggering event.

    ``damage_type`` and ``action_tag`` compare ``value`` against the
    event's damage type and the provoking action's tags.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: TriggerRequirementKind
    value: str | None = None

    @model_validator(mode="after")
    def validate_value(self) -> "TriggerRequirement":
        """Value is required for the comparing kinds."""
        if self.kind is not TriggerRequirementKind.HAS_TEMP_HP and not self.value:
            raise ValueError(f"requirement '{self.kind}' needs a value")
        return self


class TriggerEffect(BaseModel):
    """What a reaction does when it fires.

    Attributes:
        kind: Effect kind.
        amount: Damage, reduction, roll bonus or restored amount.
        damage_type: Damage type for DEAL_DAMAGE.
        resource: Resource restored by RESTORE_RESOURCE.
        resource_key: Sub-key of the restored resource.
        buff: Buff applied by APPLY_BUFF.
        buff_name: Display name removed by REMOVE_BUFF.
        action_id: Owner action run by GRANT_IMMEDIATE_ACTION.
        effects: Sub-effects run in order by CHAIN.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: TriggerEffectKind
    amount: DiceFormula | None = None
    damage_type: str = "force"
    resource: ResourceType | None = None
    resource_key: str | None = None
    buff: Buff | None = None
    buff_name: str | None = None
    action_id: str | None = None
    effects: list["TriggerEffect"] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_payload(self) -> "TriggerEffect":
        """Check that each kind carries the fields it uses."""
        needs_amount = {
            TriggerEffectKind.DEAL_DAMAGE,
            TriggerEffectKind.REDUCE_DAMAGE,
            TriggerEffectKind.ADD_TO_ROLL,
        }
        if self.kind in needs_amount and self.amount is None:
            raise ValueError(f"effect '{self.kind}' needs an amount")
        if self.kind is TriggerEffectKind.RESTORE_RESOURCE and self.resource is None:
            raise ValueError("restore_resource needs a resource")
        if self.kind is TriggerEffectKind.APPLY_BUFF and self.buff is None:
            raise ValueError("apply_buff needs a buff")
        if self.kind is TriggerEffectKind.REMOVE_BUFF and not self.buff_name:
            raise ValueError("remove_buff needs a buff_name")
        if self.kind is TriggerEffectKind.GRANT_IMMEDIATE_ACTION and not self.action_id:
            raise ValueError("grant_immediate_action needs an action_id")
        if self.kind is TriggerEffectKind.CHAIN and not self.effects:
            raise ValueError("chain needs at least one effect")
        return self


class ReactionTemplate(BaseModel):
    """A reaction a creature can take outside its own turn.

    Attributes:
        id: Identifier, unique within a creature.
        name: Display name.
        trigger: Condition or composite that must match the event.
        requirements: Extra predicates, all of which must hold.
        effect: Effect applied when the reaction fires.
        priority: Higher fires first when several reactions match one event.
        cost: Extra resources paid besides the reaction itself.
        consumes_reaction: Whether firing spends the per-round reaction.
        uses_per_encounter: Optional cap on firings per encounter.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    trigger: TriggerSpec
    requirements: list[TriggerRequirement] = Field(default_factory=list)
    effect: TriggerEffect
    priority: int = 0
    cost: list[ActionCost] = Field(default_factory=list)
    consumes_reaction: bool = True
    uses_per_encounter: int | None = Field(default=None, ge=1)


CompositeTrigger.model_rebuild()
TriggerEffect.model_rebuild()


__all__ = [
    "CompositeTrigger",
    "TriggerSpec",
    "TriggerRequirement",
    "TriggerEffect",
    "ReactionTemplate",
]
