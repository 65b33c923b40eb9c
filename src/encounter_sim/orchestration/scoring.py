"""Run scoring and party resource valuation.

The run score ranks outcomes so that any survivor outweighs any amount of
hit points: ``survivors x party max HP x 1000 + party HP - 2 x monster HP``.

Resource value ("effective HP") prices every spendable party resource in
hit points, so resource drain can be compared across parties.
"""

from __future__ import annotations

from collections.abc import Iterable

from encounter_sim.core.constants import (
    FALLBACK_PARTY_HP,
    HIT_DIE_WEIGHT,
    HP_WEIGHT,
    LONG_REST_FEATURE_WEIGHT,
    MONSTER_HP_WEIGHT,
    SHORT_REST_FEATURE_WEIGHT,
    SPELL_SLOT_BASE,
    SURVIVOR_WEIGHT,
)
from encounter_sim.engine.execution import PartyMember
from encounter_sim.engine.resources import HIT_DICE, class_resource_reset, ledger_key
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import ResetType, ResourceType


def run_score(survivors: int, party_max_hp: float, party_hp: float, monster_hp: float) -> float:
    """Score a run after an encounter.

    Args:
        survivors: Party members alive.
        party_max_hp: Sum of the party's maximum hit points.
        party_hp: Party hit points remaining.
        monster_hp: Monster hit points remaining.

    Returns:
        The run score; higher is better for the party.

    Example:
        >>> run_score(2, 60, 45, 0)
        120045.0
    """
    weight = party_max_hp if party_max_hp > 0 else FALLBACK_PARTY_HP
    return float(survivors * weight * SURVIVOR_WEIGHT + party_hp - MONSTER_HP_WEIGHT * monster_hp)


def spell_slot_value(level: int) -> float:
    """Effective-HP value of one spell slot of a level."""
    return SPELL_SLOT_BASE * level**1.5


def class_resource_value(name: str) -> float:
    """Effective-HP value of one charge of a class resource."""
    if class_resource_reset(name) is ResetType.SHORT_REST:
        return SHORT_REST_FEATURE_WEIGHT
    return LONG_REST_FEATURE_WEIGHT


def full_resource_value(creature: Creature) -> float:
    """Effective HP of a creature at full hit points and resources.

    Args:
        creature: Creature definition.

    Returns:
        HP plus the value of every hit die, spell slot and class resource.
    """
    dice_count, _ = creature.hit_dice_pool
    value = HP_WEIGHT * creature.hp + HIT_DIE_WEIGHT * dice_count
    value += sum(spell_slot_value(level) * count for level, count in creature.spell_slots.items())
    value += sum(class_resource_value(name) * count for name, count in creature.class_resources.items())
    return value


def member_resource_value(member: PartyMember) -> float:
    """Effective HP a party member has left.

    Args:
        member: Party member with its carried state.

    Returns:
        HP, temp HP and the value of the remaining resources.
    """
    creature = member.creature
    ledger = member.ledger
    value = HP_WEIGHT * (max(0.0, member.hp) + member.temp_hp)
    value += HIT_DIE_WEIGHT * ledger.amount(HIT_DICE)
    for level in creature.spell_slots:
        value += spell_slot_value(level) * ledger.amount(ledger_key(ResourceType.SPELL_SLOT, str(level)))
    for name in creature.class_resources:
        value += class_resource_value(name) * ledger.amount(
            ledger_key(ResourceType.CLASS_RESOURCE, name)
        )
    return value


def party_resources_pct(members: Iterable[PartyMember]) -> float:
    """Party resources remaining, as a percentage of full.

    Temporary hit points can push the figure above 100; it is capped.
    """
    members = list(members)
    full = sum(full_resource_value(m.creature) for m in members)
    if full <= 0:
        return 100.0
    current = sum(member_resource_value(m) for m in members)
    return min(100.0, 100.0 * current / full)


__all__ = [
    "run_score",
    "spell_slot_value",
    "class_resource_value",
    "full_resource_value",
    "member_resource_value",
    "party_resources_pct",
]
