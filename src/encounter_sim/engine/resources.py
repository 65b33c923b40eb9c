"""Per-combatant resource ledger.

Every spendable resource (action economy, movement, spell slots, class
resources, hit dice and per-action usage counters) is one ledger entry
with a maximum and a reset period. Resetting at a period restores every
entry whose period is at or below it, so a long rest also restores
everything a short rest would.

The ledger itself emits nothing; the Turn Context wraps it and records a
resource event for every change.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from encounter_sim.core.constants import DEFAULT_MOVEMENT, SHORT_REST_CLASS_RESOURCES
from encounter_sim.models.actions import (
    ActionBase,
    DiscreteCost,
    ResourceAvailableRequirement,
    VariableCost,
)
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import ResetType, ResourceType


ACTION = "Action"
BONUS_ACTION = "BonusAction"
REACTION = "Reaction"
MOVEMENT = "Movement"
HIT_DICE = "HitDice"

_FIXED_KEYS = {
    ResourceType.ACTION: ACTION,
    ResourceType.BONUS_ACTION: BONUS_ACTION,
    ResourceType.REACTION: REACTION,
    ResourceType.MOVEMENT: MOVEMENT,
    ResourceType.HIT_DICE: HIT_DICE,
}


def ledger_key(resource: ResourceType, key: str | None = None) -> str:
    """Build the ledger key for a resource reference.

    Args:
        resource: Resource type.
        key: Sub-key (slot level, class resource name, action id).

    Returns:
        Keys such as ``Action``, ``SpellSlot(3)`` or ``ClassResource(ki)``.
    """
    if resource in _FIXED_KEYS:
        return _FIXED_KEYS[resource]
    if resource is ResourceType.SPELL_SLOT:
        return f"SpellSlot({key or 1})"
    if resource is ResourceType.CLASS_RESOURCE:
        return f"ClassResource({(key or '').lower()})"
    if resource is ResourceType.ACTION_USAGE:
        return f"ActionUsage({key})"
    return f"Custom({key})"


def usage_key(action_id: str) -> str:
    """Ledger key of an action's usage counter."""
    return ledger_key(ResourceType.ACTION_USAGE, action_id)


def reaction_usage_cost(reaction_id: str) -> DiscreteCost:
    """Cost that charges a reaction's per-encounter usage counter."""
    return DiscreteCost(resource=ResourceType.CUSTOM, resource_key=f"reaction:{reaction_id}")


def reaction_usage_key(reaction_id: str) -> str:
    """Ledger key of a once-per-encounter reaction counter."""
    return ledger_key(ResourceType.CUSTOM, f"reaction:{reaction_id}")


@dataclass
class LedgerEntry:
    """One resource balance.

    Attributes:
        current: Amount available.
        maximum: Amount restored on reset.
        reset: Period at which the entry is restored.
    """

    current: float
    maximum: float
    reset: ResetType


@dataclass(frozen=True)
class Charge:
    """One resource amount to charge, after resolving variable costs."""

    key: str
    amount: float


class ResourceLedger:
    """Resource balances for one combatant."""

    def __init__(self) -> None:
        self._entries: dict[str, LedgerEntry] = {}

    def register(
        self,
        key: str,
        maximum: float,
        reset: ResetType,
        *,
        current: float | None = None,
    ) -> None:
        """Add or replace an entry.

        Args:
            key: Ledger key.
            maximum: Amount restored on reset.
            reset: Reset period.
            current: Starting amount; defaults to the maximum.
        """
        self._entries[key] = LedgerEntry(
            current=maximum if current is None else current,
            maximum=maximum,
            reset=reset,
        )

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[tuple[str, LedgerEntry]]:
        return iter(sorted(self._entries.items()))

    def amount(self, key: str) -> float:
        """Amount available; zero for unknown keys."""
        entry = self._entries.get(key)
        return entry.current if entry else 0.0

    def maximum(self, key: str) -> float:
        """Maximum of an entry; zero for unknown keys."""
        entry = self._entries.get(key)
        return entry.maximum if entry else 0.0

    def entry(self, key: str) -> LedgerEntry | None:
        """Get an entry by key."""
        return self._entries.get(key)

    def plan(self, costs: list[DiscreteCost | VariableCost]) -> list[Charge] | str:
        """Work out what a set of costs would charge.

        Costs on the same key accumulate, so two one-action costs need
        two actions.

        Args:
            costs: Costs to pay.

        Returns:
            The charges to apply, or the first key that cannot be afforded.
        """
        pending: dict[str, float] = {}
        charges: list[Charge] = []
        for cost in costs:
            key = ledger_key(cost.resource, cost.resource_key)
            available = self.amount(key) - pending.get(key, 0.0)
            if isinstance(cost, VariableCost):
                if available < cost.min:
                    return key
                amount = min(cost.max, available)
            else:
                if available < cost.amount:
                    return key
                amount = cost.amount
            pending[key] = pending.get(key, 0.0) + amount
            charges.append(Charge(key=key, amount=amount))
        return charges

    def consume(self, key: str, amount: float) -> float:
        """Deduct an amount.

        Args:
            key: Ledger key; must exist.
            amount: Amount to deduct.

        Returns:
            The remaining amount.
        """
        entry = self._entries[key]
        entry.current = max(0.0, entry.current - amount)
        return entry.current

    def restore(self, key: str, amount: float | None = None) -> tuple[float, float]:
        """Add to an entry, up to its maximum.

        Args:
            key: Ledger key.
            amount: Amount to add; None restores to the maximum.

        Returns:
            (previous, new) amounts; (0, 0) for unknown keys.
        """
        entry = self._entries.get(key)
        if entry is None:
            return (0.0, 0.0)
        previous = entry.current
        target = entry.maximum if amount is None else entry.current + amount
        entry.current = min(entry.maximum, target)
        return (previous, entry.current)

    def reset(self, period: ResetType) -> list[tuple[str, float, float]]:
        """Restore every entry whose reset period is at or below ``period``.

        Args:
            period: The period that just elapsed.

        Returns:
            (key, previous, new) for each entry whose amount changed.
        """
        changed = []
        for key, entry in sorted(self._entries.items()):
            if entry.reset > period or entry.reset is ResetType.NEVER:
                continue
            if entry.current != entry.maximum:
                changed.append((key, entry.current, entry.maximum))
                entry.current = entry.maximum
        return changed

    def copy(self) -> ResourceLedger:
        """Deep copy, used to carry party resources between encounters."""
        clone = ResourceLedger()
        for key, entry in self._entries.items():
            clone.register(key, entry.maximum, entry.reset, current=entry.current)
        return clone

    def balances(self) -> dict[str, float]:
        """Current amount of every entry, keyed by ledger key."""
        return {key: entry.current for key, entry in sorted(self._entries.items())}


def class_resource_reset(name: str) -> ResetType:
    """Reset period of a named class resource."""
    if name.lower() in SHORT_REST_CLASS_RESOURCES:
        return ResetType.SHORT_REST
    return ResetType.LONG_REST


def build_ledger(creature: Creature) -> ResourceLedger:
    """Create a full ledger for a creature.

    Args:
        creature: The creature definition.

    Returns:
        A ledger with every entry at its maximum.
    """
    ledger = ResourceLedger()
    ledger.register(ACTION, 1, ResetType.ROUND)
    ledger.register(BONUS_ACTION, 1, ResetType.ROUND)
    ledger.register(REACTION, 1, ResetType.ROUND)
    ledger.register(MOVEMENT, DEFAULT_MOVEMENT, ResetType.TURN)
    for level, count in sorted(creature.spell_slots.items()):
        ledger.register(ledger_key(ResourceType.SPELL_SLOT, str(level)), count, ResetType.LONG_REST)
    for name, count in sorted(creature.class_resources.items()):
        ledger.register(
            ledger_key(ResourceType.CLASS_RESOURCE, name),
            count,
            class_resource_reset(name),
        )
    dice_count, _ = creature.hit_dice_pool
    if dice_count:
        ledger.register(HIT_DICE, dice_count, ResetType.LONG_REST)
    for action in creature.all_actions:
        limit = action.freq.usage_limit
        if limit is not None:
            uses, period = limit
            ledger.register(usage_key(action.id), uses, period)
    for trigger in creature.triggers:
        if trigger.uses_per_encounter is not None:
            ledger.register(
                reaction_usage_key(trigger.id),
                trigger.uses_per_encounter,
                ResetType.ENCOUNTER,
            )
    return ledger


def effective_costs(action: ActionBase) -> list[DiscreteCost | VariableCost]:
    """Declared costs plus the implicit usage-counter charge.

    Args:
        action: The action being paid for.

    Returns:
        Costs in payment order.
    """
    costs: list[DiscreteCost | VariableCost] = list(action.cost)
    if action.freq.usage_limit is not None:
        costs.append(DiscreteCost(resource=ResourceType.ACTION_USAGE, resource_key=action.id))
    return costs


def requirement_met(ledger: ResourceLedger, requirement: ResourceAvailableRequirement) -> bool:
    """Check a resource-availability requirement against a ledger."""
    key = ledger_key(requirement.resource, requirement.resource_key)
    return ledger.amount(key) >= requirement.amount


__all__ = [
    "ACTION",
    "BONUS_ACTION",
    "REACTION",
    "MOVEMENT",
    "HIT_DICE",
    "ledger_key",
    "usage_key",
    "reaction_usage_cost",
    "reaction_usage_key",
    "LedgerEntry",
    "Charge",
    "ResourceLedger",
    "class_resource_reset",
    "build_ledger",
    "effective_costs",
    "requirement_met",
]
