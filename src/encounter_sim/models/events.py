"""Event records emitted on the encounter bus.

Events are the only channel through which replay consumers and reaction
logic observe state changes. Every HP change is exactly one event, so a
full event log replayed against the ``ENCOUNTER_STARTED`` snapshot
reproduces the final hit points.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from encounter_sim.models.enums import EventKind


class Event(BaseModel):
    """An immutable record of one state transition.

    Attributes:
        sequence: Position in the encounter's emission order, from 0.
        kind: Event kind.
        round: Round number (0 before the first round).
        turn: Global turn counter.
        actor_id: Combatant that caused the event.
        target_id: Combatant affected by the event.
        action_id: Action being resolved, if any.
        amount: Numeric payload (damage, healing, resource amount).
        resource: Ledger key for resource events.
        detail: Kind-specific extra data.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sequence: int = Field(ge=0)
    kind: EventKind
    round: int = Field(default=0, ge=0)
    turn: int = Field(default=0, ge=0)
    actor_id: str | None = None
    target_id: str | None = None
    action_id: str | None = None
    amount: float | None = None
    resource: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


def reconstruct_hp(events: Iterable[Event]) -> dict[str, float]:
    """Replay HP changes against the encounter's starting snapshot.

    Args:
        events: A complete event log for one encounter.

    Returns:
        Mapping of combatant id to hit points after the last event.

    Raises:
        ValueError: If the log does not start with ENCOUNTER_STARTED.
    """
    hp: dict[str, float] | None = None
    for event in events:
        if event.kind is EventKind.ENCOUNTER_STARTED:
            snapshot = event.detail.get("combatants", {})
            hp = {cid: float(state["hp"]) for cid, state in snapshot.items()}
            continue
        if hp is None:
            raise ValueError("event log does not start with encounter_started")
        if event.kind is EventKind.DAMAGE_TAKEN and event.target_id is not None:
            hp[event.target_id] -= event.amount or 0.0
        elif event.kind is EventKind.HEALING_APPLIED and event.target_id is not None:
            hp[event.target_id] += event.amount or 0.0
    if hp is None:
        raise ValueError("event log does not start with encounter_started")
    return hp


__all__ = ["Event", "reconstruct_hp"]
