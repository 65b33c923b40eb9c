"""Append-only event log with subscriptions.

Both the Reaction Manager and external replay consumers observe the
encounter through this bus. Subscribers are called synchronously in
subscription order and must not mutate combat state from the callback;
the Reaction Manager only queues events there and acts on them later at
a resolver checkpoint.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from encounter_sim.models.enums import EventKind
from encounter_sim.models.events import Event


Subscriber = Callable[[Event], None]


class EventBus:
    """Event log for one encounter.

    Retention bounds how many events are kept: None keeps every event,
    zero keeps none (subscribers still see them), and any other value
    keeps the newest events and drops the oldest.

    Example:
        >>> bus = EventBus(retention=None)
        >>> _ = bus.publish(EventKind.ROUND_STARTED, round=1)
        >>> [e.kind for e in bus.query(kinds={EventKind.ROUND_STARTED})]
        [<EventKind.ROUND_STARTED: 'round_started'>]
    """

    def __init__(self, *, retention: int | None = None) -> None:
        self._events: deque[Event] = deque(maxlen=retention)
        self._subscribers: list[tuple[frozenset[EventKind] | None, Subscriber]] = []
        self._emitted = 0

    @property
    def emitted(self) -> int:
        """Number of events published so far."""
        return self._emitted

    @property
    def dropped(self) -> int:
        """Number of published events no longer retained."""
        return self._emitted - len(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def subscribe(
        self,
        handler: Subscriber,
        kinds: Iterable[EventKind] | None = None,
    ) -> Callable[[], None]:
        """Register a handler for published events.

        Args:
            handler: Called with each matching event.
            kinds: Event kinds to receive; None receives everything.

        Returns:
            A function that removes the subscription.
        """
        entry = (frozenset(kinds) if kinds is not None else None, handler)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, kind: EventKind, **fields: Any) -> Event:
        """Append an event and notify subscribers.

        Args:
            kind: Event kind.
            **fields: Remaining Event fields.

        Returns:
            The published event.
        """
        event = Event(sequence=self._emitted, kind=kind, **fields)
        self._emitted += 1
        self._events.append(event)
        for kinds, handler in list(self._subscribers):
            if kinds is None or kind in kinds:
                handler(event)
        return event

    def events(self) -> list[Event]:
        """Retained events, oldest first."""
        return list(self._events)

    def query(
        self,
        *,
        kinds: Iterable[EventKind] | None = None,
        actor_id: str | None = None,
        target_id: str | None = None,
        predicate: Callable[[Event], bool] | None = None,
    ) -> list[Event]:
        """Filter the retained events.

        Args:
            kinds: Keep only these kinds.
            actor_id: Keep only events caused by this combatant.
            target_id: Keep only events affecting this combatant.
            predicate: Extra filter.

        Returns:
            Matching events, oldest first.
        """
        wanted = frozenset(kinds) if kinds is not None else None
        return [
            event
            for event in self._events
            if (wanted is None or event.kind in wanted)
            and (actor_id is None or event.actor_id == actor_id)
            and (target_id is None or event.target_id == target_id)
            and (predicate is None or predicate(event))
        ]


__all__ = ["Subscriber", "EventBus"]
