"""Bounded cache of survey results.

A survey record depends only on the scenario and the seed, so records
are keyed by ``(scenario hash, seed)`` and shared across batches of the
same scenario. Entries are tagged with the engine version; a version
change clears the cache.
"""

from __future__ import annotations

from collections import OrderedDict

from encounter_sim.core.constants import ENGINE_VERSION
from encounter_sim.core.logging import get_logger
from encounter_sim.models.results import LightweightRun


logger = get_logger(__name__)

RunKey = tuple[str, int]


class RunCache:
    """Insertion-ordered bounded map of survey records.

    A capacity of zero disables caching.

    Example:
        >>> cache = RunCache(capacity=100)
        >>> cache.get(("abc", 1)) is None
        True
    """

    def __init__(self, capacity: int = 5000, *, version: str = ENGINE_VERSION) -> None:
        self.capacity = capacity
        self.version = version
        self.hits = 0
        self.misses = 0
        self._runs: OrderedDict[RunKey, LightweightRun] = OrderedDict()

    def __len__(self) -> int:
        return len(self._runs)

    def get(self, key: RunKey) -> LightweightRun | None:
        """Look up a survey record."""
        run = self._runs.get(key)
        if run is None:
            self.misses += 1
        else:
            self.hits += 1
        return run

    def put(self, key: RunKey, run: LightweightRun) -> None:
        """Store a survey record, evicting the oldest beyond capacity."""
        if self.capacity <= 0:
            return
        self._runs[key] = run
        while len(self._runs) > self.capacity:
            self._runs.popitem(last=False)

    def clear(self) -> None:
        """Drop every record."""
        self._runs.clear()

    def ensure_version(self, version: str) -> None:
        """Clear the cache if its records belong to another engine version."""
        if version == self.version:
            return
        logger.info(
            "Run cache version changed, clearing",
            old_version=self.version,
            new_version=version,
            entries=len(self._runs),
        )
        self._runs.clear()
        self.version = version


__all__ = ["RunKey", "RunCache"]
