"""Bounded cache of resolved spell templates.

Keys are ``(action id, template name, sorted overrides)``, an unbounded
space when users edit templates, so the cache keeps at most ``capacity``
entries and evicts in insertion order. Entries are tagged with the engine
version; switching versions clears the cache.
"""

from __future__ import annotations

from collections import OrderedDict

from encounter_sim.core.constants import ENGINE_VERSION
from encounter_sim.core.logging import get_logger
from encounter_sim.models.actions import ResolvedAction, TemplateAction


logger = get_logger(__name__)

TemplateKey = tuple[str, str, tuple[tuple[str, str], ...]]


def template_key(action: TemplateAction) -> TemplateKey:
    """Cache key of a template action."""
    options = action.template_options
    return (action.id, options.template_name.value, options.overrides())


class TemplateCache:
    """Insertion-ordered bounded map of resolved templates.

    Example:
        >>> cache = TemplateCache(capacity=2)
        >>> cache.get(("bless-1", "bless", ())) is None
        True
    """

    def __init__(self, capacity: int = 1000, *, version: str = ENGINE_VERSION) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries.
            version: Engine version the entries belong to.
        """
        self.capacity = capacity
        self.version = version
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self._entries: OrderedDict[TemplateKey, ResolvedAction] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: TemplateKey) -> ResolvedAction | None:
        """Look up a resolved template, counting hits and misses."""
        resolved = self._entries.get(key)
        if resolved is None:
            self.misses += 1
        else:
            self.hits += 1
        return resolved

    def put(self, key: TemplateKey, resolved: ResolvedAction) -> None:
        """Insert an entry, evicting the oldest ones beyond capacity."""
        self._entries[key] = resolved
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)
            self.evictions += 1

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def ensure_version(self, version: str) -> None:
        """Clear the cache if its entries belong to another engine version."""
        if version != self.version:
            logger.info(
                "Template cache version changed, clearing",
                old_version=self.version,
                new_version=version,
                entries=len(self._entries),
            )
            self._entries.clear()
            self.version = version


__all__ = ["TemplateKey", "template_key", "TemplateCache"]
