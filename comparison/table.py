"""Correlation Table - per-interval map from hash to first-seen timestamps."""

from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from .models import HashEntry, Source


class CorrelationTable:
    """
    Map of hash -> HashEntry for the current interval.

    Owned by the engine task; nothing else mutates it. Entries are never
    evicted one by one, the whole table is cleared at the interval boundary.
    """

    def __init__(self):
        self._entries: Dict[str, HashEntry] = {}

    def get(self, key: str) -> Optional[HashEntry]:
        return self._entries.get(key)

    def get_or_create(self, key: str) -> HashEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = HashEntry(key=key)
            self._entries[key] = entry
        return entry

    def set_if_unset(self, key: str, source: Source, timestamp: datetime) -> bool:
        """
        Record a first sighting, creating the entry if needed.

        Returns False if the source already had a timestamp for this key;
        the stored value is never overwritten.
        """
        return self.get_or_create(key).set_if_unset(source, timestamp)

    def snapshot(self) -> Mapping[str, HashEntry]:
        """Read-only copy of the table, detached from later mutation."""
        return MappingProxyType({key: replace(entry) for key, entry in self._entries.items()})

    def clear(self) -> None:
        self._entries = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
