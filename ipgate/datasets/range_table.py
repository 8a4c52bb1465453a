"""
Immutable range-keyed tables.

A RangeTable maps contiguous spans of address ordinals to a fixed set of
fields and answers point lookups by binary search.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Mapping, Optional

from ..validator import AddressFamily


@dataclass(frozen=True)
class RangeEntry:
    """One closed range [range_start, range_end] and its present fields."""
    range_start: int
    range_end: int
    fields: Mapping[str, Any] = field(default_factory=dict)

    def contains(self, ordinal: int) -> bool:
        return self.range_start <= ordinal <= self.range_end


class RangeTable:
    """Sorted, non-overlapping sequence of RangeEntry objects."""

    def __init__(self, entries: Iterable[RangeEntry] = (),
                 family: AddressFamily = AddressFamily.IPV4):
        """
        Build the table.

        Entries are sorted by range_start (stable, so load order breaks ties).
        An entry overlapping the previously kept one is dropped: the lowest
        start wins, and for equal starts the first loaded entry wins.

        Args:
            entries: Entries in load order
            family: Address family whose ordinals key this table
        """
        self.family = family
        self.overlaps_dropped = 0

        kept: List[RangeEntry] = []
        for entry in sorted(entries, key=lambda e: e.range_start):
            if kept and entry.range_start <= kept[-1].range_end:
                self.overlaps_dropped += 1
                continue
            kept.append(entry)

        self._entries = tuple(kept)

    def lookup(self, ordinal: int) -> Optional[RangeEntry]:
        """
        Find the entry whose closed range contains ordinal.

        Args:
            ordinal: Address ordinal of this table's family

        Returns:
            The matching RangeEntry, or None
        """
        low = 0
        high = len(self._entries) - 1
        while low <= high:
            mid = (low + high) // 2
            entry = self._entries[mid]
            if entry.contains(ordinal):
                return entry
            if ordinal < entry.range_start:
                high = mid - 1
            else:
                low = mid + 1
        return None

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RangeEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"RangeTable(family={self.family}, entries={len(self._entries)})"
