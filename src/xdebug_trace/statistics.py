"""Per-function call statistics over retained, completed calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .records import EntryRecord

SortKey = Literal["count", "total_time", "average_time"]

SORT_KEYS: dict[str, str] = {
    "count": "count",
    "total_time": "delta_time",
    "average_time": "average_time",
}


@dataclass
class StatisticsEntry:
    function: str
    count: int = 0
    delta_time: float = 0.0                 # total over all calls
    average_time: float | None = None       # set by Statistics.finalize()


class Statistics:
    """
    Accumulates count and total time per function name.

    One table covers every segment of a parse. `finalize()` may run after
    each segment; it recomputes averages and the order from the totals.
    """

    def __init__(self, sort_by: SortKey = "average_time") -> None:
        if sort_by not in SORT_KEYS:
            raise ValueError(
                f"Unknown statistics sort key {sort_by!r}, use one of {', '.join(SORT_KEYS)}"
            )
        self.sort_by = sort_by
        self._entries: dict[str, StatisticsEntry] = {}
        self._sorted: list[StatisticsEntry] = []

    def add(self, record: EntryRecord) -> None:
        """Fold one completed call in."""
        entry = self._entries.get(record.function)
        if entry is None:
            entry = self._entries[record.function] = StatisticsEntry(record.function)
        entry.count += 1
        entry.delta_time += record.delta_time or 0.0

    def finalize(self) -> list[StatisticsEntry]:
        """Compute averages and return entries sorted descending by the sort key."""
        for entry in self._entries.values():
            entry.average_time = entry.delta_time / entry.count
        attribute = SORT_KEYS[self.sort_by]
        # sorted() is stable with reverse=True: ties keep first-seen order
        self._sorted = sorted(
            self._entries.values(),
            key=lambda entry: getattr(entry, attribute),
            reverse=True,
        )
        return list(self._sorted)

    @property
    def entries(self) -> list[StatisticsEntry]:
        """Entries in the order of the last finalize()."""
        return list(self._sorted)

    def __len__(self) -> int:
        return len(self._entries)
