"""Pairs exit records with their entries and decides what each segment keeps."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from .filters import FilterChain
from .records import EntryRecord, ExitRecord
from .statistics import Statistics

logger = logging.getLogger(__name__)


@dataclass
class Segment:
    """One TRACE START ... TRACE END span."""

    index: int
    title: str | None = None
    started_at: str | None = None       # timestamp from the TRACE START line
    ended_at: str | None = None
    records: dict[int, EntryRecord] = field(default_factory=dict)   # id -> call, in entry order
    indents: dict[int, int] = field(default_factory=dict)           # raw level -> rank, after close
    closed: bool = False

    def indent_of(self, record: EntryRecord) -> int:
        return self.indents.get(record.level, 0)

    def __iter__(self):
        return iter(self.records.values())

    def __len__(self) -> int:
        return len(self.records)


class StackCorrelator:
    """
    Holds the open segment while a trace is read.

    Entry records pass the entry chain and are stored by id. Exit records
    complete their stored entry and pass the exit chain, which may still drop
    the call. At most one segment is open at a time.
    """

    def __init__(
        self,
        filters: FilterChain,
        statistics: Statistics | None = None,
        trace: Any = None,
    ) -> None:
        self.filters = filters
        self.statistics = statistics
        self.trace = trace
        self.segments: list[Segment] = []
        self._current: Segment | None = None
        self._levels: Counter[int] = Counter()

    # ---------------------------------------------------------------------------
    # Segment lifecycle
    # ---------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._current is not None

    def current_segment(self) -> Segment | None:
        return self._current

    def open_segment(self, title: str | None = None, started_at: str | None = None) -> Segment:
        """Start a new segment, closing the one still open."""
        if self._current is not None:
            logger.debug("TRACE START inside open segment %d, closing it", self._current.index)
            self.close_segment()

        segment = Segment(index=len(self.segments), title=title, started_at=started_at)
        self.segments.append(segment)
        self._current = segment
        self._levels = Counter()
        self.filters.reset()
        return segment

    def close_segment(self, ended_at: str | None = None) -> Segment | None:
        """
        Close the open segment: give unterminated calls a last pass through
        the exit chain in reverse entry order, compact indentation, finalize
        statistics.
        """
        segment = self._current
        if segment is None:
            return None

        # innermost first, the order real exits would have arrived in
        unterminated = [record for record in segment.records.values() if not record.exited]
        for record in reversed(unterminated):
            if not self.filters.run("exit", record, False, self.trace):
                self._discard(segment, record)

        levels = sorted(level for level, count in self._levels.items() if count > 0)
        segment.indents = {level: rank for rank, level in enumerate(levels)}
        segment.ended_at = ended_at
        segment.closed = True

        if self.statistics is not None:
            self.statistics.finalize()

        logger.debug("Closed segment %d with %d calls", segment.index, len(segment.records))
        self._current = None
        self._levels = Counter()
        return segment

    # ---------------------------------------------------------------------------
    # Records
    # ---------------------------------------------------------------------------

    def add_record(self, record: EntryRecord | ExitRecord) -> None:
        if self._current is None:
            return
        if isinstance(record, EntryRecord):
            self._add_entry(self._current, record)
        else:
            self._add_exit(self._current, record)

    def _add_entry(self, segment: Segment, record: EntryRecord) -> None:
        if not self.filters.run("entry", record, True, self.trace):
            return

        previous = segment.records.pop(record.id, None)
        if previous is not None:
            self._levels[previous.level] -= 1
        segment.records[record.id] = record
        self._levels[record.level] += 1

    def _add_exit(self, segment: Segment, record: ExitRecord) -> None:
        entry = segment.records.get(record.id)
        if entry is None or entry.exited:
            # filtered out on entry, or an id we never saw
            return

        entry.pair(record)
        if not self.filters.run("exit", entry, False, self.trace):
            self._discard(segment, entry)
        elif self.statistics is not None:
            self.statistics.add(entry)

    def _discard(self, segment: Segment, record: EntryRecord) -> None:
        del segment.records[record.id]
        self._levels[record.level] -= 1
