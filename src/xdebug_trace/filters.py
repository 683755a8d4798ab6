"""
Filter chains deciding which trace records are kept.

A filter is any callable `(record, is_entry, trace) -> int | None`. The
return value is a bitmask of FilterAction; None or 0 passes the record on
to the next filter. Exit filters receive the paired entry record, so the
delta fields are available to them.
"""

from __future__ import annotations

import abc
import enum
import re
from typing import Any, Callable, Literal

from .records import EntryRecord

FilterCallback = Callable[[EntryRecord, bool, Any], "int | None"]


class FilterAction(enum.IntFlag):
    """Bits a filter callback returns."""

    STOP = 0x01     # don't call the following filters
    SKIP = 0x02     # discard the record


class FilterFlag(enum.IntFlag):
    """Bits selecting how add_filter_callback() registers a filter."""

    APPEND_ENTRY = 0x01
    APPEND_EXIT = 0x02
    APPEND = 0x03
    ENTRY = 0x04
    EXIT = 0x08
    BOTH = 0x0C
    REPLACE_ENTRY = 0x10
    REPLACE_EXIT = 0x20
    REPLACE = 0x30


class FilterChain:
    """Ordered entry and exit filter lists."""

    def __init__(self) -> None:
        self.entry: list[FilterCallback] = []
        self.exit: list[FilterCallback] = []

    def add(self, callback: FilterCallback, flags: int = FilterFlag.ENTRY) -> None:
        """
        Register a filter.

        Without ENTRY or EXIT the filter goes to the entry chain. New filters
        are prepended (run first) unless the APPEND bit of the chain is set.
        A REPLACE bit empties the chain before inserting.
        """
        flags = FilterFlag(flags)
        if not flags & FilterFlag.BOTH:
            flags |= FilterFlag.ENTRY

        if flags & FilterFlag.ENTRY:
            self._insert(
                self.entry,
                callback,
                replace=bool(flags & FilterFlag.REPLACE_ENTRY),
                append=bool(flags & FilterFlag.APPEND_ENTRY),
            )
        if flags & FilterFlag.EXIT:
            self._insert(
                self.exit,
                callback,
                replace=bool(flags & FilterFlag.REPLACE_EXIT),
                append=bool(flags & FilterFlag.APPEND_EXIT),
            )

    def set(self, callback: FilterCallback, flags: int = FilterFlag.BOTH) -> None:
        """Replace the targeted chains (both unless flags pick one) with `callback`."""
        flags = FilterFlag(flags)
        if not flags & FilterFlag.BOTH:
            flags |= FilterFlag.BOTH
        self.add(callback, flags | FilterFlag.REPLACE)

    def clear(self) -> None:
        self.entry.clear()
        self.exit.clear()

    @staticmethod
    def _insert(
        chain: list[FilterCallback],
        callback: FilterCallback,
        replace: bool,
        append: bool,
    ) -> None:
        if replace:
            chain.clear()
        if append:
            chain.append(callback)
        else:
            chain.insert(0, callback)

    def run(
        self,
        kind: Literal["entry", "exit"],
        record: EntryRecord,
        is_entry: bool,
        trace: Any = None,
    ) -> bool:
        """Run one chain over `record`. Returns True to keep, False to discard."""
        chain = self.entry if kind == "entry" else self.exit
        result = 0
        for callback in chain:
            vote = int(callback(record, is_entry, trace) or 0)
            result |= vote
            if vote & FilterAction.STOP:
                break
        return not result & FilterAction.SKIP

    def reset(self) -> None:
        """Reset every stateful filter registered in either chain, once each."""
        seen: set[int] = set()
        for callback in self.entry + self.exit:
            if id(callback) in seen:
                continue
            seen.add(id(callback))
            reset = getattr(callback, "reset", None)
            if callable(reset):
                reset()


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

TIME_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "ms": 1e-3,
    "s": 1,
}

MEMORY_UNITS: dict[str, float] = {
    "B": 1,
    "kB": 1024,
    "MB": 1048576,
}

_THRESHOLD_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))\s*([A-Za-z]*)\s*$")


def parse_threshold(value: float | int | str, units: dict[str, float]) -> float:
    """
    Convert "15ms" or "20kB" style thresholds using `units`.

    Numbers, and strings without a unit, are taken as-is.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid threshold: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    match = _THRESHOLD_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid threshold: {value!r}")

    number, unit = match.groups()
    if not unit:
        return float(number)
    if unit not in units:
        raise ValueError(
            f"Unknown unit {unit!r} in threshold {value!r}, use one of {', '.join(units)}"
        )
    return float(number) * units[unit]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class Filter(metaclass=abc.ABCMeta):
    """Base class for filters carrying state between records."""

    def reset(self) -> None:
        """Called at every TRACE START."""

    @abc.abstractmethod
    def __call__(self, record: EntryRecord, is_entry: bool, trace: Any) -> int | None:
        """Vote on `record`; see FilterAction."""


class DefaultFilter(Filter):
    """
    Drops the usual noise: internal functions, the tracing panel's own calls,
    framework calls, closures and file inclusions. Each category is a toggle.
    """

    def __init__(
        self,
        skip_internals: bool = True,
        skip_own: bool = True,
        skip_framework: bool = True,
        skip_closures: bool = True,
        skip_includes: bool = True,
        framework_prefixes: tuple[str, ...] = (),
        own_prefixes: tuple[str, ...] = (),
        own_files: tuple[str, ...] = (),
    ) -> None:
        self.skip_internals = skip_internals
        self.skip_own = skip_own
        self.skip_framework = skip_framework
        self.skip_closures = skip_closures
        self.skip_includes = skip_includes
        self.framework_prefixes = tuple(framework_prefixes)
        self.own_prefixes = tuple(own_prefixes)
        self.own_files = tuple(own_files)

    def __call__(self, record: EntryRecord, is_entry: bool, trace: Any) -> int | None:
        if self.skip_internals and record.is_internal:
            return FilterAction.SKIP

        if self.skip_own and (
            record.filename in self.own_files
            or record.function.startswith(self.own_prefixes)
        ):
            return FilterAction.SKIP

        if self.skip_framework and record.function.startswith(self.framework_prefixes):
            return FilterAction.SKIP

        if self.skip_closures and (
            record.function == "callback" or record.function.startswith("{closure")
        ):
            return FilterAction.SKIP

        if self.skip_includes and record.include_file is not None:
            return FilterAction.SKIP

        return None


class FunctionNameFilter(Filter):
    """
    Keeps only calls of one function.

    In deep mode every call nested inside a matching call is kept too,
    internal ones only with `show_internals`.
    """

    def __init__(self, name: str, deep: bool = False, show_internals: bool = False) -> None:
        self.name = name
        self.deep = deep
        self.show_internals = show_internals
        self._open = 0

    def matches(self, record: EntryRecord) -> bool:
        return record.function == self.name

    def reset(self) -> None:
        self._open = 0

    def __call__(self, record: EntryRecord, is_entry: bool, trace: Any) -> int | None:
        if self.matches(record):
            if self.deep:
                self._open = self._open + 1 if is_entry else max(0, self._open - 1)
            return None

        if self.deep and self._open and (self.show_internals or not record.is_internal):
            return None

        return FilterAction.SKIP


class FunctionPatternFilter(FunctionNameFilter):
    """FunctionNameFilter matching function names by regular expression search."""

    def __init__(
        self,
        pattern: str | re.Pattern[str],
        deep: bool = False,
        show_internals: bool = False,
    ) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        super().__init__(self.pattern.pattern, deep, show_internals)

    def matches(self, record: EntryRecord) -> bool:
        return self.pattern.search(record.function) is not None


class _DeltaFilter(Filter):
    attribute = ""
    units: dict[str, float] = {}

    def __init__(self, threshold: float | int | str, maximum: bool = False) -> None:
        self.threshold = parse_threshold(threshold, self.units)
        self.maximum = maximum

    def __call__(self, record: EntryRecord, is_entry: bool, trace: Any) -> int | None:
        delta = getattr(record, self.attribute)
        if delta is None:
            # still running when the segment closed
            return FilterAction.SKIP
        if self.maximum:
            return FilterAction.SKIP if delta > self.threshold else None
        return FilterAction.SKIP if delta < self.threshold else None


class DeltaTimeFilter(_DeltaFilter):
    """Keeps calls that ran at least (or, with `maximum`, at most) `threshold` seconds."""

    attribute = "delta_time"
    units = TIME_UNITS


class DeltaMemoryFilter(_DeltaFilter):
    """Keeps calls whose memory delta is at least (or at most) `threshold` bytes."""

    attribute = "delta_memory"
    units = MEMORY_UNITS
