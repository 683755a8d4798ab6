"""The XDebugTrace engine: filter configuration plus one parse per call."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import IO, Sequence

from ._config import get_config
from .correlator import Segment, StackCorrelator
from .exceptions import SourceUnavailable
from .filters import (
    DefaultFilter,
    DeltaMemoryFilter,
    DeltaTimeFilter,
    FilterCallback,
    FilterChain,
    FilterFlag,
    FunctionNameFilter,
    FunctionPatternFilter,
)
from .parser import drive, read_header
from .records import EntryRecord
from .statistics import SORT_KEYS, SortKey, Statistics, StatisticsEntry

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Everything one parse produced. Owned by the caller."""

    segments: list[Segment]
    statistics: list[StatisticsEntry] | None = None     # None when statistics are off
    malformed_lines: int = 0
    parsing_time: float = 0.0                           # seconds
    source: str | None = None

    @property
    def records(self) -> list[EntryRecord]:
        """All retained calls of all segments, in order."""
        return [record for segment in self.segments for record in segment]


class XDebugTrace:
    """
    Parses computerized XDebug traces into filtered call trees.

    The engine keeps only configuration between parses: filter chains,
    the default filter toggles and the statistics switch. Each parse()
    builds its own segments and statistics.

        trace = XDebugTrace(statistics=True)
        trace.trace_function("App\\Model::load", deep=True)
        result = trace.parse_file("/tmp/xdebug_trace.xt")
    """

    def __init__(
        self,
        skip_internals: bool = True,
        statistics: bool = False,
        sort_by: SortKey = "average_time",
        default_filter: bool = True,
        line_length: int | None = None,
    ) -> None:
        config = get_config()
        self.line_length: int = line_length or config["line_length"]
        self.placeholder: str = config["placeholder"]
        self.default_filter = DefaultFilter(
            skip_internals=skip_internals,
            framework_prefixes=config["framework_prefixes"],
            own_prefixes=config["own_prefixes"],
            own_files=config["own_files"],
        )
        self.filters = FilterChain()
        if default_filter:
            self.filters.add(self.default_filter)

        self.statistics_enabled = False
        self.sort_by: SortKey = "average_time"
        self.enable_statistics(statistics, sort_by)

    # ---------------------------------------------------------------------------
    # Configuration
    # ---------------------------------------------------------------------------

    def skip_internals(self, skip: bool = True) -> None:
        """Toggle dropping of internal functions by the default filter."""
        self.default_filter.skip_internals = skip

    def enable_statistics(self, enable: bool = True, sort_by: SortKey = "average_time") -> None:
        if sort_by not in SORT_KEYS:
            raise ValueError(f"Unknown statistics sort key {sort_by!r}")
        self.statistics_enabled = enable
        self.sort_by = sort_by

    def add_filter_callback(self, callback: FilterCallback, flags: int = FilterFlag.ENTRY) -> None:
        """Register a filter; see FilterFlag for the flags."""
        self.filters.add(callback, flags)

    def set_filter_callback(self, callback: FilterCallback, flags: int = FilterFlag.BOTH) -> None:
        """Register a filter replacing all others in the targeted chains."""
        self.filters.set(callback, flags)

    def trace_all(self) -> None:
        """Drop every filter, the default one included, and keep every record."""
        self.filters.clear()

    def trace_function(self, name: str, deep: bool = False, show_internals: bool = False) -> None:
        """Keep only calls of `name` and, with `deep`, everything they call."""
        self.set_filter_callback(FunctionNameFilter(name, deep, show_internals), FilterFlag.BOTH)

    def trace_function_re(self, pattern: str, deep: bool = False, show_internals: bool = False) -> None:
        """Like trace_function() for function names matching the regular expression."""
        self.set_filter_callback(FunctionPatternFilter(pattern, deep, show_internals), FilterFlag.BOTH)

    def trace_delta_time(self, threshold: float | str, maximum: bool = False) -> None:
        """Keep calls running at least `threshold` ("15ms", 0.015), or at most with `maximum`."""
        self.set_filter_callback(DeltaTimeFilter(threshold, maximum), FilterFlag.EXIT)

    def trace_delta_memory(self, threshold: float | str, maximum: bool = False) -> None:
        """Keep calls changing memory by at least `threshold` ("20kB", 20480), or at most."""
        self.set_filter_callback(DeltaMemoryFilter(threshold, maximum), FilterFlag.EXIT)

    # ---------------------------------------------------------------------------
    # Parsing
    # ---------------------------------------------------------------------------

    def parse(
        self,
        stream: IO,
        titles: Sequence[str] | None = None,
        source: str | None = None,
    ) -> ParseResult:
        """
        Parse one trace stream.

        Raises EmptyOrPlaceholderSource or MalformedHeader before any data
        line is read, SourceUnavailable when reading or decoding fails.
        The stream is not closed.
        """
        started = time.monotonic()
        statistics = Statistics(self.sort_by) if self.statistics_enabled else None
        correlator = StackCorrelator(self.filters, statistics, self)

        try:
            read_header(stream, self.line_length, self.placeholder, source)
            malformed = drive(stream, correlator, self.line_length, titles)
        except OSError as exc:
            raise SourceUnavailable(source, exc) from exc
        except UnicodeDecodeError as exc:
            # a text stream opened without errors="replace"
            raise SourceUnavailable(source, reason=str(exc)) from exc

        if statistics is not None:
            statistics.finalize()

        result = ParseResult(
            segments=correlator.segments,
            statistics=statistics.entries if statistics is not None else None,
            malformed_lines=malformed,
            parsing_time=time.monotonic() - started,
            source=source,
        )
        logger.debug(
            "Parsed %s: %d segments, %d calls, %d malformed lines",
            source or "stream",
            len(result.segments),
            len(result.records),
            malformed,
        )
        return result

    def parse_file(self, path: str | os.PathLike, titles: Sequence[str] | None = None) -> ParseResult:
        """Open `path` and parse it. The file is closed on every path out."""
        path = os.fspath(path)
        try:
            f = open(path, encoding="utf-8", errors="replace")
        except OSError as exc:
            raise SourceUnavailable(path, exc) from exc
        with f:
            return self.parse(f, titles=titles, source=path)
