"""
xdebug-trace: XDebug execution traces as filtered call trees.

Public API surface (v1):

    Engine:       XDebugTrace, ParseResult
    Records:      EntryRecord, ExitRecord, Segment, parse_line
    Filters:      FilterAction, FilterFlag, FilterChain, Filter, DefaultFilter,
                  FunctionNameFilter, FunctionPatternFilter,
                  DeltaTimeFilter, DeltaMemoryFilter, parse_threshold
    Statistics:   Statistics, StatisticsEntry
    Config:       configure, load_config, load_config_file, build_trace
    Output:       build_report, TraceReport, render_text, format_time, time_class
    Errors:       XDebugTraceError and all subclasses, exception_to_error
"""

from __future__ import annotations

from .records import EntryRecord, ExitRecord, parse_line
from .filters import (
    FilterAction,
    FilterFlag,
    FilterChain,
    Filter,
    DefaultFilter,
    FunctionNameFilter,
    FunctionPatternFilter,
    DeltaTimeFilter,
    DeltaMemoryFilter,
    TIME_UNITS,
    MEMORY_UNITS,
    parse_threshold,
)
from .statistics import Statistics, StatisticsEntry
from .correlator import Segment, StackCorrelator
from .trace import XDebugTrace, ParseResult
from .exceptions import (
    XDebugTraceError,
    SourceUnavailable,
    EmptyOrPlaceholderSource,
    MalformedHeader,
    MalformedDataLine,
    ConfigParseError,
    ConfigValidationError,
    exception_to_error,
)
from ._config import configure
from .config import load_config, load_config_file, build_trace
from .report import TraceReport, build_report
from .render import render_text, format_time, time_class


__all__ = [
    # Engine
    "XDebugTrace",
    "ParseResult",
    # Records
    "EntryRecord",
    "ExitRecord",
    "Segment",
    "StackCorrelator",
    "parse_line",
    # Filters
    "FilterAction",
    "FilterFlag",
    "FilterChain",
    "Filter",
    "DefaultFilter",
    "FunctionNameFilter",
    "FunctionPatternFilter",
    "DeltaTimeFilter",
    "DeltaMemoryFilter",
    "TIME_UNITS",
    "MEMORY_UNITS",
    "parse_threshold",
    # Statistics
    "Statistics",
    "StatisticsEntry",
    # Configuration
    "configure",
    "load_config",
    "load_config_file",
    "build_trace",
    # Output
    "TraceReport",
    "build_report",
    "render_text",
    "format_time",
    "time_class",
    # Errors
    "XDebugTraceError",
    "SourceUnavailable",
    "EmptyOrPlaceholderSource",
    "MalformedHeader",
    "MalformedDataLine",
    "ConfigParseError",
    "ConfigValidationError",
    "exception_to_error",
]
