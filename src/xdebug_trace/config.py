"""Config file types, JSON Schema registry, parser, and engine builder for .xdebug-trace.yaml."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Literal

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from .exceptions import ConfigParseError, ConfigValidationError, SourceUnavailable
from .filters import MEMORY_UNITS, TIME_UNITS, parse_threshold
from .statistics import SortKey
from .trace import XDebugTrace


# ---------------------------------------------------------------------------
# Config dataclasses (frozen)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DefaultFilterConfig:
    enabled: bool = True
    skip_internals: bool = True
    skip_own: bool = True
    skip_framework: bool = True
    skip_closures: bool = True
    skip_includes: bool = True
    framework_prefixes: tuple[str, ...] | None = None   # None = global default
    own_prefixes: tuple[str, ...] | None = None
    own_files: tuple[str, ...] | None = None


@dataclass(frozen=True)
class StatisticsConfig:
    enabled: bool = False
    sort_by: SortKey = "average_time"


@dataclass(frozen=True)
class TraceModeConfig:
    mode: Literal["all", "function", "function_re", "delta_time", "delta_memory"]
    name: str | None = None             # function name or pattern
    deep: bool = False
    show_internals: bool = False
    threshold: float | None = None      # seconds or bytes, units resolved
    maximum: bool = False


@dataclass(frozen=True)
class TraceConfig:
    version: str
    line_length: int | None
    default_filter: DefaultFilterConfig
    statistics: StatisticsConfig
    trace: TraceModeConfig | None


# ---------------------------------------------------------------------------
# JSON Schema registry
# ---------------------------------------------------------------------------

_CONFIG_SCHEMA_V1: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["version"],
    "additionalProperties": False,
    "properties": {
        "version": {"type": "string", "const": "1"},
        "line_length": {"type": "integer", "minimum": 2},
        "default_filter": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "skip_internals": {"type": "boolean"},
                "skip_own": {"type": "boolean"},
                "skip_framework": {"type": "boolean"},
                "skip_closures": {"type": "boolean"},
                "skip_includes": {"type": "boolean"},
                "framework_prefixes": {"type": "array", "items": {"type": "string"}},
                "own_prefixes": {"type": "array", "items": {"type": "string"}},
                "own_files": {"type": "array", "items": {"type": "string"}},
            },
        },
        "statistics": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "sort_by": {"type": "string", "enum": ["count", "total_time", "average_time"]},
            },
        },
        "trace": {
            "type": "object",
            "minProperties": 1,
            "maxProperties": 1,
            "additionalProperties": False,
            "properties": {
                "all": {"type": "boolean", "const": True},
                "function": {"$ref": "#/$defs/FunctionDef"},
                "function_re": {"$ref": "#/$defs/PatternDef"},
                "delta_time": {"$ref": "#/$defs/DeltaDef"},
                "delta_memory": {"$ref": "#/$defs/DeltaDef"},
            },
        },
    },
    "$defs": {
        "FunctionDef": {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "deep": {"type": "boolean"},
                "show_internals": {"type": "boolean"},
            },
        },
        "PatternDef": {
            "type": "object",
            "required": ["pattern"],
            "additionalProperties": False,
            "properties": {
                "pattern": {"type": "string", "minLength": 1},
                "deep": {"type": "boolean"},
                "show_internals": {"type": "boolean"},
            },
        },
        "DeltaDef": {
            "type": "object",
            "required": ["threshold"],
            "additionalProperties": False,
            "properties": {
                "threshold": {"type": ["number", "string"]},
                "maximum": {"type": "boolean"},
            },
        },
    },
}

# Version registry
SCHEMAS: dict[str, dict] = {"1": _CONFIG_SCHEMA_V1}


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def load_config(raw_yaml: str) -> TraceConfig:
    """
    Parse raw YAML → JSON Schema validation → threshold resolution → TraceConfig.
    Raises ConfigParseError or ConfigValidationError.
    """
    doc = _parse_yaml(raw_yaml)
    version = str(doc.get("version", ""))
    schema = SCHEMAS.get(version)
    if schema is None:
        raise ConfigValidationError(
            path="version",
            message=f"Unknown config version: {version!r}",
            suggestion=f"Use version: \"{list(SCHEMAS.keys())[-1]}\"",
        )
    _validate_schema(doc, schema)
    return _build_config(doc)


def load_config_file(path: str | os.PathLike) -> TraceConfig:
    path = os.fspath(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = f.read()
    except OSError as exc:
        raise SourceUnavailable(path, exc) from exc
    return load_config(raw)


def build_trace(config: TraceConfig) -> XDebugTrace:
    """Create an engine configured by `config`."""
    df = config.default_filter
    trace = XDebugTrace(
        skip_internals=df.skip_internals,
        statistics=config.statistics.enabled,
        sort_by=config.statistics.sort_by,
        default_filter=df.enabled,
        line_length=config.line_length,
    )
    trace.default_filter.skip_own = df.skip_own
    trace.default_filter.skip_framework = df.skip_framework
    trace.default_filter.skip_closures = df.skip_closures
    trace.default_filter.skip_includes = df.skip_includes
    if df.framework_prefixes is not None:
        trace.default_filter.framework_prefixes = df.framework_prefixes
    if df.own_prefixes is not None:
        trace.default_filter.own_prefixes = df.own_prefixes
    if df.own_files is not None:
        trace.default_filter.own_files = df.own_files

    mode = config.trace
    if mode is None:
        return trace
    if mode.mode == "all":
        trace.trace_all()
    elif mode.mode == "function":
        trace.trace_function(mode.name, mode.deep, mode.show_internals)
    elif mode.mode == "function_re":
        trace.trace_function_re(mode.name, mode.deep, mode.show_internals)
    elif mode.mode == "delta_time":
        trace.trace_delta_time(mode.threshold, mode.maximum)
    elif mode.mode == "delta_memory":
        trace.trace_delta_memory(mode.threshold, mode.maximum)
    return trace


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------

def _parse_yaml(raw: str) -> dict[str, Any]:
    if not raw or not raw.strip():
        raise ConfigParseError(raw_error="Empty or blank YAML input")
    try:
        doc = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigParseError(raw_error=str(exc)) from exc
    if not isinstance(doc, dict):
        raise ConfigParseError(raw_error="Top level of the config must be a mapping")
    return doc


def _validate_schema(doc: dict, schema: dict) -> None:
    validator = Draft202012Validator(schema)
    errors = list(validator.iter_errors(doc))
    if not errors:
        return
    worst = best_match(errors)
    path = ".".join(str(p) for p in worst.path) if worst.path else "root"
    suggestion = _suggest_fix(worst)
    raise ConfigValidationError(path=path, message=worst.message, suggestion=suggestion)


def _build_config(doc: dict) -> TraceConfig:
    df = doc.get("default_filter") or {}
    st = doc.get("statistics") or {}
    prefixes = df.get("framework_prefixes")
    own_prefixes = df.get("own_prefixes")
    own_files = df.get("own_files")
    return TraceConfig(
        version=doc["version"],
        line_length=doc.get("line_length"),
        default_filter=DefaultFilterConfig(
            enabled=df.get("enabled", True),
            skip_internals=df.get("skip_internals", True),
            skip_own=df.get("skip_own", True),
            skip_framework=df.get("skip_framework", True),
            skip_closures=df.get("skip_closures", True),
            skip_includes=df.get("skip_includes", True),
            framework_prefixes=tuple(prefixes) if prefixes is not None else None,
            own_prefixes=tuple(own_prefixes) if own_prefixes is not None else None,
            own_files=tuple(own_files) if own_files is not None else None,
        ),
        statistics=StatisticsConfig(
            enabled=st.get("enabled", False),
            sort_by=st.get("sort_by", "average_time"),
        ),
        trace=_build_mode(doc["trace"]) if doc.get("trace") else None,
    )


def _build_mode(d: dict) -> TraceModeConfig:
    mode, body = next(iter(d.items()))
    if mode == "all":
        return TraceModeConfig(mode="all")
    if mode == "function_re":
        try:
            re.compile(body["pattern"])
        except re.error as exc:
            raise ConfigValidationError(
                path="trace.function_re.pattern",
                message=f"Invalid regular expression: {exc}",
                suggestion="Check the pattern syntax and escaping",
            ) from exc
    if mode in ("function", "function_re"):
        return TraceModeConfig(
            mode=mode,
            name=body["name"] if mode == "function" else body["pattern"],
            deep=body.get("deep", False),
            show_internals=body.get("show_internals", False),
        )
    units = TIME_UNITS if mode == "delta_time" else MEMORY_UNITS
    try:
        threshold = parse_threshold(body["threshold"], units)
    except ValueError as exc:
        raise ConfigValidationError(
            path=f"trace.{mode}.threshold",
            message=str(exc),
            suggestion=f"Use a number or a number suffixed by one of: {', '.join(units)}",
        ) from exc
    return TraceModeConfig(mode=mode, threshold=threshold, maximum=body.get("maximum", False))


def _suggest_fix(error: Any) -> str:
    if error.validator == "enum":
        return f"Allowed values: {error.validator_value}"
    if error.validator == "required":
        return f"Add required field(s): {error.validator_value}"
    if error.validator == "additionalProperties":
        return "Remove unrecognised fields"
    if error.validator == "const":
        return f"Expected: {error.validator_value!r}"
    if error.validator in ("minProperties", "maxProperties"):
        return "Pick exactly one trace mode"
    return "See config schema documentation"
