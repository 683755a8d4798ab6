"""xdebug-trace exception hierarchy and error translation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class XDebugTraceError(Exception):
    """Base class for all xdebug-trace errors."""


class SourceUnavailable(XDebugTraceError):
    """Raised when the trace stream cannot be opened, read or decoded."""

    def __init__(
        self,
        path: str | None,
        os_error: OSError | None = None,
        reason: str | None = None,
    ) -> None:
        self.path = path
        self.os_error = os_error
        self.reason = reason
        message = f"Cannot open trace file '{path}'" if path else "Cannot read trace stream"
        if os_error is not None:
            message += f": {os_error.strerror or os_error}"
        elif reason is not None:
            message += f": {reason}"
        super().__init__(message)


class EmptyOrPlaceholderSource(XDebugTraceError):
    """Raised when the trace holds nothing beyond the placeholder written before tracing."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        name = f"'{path}'" if path else "stream"
        super().__init__(f"Trace file {name} is empty")


class MalformedHeader(XDebugTraceError):
    """Raised when the version or file format header line is missing or unrecognized."""

    def __init__(self, line_number: int, line: str, expected: str) -> None:
        self.line_number = line_number
        self.line = line
        self.expected = expected
        what = "version" if line_number == 1 else "format"
        super().__init__(
            f"Trace file {what} line mismatch: expected {expected!r}, got {line!r}"
        )


class MalformedDataLine(XDebugTraceError):
    """
    Raised by the line parser for a data line of unexpected shape.

    Never escapes a parse: the driver logs the line and continues.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed trace line ({reason}): {line!r}")


@dataclass
class ConfigParseError(XDebugTraceError):
    """YAML configuration could not be parsed."""
    raw_error: str

    def __post_init__(self) -> None:
        super().__init__(self.raw_error)


@dataclass
class ConfigValidationError(XDebugTraceError):
    """Structured configuration validation failure."""
    path: str           # dot-notation path, e.g. "trace.delta_time.threshold"
    message: str
    suggestion: str

    def __post_init__(self) -> None:
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def exception_to_error(exc: Exception) -> dict[str, Any]:
    """
    Single translation point. Maps any exception to a structured error dict
    a caller can render in place of the call tree.
    Never raises. Never exposes internal stack traces.
    """
    if isinstance(exc, SourceUnavailable):
        error: dict[str, Any] = {
            "success": False,
            "error_type": "source_unavailable",
            "message": str(exc),
            "path": exc.path,
        }
        if exc.os_error is not None:
            error["os_error"] = {
                "errno": exc.os_error.errno,
                "strerror": exc.os_error.strerror,
                "filename": exc.os_error.filename,
            }
        elif exc.reason is not None:
            error["reason"] = exc.reason
        return error
    if isinstance(exc, EmptyOrPlaceholderSource):
        return {
            "success": False,
            "error_type": "empty_source",
            "message": str(exc),
            "path": exc.path,
        }
    if isinstance(exc, MalformedHeader):
        return {
            "success": False,
            "error_type": "malformed_header",
            "message": str(exc),
            "line_number": exc.line_number,
        }
    if isinstance(exc, ConfigParseError):
        return {
            "success": False,
            "error_type": "config_parse_error",
            "message": f"YAML syntax error: {exc.raw_error}",
            "suggestion": "Check YAML syntax: indentation, colons, quoting.",
        }
    if isinstance(exc, ConfigValidationError):
        return {
            "success": False,
            "error_type": "config_validation_error",
            "path": exc.path,
            "message": exc.message,
            "suggestion": exc.suggestion,
        }
    if isinstance(exc, XDebugTraceError):
        return {
            "success": False,
            "error_type": "trace_error",
            "message": str(exc),
        }
    return {
        "success": False,
        "error_type": "internal_error",
        "message": "An unexpected error occurred.",
    }
