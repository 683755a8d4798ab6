"""Plain-text presentation of a parse result and the formatting helpers it uses."""

from __future__ import annotations

import ntpath
import posixpath

from .trace import ParseResult


def format_time(seconds: float | None, precision: int = 0) -> str:
    """Format a time interval in ns, µs, ms or s."""
    if seconds is None:
        return "?"
    units = "s"
    if seconds < 0.000001:
        units = "ns"
        seconds *= 1_000_000_000
    elif seconds < 0.001:
        units = "µs"
        seconds *= 1_000_000
    elif seconds < 1:
        units = "ms"
        seconds *= 1000
    value = round(seconds, precision)
    if precision <= 0:
        value = int(value)
    return f"{value} {units}"


def time_class(seconds: float | None, slow: float | None = None, fast: float | None = None) -> str:
    """Classify an interval as timeFast, timeMedian or timeSlow."""
    slow = slow or 0.02     # 20ms
    fast = fast or 0.001    # 1ms
    if seconds is None:
        return "timeSlow"
    if seconds <= fast:
        return "timeFast"
    if seconds <= slow:
        return "timeMedian"
    return "timeSlow"


def format_bytes(size: float | None, precision: int = 2) -> str:
    if size is None:
        return "?"
    sign = "-" if size < 0 else ""
    size = abs(size)
    for unit in ("B", "kB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            break
        size /= 1024
    return f"{sign}{round(size, precision)} {unit}"


def basename(path: str) -> str:
    """Last path component, for both / and \\ separated paths."""
    return ntpath.basename(path) if "\\" in path else posixpath.basename(path)


def render_text(result: ParseResult, indent: str = "  ") -> str:
    """Render segments as indented call trees, followed by the statistics table."""
    lines: list[str] = []

    for segment in result.segments:
        header = f"Trace #{segment.index + 1}"
        if segment.title:
            header += f" {segment.title}"
        if segment.started_at:
            header += f" [{segment.started_at}]"
        lines.append(header)

        if not segment.records:
            lines.append(f"{indent}(no calls)")
        for record in segment:
            location = f"{basename(record.filename)}:{record.line}"
            if record.eval_info:
                location += f" {record.eval_info}"
            lines.append(
                f"{indent * (segment.indent_of(record) + 1)}{record.function}"
                f"  {format_time(record.delta_time)}"
                f"  {format_bytes(record.delta_memory)}"
                f"  {location}"
            )
        lines.append("")

    if result.statistics is not None:
        lines.append("Statistics")
        lines.append(f"{indent}{'count':>7}  {'total':>8}  {'average':>8}  function")
        for entry in result.statistics:
            lines.append(
                f"{indent}{entry.count:>7}  {format_time(entry.delta_time):>8}"
                f"  {format_time(entry.average_time):>8}  {entry.function}"
            )
        lines.append("")

    lines.append(f"Parsed in {format_time(result.parsing_time, 1)}")
    return "\n".join(lines)
