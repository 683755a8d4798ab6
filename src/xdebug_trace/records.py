"""Entry/exit records and the tab-delimited line parser."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import ClassVar

from .exceptions import MalformedDataLine

logger = logging.getLogger(__name__)

ENTRY_FIELDS = 10
EXIT_FIELDS = 5

EVAL_SUFFIX = "eval()'d code"
_EVAL_RE = re.compile(r"(.*)\(([0-9]+)\) : eval\(\)'d code$")

_INT_RE = re.compile(r"\s*[+-]?\d+")
_FLOAT_RE = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _to_int(text: str) -> int:
    """Leading integer of `text`, 0 when there is none."""
    match = _INT_RE.match(text)
    return int(match.group()) if match else 0


def _to_float(text: str) -> float:
    """Leading number of `text`, 0.0 when there is none."""
    match = _FLOAT_RE.match(text)
    return float(match.group()) if match else 0.0


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class ExitRecord:
    """A function return. Correlated to its entry by `id`."""

    is_entry: ClassVar[bool] = False

    level: int
    id: int
    time: float         # seconds since trace start
    memory: float       # bytes


@dataclass
class EntryRecord:
    """
    A function call.

    The exit fields stay None until `pair()` sees the matching exit. A call
    still running when its segment closes keeps `exited=False`.
    """

    is_entry: ClassVar[bool] = True

    level: int
    id: int
    time: float
    memory: float
    function: str
    is_internal: bool
    include_file: str | None
    filename: str
    line: int
    eval_info: str = ""

    exited: bool = False
    exit_time: float | None = None
    exit_memory: float | None = None
    delta_time: float | None = None
    delta_memory: float | None = None

    def pair(self, exit_record: ExitRecord) -> None:
        """Complete this call with its exit record."""
        self.exited = True
        self.exit_time = exit_record.time
        self.exit_memory = exit_record.memory
        self.delta_time = exit_record.time - self.time
        self.delta_memory = exit_record.memory - self.memory


# ---------------------------------------------------------------------------
# Line parser
# ---------------------------------------------------------------------------

def parse_line(line: str) -> EntryRecord | ExitRecord | None:
    """
    Parse one data line of a computerized trace.

    Returns None for the summary line written just before TRACE END.
    Raises MalformedDataLine for any other unexpected shape.
    """
    cols = line.rstrip("\r\n").split("\t")

    if len(cols) == EXIT_FIELDS:
        if not cols[0]:
            return None
        if _to_int(cols[2]) == 0:
            raise MalformedDataLine(line, "entry marker on a 5-field line")
        return ExitRecord(
            level=_to_int(cols[0]),
            id=_to_int(cols[1]),
            time=_to_float(cols[3]),
            memory=_to_float(cols[4]),
        )

    if len(cols) == ENTRY_FIELDS:
        if _to_int(cols[2]) != 0:
            raise MalformedDataLine(line, "exit marker on a 10-field line")
        record = EntryRecord(
            level=_to_int(cols[0]),
            id=_to_int(cols[1]),
            time=_to_float(cols[3]),
            memory=_to_float(cols[4]),
            function=cols[5],
            is_internal=_to_int(cols[6]) == 0,
            include_file=cols[7] or None,
            filename=cols[8],
            line=_to_int(cols[9]),
        )
        if record.filename.endswith(EVAL_SUFFIX):
            _resolve_eval(record)
        return record

    raise MalformedDataLine(line, f"{len(cols)} fields")


def _resolve_eval(record: EntryRecord) -> None:
    """Point an eval()'d call site back at the file and line doing the eval."""
    record.eval_info = f"- eval()'d code ({record.line})"
    match = _EVAL_RE.match(record.filename)
    if match is None:
        logger.debug("Unrecognized eval() call site: %r", record.filename)
        return
    record.filename = match.group(1)
    record.line = int(match.group(2))
