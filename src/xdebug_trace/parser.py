"""Reads a computerized XDebug trace stream and feeds a StackCorrelator."""

from __future__ import annotations

import logging
import re
from typing import IO, Iterator, Sequence

from .correlator import StackCorrelator
from .exceptions import EmptyOrPlaceholderSource, MalformedDataLine, MalformedHeader
from .records import parse_line

logger = logging.getLogger(__name__)

VERSION_PREFIX = "Version: 2."
FORMAT_PREFIX = "File format: 2"
TRACE_START = "TRACE START"
TRACE_END = "TRACE END"

_TIMESTAMP_RE = re.compile(r"\[([^\]]*)\]")


def _decode(line: str | bytes) -> str:
    if isinstance(line, bytes):
        return line.decode("utf-8", errors="replace")
    return line


def _ends_line(line: str | bytes) -> bool:
    return _decode(line[-1:]) in ("\n", "\r")


def iter_lines(stream: IO, line_length: int) -> Iterator[str]:
    """
    Yield the lines of `stream`, each at most `line_length - 1` characters
    before the line break.

    The remainder of a longer line is dropped.
    """
    limit = line_length - 1
    while True:
        line = stream.readline(limit)
        if not line:
            return
        if len(line) == limit and not _ends_line(line):
            rest = stream.readline(limit)
            if not _decode(rest).strip("\r\n"):
                # exactly `limit` characters, only the line break or EOF was left
                line += rest
            else:
                while rest and not _ends_line(rest):
                    rest = stream.readline(limit)
                logger.debug("Truncated trace line longer than %d characters", limit)
        yield _decode(line)


def read_header(
    stream: IO,
    line_length: int,
    placeholder: str = "",
    path: str | None = None,
) -> None:
    """
    Check the version and file format lines.

    Raises EmptyOrPlaceholderSource when the stream holds nothing beyond the
    placeholder and MalformedHeader when either header line is unrecognized.
    """
    lines = iter_lines(stream, line_length)

    first = next(lines, "")
    if not first:
        raise EmptyOrPlaceholderSource(path)
    if placeholder and first.rstrip("\r\n") == placeholder.rstrip("\r\n"):
        if not next(lines, ""):
            raise EmptyOrPlaceholderSource(path)
    if not first.startswith(VERSION_PREFIX):
        raise MalformedHeader(1, first.rstrip("\r\n"), VERSION_PREFIX)

    second = next(lines, "")
    if not second.startswith(FORMAT_PREFIX):
        raise MalformedHeader(2, second.rstrip("\r\n"), FORMAT_PREFIX)


def _timestamp(line: str) -> str | None:
    match = _TIMESTAMP_RE.search(line)
    return match.group(1) if match else None


def drive(
    stream: IO,
    correlator: StackCorrelator,
    line_length: int,
    titles: Sequence[str] | None = None,
) -> int:
    """
    Feed the trace body to `correlator`. Returns the number of malformed lines
    skipped. A segment still open at the end of the stream is closed.
    """
    titles = titles or ()
    malformed = 0

    for line in iter_lines(stream, line_length):
        if line.startswith(TRACE_START):
            index = len(correlator.segments)
            title = titles[index] if index < len(titles) else None
            correlator.open_segment(title=title, started_at=_timestamp(line))

        elif line.startswith(TRACE_END):
            correlator.close_segment(ended_at=_timestamp(line))

        elif correlator.is_open:
            if not line.strip():
                continue
            try:
                record = parse_line(line)
            except MalformedDataLine as exc:
                logger.warning("%s", exc)
                malformed += 1
                continue
            if record is not None:
                correlator.add_record(record)

    if correlator.is_open:
        logger.debug("Trace ended without TRACE END, closing last segment")
        correlator.close_segment()

    return malformed
