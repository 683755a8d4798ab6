"""Pydantic export models for handing a parse result to a renderer as plain data."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .correlator import Segment
from .records import EntryRecord
from .statistics import StatisticsEntry
from .trace import ParseResult


class RecordModel(BaseModel):
    id: int
    level: int
    indent: int
    function: str
    is_internal: bool
    include_file: str | None = None
    filename: str
    line: int
    eval_info: str = ""
    time: float
    memory: float
    exited: bool
    exit_time: float | None = None
    exit_memory: float | None = None
    delta_time: float | None = None
    delta_memory: float | None = None


class SegmentModel(BaseModel):
    index: int
    title: str | None = None
    started_at: str | None = None
    ended_at: str | None = None
    indents: dict[int, int] = Field(default_factory=dict)
    records: list[RecordModel] = Field(default_factory=list)


class StatisticModel(BaseModel):
    function: str
    count: int
    delta_time: float
    average_time: float | None = None


class TraceReport(BaseModel):
    source: str | None = None
    parsing_time: float
    malformed_lines: int = 0
    segments: list[SegmentModel]
    statistics: list[StatisticModel] | None = None


def _record_model(segment: Segment, record: EntryRecord) -> RecordModel:
    return RecordModel(
        id=record.id,
        level=record.level,
        indent=segment.indent_of(record),
        function=record.function,
        is_internal=record.is_internal,
        include_file=record.include_file,
        filename=record.filename,
        line=record.line,
        eval_info=record.eval_info,
        time=record.time,
        memory=record.memory,
        exited=record.exited,
        exit_time=record.exit_time,
        exit_memory=record.exit_memory,
        delta_time=record.delta_time,
        delta_memory=record.delta_memory,
    )


def _statistic_model(entry: StatisticsEntry) -> StatisticModel:
    return StatisticModel(
        function=entry.function,
        count=entry.count,
        delta_time=entry.delta_time,
        average_time=entry.average_time,
    )


def build_report(result: ParseResult) -> TraceReport:
    """Snapshot `result` into pydantic models; `.model_dump_json()` gives JSON."""
    segments = [
        SegmentModel(
            index=segment.index,
            title=segment.title,
            started_at=segment.started_at,
            ended_at=segment.ended_at,
            indents=dict(segment.indents),
            records=[_record_model(segment, record) for record in segment],
        )
        for segment in result.segments
    ]
    statistics = None
    if result.statistics is not None:
        statistics = [_statistic_model(entry) for entry in result.statistics]
    return TraceReport(
        source=result.source,
        parsing_time=result.parsing_time,
        malformed_lines=result.malformed_lines,
        segments=segments,
        statistics=statistics,
    )
