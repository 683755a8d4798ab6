"""Tests for xdebug_trace.correlator: pairing, retention, indentation, segment lifecycle."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from xdebug_trace.correlator import StackCorrelator
from xdebug_trace.filters import FilterAction, FilterChain, FilterFlag, FunctionNameFilter
from xdebug_trace.records import EntryRecord, ExitRecord
from xdebug_trace.statistics import Statistics


def _entry(id, level=1, function="f", time=0.0, memory=0.0):
    return EntryRecord(
        level=level, id=id, time=time, memory=memory, function=function,
        is_internal=False, include_file=None, filename="/a.php", line=1,
    )


def _exit(id, level=1, time=0.0, memory=0.0):
    return ExitRecord(level=level, id=id, time=time, memory=memory)


def _skip_function(name):
    def callback(record, is_entry, trace):
        return FilterAction.SKIP if record.function == name else None
    return callback


# ---------------------------------------------------------------------------
# Segment lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_starts_closed(self):
        c = StackCorrelator(FilterChain())
        assert c.is_open is False
        assert c.current_segment() is None

    def test_open_and_close(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment(title="Run", started_at="2024-01-01 10:00:00")
        assert c.current_segment() is segment
        assert segment.title == "Run"
        closed = c.close_segment(ended_at="2024-01-01 10:00:01")
        assert closed is segment
        assert segment.closed is True
        assert segment.ended_at == "2024-01-01 10:00:01"
        assert c.is_open is False

    def test_close_without_open_is_noop(self):
        c = StackCorrelator(FilterChain())
        assert c.close_segment() is None

    def test_open_while_open_closes_previous(self):
        c = StackCorrelator(FilterChain())
        first = c.open_segment()
        c.add_record(_entry(1))
        second = c.open_segment()
        assert first.closed is True
        assert first.indents == {1: 0}
        assert second.index == 1
        assert len(c.segments) == 2

    def test_records_outside_segment_ignored(self):
        c = StackCorrelator(FilterChain())
        c.add_record(_entry(1))
        assert c.segments == []

    def test_open_resets_stateful_filters(self):
        chain = FilterChain()
        chain.add(FunctionNameFilter("load", deep=True))
        c = StackCorrelator(chain)
        c.open_segment()
        c.add_record(_entry(1, function="load"))
        c.open_segment()
        c.add_record(_entry(2, function="inner"))
        assert len(c.current_segment()) == 0


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------

class TestPairing:
    def test_deltas(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_entry(7, time=0.010, memory=1000))
        c.add_record(_exit(7, time=0.015, memory=900))
        record = segment.records[7]
        assert record.exited is True
        assert record.delta_time == pytest.approx(0.005)
        assert record.delta_memory == -100

    def test_unknown_exit_ignored(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_exit(99))
        assert len(segment) == 0

    def test_exit_of_filtered_entry_ignored(self):
        chain = FilterChain()
        chain.add(_skip_function("noise"))
        c = StackCorrelator(chain)
        segment = c.open_segment()
        c.add_record(_entry(1, function="noise"))
        c.add_record(_exit(1))
        assert len(segment) == 0

    def test_reused_id_overwrites(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_entry(1, function="a", level=1))
        c.add_record(_entry(1, function="b", level=2))
        c.close_segment()
        assert segment.records[1].function == "b"
        assert segment.indents == {2: 0}

    def test_insertion_order_is_entry_order(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        for id in (5, 3, 9):
            c.add_record(_entry(id))
        assert list(segment.records) == [5, 3, 9]

    def test_second_exit_for_same_id_ignored(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_entry(1, time=0.0))
        c.add_record(_exit(1, time=0.1))
        c.add_record(_exit(1, time=0.5))
        assert segment.records[1].delta_time == pytest.approx(0.1)


# ---------------------------------------------------------------------------
# Exit-side filtering
# ---------------------------------------------------------------------------

class TestExitFiltering:
    def test_exit_skip_removes_entry(self):
        chain = FilterChain()
        chain.add(_skip_function("f"), FilterFlag.EXIT)
        c = StackCorrelator(chain)
        segment = c.open_segment()
        c.add_record(_entry(1, function="f"))
        assert 1 in segment.records
        c.add_record(_exit(1))
        assert 1 not in segment.records

    def test_exit_filter_sees_deltas(self):
        seen = []
        chain = FilterChain()
        chain.add(lambda r, e, t: seen.append((r.delta_time, e)), FilterFlag.EXIT)
        c = StackCorrelator(chain)
        c.open_segment()
        c.add_record(_entry(1, time=0.0))
        c.add_record(_exit(1, time=0.25))
        assert seen == [(pytest.approx(0.25), False)]

    def test_removed_call_gives_back_its_level(self):
        chain = FilterChain()
        chain.add(_skip_function("gone"), FilterFlag.EXIT)
        c = StackCorrelator(chain)
        segment = c.open_segment()
        c.add_record(_entry(1, level=1, function="kept"))
        c.add_record(_entry(2, level=2, function="gone"))
        c.add_record(_exit(2, level=2))
        c.add_record(_entry(3, level=3, function="kept"))
        c.close_segment()
        assert segment.indents == {1: 0, 3: 1}

    def test_discarded_call_not_in_statistics(self):
        chain = FilterChain()
        chain.add(_skip_function("gone"), FilterFlag.EXIT)
        stats = Statistics()
        c = StackCorrelator(chain, stats)
        c.open_segment()
        c.add_record(_entry(1, function="gone"))
        c.add_record(_exit(1, time=0.1))
        c.add_record(_entry(2, function="kept"))
        c.add_record(_exit(2, time=0.1))
        c.close_segment()
        assert [e.function for e in stats.entries] == ["kept"]


# ---------------------------------------------------------------------------
# Segment close
# ---------------------------------------------------------------------------

class TestClose:
    def test_indent_compaction(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        for id, level in ((1, 7), (2, 3), (3, 4)):
            c.add_record(_entry(id, level=level))
        c.close_segment()
        assert segment.indents == {3: 0, 4: 1, 7: 2}

    def test_indent_of(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_entry(1, level=5))
        c.add_record(_entry(2, level=9))
        c.close_segment()
        assert segment.indent_of(segment.records[2]) == 1

    def test_unterminated_call_survives(self):
        c = StackCorrelator(FilterChain())
        segment = c.open_segment()
        c.add_record(_entry(1, level=2))
        c.close_segment()
        record = segment.records[1]
        assert record.exited is False
        assert record.delta_time is None
        assert segment.indents == {2: 0}

    def test_final_pass_runs_exit_chain_on_unterminated(self):
        seen = []
        chain = FilterChain()
        chain.add(lambda r, e, t: seen.append((r.id, e)), FilterFlag.EXIT)
        c = StackCorrelator(chain)
        c.open_segment()
        c.add_record(_entry(1))
        c.add_record(_exit(1))
        c.add_record(_entry(2))
        seen.clear()
        c.close_segment()
        assert seen == [(2, False)]

    def test_final_pass_runs_innermost_first(self):
        seen = []
        chain = FilterChain()
        chain.add(lambda r, e, t: seen.append(r.id), FilterFlag.EXIT)
        c = StackCorrelator(chain)
        c.open_segment()
        c.add_record(_entry(1, level=1))
        c.add_record(_entry(2, level=2))
        c.add_record(_exit(2, level=2))
        c.add_record(_entry(3, level=2))
        c.add_record(_entry(4, level=3))
        seen.clear()
        c.close_segment()
        assert seen == [4, 3, 1]

    def test_final_pass_can_discard(self):
        chain = FilterChain()
        chain.add(
            lambda r, e, t: FilterAction.SKIP if not r.exited else None,
            FilterFlag.EXIT,
        )
        c = StackCorrelator(chain)
        segment = c.open_segment()
        c.add_record(_entry(1, level=1))
        c.add_record(_exit(1, level=1))
        c.add_record(_entry(2, level=4))
        c.close_segment()
        assert list(segment.records) == [1]
        assert segment.indents == {1: 0}

    def test_statistics_finalized(self):
        stats = Statistics()
        c = StackCorrelator(FilterChain(), stats)
        c.open_segment()
        c.add_record(_entry(1, function="f", time=0.0))
        c.add_record(_exit(1, time=0.002))
        c.add_record(_entry(2, function="f", time=0.01))
        c.add_record(_exit(2, time=0.014))
        c.close_segment()
        (entry,) = stats.entries
        assert entry.count == 2
        assert entry.delta_time == pytest.approx(0.006)
        assert entry.average_time == pytest.approx(0.003)

    def test_trace_handle_passed_to_filters(self):
        seen = []
        chain = FilterChain()
        chain.add(lambda r, e, t: seen.append(t))
        c = StackCorrelator(chain, trace="engine")
        c.open_segment()
        c.add_record(_entry(1))
        assert seen == ["engine"]
