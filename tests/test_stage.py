"""Tests for the stage runner: completeness, failure isolation, termination,
bounded parallelism and backpressure."""

from __future__ import annotations

import threading
import time

import pytest

from conftest import drain, feed
from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stage import run_stage
from drugcrawl.pipeline.stream import Stream


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestCompleteness:
    def test_every_output_of_every_input_is_emitted(self) -> None:
        ctx = RunContext()
        out = run_stage(Stream.of(*range(50)), lambda x: [x, x * 100], workers=4, ctx=ctx, name="double")

        result = drain(out)

        assert sorted(result) == sorted([x for i in range(50) for x in (i, i * 100)])
        stats = ctx.stats.snapshot()["double"]
        assert (stats.processed, stats.failed, stats.emitted) == (50, 0, 100)

    def test_transform_may_produce_nothing(self) -> None:
        out = run_stage(Stream.of(1, 2, 3), lambda x: [], workers=2)
        assert drain(out) == []

    def test_single_worker_keeps_input_order(self) -> None:
        out = run_stage(feed(range(30)), lambda x: [x], workers=1)
        assert drain(out) == list(range(30))


class TestFailureIsolation:
    def test_one_failing_input_is_dropped(self) -> None:
        ctx = RunContext()

        def transform(x: int) -> list:
            if x == 3:
                raise RuntimeError("page 3 is broken")
            return [x]

        out = run_stage(Stream.of(*range(10)), transform, workers=3, ctx=ctx, name="leaves")

        assert sorted(drain(out)) == [0, 1, 2, 4, 5, 6, 7, 8, 9]
        assert ctx.stats.snapshot()["leaves"].failed == 1

    def test_failure_is_logged(self, caplog) -> None:
        def boom(x: int) -> list:
            raise RuntimeError(f"cannot fetch {x}")

        drain(run_stage(Stream.of(7), boom, workers=1, name="pages"))
        assert "[pages] cannot fetch 7" in caplog.text

    def test_all_inputs_failing_still_closes(self) -> None:
        def boom(x: int) -> list:
            raise ValueError(x)

        assert drain(run_stage(Stream.of(*range(5)), boom, workers=2)) == []


class TestTermination:
    def test_empty_input_closes_output(self) -> None:
        out = run_stage(Stream.of(), lambda x: [x], workers=4)
        assert drain(out, timeout=5) == []
        assert out.closed

    def test_chained_stages_close_in_turn(self) -> None:
        first = run_stage(Stream.of(1, 2), lambda x: range(x * 10, x * 10 + 3), workers=2)
        second = run_stage(first, lambda x: [x + 1], workers=3)
        assert sorted(drain(second)) == [11, 12, 13, 21, 22, 23]

    def test_zero_workers_rejected(self) -> None:
        with pytest.raises(ValueError):
            run_stage(Stream.of(1), lambda x: [x], workers=0)


class TestBoundedParallelism:
    def test_never_more_than_workers_in_flight(self) -> None:
        lock = threading.Lock()
        active = 0
        peak = 0

        def slow(x: int) -> list:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return [x]

        drain(run_stage(Stream.of(*range(40)), slow, workers=3))
        assert 1 <= peak <= 3

    def test_slow_consumer_stalls_producers(self) -> None:
        calls = 0
        lock = threading.Lock()

        def count(x: int) -> list:
            nonlocal calls
            with lock:
                calls += 1
            return [x]

        out = run_stage(Stream.of(*range(100)), count, workers=2, buffer=1)
        time.sleep(0.2)

        # One item buffered plus one blocked put per worker.
        assert calls <= 3
        assert sorted(drain(out)) == list(range(100))
        assert calls == 100


class TestCancellation:
    def test_cancelled_output_stops_upstream(self) -> None:
        source = feed(range(10_000))
        first = run_stage(source, lambda x: [x], workers=2, name="first")
        second = run_stage(first, lambda x: [x], workers=2, name="second")

        assert second.get() is not None
        second.cancel()

        assert _wait_for(lambda: first.cancelled)
        assert _wait_for(lambda: source.cancelled)

    def test_stage_emitting_nothing_stops_once_output_is_cancelled(self) -> None:
        def nothing(x: int) -> list:
            time.sleep(0.001)
            return []

        source = feed(range(10_000))
        out = run_stage(source, nothing, workers=2, name="empty")

        out.cancel()

        assert _wait_for(lambda: source.cancelled)
