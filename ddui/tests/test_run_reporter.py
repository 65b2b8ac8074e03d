"""Tests for the streaming run reporter and run sources."""

import asyncio
import json
import time

import pytest
from pydantic import ValidationError

from ddui.core.metrics import run_events_total, runs_active, runs_total
from ddui.features.runs import sources as run_sources
from ddui.features.runs.reporter import RunReporter
from ddui.features.runs.sources import (
    RunContext,
    get_run_source,
    register_run_source,
    scripted_run,
    unregister_run_source,
)
from ddui.models.entitlement import Entitlements
from ddui.models.run import RunEvent, RunLevel, RunSummary


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _ctx(mode="plan", **kwargs):
    return RunContext(mode=mode, entitlements=Entitlements.community(), request_id="rid-test", **kwargs)


def _reporter(source, **kwargs):
    kwargs.setdefault("min_interval", 0)
    return RunReporter(source, _ctx(), **kwargs)


async def _collect(reporter):
    return [event async for event in reporter.events()]


def _assert_single_terminal_last(events):
    assert events, "expected at least one event"
    assert events[-1].is_terminal
    assert events[-1].summary is not None
    assert not any(e.is_terminal for e in events[:-1])


@pytest.mark.asyncio
async def test_scripted_run_sequence():
    events = await _collect(_reporter(scripted_run))

    assert [e.level for e in events] == [RunLevel.INFO, RunLevel.INFO, RunLevel.INFO, RunLevel.DONE]
    assert [e.msg for e in events[:3]] == ["run started", "planning", "nothing to change"]
    start = events[0]
    assert start.edition == "Community"
    assert start.mode == "plan"
    assert start.ts and start.ts.endswith("Z")
    assert events[-1].summary == RunSummary(hosts=0, stacks=0, changed=0, failed=0)
    _assert_single_terminal_last(events)


@pytest.mark.asyncio
async def test_source_without_done_gets_synthesized_terminal():
    async def source(ctx):
        yield RunEvent.info("one")
        yield RunEvent.info("two")

    events = await _collect(_reporter(source))
    assert [e.msg for e in events[:2]] == ["one", "two"]
    assert len(events) == 3
    assert events[-1].summary.failed == 0
    _assert_single_terminal_last(events)


@pytest.mark.asyncio
async def test_error_events_count_as_failed_when_source_omits_done():
    async def source(ctx):
        yield RunEvent.info("deploying")
        yield RunEvent.error("host-1 unreachable")
        yield RunEvent.error("host-2 unreachable")

    events = await _collect(_reporter(source))
    assert events[-1].summary.failed == 2
    _assert_single_terminal_last(events)


@pytest.mark.asyncio
async def test_events_after_done_are_never_pulled():
    pulled_after_done = []

    async def source(ctx):
        yield RunEvent.info("work")
        yield RunEvent.done(RunSummary(hosts=1, stacks=2, changed=1))
        pulled_after_done.append(True)
        yield RunEvent.info("late")
        yield RunEvent.done(RunSummary())

    events = await _collect(_reporter(source))
    assert [e.msg for e in events] == ["work", None]
    assert events[-1].summary == RunSummary(hosts=1, stacks=2, changed=1, failed=0)
    assert pulled_after_done == []


@pytest.mark.asyncio
async def test_source_failure_ends_with_error_then_failed_done():
    async def source(ctx):
        yield RunEvent.info("planning")
        raise RuntimeError("ssh connection reset")

    events = await _collect(_reporter(source))

    assert events[0].msg == "planning"
    assert events[-2].level is RunLevel.ERROR
    assert "ssh connection reset" in events[-2].msg
    assert events[-1].level is RunLevel.DONE
    assert events[-1].summary.failed >= 1
    _assert_single_terminal_last(events)
    assert runs_total.value({"outcome": "failed"}) == 1.0


@pytest.mark.asyncio
async def test_source_that_fails_to_start_still_terminates():
    def source(ctx):
        raise ValueError("no such playbook")

    events = await _collect(_reporter(source))
    assert [e.level for e in events] == [RunLevel.ERROR, RunLevel.DONE]
    assert events[-1].summary.failed == 1


@pytest.mark.asyncio
async def test_pacing_uses_minimum_interval_between_events():
    clock = FakeClock()
    reporter = _reporter(scripted_run, min_interval=0.2, clock=clock, sleep=clock.sleep)

    events = await _collect(reporter)

    assert len(events) == 4
    # First event is not delayed; each later one waits the full interval.
    assert clock.sleeps == pytest.approx([0.2, 0.2, 0.2])


@pytest.mark.asyncio
async def test_pacing_skips_sleep_when_consumer_is_slower_than_interval():
    clock = FakeClock()
    reporter = _reporter(scripted_run, min_interval=0.2, clock=clock, sleep=clock.sleep)

    events = []
    async for event in reporter.events():
        events.append(event)
        clock.now += 1.0

    assert len(events) == 4
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_real_arrival_spacing_respects_minimum():
    min_interval = 0.05
    reporter = _reporter(scripted_run, min_interval=min_interval)

    arrivals = []
    async for _ in reporter.events():
        arrivals.append(time.monotonic())

    gaps = [b - a for a, b in zip(arrivals, arrivals[1:])]
    assert len(gaps) == 3
    # Small tolerance for event-loop timer granularity.
    assert all(gap >= min_interval * 0.9 for gap in gaps)


@pytest.mark.asyncio
async def test_first_event_arrives_before_last_is_produced():
    gate = asyncio.Event()
    produced = []

    async def source(ctx):
        produced.append("first")
        yield RunEvent.info("first")
        await gate.wait()
        produced.append("last")
        yield RunEvent.done(RunSummary())

    events = _reporter(source).events()
    first = await asyncio.wait_for(events.__anext__(), timeout=2)
    assert first.msg == "first"
    assert produced == ["first"]

    gate.set()
    rest = [e async for e in events]
    assert produced == ["first", "last"]
    assert len(rest) == 1 and rest[0].is_terminal


@pytest.mark.asyncio
async def test_disconnect_cancels_producer_and_closes_source():
    closed = asyncio.Event()

    async def endless(ctx):
        try:
            i = 0
            while True:
                yield RunEvent.info(f"tick {i}")
                i += 1
                await asyncio.sleep(0)
        finally:
            closed.set()

    events = _reporter(endless, buffer_size=2).events()
    assert (await events.__anext__()).msg == "tick 0"
    assert (await events.__anext__()).msg == "tick 1"
    assert runs_active.value() == 1.0

    await events.aclose()

    await asyncio.wait_for(closed.wait(), timeout=2)
    assert runs_active.value() == 0.0
    assert runs_total.value({"outcome": "cancelled"}) == 1.0


@pytest.mark.asyncio
async def test_bounded_buffer_blocks_producer_without_dropping():
    produced = []

    async def burst(ctx):
        for i in range(20):
            produced.append(i)
            yield RunEvent.info(f"event {i}")
        yield RunEvent.done(RunSummary(changed=20))

    events = _reporter(burst, buffer_size=2).events()
    first = await events.__anext__()
    assert first.msg == "event 0"
    # Producer may only run ahead by the buffer plus the item it is blocked on.
    assert len(produced) <= 4

    rest = [e async for e in events]
    assert [e.msg for e in rest[:-1]] == [f"event {i}" for i in range(1, 20)]
    assert rest[-1].summary.changed == 20


@pytest.mark.asyncio
async def test_reporter_is_single_use():
    reporter = _reporter(scripted_run)
    await _collect(reporter)
    with pytest.raises(RuntimeError):
        await _collect(reporter)


@pytest.mark.asyncio
async def test_lines_are_compact_ndjson():
    lines = [line async for line in _reporter(scripted_run).lines()]

    assert len(lines) == 4
    assert all(line.endswith("\n") and line.count("\n") == 1 for line in lines)
    assert lines[1] == '{"level":"info","msg":"planning"}\n'
    assert json.loads(lines[-1]) == {
        "level": "done",
        "summary": {"hosts": 0, "stacks": 0, "changed": 0, "failed": 0},
    }


@pytest.mark.asyncio
async def test_metrics_count_events_by_level():
    await _collect(_reporter(scripted_run))
    assert run_events_total.value({"level": "info"}) == 3.0
    assert run_events_total.value({"level": "done"}) == 1.0
    assert runs_total.value({"outcome": "ok"}) == 1.0
    assert runs_active.value() == 0.0


def test_done_event_requires_summary():
    with pytest.raises(ValidationError):
        RunEvent(level=RunLevel.DONE)


def test_reporter_rejects_bad_limits():
    with pytest.raises(ValueError):
        RunReporter(scripted_run, _ctx(), min_interval=-1)
    with pytest.raises(ValueError):
        RunReporter(scripted_run, _ctx(), buffer_size=0)


def test_unknown_mode_falls_back_to_default_source():
    assert get_run_source("plan") is scripted_run
    assert get_run_source("definitely-not-a-mode") is run_sources._SOURCES[run_sources.DEFAULT_MODE]


def test_registered_source_is_used_for_mode():
    async def custom(ctx):
        yield RunEvent.done(RunSummary())

    register_run_source("custom-test", custom)
    try:
        assert get_run_source("custom-test") is custom
    finally:
        unregister_run_source("custom-test")
    assert get_run_source("custom-test") is scripted_run
