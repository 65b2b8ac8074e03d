"""
ddui/features/runs/reporter.py

Streams the events of one run to a single consumer.

A producer task drains the run source into a bounded queue; the consumer
side (the HTTP response body) pulls from the queue and enforces the minimum
spacing between events. When the queue is full the producer waits, so no
event is ever dropped.

Whatever the source does, the consumer sees exactly one ``done`` event and
it is the last one:
- a source that stops without ``done`` gets one synthesized
- events a source yields after its ``done`` are never pulled
- a source that raises is reported as an ``error`` event followed by a
  ``done`` event with a non-zero failed count

Closing the event generator (client disconnect) cancels the producer and
closes the source.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Awaitable, Callable, Optional

from ddui.core.metrics import run_events_total, runs_active, runs_total
from ddui.features.runs.sources import RunContext, RunSource
from ddui.models.run import RunEvent, RunLevel, RunSummary


logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 0.2
DEFAULT_BUFFER_SIZE = 16


class RunReporter:
    """Paced, ordered, terminal-guaranteed view over a RunSource."""

    def __init__(
        self,
        source: RunSource,
        ctx: RunContext,
        *,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.source = source
        self.ctx = ctx
        self.min_interval = min_interval
        self.buffer_size = buffer_size
        self._clock = clock
        self._sleep = sleep
        self._started = False

    async def _produce(self, queue: "asyncio.Queue[RunEvent]") -> None:
        failed = 0
        iterator = None
        try:
            try:
                iterator = self.source(self.ctx)
                async for event in iterator:
                    if event.level is RunLevel.ERROR:
                        failed += 1
                    await queue.put(event)
                    if event.is_terminal:
                        return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "run.source_failed",
                    exc_info=True,
                    extra={"request_id": self.ctx.request_id, "mode": self.ctx.mode},
                )
                await queue.put(RunEvent.error(f"run failed: {exc}"))
                failed += 1
            else:
                logger.warning(
                    "run.source_incomplete",
                    extra={"request_id": self.ctx.request_id, "mode": self.ctx.mode},
                )
            await queue.put(RunEvent.done(RunSummary(failed=failed)))
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _pace(self, last_emit: Optional[float]) -> None:
        if last_emit is None:
            return
        while True:
            remaining = self.min_interval - (self._clock() - last_emit)
            if remaining <= 0:
                return
            await self._sleep(remaining)

    async def events(self) -> AsyncIterator[RunEvent]:
        """Yield the run's events in order, ending with the single ``done`` event."""
        if self._started:
            raise RuntimeError("a RunReporter can only be consumed once")
        self._started = True

        queue: "asyncio.Queue[RunEvent]" = asyncio.Queue(maxsize=self.buffer_size)
        producer = asyncio.create_task(self._produce(queue))
        runs_active.inc()
        outcome = "cancelled"
        emitted = 0
        last_emit: Optional[float] = None

        logger.info(
            "run.start",
            extra={"request_id": self.ctx.request_id, "mode": self.ctx.mode, "edition": self.ctx.entitlements.edition},
        )
        try:
            while True:
                event = await queue.get()
                await self._pace(last_emit)
                last_emit = self._clock()
                emitted += 1
                run_events_total.inc(labels={"level": event.level.value})
                yield event
                if event.is_terminal:
                    outcome = "failed" if event.summary.failed else "ok"
                    return
        finally:
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("run.producer_error", exc_info=True, extra={"request_id": self.ctx.request_id})
            runs_active.dec()
            runs_total.inc(labels={"outcome": outcome})
            logger.info(
                "run.end",
                extra={"request_id": self.ctx.request_id, "outcome": outcome, "events": emitted},
            )

    async def lines(self) -> AsyncIterator[str]:
        """NDJSON rendering of ``events()``: one JSON object per line."""
        async for event in self.events():
            yield event.to_line()
