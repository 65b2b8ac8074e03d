"""
ddui/features/runs/sources.py

Run sources produce the events of one run.

A source is any callable taking a RunContext and returning an async
iterator of RunEvent. It is lazy, finite and consumed once. Pacing,
buffering and the terminal-event guarantees belong to RunReporter, so a
source only has to describe the work.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, Optional

from ddui.models.entitlement import Entitlements
from ddui.models.run import RunEvent, RunSummary


logger = logging.getLogger(__name__)

RunSource = Callable[["RunContext"], AsyncIterator[RunEvent]]


def format_rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RunContext:
    """Everything a source may read about the run it is producing."""
    mode: str
    entitlements: Entitlements
    request_id: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


async def scripted_run(ctx: RunContext) -> AsyncIterator[RunEvent]:
    """Fixed four-step run used until a task engine is wired in."""
    yield RunEvent.info(
        "run started",
        ts=format_rfc3339(ctx.started_at),
        edition=ctx.entitlements.edition,
        mode=ctx.mode,
    )
    yield RunEvent.info("planning")
    yield RunEvent.info("nothing to change")
    yield RunEvent.done(RunSummary(hosts=0, stacks=0, changed=0, failed=0))


DEFAULT_MODE = "plan"

_SOURCES: Dict[str, RunSource] = {
    "plan": scripted_run,
    "apply": scripted_run,
}


def register_run_source(mode: str, source: RunSource) -> None:
    """Route runs requested with ``mode`` to ``source``."""
    _SOURCES[mode] = source


def unregister_run_source(mode: str) -> None:
    _SOURCES.pop(mode, None)


def get_run_source(mode: str) -> RunSource:
    """Resolve the source for ``mode``.

    Unknown modes fall back to the default source (logged, not rejected).
    """
    if mode in _SOURCES:
        return _SOURCES[mode]

    logger.warning(
        "[runs] unknown mode, using default source",
        extra={"mode": mode, "fallback_mode": DEFAULT_MODE},
    )
    return _SOURCES[DEFAULT_MODE]
