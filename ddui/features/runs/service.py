"""Run service: gate the request, then hand back a reporter ready to stream."""

from typing import Optional

from ddui.features.entitlements.service import RUN_FEATURE, require_feature
from ddui.features.runs.reporter import RunReporter
from ddui.features.runs.sources import RunContext, get_run_source
from ddui.models.entitlement import Entitlements
from ddui.models.run import RunRequest


def start_run(
    body: RunRequest,
    entitlements: Entitlements,
    settings_obj,
    request_id: Optional[str] = None,
) -> RunReporter:
    """Check the run entitlement and build the reporter for ``body.mode``.

    Raises FeatureNotEntitledError before anything is produced when the
    license lacks the run capability.
    """
    require_feature(entitlements, RUN_FEATURE, request_id=request_id)

    ctx = RunContext(mode=body.mode, entitlements=entitlements, request_id=request_id)
    return RunReporter(
        get_run_source(body.mode),
        ctx,
        min_interval=settings_obj.RUN_MIN_INTERVAL_MS / 1000.0,
        buffer_size=settings_obj.RUN_BUFFER_SIZE,
    )
