"""Run trigger API.

POST /api/ci/run streams the run as newline-delimited JSON. Entitlement
checks happen before the response starts, so a denied run is a plain 403
with the normalized error body and no stream.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ddui.api.deps import current_request_id, get_entitlements, get_settings
from ddui.core.config import Settings
from ddui.features.runs.service import start_run
from ddui.models.entitlement import Entitlements
from ddui.models.run import RunRequest


logger = logging.getLogger("ddui")

router = APIRouter(prefix="/api/ci", tags=["runs"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post("/run")
async def ci_run(
    body: RunRequest,
    settings: Settings = Depends(get_settings),
    entitlements: Entitlements = Depends(get_entitlements),
    request_id: str = Depends(current_request_id),
):
    logger.info(f"[/api/ci/run] POST received, mode={body.mode}")

    reporter = start_run(body, entitlements, settings, request_id=request_id)

    return StreamingResponse(
        reporter.lines(),
        media_type=NDJSON_MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
