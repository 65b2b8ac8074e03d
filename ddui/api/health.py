"""
Liveness endpoint.

Reports the licensed edition alongside the status so the UI can show the
tier without a separate call.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ddui.api.deps import get_entitlements
from ddui.models.entitlement import Entitlements

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    edition: str


@router.get("/api/healthz", response_model=HealthResponse)
def healthz(entitlements: Entitlements = Depends(get_entitlements)):
    """Lightweight liveness check (no deps)."""
    return HealthResponse(status="ok", edition=entitlements.edition)
