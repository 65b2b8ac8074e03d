"""Inventory API.

Always answers 200: filesystem problems shrink the inventory instead of
failing the request.
"""

from fastapi import APIRouter, Depends

from ddui.api.deps import get_entitlements, get_settings
from ddui.core.config import Settings
from ddui.features.inventory.service import discover_inventory
from ddui.models.entitlement import Entitlements
from ddui.models.inventory import Inventory


router = APIRouter(prefix="/api", tags=["inventory"])


@router.get("/inventory", response_model=Inventory)
def get_inventory(
    settings: Settings = Depends(get_settings),
    entitlements: Entitlements = Depends(get_entitlements),
):
    """Walk the scan root and return hosts with their classified stacks."""
    # Plain def: the walk is blocking I/O and runs in the threadpool.
    return discover_inventory(settings.SCAN_ROOT, max_hosts=entitlements.max_hosts)
