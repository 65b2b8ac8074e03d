"""Request dependencies for the per-process context stored on ``app.state``."""

from fastapi import Request

from ddui.core.config import Settings
from ddui.core.logging import get_request_id
from ddui.models.entitlement import Entitlements


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_entitlements(request: Request) -> Entitlements:
    return request.app.state.entitlements


def current_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id()
