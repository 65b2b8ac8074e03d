"""
Startup configuration validation.

Ensures the server fails fast on misconfiguration while
remaining bypassable for tests via SKIP_CONFIG_VALIDATION.
"""

import os
from typing import Optional

from ddui.core.config import SCAN_KINDS, parse_bind, parse_duration, settings


class ConfigValidationError(RuntimeError):
    """Raised when configuration validation fails."""


def validate_settings(settings_obj=None, environ: Optional[dict] = None) -> bool:
    """Validate settings before the app starts serving.

    Args:
        settings_obj: Override settings object (defaults to ddui.core.config.settings)
        environ: Override environment mapping used for the bypass flag

    Returns:
        True if validation passes.

    Raises:
        ConfigValidationError when a rule is violated.
    """
    env = environ if environ is not None else os.environ
    if env.get("SKIP_CONFIG_VALIDATION") == "1":
        return True

    cfg = settings_obj or settings

    scan_kind = getattr(cfg, "SCAN_KIND", None)
    if scan_kind not in SCAN_KINDS:
        raise ConfigValidationError("DDUI_SCAN_KIND must be 'local' or 'repo'")

    if not getattr(cfg, "SCAN_ROOT", None):
        raise ConfigValidationError("DDUI_SCAN_ROOT must not be empty")

    try:
        parse_bind(getattr(cfg, "BIND", ""))
    except ValueError as e:
        raise ConfigValidationError(f"DDUI_BIND is invalid: {e}") from e

    try:
        parse_duration(getattr(cfg, "REFRESH_INTERVAL", ""))
    except ValueError as e:
        raise ConfigValidationError(f"DDUI_REFRESH_INTERVAL is invalid: {e}") from e

    if getattr(cfg, "RUN_MIN_INTERVAL_MS", 0) < 0:
        raise ConfigValidationError("DDUI_RUN_MIN_INTERVAL_MS must not be negative")

    if getattr(cfg, "RUN_BUFFER_SIZE", 0) < 1:
        raise ConfigValidationError("DDUI_RUN_BUFFER_SIZE must be at least 1")

    return True
