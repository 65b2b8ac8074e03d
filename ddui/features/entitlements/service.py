"""
ddui/features/entitlements/service.py

License loading and feature gating.

Handles:
- Loading the license once at startup (env var JSON, then secret file)
- Falling back to the Community tier when neither source parses
- Gating checks that raise before any gated work starts
"""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ddui.core.errors import FeatureNotEntitledError
from ddui.core.logging import log_event
from ddui.models.entitlement import Entitlements


logger = logging.getLogger(__name__)

RUN_FEATURE = "ci_api"


def _parse_license(raw: str, source: str) -> Optional[Entitlements]:
    """Parse a license payload, returning None (and logging) when it is unusable."""
    try:
        return Entitlements.model_validate(json.loads(raw))
    except (json.JSONDecodeError, PydanticValidationError, TypeError) as e:
        logger.warning(
            "[entitlements] ignoring malformed license",
            extra={"source": source, "error": type(e).__name__},
        )
        return None


def _read_license_file(path: str) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(
            "[entitlements] license file unreadable",
            extra={"license_path": path, "error": type(e).__name__},
        )
        return None


def load_entitlements(settings_obj, environ: Optional[Mapping[str, str]] = None) -> Entitlements:
    """Load entitlements for this process.

    Order:
    1. JSON in the env var named by ``LICENSE_ENV``
    2. JSON file at ``LICENSE_PATH``
    3. ``Entitlements.community()``

    A malformed source is skipped, never treated as a grant.
    """
    env = environ if environ is not None else os.environ

    raw = env.get(settings_obj.LICENSE_ENV)
    if raw:
        ents = _parse_license(raw, source="env")
        if ents is not None:
            logger.info("[entitlements] loaded", extra={"source": "env", "edition": ents.edition})
            return ents

    raw = _read_license_file(settings_obj.LICENSE_PATH)
    if raw:
        ents = _parse_license(raw, source="file")
        if ents is not None:
            logger.info("[entitlements] loaded", extra={"source": "file", "edition": ents.edition})
            return ents

    ents = Entitlements.community()
    logger.info("[entitlements] using default tier", extra={"source": "default", "edition": ents.edition})
    return ents


def require_feature(ents: Entitlements, feature: str, *, request_id: Optional[str] = None) -> None:
    """Raise FeatureNotEntitledError unless ``feature`` is granted."""
    if not ents.has_feature(feature):
        log_event(
            "warning",
            "entitlements.denied",
            request_id=request_id,
            event_type="entitlement",
            error_code=FeatureNotEntitledError.code,
            extra={"feature": feature, "edition": ents.edition, "org": ents.org},
        )
        raise FeatureNotEntitledError(feature, ents.edition, request_id=request_id)
