#!/usr/bin/env python3
"""
Server entrypoint: validate configuration, then serve with uvicorn.

Invalid configuration (bad scan kind, unparsable bind address, ...) aborts
startup with a non-zero exit code.
"""
import logging
import sys

import uvicorn

from ddui.core.config import parse_bind, settings
from ddui.core.logging import configure_logging
from ddui.core.validation import ConfigValidationError, validate_settings


def main() -> int:
    configure_logging(settings.ENV)
    logger = logging.getLogger("ddui")

    try:
        validate_settings(settings)
        host, port = parse_bind(settings.BIND)
    except (ConfigValidationError, ValueError) as e:
        logger.error(f"[server] invalid configuration: {e}")
        return 1

    logger.info("DDUI starting", extra={"host": host, "port": port})
    uvicorn.run(
        "ddui.main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
