import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from ddui.api import health, inventory, metrics, runs
from ddui.core.config import Settings, cors_origins, describe_config, settings as default_settings
from ddui.core.errors import register_error_handlers
from ddui.core.logging import configure_logging
from ddui.core.middleware.metrics import MetricsMiddleware
from ddui.core.middleware.request_id import RequestIdMiddleware
from ddui.features.entitlements.service import load_entitlements
from ddui.models.entitlement import Entitlements


def create_app(settings_obj: Optional[Settings] = None, entitlements: Optional[Entitlements] = None) -> FastAPI:
    """Build the API application.

    Args:
        settings_obj: Settings to serve with (defaults to the environment)
        entitlements: License context; loaded from the environment when omitted

    Returns:
        Configured FastAPI app with settings and entitlements on ``app.state``
    """
    cfg = settings_obj or default_settings
    configure_logging(cfg.ENV)
    ents = entitlements or load_entitlements(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("ddui")
        logger.info("Starting DDUI backend...", extra={"edition": ents.edition})
        describe_config(cfg, logger)
        try:
            yield
        finally:
            logging.getLogger("ddui").info("Stopping DDUI backend...")

    app = FastAPI(title="DDUI - Fleet API", lifespan=lifespan)
    app.state.settings = cfg
    app.state.entitlements = ents

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    register_error_handlers(app)

    origins = cors_origins(cfg)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(inventory.router)
    app.include_router(runs.router)
    app.include_router(metrics.router)

    return app


app = create_app()
