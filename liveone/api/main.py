"""
FastAPI application entry point for the LiveOne API.

Provides the root health endpoint and serves as the application factory.
Settings are loaded at startup for validation. API_TOKENS are parsed into a
BearerAuth instance and CRON_SECRET into a CronAuth instance, both stored on
app.state for route dependencies.

CHANGELOG:
- 2026-10-14: Register systems router
- 2026-10-13: Register cron router, wire CronAuth into startup
- 2026-10-12: Initial creation
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from liveone.api.cron import router as cron_router
from liveone.api.health import router as health_router
from liveone.api.systems import router as systems_router
from liveone.auth.bearer import BearerAuth, CronAuth, parse_api_tokens
from liveone.config import get_settings
from liveone.log_setup import configure_logging, log_config_summary

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup validation and shutdown logging.

    Startup:
        - Loads and validates Settings.
        - Builds the read-token and cron auth dependencies.

    Shutdown:
        - Logs that the API is shutting down.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    log_config_summary(settings, logger)
    app.state.settings = settings

    token_map = parse_api_tokens(settings.api_tokens)
    if not token_map:
        logger.warning("API_TOKENS contains no valid token:owner_id entries")
    app.state.auth = BearerAuth(token_map)
    logger.info("Parsed %d API token(s) from API_TOKENS", len(token_map))

    app.state.cron_auth = CronAuth(settings.cron_secret, settings.is_development)
    if not settings.cron_secret:
        logger.warning(
            "CRON_SECRET is not set; cron poll endpoint is %s",
            "open (development)" if settings.is_development else "disabled",
        )

    logger.info("Settings validated, LiveOne API ready")
    yield
    logger.info("LiveOne API shutting down")


app = FastAPI(
    title="LiveOne API",
    description="Solar and battery monitoring API for Enphase and Selectronic systems.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization"],
)

app.include_router(health_router)
app.include_router(cron_router)
app.include_router(systems_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
