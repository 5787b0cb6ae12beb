"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Settings and the messaging provider are built once here and
stored on app.state; handlers get them through Depends(). Lifespan
connects and disconnects the provider's broker.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hubrelay import __version__
from hubrelay.api import api_router
from hubrelay.config import Settings, settings as default_settings
from hubrelay.logging_config import configure_logging
from hubrelay.middleware.request_id import RequestIdMiddleware
from hubrelay.realtime.broker import create_broker
from hubrelay.realtime.provider import HubProvider, MessagingProvider
from hubrelay.realtime.websocket import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    A broker that cannot be reached at startup is logged, not fatal:
    negotiate answers 503 and message answers 502 until the relay restarts.
    """
    settings: Settings = app.state.settings
    provider: MessagingProvider = app.state.provider

    logger.info(
        "hubrelay.starting",
        version=__version__,
        environment=settings.environment,
        hub=settings.hub_name,
        broker=settings.broker,
    )

    try:
        await provider.connect()
    except Exception as e:
        logger.warning("hubrelay.broker_unavailable", error=str(e))

    yield

    logger.info("hubrelay.shutdown")
    await provider.disconnect()


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[MessagingProvider] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(
        settings.log_level,
        json_logs=settings.environment != "development",
    )

    app = FastAPI(
        title="hubrelay",
        description="Negotiate + broadcast relay for a real-time messaging hub",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.provider = provider or HubProvider(settings, create_broker(settings))

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: hubrelay.main:app)
app = create_app()
