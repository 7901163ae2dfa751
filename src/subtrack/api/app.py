"""subtrack API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- Lifespan handler for startup/shutdown of the DB pool
- Health endpoint at GET /api/health
- The subscription router
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subtrack.api.deps import init_dependencies, shutdown_dependencies, wire_config
from subtrack.api.middleware import register_error_handlers
from subtrack.api.routers.subscriptions import router as subscriptions_router
from subtrack.config import AppConfig
from subtrack.core.metrics import init_metrics

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup and close it on shutdown."""
    config: AppConfig = app.state.config
    init_metrics(config.name)

    db = None
    try:
        db = await init_dependencies(app, config)
    except Exception:
        logger.warning(
            "Failed to initialize database; subscription endpoints will be unavailable",
            exc_info=True,
        )

    yield

    await shutdown_dependencies(app, db)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded application config. Defaults to ``AppConfig()`` so tests can
        build an app without a TOML file.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="subtrack API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    wire_config(app, config)

    app.include_router(subscriptions_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
