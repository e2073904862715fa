"""Moderation Server - Main Application Entry Point.

FastAPI application exposing the content classification engine and the
moderation dashboard state built around it.

To run:
    uvicorn moderation.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from moderation.config import settings
from moderation.api.routes import router, debug_router
from moderation.core.dashboard import ModerationDashboard
from moderation.core.strategies import build_strategies
from moderation.models.client import close_all_clients
from py_common.metrics import setup_metrics


logging.basicConfig(
    format="%(message)s",
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def create_dashboard() -> ModerationDashboard:
    """Build a dashboard from application settings."""
    dashboard = ModerationDashboard(
        configuration=settings.default_configuration(),
        strategies=build_strategies(settings),
        activity_limit=settings.ACTIVITY_LOG_LIMIT,
        automated_moderator=settings.AUTOMATED_MODERATOR,
    )
    if settings.SEED_DEMO_DATA:
        dashboard.seed_demo_data()
    return dashboard


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Startup:
        - Log configuration
        - Create the dashboard state

    Shutdown:
        - Close classifier HTTP clients
    """
    app.state.dashboard = create_dashboard()

    logger.info(
        "moderation_server_starting",
        host=settings.HOST,
        port=settings.PORT,
        classifier_model_url=settings.CLASSIFIER_MODEL_URL,
        classification_delay_seconds=settings.classification_delay_seconds,
        seed_demo_data=settings.SEED_DEMO_DATA,
    )

    yield

    logger.info("moderation_server_shutting_down")
    await close_all_clients()
    app.state.dashboard = None


app = FastAPI(
    title="Moderation API",
    description="Content classification and moderation dashboard service",
    version="0.1.0",
    lifespan=lifespan,
)

# Setup metrics (must be before other middleware to track all requests)
setup_metrics(app)

# CORS middleware for the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(debug_router)


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "moderation-server",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/v1/health",
    }
