"""Coachflow API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CoachflowError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Services built once on startup via the lifespan context manager and
      held on app.state.services; tests may pre-set app.state.services
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coachflow.api.error_handlers import register_error_handlers
from coachflow.api.routes import agents, health, metrics
from coachflow.config import get_settings
from coachflow.infrastructure.observability import setup_logging
from coachflow.services.bootstrap import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    owned = getattr(app.state, "services", None) is None
    if owned:
        app.state.services = build_services(settings)
    logger.info("Coachflow API started")
    yield
    logger.info("Coachflow API shutting down")
    if owned:
        await app.state.services.aclose()
        app.state.services = None


app = FastAPI(title="Coachflow API", version="0.1.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(agents.router)
app.include_router(metrics.router)

register_error_handlers(app)
