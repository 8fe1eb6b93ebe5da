"""GPL Monitor API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map GplMonitorError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Session runtime (store, lifecycle manager, view model) built on startup via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py: domain, validation, catch-all
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from gpl_monitor.api.error_handlers import register_error_handlers
from gpl_monitor.api.routes import cylinders, health
from gpl_monitor.config import get_settings
from gpl_monitor.infrastructure.observability import setup_logging
from gpl_monitor.services.runtime import init_runtime, shutdown_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    await init_runtime(settings)
    logger.info("GPL Monitor API started")
    yield
    logger.info("GPL Monitor API shutting down")
    await shutdown_runtime()


app = FastAPI(
    title="GPL Monitor API", version="1.0.0", lifespan=lifespan,
)

# CORS: origins come from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(cylinders.router)

# Static files: dashboard build in production
# mounted AFTER API routes so /api/v1/* takes precedence
if os.path.isdir("static"):
    app.mount("/", StaticFiles(directory="static", html=True), name="static")
