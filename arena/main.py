"""Arena Live - FastAPI Backend.

Live match control for esports tournaments.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .api import api_router
from .api.errors import register_error_handlers
from .logging_config import configure_logging
from .services.broadcast import Broadcaster
from .services.live_control import ControlCenter
from .store import DataStore, open_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings.debug)
    logger.info(f"Starting {settings.app_name} API...")

    if app.state.store is None:
        app.state.store = await open_store(settings)
    app.state.control = ControlCenter(app.state.store, settings, app.state.broadcaster)
    logger.info(f"Using {app.state.store.mode} store")

    yield

    logger.info(f"Shutting down {settings.app_name} API...")
    await app.state.control.close_all()
    await app.state.store.close()


def create_app(settings: Optional[Settings] = None, store: Optional[DataStore] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
        Arena Live API - live match control for esports tournaments.

        Features:
        - Match and tournament lifecycle with start countdowns
        - Operator match clock with live stats autosave
        - Live stream chat with polling and Server-Sent Events
        """,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = Broadcaster()
    app.state.control = None

    # CORS configuration - allow deployed frontend and localhost
    cors_origins = list(settings.cors_origins)
    frontend_url = os.environ.get("FRONTEND_URL")
    if frontend_url:
        cors_origins.append(frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Include API routes
    app.include_router(api_router, prefix=f"/api/{settings.api_version}")

    @app.get("/")
    async def root():
        """Root endpoint - API info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            # Fallback polling periods for clients without an SSE connection
            "poll_intervals": {
                "countdown": settings.countdown_tick_seconds,
                "match_detail": settings.match_detail_poll_interval_seconds,
                "chat": settings.chat_poll_interval_seconds,
                "streams": settings.stream_refresh_interval_seconds,
            },
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        control = app.state.control
        return {
            "status": "healthy",
            "store": app.state.store.mode if app.state.store else None,
            "control_sessions": len(control.matches) if control else 0,
            "chat_rooms": len(control.chats) if control else 0,
            "subscribers": app.state.broadcaster.subscriber_count(),
        }

    return app


app = create_app()


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "arena.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=True,
    )
