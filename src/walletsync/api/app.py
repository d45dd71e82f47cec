"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from walletsync import __version__
from walletsync.config import get_settings
from walletsync.session import SessionManager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    manager: SessionManager = app.state.sessions
    # Startup
    await manager.database.create_tables()
    yield
    # Shutdown
    await manager.close_all()
    await manager.database.dispose()


def create_app(manager: Optional[SessionManager] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        manager: Session manager to serve (a default one is created if omitted)
    """
    settings = get_settings()

    app = FastAPI(
        title="Walletsync API",
        description="Wallet reconciliation and multi-chain balance API",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.sessions = manager or SessionManager(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from walletsync.api.routes import health, sessions

    app.include_router(health.router, tags=["Health"])
    app.include_router(sessions.router, prefix="/api/v1", tags=["Sessions"])

    return app
