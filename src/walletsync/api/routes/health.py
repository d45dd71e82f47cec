"""Health check endpoints."""

from fastapi import APIRouter, Request

from walletsync import __version__
from walletsync.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "walletsync"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with session counts and configuration info."""
    settings = get_settings()
    manager = request.app.state.sessions
    stats = manager.stats()
    return {
        "status": "degraded" if stats["degraded"] else "healthy",
        "service": "walletsync",
        "version": __version__,
        "dry_run": settings.dry_run,
        "sessions": stats,
        "refresh_interval_seconds": manager.settings.refresh_interval_seconds,
        "config": settings.get_safe_dict(),
    }
