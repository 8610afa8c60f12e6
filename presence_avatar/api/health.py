"""
Health and info endpoints.
"""

from fastapi import APIRouter, Request

from .. import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    store = getattr(request.app.state, "session_store", None)
    return {
        "status": "ok",
        "service": "presence-avatar",
        "version": __version__,
        "sessions": len(store) if store is not None else 0,
    }
