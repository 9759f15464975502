"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check with the number of tracked flows).

The version string is read from ``account_directory.__version__``, resolved
at import time via ``importlib.metadata`` from ``pyproject.toml``.
"""

from fastapi import APIRouter, Request

from account_directory import __version__

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "Account Directory API", "version": __version__}


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {"status": "ok", "active_sessions": len(request.app.state.store)}
