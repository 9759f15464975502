"""
Route registration entry point for the FastAPI application.

Keeps the public ``register_routes(app)`` API stable while splitting
implementation into focused router modules.
"""

from fastapi import FastAPI

from account_directory.api.routes import auth, directory, health


def register_routes(app: FastAPI) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(auth.router())
    app.include_router(directory.router())
