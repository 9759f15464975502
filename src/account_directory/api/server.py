"""
FastAPI backend server for the account directory.

This module builds the FastAPI application. Each app owns its services,
attached to ``app.state``:
- store:      the in-memory :class:`SessionStore` of authentication flows
- controller: the :class:`AuthFlowController` driving those flows
- directory:  the :class:`DirectoryQueryService` answering directory queries
- mailer:     the verification mailer

A background task started in the lifespan sweeps expired and failed flows
every ``config.auth.sweep_interval_seconds``.

Every failure is rendered as ``{"detail": ..., "error": <kind>}`` with
the status code of its :class:`DirectoryError` kind.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from account_directory import __version__
from account_directory.api.routes.register import register_routes
from account_directory.auth.flow import AuthFlowController, Clock
from account_directory.auth.mailer import Mailer, build_mailer
from account_directory.auth.store import SessionStore
from account_directory.config import ServerConfig
from account_directory.db.errors import DatabaseError
from account_directory.db.schema import init_database
from account_directory.directory.service import DirectoryQueryService
from account_directory.errors import DirectoryError, InvalidRequest, ServiceUnavailable

logger = logging.getLogger(__name__)


# ============================================================================
# ERROR HANDLERS
# ============================================================================


def _error_response(error: DirectoryError) -> JSONResponse:
    headers = {}
    retry_after = getattr(error, "retry_after", 0)
    if retry_after:
        headers["Retry-After"] = str(retry_after)
    if error.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


async def handle_directory_error(request: Request, exc: DirectoryError) -> JSONResponse:
    return _error_response(exc)


async def handle_database_error(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database failure on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(ServiceUnavailable())


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    )
    return _error_response(InvalidRequest(f"Invalid request body: {problems}"))


# ============================================================================
# BACKGROUND SWEEPER
# ============================================================================


async def _sweep_forever(controller: AuthFlowController, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(controller.sweep)
        except DatabaseError as exc:
            logger.warning("Session sweep failed: %s", exc)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app(
    *,
    settings: ServerConfig | None = None,
    store: SessionStore | None = None,
    mailer: Mailer | None = None,
    clock: Clock | None = None,
    sweep: bool = True,
) -> FastAPI:
    """
    Build a configured application.

    Args:
        settings: Server configuration. Defaults to the module-level ``config``.
        store: Session store; a fresh one is created when omitted.
        mailer: Verification mailer; chosen from ``settings.email`` when omitted.
        clock: Time source for the flow controller (tests inject one).
        sweep: Run the background sweeper while the app is up.
    """
    if settings is None:
        from account_directory.config import config

        settings = config

    store = store if store is not None else SessionStore()
    mailer = mailer if mailer is not None else build_mailer(settings.email)
    controller = AuthFlowController(
        store,
        mailer=mailer,
        clock=clock,
        settings=settings.auth,
        verification_url=settings.email.verification_url,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        init_database()
        task = None
        if sweep:
            task = asyncio.create_task(
                _sweep_forever(controller, settings.auth.sweep_interval_seconds)
            )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    docs_enabled = settings.docs_should_be_enabled
    app = FastAPI(
        title="Account Directory",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    app.add_exception_handler(DirectoryError, handle_directory_error)
    app.add_exception_handler(DatabaseError, handle_database_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    app.state.store = store
    app.state.mailer = mailer
    app.state.controller = controller
    app.state.directory = DirectoryQueryService(
        max_limit=settings.directory.max_limit,
        default_limit=settings.directory.default_limit,
    )

    register_routes(app)
    return app


# ============================================================================
# SERVER STARTUP
# ============================================================================


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Serve a fresh application with uvicorn until interrupted."""
    import uvicorn

    from account_directory.config import config
    from account_directory.logging_config import configure_logging

    configure_logging(config.logging)
    host = host or config.server.host
    port = port or config.server.port
    logger.info("Starting account directory on %s:%d", host, port)
    uvicorn.run(create_app(), host=host, port=port)
