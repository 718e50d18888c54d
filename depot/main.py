"""Depot - FastAPI application."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from depot import __version__
from depot.api.v1 import router as v1_router
from depot.config import Settings, get_settings
from depot.errors import DepotError, InternalError, RangeNotSatisfiableError
from depot.services import DirectoryLister, MutationService, TransferService
from depot.utils.logging import configure_logging
from depot.validators.path import PathResolver

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and shutdown; all state is built in create_app."""
    logger.info(
        "depot.startup",
        version=__version__,
        root=str(app.state.resolver.root),
    )
    try:
        yield
    finally:
        logger.info("depot.shutdown")


async def depot_error_handler(request: Request, exc: DepotError) -> JSONResponse:
    log = logger.bind(method=request.method, path=request.url.path, code=exc.code)
    if exc.status_code >= 500:
        log.error("request.failed", exc_info=exc)
    else:
        log.info("request.rejected", status=exc.status_code)

    headers = None
    if isinstance(exc, RangeNotSatisfiableError):
        headers = {"Content-Range": f"bytes */{exc.size}"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content=InternalError("request").to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application for one sandbox root.

    Raises:
        ValueError: the sandbox root is not configured or not a directory
    """
    settings = settings or get_settings()
    if not settings.sandbox.root_path:
        raise ValueError("sandbox.root_path is not set (DEPOT_SANDBOX__ROOT_PATH)")

    resolver = PathResolver(
        settings.sandbox.root_path,
        reject_colons=settings.sandbox.reject_colons,
    )

    app = FastAPI(title="Depot", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.resolver = resolver
    app.state.lister = DirectoryLister(resolver)
    app.state.transfer = TransferService(resolver, chunk_size=settings.sandbox.chunk_size)
    app.state.mutation = MutationService(
        resolver,
        default_folder_name=settings.sandbox.default_folder_name,
    )

    app.add_exception_handler(DepotError, depot_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(v1_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    # Mounted last so API routes take precedence
    if settings.static.directory:
        app.mount(
            "/",
            StaticFiles(directory=settings.static.directory, html=True),
            name="static",
        )

    return app


def main() -> None:
    """Console entry point."""
    settings = get_settings()
    configure_logging(settings.logging)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
