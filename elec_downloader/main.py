"""FastAPI application for Elec Downloader."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from elec_downloader import __version__
from elec_downloader.api.routes import (
    generic_exception_handler,
    http_exception_handler,
    router,
    validation_exception_handler,
)
from elec_downloader.config import Settings, get_settings
from elec_downloader.services.downloader import DownloadRunner, create_download_runner
from elec_downloader.services.jobs import JobRegistry

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings: Settings = app.state.settings
    logger.info(f"Elec Downloader listening on http://{settings.host}:{settings.port}/")
    logger.info(f"Downloader: {app.state.runner.executable}")
    logger.info(f"Output directory: {app.state.runner.work_dir}")

    yield

    # Jobs live in memory only; nothing to persist
    active = app.state.runner.active_count
    if active:
        logger.warning(f"Shutting down with {active} download(s) still running")


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[JobRegistry] = None,
    runner: Optional[DownloadRunner] = None,
) -> FastAPI:
    """
    Build the application with its registry and runner.

    Args:
        settings: Application settings, defaults to the environment
        registry: Job registry, a fresh one when omitted
        runner: Download runner, built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Elec Downloader",
        description="Local web front for an external media downloader",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry or JobRegistry()
    app.state.runner = runner or create_download_runner(settings)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(router)

    # Mount frontend files - MUST be last as it catches all routes
    if settings.frontend_dir and os.path.isdir(settings.frontend_dir):
        app.mount("/", StaticFiles(directory=settings.frontend_dir, html=True), name="frontend")

    return app


app = create_app()


def main() -> None:
    """Run the service with uvicorn on the configured address."""
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
