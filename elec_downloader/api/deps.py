"""FastAPI dependencies for Elec Downloader API."""

from fastapi import Request

from elec_downloader.services.downloader import DownloadRunner
from elec_downloader.services.jobs import JobRegistry


def get_registry_dep(request: Request) -> JobRegistry:
    """Dependency for the job registry owned by the application."""
    return request.app.state.registry


def get_runner_dep(request: Request) -> DownloadRunner:
    """Dependency for the download runner owned by the application."""
    return request.app.state.runner
