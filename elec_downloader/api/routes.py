"""FastAPI routes for Elec Downloader API."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from elec_downloader.api.deps import get_registry_dep, get_runner_dep
from elec_downloader.services.downloader import DownloadRunner
from elec_downloader.services.jobs import JobRegistry
from elec_downloader.services.normalize import normalize_mode, normalize_video_url

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


# ==================== Error Responses ====================


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the standard ``{ok: false, error}`` body."""
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


# ==================== Exception Handlers ====================


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed JSON or a body of the wrong shape is a plain bad request."""
    logger.debug(f"Rejected request to {request.url.path}: {exc.errors()}")
    return error_response(400, "invalid JSON body")


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return error_response(500, "internal server error")


# ==================== Request/Response Models ====================


class DownloadRequest(BaseModel):
    """Request model for the download endpoint."""

    url: str = ""
    mode: Optional[str] = None


class DownloadResponse(BaseModel):
    """Response model for the download endpoint."""

    ok: bool
    id: str


# ==================== Endpoints ====================


@router.post("/download", response_model=DownloadResponse)
async def submit_download(
    request: DownloadRequest,
    registry: JobRegistry = Depends(get_registry_dep),
    runner: DownloadRunner = Depends(get_runner_dep),
):
    """
    Start a download job.

    Creates the job, hands it to the runner in the background and returns its
    id right away; poll ``GET /status?id=...`` for progress.
    """
    if not request.url.strip():
        return error_response(400, "missing url")

    mode = normalize_mode(request.mode)
    clean_url = normalize_video_url(request.url)
    job = registry.create(mode)
    job.append_line(f"normalized URL: {clean_url}")

    runner.start(job, clean_url)

    logger.info(f"Accepted job {job.id} ({mode.value}) for {clean_url}")
    return DownloadResponse(ok=True, id=job.id)


@router.get("/status")
async def get_status(
    job_id: Optional[str] = Query(None, alias="id"),
    registry: JobRegistry = Depends(get_registry_dep),
) -> Dict[str, Any]:
    """Return a snapshot of a job's current state."""
    if not job_id:
        return error_response(400, "missing id")

    job = registry.get(job_id)
    if job is None:
        return error_response(404, "not found")

    return {"ok": True, "job": job.snapshot().to_public()}


@router.get("/health")
async def health(
    registry: JobRegistry = Depends(get_registry_dep),
    runner: DownloadRunner = Depends(get_runner_dep),
) -> Dict[str, Any]:
    """Service health and job counters."""
    return {
        "status": "healthy",
        "jobs": len(registry),
        "activeJobs": runner.active_count,
        "downloader": str(runner.executable),
    }
