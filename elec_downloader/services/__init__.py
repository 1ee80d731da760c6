"""Service layer for Elec Downloader."""

from elec_downloader.services.downloader import (
    DownloaderLocation,
    DownloadRunner,
    build_download_args,
    create_download_runner,
    resolve_downloader,
)
from elec_downloader.services.interpreter import (
    LineEffect,
    LineInterpreter,
    LineRule,
    interpret_line,
    stream_lines,
)
from elec_downloader.services.jobs import JobRecord, JobRegistry
from elec_downloader.services.normalize import normalize_mode, normalize_video_url

__all__ = [
    "DownloaderLocation",
    "DownloadRunner",
    "build_download_args",
    "create_download_runner",
    "resolve_downloader",
    "LineEffect",
    "LineInterpreter",
    "LineRule",
    "interpret_line",
    "stream_lines",
    "JobRecord",
    "JobRegistry",
    "normalize_mode",
    "normalize_video_url",
]
