"""Utility modules for Elec Downloader."""

from elec_downloader.utils.errors import (
    DownloaderError,
    DownloaderExitError,
    DownloaderLaunchError,
    DownloaderTimeoutError,
    ElecDownloaderError,
)
from elec_downloader.utils.locks import ReadWriteLock

__all__ = [
    "ElecDownloaderError",
    "DownloaderError",
    "DownloaderLaunchError",
    "DownloaderExitError",
    "DownloaderTimeoutError",
    "ReadWriteLock",
]
