"""Local web service driving an external media downloader."""

__version__ = "0.1.0"
