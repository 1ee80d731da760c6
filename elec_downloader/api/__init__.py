"""HTTP facade for Elec Downloader."""

from elec_downloader.api.routes import router

__all__ = ["router"]
