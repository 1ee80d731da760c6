"""Pydantic data models for Elec Downloader."""

from elec_downloader.models.job import INDETERMINATE_PCT, JobMode, JobPhase, JobSnapshot

__all__ = [
    "INDETERMINATE_PCT",
    "JobMode",
    "JobPhase",
    "JobSnapshot",
]
