"""Job records and the in-memory registry that owns them."""

import logging
import secrets
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from elec_downloader.models.job import INDETERMINATE_PCT, JobMode, JobPhase, JobSnapshot
from elec_downloader.utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Return a 128-bit cryptographically random identifier, hex encoded."""
    return secrets.token_hex(16)


class JobRecord:
    """Observable state of one download/convert operation.

    Every mutation runs under the exclusive side of a reader/writer lock and
    snapshots are taken under the shared side, so a poller sees the record
    either before or after an update, never in between. Once the record is
    finished every update method becomes a no-op.
    """

    def __init__(self, job_id: str, mode: JobMode) -> None:
        self._id = job_id
        self._mode = mode
        self._lock = ReadWriteLock()
        self._status = JobPhase.PREPARING
        self._download_pct = 0.0
        self._conversion_pct = INDETERMINATE_PCT
        self._message = ""
        self._log: List[str] = []
        self._error: Optional[str] = None
        self._finished = False
        self._started_at = _utcnow()
        self._completed_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def mode(self) -> JobMode:
        return self._mode

    @property
    def is_finished(self) -> bool:
        with self._lock.read_locked():
            return self._finished

    def snapshot(self) -> JobSnapshot:
        """Return an immutable copy of the current state."""
        with self._lock.read_locked():
            return JobSnapshot(
                id=self._id,
                mode=self._mode,
                status=self._status,
                download_pct=self._download_pct,
                conversion_pct=self._conversion_pct,
                message=self._message,
                log=list(self._log),
                error=self._error,
                finished=self._finished,
                started_at=self._started_at,
                completed_at=self._completed_at,
            )

    def append_line(self, line: str) -> bool:
        """Append a line to the transcript and surface it as the current message.

        Returns:
            False if the record is already finished and nothing changed
        """
        with self._lock.write_locked():
            if self._finished:
                return False
            self._log.append(line)
            self._message = line
            return True

    def record_download_progress(self, pct: float) -> bool:
        """Set the download percentage and enter (or stay in) the downloading phase."""
        with self._lock.write_locked():
            if self._finished:
                return False
            self._download_pct = min(100.0, max(0.0, pct))
            self._status = JobPhase.DOWNLOADING
            return True

    def enter_conversion(self) -> bool:
        """Enter (or stay in) the converting phase.

        The indeterminate conversion percentage is moved to 0; no conversion
        percentage is ever parsed, completion alone drives it to 100.
        """
        with self._lock.write_locked():
            if self._finished:
                return False
            self._status = JobPhase.CONVERTING
            if self._conversion_pct < 0:
                self._conversion_pct = 0.0
            return True

    def complete(self) -> bool:
        """Move to the completed terminal state."""
        with self._lock.write_locked():
            if self._finished:
                return False
            self._status = JobPhase.COMPLETED
            self._download_pct = 100.0
            self._conversion_pct = 100.0
            self._finished = True
            self._completed_at = _utcnow()
            return True

    def fail(self, error: str) -> bool:
        """Move to the failed terminal state, recording the error in the transcript."""
        with self._lock.write_locked():
            if self._finished:
                return False
            self._log.append(f"Error: {error}")
            self._status = JobPhase.FAILED
            self._error = error
            self._message = error
            self._finished = True
            self._completed_at = _utcnow()
            return True


class JobRegistry:
    """Concurrent map from job identifier to JobRecord.

    Records are never removed; the registry lives as long as the service.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def create(self, mode: JobMode) -> JobRecord:
        """
        Allocate a fresh job record and register it.

        Args:
            mode: Download mode for the new job

        Returns:
            The registered JobRecord, fully constructed
        """
        with self._lock:
            job_id = new_job_id()
            while job_id in self._jobs:
                job_id = new_job_id()
            job = JobRecord(job_id, mode)
            self._jobs[job_id] = job
        logger.debug(f"Registered job {job_id} ({mode.value})")
        return job

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Look up a job; None means it was never registered."""
        with self._lock:
            return self._jobs.get(job_id)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
