"""Job status Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# conversion_pct value meaning "conversion progress not yet quantifiable"
INDETERMINATE_PCT = -1.0


class JobMode(str, Enum):
    """Selects the downloader arguments for a job."""

    VIDEO = "video"
    AUDIO = "audio"


class JobPhase(str, Enum):
    """Coarse stage label shown to the user."""

    PREPARING = "preparing"
    DOWNLOADING = "downloading"
    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETED, JobPhase.FAILED)


class JobSnapshot(BaseModel):
    """Immutable view of a job's observable state at one instant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(min_length=1)
    mode: JobMode
    status: JobPhase = JobPhase.PREPARING
    download_pct: float = Field(default=0.0, ge=0, le=100)
    conversion_pct: float = Field(default=INDETERMINATE_PCT, ge=INDETERMINATE_PCT, le=100)
    message: str = ""
    log: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    finished: bool = False
    started_at: datetime
    completed_at: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, dropping an unset error and completion time."""
        data = self.model_dump(mode="json", by_alias=True)
        if data["completedAt"] is None:
            del data["completedAt"]
        if not data["error"]:
            del data["error"]
        return data
