from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .clip import Clip


class JobStatus(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_CAVEATS = "completed_with_caveats"
    ERROR = "error"


@dataclass
class ProjectMetadata:
    project_name: str = ""
    description: str = ""
    ai_prompt: str = ""                    # free-text user directives, passed verbatim
    target_platforms: list[str] = field(default_factory=list)
    num_clips: int = 3
    target_duration: float | None = None   # seconds


@dataclass
class ProcessingJob:
    id: str
    project: ProjectMetadata
    status: JobStatus = JobStatus.WAITING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    transcript: str = ""
    clips: list[Clip] = field(default_factory=list)
    caveats: list[str] = field(default_factory=list)
    remote_id: str | None = None
    remote_url: str | None = None
    error: str | None = None
