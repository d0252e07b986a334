from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue

JobPayloadRecord = dict[str, JsonValue]

KNOWN_JOB_TYPES: tuple[str, ...] = (
    "default",
    "backup",
    "extract",
    "fine-tuning",
    "generic",
    "restore",
)


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.completed, JobStatus.failed, JobStatus.cancelled)


class JobRecord(BaseModel):
    """Persisted job representation (DB / wire format)."""

    id: str
    type: str

    payload: JobPayloadRecord = Field(default_factory=dict)
    result: JsonValue | None = None
    error: str | None = None

    status: JobStatus = JobStatus.pending
    progress: int = Field(0, ge=0, le=100)

    worker_id: str | None = None
    user_id: str | None = None
    description: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", from_attributes=True)


class JobCreateRequest(BaseModel):
    """Body of ``POST /jobs``."""

    type: str = Field(..., min_length=1, max_length=64)
    payload: JobPayloadRecord = Field(default_factory=dict)
    description: str | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


class JobCreatedResponse(BaseModel):
    id: str
    type: str
    status: JobStatus


class JobStats(BaseModel):
    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
