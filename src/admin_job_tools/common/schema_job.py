"""Job parameter, task output and worker message schemas."""

from typing import ClassVar, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel

from .schema_job_record import JobPayloadRecord, JobRecord


class BaseJobParams(BaseModel):
    """Base payload for all compute tasks.

    Keys are accepted in snake_case or camelCase. Unknown keys are kept so
    the payload can be echoed back unchanged.
    """

    worker_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, JsonValue] | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TaskOutput(BaseModel):
    """Metadata returned by a compute module. ``message`` becomes the result text."""

    message: str

    def details(self) -> dict[str, JsonValue]:
        return self.model_dump(mode="json", exclude={"message"})


P = TypeVar("P", bound=BaseJobParams)
Q = TypeVar("Q", bound=TaskOutput)


class TaskResult(BaseModel):
    """Outcome of ``ComputeModule.execute()``."""

    status: Literal["completed", "failed"]
    output: TaskOutput | None = None
    error: str | None = None


# ─────────────────────────────────────────────────────────────
# Worker IPC messages (camelCase on the wire)
# ─────────────────────────────────────────────────────────────


class _WireModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WorkerJobData(_WireModel):
    """Job descriptor handed to a worker process."""

    job_id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    payload: JobPayloadRecord = Field(default_factory=dict)
    worker_id: str | None = None
    user_id: str | None = None

    @classmethod
    def from_record(cls, record: JobRecord) -> "WorkerJobData":
        return cls(
            job_id=record.id,
            type=record.type,
            payload=record.payload,
            worker_id=record.worker_id,
            user_id=record.user_id,
        )

    def to_record(self) -> JobRecord:
        return JobRecord(
            id=self.job_id,
            type=self.type,
            payload=self.payload,
            status="running",
            worker_id=self.worker_id,
            user_id=self.user_id,
        )


class WorkerResponseData(_WireModel):
    job_id: str
    type: str | None = None
    result: str | None = None
    details: dict[str, JsonValue] | None = None
    payload: JobPayloadRecord | None = None


class WorkerResponse(_WireModel):
    """The single terminal message a worker reports for its job."""

    success: bool
    job_id: str
    data: WorkerResponseData
    error: str | None = None

    @classmethod
    def succeeded(cls, job: WorkerJobData, output: TaskOutput) -> "WorkerResponse":
        return cls(
            success=True,
            job_id=job.job_id,
            data=WorkerResponseData(
                job_id=job.job_id,
                type=job.type,
                result=output.message,
                details=output.details(),
                payload=job.payload,
            ),
        )

    @classmethod
    def failed(cls, job_id: str, job_type: str | None, error: str) -> "WorkerResponse":
        return cls(
            success=False,
            job_id=job_id,
            data=WorkerResponseData(job_id=job_id, type=job_type),
            error=error,
        )

    @classmethod
    def from_task_result(cls, job: WorkerJobData, result: TaskResult) -> "WorkerResponse":
        if result.status == "completed" and result.output is not None:
            return cls.succeeded(job, result.output)
        return cls.failed(job.job_id, job.type, result.error or "unknown error")

    def result_record(self) -> dict[str, JsonValue]:
        """Value stored in ``Job.result`` when the job completes."""
        return {"message": self.data.result, "details": self.data.details}

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)


class WorkerProgress(_WireModel):
    """Non-terminal progress line a worker may emit before its result."""

    event: Literal["progress"] = "progress"
    job_id: str
    progress: int = Field(..., ge=0, le=100)

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)
