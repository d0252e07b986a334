"""Helpers shared by the typed job creation routes."""

from pathlib import Path
from typing import Callable, Protocol
from uuid import uuid4

from fastapi import BackgroundTasks, UploadFile

from .job_repository import JobRepository
from .job_storage import InvalidJobPathError, JobStorage, JobStorageError
from .schema_job import BaseJobParams, P, WorkerResponse
from .schema_job_record import JobCreatedResponse, JobRecord, JobStatus
from .user import UserLike


class JobStarter(Protocol):
    """The part of the dispatcher the routes need."""

    def claim(self, job_id: str) -> JobRecord: ...

    async def run_claimed(self, record: JobRecord) -> WorkerResponse: ...


def _user_id(user: UserLike | None) -> str | None:
    return str(user.id) if user is not None else None


def schedule_job(
    starter: JobStarter,
    background_tasks: BackgroundTasks,
    job_id: str,
) -> JobCreatedResponse:
    """Claim ``job_id`` now and run its worker after the response is sent.

    Raises:
        JobNotFoundError, JobAlreadyClaimedError: from ``claim``.
    """
    record = starter.claim(job_id)
    background_tasks.add_task(starter.run_claimed, record)
    return JobCreatedResponse(id=record.id, type=record.type, status=record.status)


def create_job_from_params(
    *,
    task_type: str,
    repository: JobRepository,
    params: BaseJobParams,
    user: UserLike | None,
    description: str | None = None,
    job_id: str | None = None,
) -> JobCreatedResponse:
    """Insert a pending job whose payload is ``params``."""
    job_id = job_id or str(uuid4())

    record = JobRecord(
        id=job_id,
        type=task_type,
        payload=params.model_dump(mode="json", by_alias=True, exclude_none=True),
        status=JobStatus.pending,
        description=description,
    )
    _ = repository.add_job(record, created_by=_user_id(user))

    return JobCreatedResponse(id=job_id, type=task_type, status=record.status)


async def create_job_from_upload(
    *,
    task_type: str,
    repository: JobRepository,
    file_storage: JobStorage,
    file: UploadFile,
    params_factory: Callable[[str], P],
    user: UserLike | None,
    description: str | None = None,
) -> JobCreatedResponse:
    """Store an uploaded file under the new job, then insert the job.

    ``params_factory`` receives the absolute path of the stored file. Only
    the final component of the client's filename is used.

    Raises:
        InvalidJobPathError: The filename has no usable final component.
        JobStorageError: The file could not be stored; the job directory is
            removed again.
    """
    job_id = str(uuid4())
    filename = Path(file.filename or "").name
    if filename in ("", ".", ".."):
        raise InvalidJobPathError(job_id, file.filename or "")

    file_storage.create_directory(job_id)
    try:
        saved = await file_storage.save(job_id, f"input/{filename}", file)
    except JobStorageError:
        _ = file_storage.remove(job_id)
        raise
    stored_path = file_storage.resolve_path(job_id, saved.relative_path)

    return create_job_from_params(
        task_type=task_type,
        repository=repository,
        params=params_factory(str(stored_path)),
        user=user,
        description=description,
        job_id=job_id,
    )
