"""Master module - job routes plus dynamic plugin route aggregation."""

from importlib.metadata import entry_points
from typing import Annotated, Callable, Protocol, cast
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel

from .common.http_errors import job_errors_as_http
from .common.job_creator import JobStarter, schedule_job
from .common.job_repository import JobRepository
from .common.job_storage import JobStorage
from .common.schema_job_record import (
    JobCreatedResponse,
    JobCreateRequest,
    JobRecord,
    JobStats,
    JobStatus,
)
from .common.user import UserLike


class JobDispatcher(JobStarter, Protocol):
    def cancel(self, job_id: str, reason: str = ...) -> JobRecord: ...


# Type alias for route factory functions loaded from entry points
RouteFactory = Callable[
    [JobRepository, JobStorage, JobStarter, Callable[[], UserLike | None]],
    APIRouter,
]


class JobDeletedResponse(BaseModel):
    id: str
    deleted: bool


def create_job_router(
    repository: JobRepository,
    file_storage: JobStorage,
    dispatcher: JobDispatcher,
    get_current_user: Callable[[], UserLike | None],
) -> APIRouter:
    """CRUD and lifecycle routes shared by every job type."""
    router = APIRouter()

    def get_or_404(job_id: str) -> JobRecord:
        record = repository.get_job(job_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found")
        return record

    @router.post("/jobs", response_model=JobCreatedResponse, status_code=201)
    async def create_job(
        body: JobCreateRequest,
        background_tasks: BackgroundTasks,
        start: Annotated[bool, Query(description="Start the job immediately")] = False,
        user: Annotated[UserLike | None, Depends(get_current_user)] = None,
    ) -> JobCreatedResponse:
        record = JobRecord(
            id=str(uuid4()),
            type=body.type,
            payload=body.payload,
            description=body.description,
        )
        _ = repository.add_job(record, created_by=str(user.id) if user else None)
        if not start:
            return JobCreatedResponse(id=record.id, type=record.type, status=record.status)
        with job_errors_as_http():
            return schedule_job(dispatcher, background_tasks, record.id)

    @router.get("/jobs", response_model=list[JobRecord])
    async def list_jobs(
        job_status: Annotated[JobStatus | None, Query(alias="status")] = None,
        job_type: Annotated[str | None, Query(alias="type")] = None,
        limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    ) -> list[JobRecord]:
        return repository.list_jobs(status=job_status, job_type=job_type, limit=limit)

    @router.get("/jobs/stats", response_model=JobStats)
    async def job_stats() -> JobStats:
        return repository.get_stats()

    @router.get("/jobs/{job_id}", response_model=JobRecord)
    async def get_job(job_id: str) -> JobRecord:
        return get_or_404(job_id)

    @router.delete("/jobs/{job_id}", response_model=JobDeletedResponse)
    async def delete_job(job_id: str) -> JobDeletedResponse:
        record = get_or_404(job_id)
        if record.status == JobStatus.running:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Job '{job_id}' is running; cancel it first",
            )
        deleted = repository.delete_job(job_id)
        _ = file_storage.remove(job_id)
        return JobDeletedResponse(id=job_id, deleted=deleted)

    @router.post("/jobs/{job_id}/start", response_model=JobCreatedResponse, status_code=202)
    async def start_job(job_id: str, background_tasks: BackgroundTasks) -> JobCreatedResponse:
        with job_errors_as_http():
            return schedule_job(dispatcher, background_tasks, job_id)

    @router.post("/jobs/{job_id}/cancel", response_model=JobRecord)
    async def cancel_job(job_id: str) -> JobRecord:
        with job_errors_as_http():
            return dispatcher.cancel(job_id)

    _ = (create_job, list_jobs, job_stats, get_job, delete_job, start_job, cancel_job)
    return router


def create_master_router(
    repository: JobRepository,
    file_storage: JobStorage,
    dispatcher: JobDispatcher,
    get_current_user: Callable[[], UserLike | None],
) -> APIRouter:
    """Job routes plus every plugin's routes.

    Plugin routes are discovered from [project.entry-points."admin_job_tools.routes"]
    in pyproject.toml.

    Args:
        repository: JobRepository implementation for job persistence
        file_storage: JobStorage implementation for job files
        dispatcher: Starts and cancels jobs (usually a Dispatcher)
        get_current_user: Callable dependency for authentication.
                          Should return user object or None.

    Returns:
        Combined APIRouter

    Raises:
        RuntimeError: If a plugin fails to load (missing dependency, etc.)

    Example:
        app = FastAPI()
        repository = SQLAlchemyJobRepository("sqlite:///jobs.db")
        dispatcher = Dispatcher(repository)

        app.include_router(
            create_master_router(repository, LocalFileStorage("./var"), dispatcher, lambda: None),
            prefix="/api",
        )
    """
    master = APIRouter()

    # Typed plugin routes first so "/jobs/backup" never reaches "/jobs/{job_id}"
    for ep in entry_points(group="admin_job_tools.routes"):
        try:
            create_router = cast(RouteFactory, ep.load())
            plugin_router = create_router(repository, file_storage, dispatcher, get_current_user)
        except Exception as e:
            raise RuntimeError(f"Failed to load plugin '{ep.name}': {e}") from e
        master.include_router(plugin_router)

    master.include_router(
        create_job_router(repository, file_storage, dispatcher, get_current_user)
    )
    return master


def get_available_plugins() -> list[str]:
    """Names of the plugins registered as route entry points."""
    return [ep.name for ep in entry_points(group="admin_job_tools.routes")]
