"""Restore job route factory."""

from pathlib import Path
from typing import Annotated, Callable

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile

from ...common.http_errors import job_errors_as_http
from ...common.job_creator import (
    JobStarter,
    create_job_from_params,
    create_job_from_upload,
    schedule_job,
)
from ...common.job_repository import JobRepository
from ...common.job_storage import JobStorage
from ...common.schema_job_record import JobCreatedResponse
from ...common.user import UserLike
from .schema import RestoreOptions, RestoreParams


def create_router(
    repository: JobRepository,
    file_storage: JobStorage,
    dispatcher: JobStarter,
    get_current_user: Callable[[], UserLike | None],
) -> APIRouter:
    """Create router with injected dependencies."""
    router = APIRouter()

    @router.post("/jobs/restore", response_model=JobCreatedResponse, status_code=202)
    async def create_restore_job(
        params: RestoreParams,
        background_tasks: BackgroundTasks,
        start: Annotated[bool, Query(description="Start the job immediately")] = True,
        user: Annotated[UserLike | None, Depends(get_current_user)] = None,
    ) -> JobCreatedResponse:
        created = create_job_from_params(
            task_type="restore", repository=repository, params=params, user=user
        )
        if not start:
            return created
        with job_errors_as_http():
            return schedule_job(dispatcher, background_tasks, created.id)

    @router.post("/jobs/restore/upload", response_model=JobCreatedResponse, status_code=202)
    async def create_restore_upload_job(
        file: Annotated[UploadFile, File(description="SQL dump to restore")],
        background_tasks: BackgroundTasks,
        validate: Annotated[bool, Form(description="Validate the dump first")] = True,
        batch_size: Annotated[int, Form(ge=1, description="Statements per batch")] = 100,
        start: Annotated[bool, Query(description="Start the job immediately")] = True,
        user: Annotated[UserLike | None, Depends(get_current_user)] = None,
    ) -> JobCreatedResponse:
        with job_errors_as_http():
            created = await create_job_from_upload(
                task_type="restore",
                repository=repository,
                file_storage=file_storage,
                file=file,
                user=user,
                params_factory=lambda path: RestoreParams(
                    backup_url=Path(path).as_uri(),
                    options=RestoreOptions(validate_file=validate, batch_size=batch_size),
                ),
            )
        if not start:
            return created
        with job_errors_as_http():
            return schedule_job(dispatcher, background_tasks, created.id)

    _ = (create_restore_job, create_restore_upload_job)
    return router
