"""Fine-tuning job route factory."""

from typing import Annotated, Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from ...common.http_errors import job_errors_as_http
from ...common.job_creator import JobStarter, create_job_from_params, schedule_job
from ...common.job_repository import JobRepository
from ...common.job_storage import JobStorage
from ...common.schema_job_record import JobCreatedResponse
from ...common.user import UserLike
from .schema import FineTuningParams


def create_router(
    repository: JobRepository,
    file_storage: JobStorage,
    dispatcher: JobStarter,
    get_current_user: Callable[[], UserLike | None],
) -> APIRouter:
    """Create router with injected dependencies."""
    _ = file_storage
    router = APIRouter()

    @router.post("/jobs/fine-tuning", response_model=JobCreatedResponse, status_code=202)
    async def create_fine_tuning_job(
        params: FineTuningParams,
        background_tasks: BackgroundTasks,
        start: Annotated[bool, Query(description="Start the job immediately")] = True,
        user: Annotated[UserLike | None, Depends(get_current_user)] = None,
    ) -> JobCreatedResponse:
        created = create_job_from_params(
            task_type="fine-tuning", repository=repository, params=params, user=user
        )
        if not start:
            return created
        with job_errors_as_http():
            return schedule_job(dispatcher, background_tasks, created.id)

    _ = create_fine_tuning_job
    return router
