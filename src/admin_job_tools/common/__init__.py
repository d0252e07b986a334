"""Common module - protocols, schemas, storage and the job store."""

from .compute_module import ComputeModule
from .errors import (
    InvalidTransitionError,
    JobAlreadyClaimedError,
    JobError,
    JobNotFoundError,
    SchemaMismatchError,
)
from .file_storage_impl import LocalFileStorage
from .job_repository import JobRepository
from .job_storage import JobStorage
from .schema_job import BaseJobParams, TaskOutput, TaskResult, WorkerJobData, WorkerResponse
from .sqlalchemy_repository import SQLAlchemyJobRepository

__all__ = [
    "BaseJobParams",
    "ComputeModule",
    "InvalidTransitionError",
    "JobAlreadyClaimedError",
    "JobError",
    "JobNotFoundError",
    "JobRepository",
    "JobStorage",
    "LocalFileStorage",
    "SQLAlchemyJobRepository",
    "SchemaMismatchError",
    "TaskOutput",
    "TaskResult",
    "WorkerJobData",
    "WorkerResponse",
]
