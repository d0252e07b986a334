"""admin_job_tools - Process-isolated background jobs for the admin backend."""

from .common.compute_module import ComputeModule
from .common.errors import (
    InvalidTransitionError,
    JobAlreadyClaimedError,
    JobError,
    JobNotFoundError,
    SchemaMismatchError,
)
from .common.file_storage_impl import LocalFileStorage
from .common.job_repository import JobRepository
from .common.job_storage import AsyncFileLike, FileLike, JobStorage, SavedJobFile
from .common.schema_job import (
    BaseJobParams,
    TaskOutput,
    TaskResult,
    WorkerJobData,
    WorkerProgress,
    WorkerResponse,
)
from .common.schema_job_record import JobRecord, JobStats, JobStatus
from .common.sqlalchemy_repository import SQLAlchemyJobRepository
from .dispatcher import Dispatcher
from .master import create_master_router
from .utils.mqtt import (
    BroadcasterBase,
    MQTTBroadcaster,
    NoOpBroadcaster,
    get_broadcaster,
    shutdown_broadcaster,
)
from .worker import Worker

__version__ = "0.1.0"

__all__ = [
    "AsyncFileLike",
    "BaseJobParams",
    "BroadcasterBase",
    "ComputeModule",
    "Dispatcher",
    "FileLike",
    "InvalidTransitionError",
    "JobAlreadyClaimedError",
    "JobError",
    "JobNotFoundError",
    "JobRecord",
    "JobRepository",
    "JobStats",
    "JobStatus",
    "JobStorage",
    "LocalFileStorage",
    "MQTTBroadcaster",
    "NoOpBroadcaster",
    "SQLAlchemyJobRepository",
    "SavedJobFile",
    "SchemaMismatchError",
    "TaskOutput",
    "TaskResult",
    "Worker",
    "WorkerJobData",
    "WorkerProgress",
    "WorkerResponse",
    "__version__",
    "create_master_router",
    "get_broadcaster",
    "shutdown_broadcaster",
]
