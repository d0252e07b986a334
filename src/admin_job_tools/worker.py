"""Worker runtime - task discovery and in-process job execution."""

import asyncio
from importlib.metadata import entry_points
from typing import cast
from uuid import uuid4

from loguru import logger

from .common.compute_module import ComputeModule
from .common.job_repository import JobRepository
from .common.job_storage import JobStorage
from .common.schema_job import BaseJobParams, TaskOutput, WorkerJobData, WorkerResponse

TaskRegistry = dict[str, ComputeModule[BaseJobParams, TaskOutput]]


def get_task_registry() -> TaskRegistry:
    """Dynamically load all tasks from entry points.

    Discovers tasks from [project.entry-points."admin_job_tools.tasks"]
    in pyproject.toml.

    Returns:
        Dict mapping task_type -> ComputeModule instance

    Raises:
        RuntimeError: If a plugin fails to load (missing dependency, etc.)
    """
    registry: TaskRegistry = {}
    for ep in entry_points(group="admin_job_tools.tasks"):
        try:
            task_class = cast(type[ComputeModule[BaseJobParams, TaskOutput]], ep.load())
            task = task_class()
            registry[task.task_type] = task
        except Exception as e:
            raise RuntimeError(f"Failed to load task '{ep.name}': {e}") from e

    return registry


class Worker:
    """In-process worker: claims queued jobs and runs them in this event loop.

    The repository's atomic claim keeps several workers (or a worker and the
    dispatcher) from running the same job.

    Example:
        repository = SQLAlchemyJobRepository("sqlite:///jobs.db")
        worker = Worker(repository, LocalFileStorage("./var/storage"))
        await worker.run_forever(poll_interval=1.0)
    """

    def __init__(
        self,
        repository: JobRepository,
        job_storage: JobStorage,
        task_registry: TaskRegistry | None = None,
        worker_id: str | None = None,
    ):
        self.repository: JobRepository = repository
        self.job_storage: JobStorage = job_storage
        self.task_registry: TaskRegistry = (
            task_registry if task_registry is not None else get_task_registry()
        )
        self.worker_id: str = worker_id or f"worker-{uuid4().hex[:8]}"

    def get_supported_task_types(self) -> list[str]:
        return list(self.task_registry.keys())

    async def run_once(self, task_types: list[str] | None = None) -> bool:
        """Process one job and return.

        Args:
            task_types: Job types to take. None means every registered type.

        Returns:
            True if a job was processed, False if none was available.
        """
        if task_types is None:
            valid_types = self.get_supported_task_types()
        else:
            valid_types = [t for t in task_types if t in self.task_registry]

        if not valid_types:
            return False

        record = self.repository.fetch_next_job(valid_types, self.worker_id)
        if record is None:
            return False

        task = self.task_registry[record.type]

        def progress_callback(pct: int) -> None:
            _ = self.repository.update_progress(record.id, min(99, pct))

        result = await task.execute(record, self.job_storage, progress_callback)
        response = WorkerResponse.from_task_result(WorkerJobData.from_record(record), result)

        if response.success:
            _ = self.repository.mark_completed(record.id, response.result_record())
        else:
            _ = self.repository.mark_failed(record.id, response.error or "unknown error")
        return True

    async def run_forever(
        self,
        poll_interval: float = 1.0,
        stop_event: asyncio.Event | None = None,
        task_types: list[str] | None = None,
    ) -> None:
        """Keep processing jobs until ``stop_event`` is set."""
        logger.info(f"Worker {self.worker_id} started: {self.get_supported_task_types()}")
        while not (stop_event and stop_event.is_set()):
            if await self.run_once(task_types):
                continue
            if stop_event is None:
                await asyncio.sleep(poll_interval)
                continue
            try:
                _ = await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
            except TimeoutError:
                pass
        logger.info(f"Worker {self.worker_id} stopped")
