"""ComputeModule - Abstract base class for job-type tasks."""

from abc import ABC, abstractmethod
from typing import Callable, Generic

from loguru import logger
from pydantic import ValidationError

from .job_storage import JobStorage
from .schema_job import P, Q, TaskResult
from .schema_job_record import JobRecord


class ComputeModule(ABC, Generic[P, Q]):
    """
    Stateless, template-method based compute module.

    - The payload is validated once against ``schema`` and passed through
    - run() owns any persistence (files go through JobStorage)
    - execute() never raises; failures are returned as data
    """

    schema: type[P]

    @property
    @abstractmethod
    def task_type(self) -> str: ...

    def setup(self) -> None:
        """Optional per-execution setup."""
        pass

    @abstractmethod
    async def run(
        self,
        job_id: str,
        params: P,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> Q:
        """
        Execute task.

        - May persist data via storage
        - Must return metadata only
        """
        ...

    async def execute(
        self,
        job_record: JobRecord,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> TaskResult:
        try:
            params = self.schema.model_validate(job_record.payload)
        except ValidationError as exc:
            return TaskResult(status="failed", error=f"Invalid payload: {exc}")

        try:
            self.setup()
            output = await self.run(job_record.id, params, storage, progress_callback)
            return TaskResult(status="completed", output=output)

        except FileNotFoundError as exc:
            return TaskResult(status="failed", error=f"File not found: {exc}")

        except Exception as exc:
            logger.exception(f"{self.task_type} job {job_record.id} failed: {exc}")
            return TaskResult(status="failed", error=str(exc))
