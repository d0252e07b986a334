"""Generic and default task implementations."""

from typing import Callable, override

from loguru import logger

from ...common.compute_module import ComputeModule
from ...common.job_storage import JobStorage
from ..extract.schema import ExtractParams
from ..extract.task import ExtractTask
from .schema import GenericOutput, GenericParams


class GenericTask(ComputeModule[GenericParams, GenericOutput]):
    """Runs ``operation``: ``extract`` dumps the database, anything else is a no-op."""

    schema: type[GenericParams] = GenericParams

    def __init__(self, database_url: str | None = None):
        self.database_url: str | None = database_url

    @property
    @override
    def task_type(self) -> str:
        return "generic"

    @override
    async def run(
        self,
        job_id: str,
        params: GenericParams,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> GenericOutput:
        operation = params.operation or self.task_type
        logger.info(f"Job {job_id}: running generic operation '{operation}'")

        if operation == "extract":
            extract_params = ExtractParams.model_validate(params.parameters)
            extracted = await ExtractTask(self.database_url).run(
                job_id, extract_params, storage, progress_callback
            )
            return GenericOutput(
                message="Extract completed successfully",
                status="success",
                data=extracted.details(),
            )

        return GenericOutput(
            message="No operation performed",
            status="no-op",
            data={"type": operation},
        )


class DefaultTask(GenericTask):
    """Handles jobs of type ``default`` with the generic behavior."""

    @property
    @override
    def task_type(self) -> str:
        return "default"
