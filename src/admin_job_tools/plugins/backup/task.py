"""Backup task implementation."""

from typing import Callable, override

from loguru import logger

from ...common.compute_module import ComputeModule
from ...common.job_storage import JobStorage
from ...config import get_settings
from ...utils.simulated_work import simulate_work
from .schema import BackupOutput, BackupParams


class BackupTask(ComputeModule[BackupParams, BackupOutput]):
    """Simulated database backup."""

    schema: type[BackupParams] = BackupParams

    def __init__(self, simulated_delay: float | None = None):
        self.simulated_delay: float | None = simulated_delay

    @property
    @override
    def task_type(self) -> str:
        return "backup"

    @override
    async def run(
        self,
        job_id: str,
        params: BackupParams,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> BackupOutput:
        logger.info(f"Starting backup job {job_id} (database={params.database})")

        delay = self.simulated_delay
        if delay is None:
            delay = get_settings().simulated_work_seconds
        await simulate_work(delay, steps=4, progress_callback=progress_callback, end=99)

        logger.info(f"Backup completed for job {job_id}")
        return BackupOutput(
            database=params.database,
            tables=params.tables,
            format=params.format,
            compressed=params.options.compress,
        )
