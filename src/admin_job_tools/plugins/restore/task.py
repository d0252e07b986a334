"""Restore task implementation."""

import asyncio
import time
from typing import Callable, override

from loguru import logger

from ...common.compute_module import ComputeModule
from ...common.db import make_engine
from ...common.job_storage import JobStorage
from ...config import get_settings
from .algo.sql_restore import (
    RestoreError,
    cleanup,
    download_backup,
    restore_statements,
    validate_backup,
)
from .schema import RestoreOutput, RestoreParams


class RestoreTask(ComputeModule[RestoreParams, RestoreOutput]):
    """Replay a SQL dump into the configured database."""

    schema: type[RestoreParams] = RestoreParams

    def __init__(self, database_url: str | None = None):
        self.database_url: str | None = database_url

    @property
    @override
    def task_type(self) -> str:
        return "restore"

    @override
    async def run(
        self,
        job_id: str,
        params: RestoreParams,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> RestoreOutput:
        if not params.backup_url:
            raise RestoreError("Backup URL is required")

        logger.info(f"Starting restore job {job_id} from {params.backup_url}")
        options = params.options
        temp_path = storage.allocate_path(
            job_id, f"restore/restore_{job_id}_{int(time.time() * 1000)}.sql"
        )

        engine = make_engine(self.database_url or get_settings().database_url)
        try:
            _ = await asyncio.to_thread(
                download_backup, params.backup_url, temp_path, options.timeout
            )
            if options.validate_file:
                validate_backup(temp_path)
                logger.info("Backup file validation passed")

            stats = await asyncio.to_thread(
                restore_statements,
                engine,
                temp_path,
                options.batch_size,
                progress_callback,
                params.tables,
            )
        finally:
            engine.dispose()
            cleanup(temp_path)

        logger.info(
            f"Restoration completed for job {job_id}. Records: {stats.records_processed}, "
            + f"Tables: {len(stats.tables_restored)}, Duration: {stats.duration}"
        )
        return RestoreOutput(
            records_processed=stats.records_processed,
            tables_restored=stats.tables_restored,
            duration=stats.duration,
        )
