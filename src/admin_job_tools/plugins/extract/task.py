"""Extract task implementation."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, override

from loguru import logger

from ...common.compute_module import ComputeModule
from ...common.db import make_engine
from ...common.job_storage import JobStorage
from ...config import get_settings
from .algo.table_dump import dump_tables, reflect_tables
from .schema import ExtractOutput, ExtractParams


def backup_file_name(job_id: str, output_format: str, compress: bool) -> str:
    """``backups/db-backup-<jobId>-<UTC timestamp>.<ext>`` (csv is a directory)."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    name = f"backups/db-backup-{job_id}-{stamp}"
    if output_format == "csv":
        return name
    return f"{name}.{output_format}.gz" if compress else f"{name}.{output_format}"


class ExtractTask(ComputeModule[ExtractParams, ExtractOutput]):
    """Dump tables of the configured database into job storage."""

    schema: type[ExtractParams] = ExtractParams

    def __init__(self, database_url: str | None = None):
        self.database_url: str | None = database_url

    @property
    @override
    def task_type(self) -> str:
        return "extract"

    @override
    async def run(
        self,
        job_id: str,
        params: ExtractParams,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> ExtractOutput:
        started = time.monotonic()
        compress = params.options.compression == "gzip" and params.output_format != "csv"
        relative_path = backup_file_name(job_id, params.output_format, compress)
        path = storage.allocate_path(job_id, relative_path)

        engine = make_engine(self.database_url or get_settings().database_url)
        try:
            logger.info(f"Extracting database for job {job_id} to {relative_path}")
            tables = reflect_tables(engine, params.tables)
            stats = await asyncio.to_thread(
                dump_tables,
                engine,
                tables,
                path,
                params.output_format,
                compress=compress,
                include_schema=params.options.include_schema,
                batch_size=params.options.batch_size,
                progress_callback=progress_callback,
            )
        finally:
            engine.dispose()

        duration = f"{int((time.monotonic() - started) * 1000)}ms"
        logger.info(
            f"Extract for job {job_id}: {stats.records} records from {len(stats.tables)} tables in {duration}"
        )
        return ExtractOutput(
            backup_file=relative_path,
            output_format=params.output_format,
            records_processed=stats.records,
            tables_processed=stats.tables,
            duration=duration,
        )
