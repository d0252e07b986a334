"""Seed the jobs table with mock jobs.

Usage:
    python -m admin_job_tools.seed [--database-url URL]
"""

import argparse
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final
from uuid import uuid4

from loguru import logger
from pydantic import JsonValue
from sqlalchemy.exc import SQLAlchemyError

from .common.errors import SchemaMismatchError
from .common.job_repository import JobRepository
from .common.schema_job_record import JobRecord, JobStatus
from .common.sqlalchemy_repository import SQLAlchemyJobRepository
from .config import get_settings
from .utils.log_config import configure_logging

MINIMAL_COLUMNS: Final[tuple[str, ...]] = ("id", "type", "status")


@dataclass(frozen=True)
class MockJob:
    type: str
    name: str
    status: JobStatus
    result: JsonValue | None = None


MOCK_JOBS: Final[tuple[MockJob, ...]] = (
    MockJob("default", "Default Job", JobStatus.pending),
    MockJob(
        "fine-tuning",
        "Fine-tuning Model",
        JobStatus.completed,
        "Model fine-tuned successfully.",
    ),
    MockJob("backup", "Database Backup", JobStatus.running),
    MockJob(
        "extract-file",
        "Extract File",
        JobStatus.failed,
        "File extraction failed due to missing file.",
    ),
)


def seed_jobs(
    repository: JobRepository,
    jobs: Sequence[MockJob] = MOCK_JOBS,
) -> list[str]:
    """Insert ``jobs`` and return the ids that were created.

    A table lacking one of the columns gets the job inserted with the
    minimal column set instead. Any other failure skips that job.
    """
    logger.info("Seeding jobs...")
    created: list[str] = []

    for job in jobs:
        record = JobRecord(
            id=str(uuid4()),
            type=job.type,
            status=job.status,
            result=job.result,
            description=job.name,
        )
        try:
            try:
                created.append(repository.add_job(record))
                logger.info(f"Created job: {job.type} ({job.status.value})")
            except SchemaMismatchError as exc:
                logger.warning(f"Column '{exc.column}' not found in database, using basic fields only")
                created.append(repository.add_job(record, columns=MINIMAL_COLUMNS))
                logger.info(f"Created job with minimal data: {job.type}")
        except (SchemaMismatchError, SQLAlchemyError) as exc:
            logger.error(f"Error creating job {job.type}: {exc}")

    logger.info(f"Successfully seeded {len(created)} jobs")
    return created


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the jobs table with mock jobs.")
    _ = parser.add_argument("--database-url", default=None)
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    repository = SQLAlchemyJobRepository(args.database_url or settings.database_url)
    try:
        _ = seed_jobs(repository)
    finally:
        repository.engine.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
