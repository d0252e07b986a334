"""JobRepository Protocol - interface for job persistence."""

from collections.abc import Collection, Sequence
from typing import Protocol, runtime_checkable

from pydantic import JsonValue

from .schema_job_record import JobRecord, JobStats, JobStatus


@runtime_checkable
class JobRepository(Protocol):
    """Protocol for job persistence operations.

    Implementations must make claiming atomic and must only apply a
    lifecycle transition when the row is in the expected source status.
    """

    def add_job(
        self,
        job: JobRecord,
        created_by: str | None = None,
        columns: Collection[str] | None = None,
    ) -> str:
        """Save job to database.

        Args:
            job: Record to insert
            created_by: Optional user id stored as ``user_id``
            columns: Restrict the insert to these fields (reduced field set)

        Returns:
            The id of the saved job

        Raises:
            SchemaMismatchError: The table lacks a column the insert names.
        """
        ...

    def get_job(self, job_id: str) -> JobRecord | None:
        """Get job by ID."""
        ...

    def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: str | None = None,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[JobRecord]:
        """List jobs, newest first."""
        ...

    def claim_job(self, job_id: str, worker_id: str) -> JobRecord | None:
        """Atomically move a pending job to running.

        Returns:
            The claimed record, or None when the job is missing or not pending.
        """
        ...

    def fetch_next_job(
        self,
        task_types: Sequence[str],
        worker_id: str | None = None,
    ) -> JobRecord | None:
        """Atomically find and claim the oldest pending job of the given types."""
        ...

    def update_progress(self, job_id: str, progress: int) -> bool:
        """Set progress of a running job."""
        ...

    def mark_completed(self, job_id: str, result: JsonValue | None = None) -> bool:
        """running -> completed. Returns False if the job was not running."""
        ...

    def mark_failed(self, job_id: str, error: str) -> bool:
        """running -> failed. Returns False if the job was not running."""
        ...

    def mark_cancelled(self, job_id: str, reason: str | None = None) -> bool:
        """pending|running -> cancelled. Returns False for terminal jobs."""
        ...

    def delete_job(self, job_id: str) -> bool:
        """Delete job from database."""
        ...

    def get_stats(self) -> JobStats:
        """Count jobs per status."""
        ...
