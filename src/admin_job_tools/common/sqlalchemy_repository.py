"""SQLAlchemy implementation of the JobRepository protocol."""

import re
from collections.abc import Collection, Sequence
from datetime import datetime, timezone
from typing import Any, override

from loguru import logger
from pydantic import JsonValue
from sqlalchemy import Engine, Row, delete, func, insert, select, update
from sqlalchemy.exc import OperationalError, ProgrammingError

from .db import JOB_COLUMNS, Base, JobRow, make_engine
from .errors import SchemaMismatchError
from .job_repository import JobRepository
from .schema_job_record import JobRecord, JobStats, JobStatus

_jobs = JobRow.__table__

# SQLite, MySQL and PostgreSQL wordings of "this column does not exist"
_MISSING_COLUMN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"has no column named (\w+)"),
    re.compile(r"no such column: (?:\w+\.)?(\w+)"),
    re.compile(r"Unknown column '(?:\w+\.)?(\w+)'"),
    re.compile(r'column "(\w+)" of relation "\w+" does not exist'),
    re.compile(r'column "(?:\w+\.)?(\w+)" does not exist'),
)

_FETCH_ATTEMPTS = 5

_TIMESTAMP_COLUMNS = ("created_at", "updated_at", "started_at", "finished_at")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def missing_column(message: str) -> str | None:
    """Return the column name a "column does not exist" DB error refers to."""
    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset, so naive values read back are UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: Row[Any]) -> JobRecord:
    data = dict(row._mapping)
    for key in _TIMESTAMP_COLUMNS:
        if key in data:
            data[key] = _as_utc(data[key])
    data["payload"] = data.get("payload") or {}
    data["progress"] = data.get("progress") or 0
    return JobRecord.model_validate(data)


class SQLAlchemyJobRepository(JobRepository):
    """Job store on any SQLAlchemy-supported database.

    Every lifecycle write is a single conditional UPDATE, so concurrent
    writers cannot both succeed: a claim only wins when its
    ``status = 'pending'`` guard matches exactly one row.
    """

    def __init__(self, engine: Engine | str, create_tables: bool = True):
        self.engine: Engine = make_engine(engine) if isinstance(engine, str) else engine
        if create_tables:
            Base.metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    @override
    def add_job(
        self,
        job: JobRecord,
        created_by: str | None = None,
        columns: Collection[str] | None = None,
    ) -> str:
        now = _now()
        values: dict[str, Any] = job.model_dump(mode="python")
        values["status"] = job.status.value
        for key in _TIMESTAMP_COLUMNS:
            values[key] = _as_utc(values.get(key))
        values["created_at"] = values["created_at"] or now
        values["updated_at"] = values["updated_at"] or now
        if created_by is not None:
            values["user_id"] = created_by

        if columns is not None:
            unknown = set(columns) - set(JOB_COLUMNS)
            if unknown:
                raise ValueError(f"Unknown job columns: {sorted(unknown)}")
            values = {k: v for k, v in values.items() if k in columns}

        try:
            with self.engine.begin() as conn:
                _ = conn.execute(insert(_jobs).values(**values))
        except (OperationalError, ProgrammingError) as exc:
            message = str(exc.orig)
            column = missing_column(message)
            if column is None:
                raise
            raise SchemaMismatchError(column, message) from exc

        logger.info(f"Job {job.id} created: type={job.type} status={job.status.value}")
        return job.id

    @override
    def get_job(self, job_id: str) -> JobRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_jobs).where(_jobs.c.id == job_id)).first()
        return _to_record(row) if row is not None else None

    @override
    def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: str | None = None,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[JobRecord]:
        stmt = select(_jobs)
        if status is not None:
            stmt = stmt.where(_jobs.c.status == JobStatus(status).value)
        if job_type is not None:
            stmt = stmt.where(_jobs.c.type == job_type)
        if user_id is not None:
            stmt = stmt.where(_jobs.c.user_id == user_id)
        stmt = stmt.order_by(_jobs.c.created_at.desc(), _jobs.c.id).limit(limit)

        with self.engine.connect() as conn:
            return [_to_record(row) for row in conn.execute(stmt)]

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    @override
    def claim_job(self, job_id: str, worker_id: str) -> JobRecord | None:
        now = _now()
        stmt = (
            update(_jobs)
            .where(_jobs.c.id == job_id, _jobs.c.status == JobStatus.pending.value)
            .values(
                status=JobStatus.running.value,
                worker_id=worker_id,
                progress=0,
                started_at=now,
                updated_at=now,
            )
        )
        with self.engine.begin() as conn:
            claimed = conn.execute(stmt).rowcount == 1

        if not claimed:
            return None

        logger.info(f"Job {job_id}: pending -> running (claimed by {worker_id})")
        return self.get_job(job_id)

    @override
    def fetch_next_job(
        self,
        task_types: Sequence[str],
        worker_id: str | None = None,
    ) -> JobRecord | None:
        if not task_types:
            return None

        stmt = (
            select(_jobs.c.id)
            .where(
                _jobs.c.status == JobStatus.pending.value,
                _jobs.c.type.in_(list(task_types)),
            )
            .order_by(_jobs.c.created_at, _jobs.c.id)
            .limit(1)
        )

        # Another worker may win the candidate between SELECT and UPDATE
        for _ in range(_FETCH_ATTEMPTS):
            with self.engine.connect() as conn:
                job_id = conn.execute(stmt).scalar()
            if job_id is None:
                return None
            record = self.claim_job(job_id, worker_id or "worker")
            if record is not None:
                return record
        return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        job_id: str,
        sources: Sequence[JobStatus],
        **values: Any,
    ) -> bool:
        stmt = (
            update(_jobs)
            .where(
                _jobs.c.id == job_id,
                _jobs.c.status.in_([s.value for s in sources]),
            )
            .values(updated_at=_now(), **values)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount == 1

    @override
    def update_progress(self, job_id: str, progress: int) -> bool:
        progress = max(0, min(100, int(progress)))
        return self._transition(job_id, [JobStatus.running], progress=progress)

    @override
    def mark_completed(self, job_id: str, result: JsonValue | None = None) -> bool:
        ok = self._transition(
            job_id,
            [JobStatus.running],
            status=JobStatus.completed.value,
            result=result,
            progress=100,
            finished_at=_now(),
        )
        if ok:
            logger.info(f"Job {job_id}: running -> completed")
        else:
            logger.warning(f"Job {job_id}: completion rejected, job is not running")
        return ok

    @override
    def mark_failed(self, job_id: str, error: str) -> bool:
        ok = self._transition(
            job_id,
            [JobStatus.running],
            status=JobStatus.failed.value,
            error=error,
            finished_at=_now(),
        )
        if ok:
            logger.info(f"Job {job_id}: running -> failed ({error})")
        else:
            logger.warning(f"Job {job_id}: failure rejected, job is not running")
        return ok

    @override
    def mark_cancelled(self, job_id: str, reason: str | None = None) -> bool:
        ok = self._transition(
            job_id,
            [JobStatus.pending, JobStatus.running],
            status=JobStatus.cancelled.value,
            error=reason or "cancelled",
            finished_at=_now(),
        )
        if ok:
            logger.info(f"Job {job_id}: -> cancelled")
        return ok

    # ------------------------------------------------------------------
    # Delete / stats
    # ------------------------------------------------------------------

    @override
    def delete_job(self, job_id: str) -> bool:
        with self.engine.begin() as conn:
            deleted = conn.execute(delete(_jobs).where(_jobs.c.id == job_id)).rowcount
        return deleted > 0

    @override
    def get_stats(self) -> JobStats:
        stmt = select(_jobs.c.status, func.count()).group_by(_jobs.c.status)
        counts: dict[str, int] = {}
        with self.engine.connect() as conn:
            for status, count in conn.execute(stmt):
                counts[status] = count

        known = {s.value: counts.get(s.value, 0) for s in JobStatus}
        return JobStats(total=sum(counts.values()), **known)
