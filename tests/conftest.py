"""Test configuration and fixtures for admin_job_tools.

This module provides:
- Pytest configuration (markers)
- Environment isolation (database, storage, zero simulated delays)
- Function-scoped fixtures (repository, storage, registry, worker, dispatcher)
- API client fixtures backed by a fake dispatcher
"""

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from admin_job_tools.common.compute_module import ComputeModule
from admin_job_tools.common.errors import (
    InvalidTransitionError,
    JobAlreadyClaimedError,
    JobNotFoundError,
)
from admin_job_tools.common.file_storage_impl import LocalFileStorage
from admin_job_tools.common.schema_job import (
    BaseJobParams,
    TaskOutput,
    WorkerJobData,
    WorkerResponse,
)
from admin_job_tools.common.schema_job_record import JobRecord, JobStatus
from admin_job_tools.common.sqlalchemy_repository import SQLAlchemyJobRepository
from admin_job_tools.dispatcher import Dispatcher
from admin_job_tools.master import create_master_router
from admin_job_tools.plugins.backup.task import BackupTask
from admin_job_tools.plugins.extract.task import ExtractTask
from admin_job_tools.plugins.fine_tuning.task import FineTuningTask
from admin_job_tools.plugins.generic.task import DefaultTask, GenericTask
from admin_job_tools.plugins.restore.task import RestoreTask
from admin_job_tools.worker import Worker


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "subprocess: spawns real worker processes",
    )
    config.addinivalue_line(
        "markers",
        "integration: full integration tests (API -> Dispatcher -> Worker)",
    )


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'admin_jobs.db'}"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, database_url: str) -> None:
    """Point settings (and spawned workers, which inherit os.environ) at tmp_path."""
    monkeypatch.setenv("ADMIN_JOBS_DATABASE_URL", database_url)
    monkeypatch.setenv("ADMIN_JOBS_STORAGE_DIR", str(tmp_path / "file_storage"))
    monkeypatch.setenv("ADMIN_JOBS_SIMULATED_WORK_SECONDS", "0")
    monkeypatch.setenv("ADMIN_JOBS_LOG_LEVEL", "WARNING")
    monkeypatch.delenv("ADMIN_JOBS_MQTT_URL", raising=False)
    for name in ("JOB_ID", "JOB_TYPE", "JOB_PAYLOAD", "WORKER_ID", "USER_ID"):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def job_repository(database_url: str) -> Iterator[SQLAlchemyJobRepository]:
    """SQLite-backed repository in a temp directory."""
    repository = SQLAlchemyJobRepository(database_url)
    yield repository
    repository.engine.dispose()


@pytest.fixture
def file_storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(base_dir=tmp_path / "file_storage")


@pytest.fixture
def task_registry(database_url: str) -> dict[str, ComputeModule[BaseJobParams, TaskOutput]]:
    """Explicit registry: no entry-point discovery, no simulated delays."""
    tasks: list[ComputeModule[BaseJobParams, TaskOutput]] = [
        DefaultTask(database_url),
        GenericTask(database_url),
        BackupTask(simulated_delay=0),
        ExtractTask(database_url),
        FineTuningTask(simulated_delay=0),
        RestoreTask(database_url),
    ]
    return {task.task_type: task for task in tasks}


@pytest.fixture
def worker(job_repository, file_storage, task_registry) -> Worker:
    """In-process Worker over the temp repository."""
    return Worker(
        repository=job_repository,
        job_storage=file_storage,
        task_registry=task_registry,
        worker_id="test-worker",
    )


@pytest.fixture
def dispatcher(job_repository) -> Dispatcher:
    """Dispatcher spawning the real worker process module."""
    return Dispatcher(job_repository, max_workers=2, timeout_seconds=60)


# ============================================================================
# API Fixtures
# ============================================================================


class FakeDispatcher:
    """Runs jobs in-process so route tests do not spawn workers."""

    def __init__(self, repository: SQLAlchemyJobRepository, registry, storage):
        self.repository = repository
        self.registry = registry
        self.storage = storage
        self.started: list[str] = []

    def claim(self, job_id: str) -> JobRecord:
        record = self.repository.claim_job(job_id, "fake-worker")
        if record is None:
            current = self.repository.get_job(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            raise JobAlreadyClaimedError(job_id, current.status.value)
        return record

    async def run_claimed(self, record: JobRecord) -> WorkerResponse:
        self.started.append(record.id)
        result = await self.registry[record.type].execute(record, self.storage)
        response = WorkerResponse.from_task_result(WorkerJobData.from_record(record), result)
        if response.success:
            _ = self.repository.mark_completed(record.id, response.result_record())
        else:
            _ = self.repository.mark_failed(record.id, response.error or "")
        return response

    def cancel(self, job_id: str, reason: str = "Job cancelled") -> JobRecord:
        current = self.repository.get_job(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        if not self.repository.mark_cancelled(job_id, reason):
            raise InvalidTransitionError(job_id, current.status.value, JobStatus.cancelled.value)
        return self.repository.get_job(job_id) or current


@pytest.fixture
def fake_dispatcher(job_repository, task_registry, file_storage) -> FakeDispatcher:
    return FakeDispatcher(job_repository, task_registry, file_storage)


@pytest.fixture
def api_client(job_repository, file_storage, fake_dispatcher) -> Iterator[TestClient]:
    """TestClient over the master router (plugin routes via entry points)."""
    app = FastAPI()
    app.include_router(
        create_master_router(job_repository, file_storage, fake_dispatcher, lambda: None),
        prefix="/api",
    )
    with TestClient(app) as client:
        yield client
