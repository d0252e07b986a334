"""Dispatcher - creates, claims and supervises process-isolated jobs.

The dispatcher is the only writer of terminal job state. Each claimed job
runs in its own ``python -m admin_job_tools.worker_process`` child, bounded
by a semaphore of ``max_workers`` slots. The child's stdout is the single
IPC channel: progress lines update the row, and the one terminal line
decides between completed and failed. Crashes, spawn failures and
timeouts are turned into a failed row here, so no job stays running.
"""

import asyncio
import json
import os
import sys
from collections.abc import Mapping, Sequence
from uuid import uuid4

from loguru import logger
from pydantic import JsonValue, ValidationError

from .common.errors import InvalidTransitionError, JobAlreadyClaimedError, JobNotFoundError
from .common.job_repository import JobRepository
from .common.schema_job import WorkerProgress, WorkerResponse
from .common.schema_job_record import JobRecord, JobStatus
from .utils.mqtt import BroadcasterBase, NoOpBroadcaster

JOB_TOPIC = "admin_jobs/jobs/{job_id}/status"

SHUTDOWN_REASON = "Dispatcher shut down"

# Terminal messages may carry large details
_STDOUT_LIMIT = 16 * 1024 * 1024


def job_topic(job_id: str) -> str:
    return JOB_TOPIC.format(job_id=job_id)


class Dispatcher:
    """Runs jobs in worker processes.

    Example:
        dispatcher = Dispatcher(repository, max_workers=4, timeout_seconds=600)
        record = dispatcher.submit("backup", {"database": "main"})
        response = await dispatcher.dispatch(record.id)
    """

    def __init__(
        self,
        repository: JobRepository,
        max_workers: int = 4,
        timeout_seconds: float | None = None,
        worker_command: Sequence[str] | None = None,
        broadcaster: BroadcasterBase | None = None,
        env: Mapping[str, str] | None = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.repository: JobRepository = repository
        self.max_workers: int = max_workers
        self.timeout_seconds: float | None = timeout_seconds or None
        self.worker_command: list[str] = list(
            worker_command or [sys.executable, "-m", "admin_job_tools.worker_process"]
        )
        self.broadcaster: BroadcasterBase = broadcaster or NoOpBroadcaster()
        self.env: Mapping[str, str] | None = env

        self._semaphore: asyncio.Semaphore | None = None
        self._semaphore_loop: asyncio.AbstractEventLoop | None = None
        self._running: dict[str, asyncio.subprocess.Process] = {}
        self._cancelled: set[str] = set()
        # Claimed by this dispatcher and not yet finished
        self._claimed: set[str] = set()

    # ------------------------------------------------------------------
    # Record creation and claiming
    # ------------------------------------------------------------------

    def submit(
        self,
        job_type: str,
        payload: Mapping[str, JsonValue] | None = None,
        user_id: str | None = None,
        description: str | None = None,
    ) -> JobRecord:
        """Create a pending job record."""
        record = JobRecord(
            id=str(uuid4()),
            type=job_type,
            payload=dict(payload or {}),
            user_id=user_id,
            description=description,
        )
        _ = self.repository.add_job(record)
        self._publish(record.id)
        return self.repository.get_job(record.id) or record

    def claim(self, job_id: str) -> JobRecord:
        """Atomically move ``job_id`` from pending to running.

        Raises:
            JobNotFoundError: No such job.
            JobAlreadyClaimedError: The job is not pending.
        """
        worker_id = f"worker-{uuid4().hex[:8]}"
        record = self.repository.claim_job(job_id, worker_id)
        if record is None:
            current = self.repository.get_job(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            raise JobAlreadyClaimedError(job_id, current.status.value)
        self._claimed.add(job_id)
        self._publish(job_id)
        return record

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _slots(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_workers)
            self._semaphore_loop = loop
        return self._semaphore

    async def run_claimed(self, record: JobRecord) -> WorkerResponse:
        """Run an already claimed job and record its terminal state.

        Always returns exactly one response for ``record.id``. If this
        coroutine is itself cancelled, the worker is killed and the job is
        failed before the cancellation propagates.
        """
        self._claimed.add(record.id)
        try:
            async with self._slots():
                if record.id in self._cancelled:
                    response = WorkerResponse.failed(record.id, record.type, "Job cancelled")
                else:
                    response = await self._supervise(record)

            self._finish(record, response)
            return response
        except asyncio.CancelledError:
            self._abandon(record)
            raise
        finally:
            self._claimed.discard(record.id)

    async def dispatch(self, job_id: str) -> WorkerResponse:
        """Claim ``job_id`` and run it to completion."""
        record = self.claim(job_id)
        return await self.run_claimed(record)

    async def dispatch_many(self, job_ids: Sequence[str]) -> list[WorkerResponse]:
        """Dispatch concurrently; one response per id, in input order."""

        async def one(job_id: str) -> WorkerResponse:
            try:
                return await self.dispatch(job_id)
            except (JobNotFoundError, JobAlreadyClaimedError) as exc:
                return WorkerResponse.failed(job_id, None, str(exc))

        return list(await asyncio.gather(*(one(job_id) for job_id in job_ids)))

    def _worker_env(self, record: JobRecord) -> dict[str, str]:
        env = dict(os.environ if self.env is None else self.env)
        env["JOB_ID"] = record.id
        env["JOB_TYPE"] = record.type
        env["JOB_PAYLOAD"] = json.dumps(record.payload)
        env["WORKER_ID"] = record.worker_id or ""
        env["USER_ID"] = record.user_id or ""
        return env

    async def _supervise(self, record: JobRecord) -> WorkerResponse:
        job_id = record.id
        try:
            process = await asyncio.create_subprocess_exec(
                *self.worker_command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                env=self._worker_env(record),
                limit=_STDOUT_LIMIT,
            )
        except OSError as exc:
            logger.error(f"Failed to start worker for job {job_id}: {exc}")
            return WorkerResponse.failed(job_id, record.type, f"failed to start worker: {exc}")

        self._running[job_id] = process
        logger.info(f"Job {job_id}: worker pid {process.pid} started")
        terminal: WorkerResponse | None = None

        async def read_messages() -> None:
            nonlocal terminal
            assert process.stdout is not None
            async for raw in process.stdout:
                message = self._parse_line(record, raw)
                if message is not None and terminal is None:
                    terminal = message

        try:
            _ = await asyncio.wait_for(
                asyncio.gather(read_messages(), process.wait()),
                timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            self._kill(process)
            logger.warning(f"Job {job_id}: supervision cancelled, worker pid {process.pid} killed")
            raise
        except TimeoutError:
            self._kill(process)
            _ = await process.wait()
            logger.warning(f"Job {job_id}: worker timed out after {self.timeout_seconds:g}s")
            return WorkerResponse.failed(
                job_id, record.type, f"worker timed out after {self.timeout_seconds:g}s"
            )
        finally:
            _ = self._running.pop(job_id, None)

        if job_id in self._cancelled:
            return WorkerResponse.failed(job_id, record.type, "Job cancelled")
        if terminal is None:
            return WorkerResponse.failed(
                job_id,
                record.type,
                f"worker exited with code {process.returncode} without reporting a result",
            )
        return terminal

    def _parse_line(self, record: JobRecord, raw: bytes) -> WorkerResponse | None:
        """Apply a progress line; return the parsed terminal message, if any."""
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Job {record.id}: ignoring non-JSON worker output: {line[:200]}")
            return None
        if not isinstance(data, dict):
            return None

        try:
            if data.get("event") == "progress":
                progress = WorkerProgress.model_validate(data)
                if progress.job_id == record.id:
                    _ = self.repository.update_progress(record.id, min(99, progress.progress))
                    self._publish(record.id)
                return None

            response = WorkerResponse.model_validate(data)
        except ValidationError as exc:
            logger.warning(f"Job {record.id}: malformed worker message: {exc}")
            return None

        if response.job_id != record.id:
            logger.warning(f"Job {record.id}: worker reported foreign job {response.job_id}")
            return None
        return response

    def _finish(self, record: JobRecord, response: WorkerResponse) -> None:
        job_id = record.id
        if job_id in self._cancelled:
            self._cancelled.discard(job_id)
        elif response.success:
            _ = self.repository.mark_completed(job_id, response.result_record())
        else:
            _ = self.repository.mark_failed(job_id, response.error or "unknown error")
        self._publish(job_id)

    def _abandon(self, record: JobRecord) -> None:
        if record.id in self._cancelled:
            self._cancelled.discard(record.id)
            return
        if self.repository.mark_failed(record.id, SHUTDOWN_REASON):
            logger.warning(f"Job {record.id}: dispatch cancelled, marked failed")
        self._publish(record.id)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

    def cancel(self, job_id: str, reason: str = "Job cancelled") -> JobRecord:
        """Cancel a pending or running job, killing its worker.

        Raises:
            JobNotFoundError: No such job.
            InvalidTransitionError: The job already finished.
        """
        current = self.repository.get_job(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        if not self.repository.mark_cancelled(job_id, reason):
            latest = self.repository.get_job(job_id) or current
            raise InvalidTransitionError(job_id, latest.status.value, JobStatus.cancelled.value)

        process = self._running.get(job_id)
        if process is not None:
            self._cancelled.add(job_id)
            self._kill(process)
        elif job_id in self._claimed:
            # Claimed here but still waiting for a slot
            self._cancelled.add(job_id)

        self._publish(job_id)
        return self.repository.get_job(job_id) or current

    async def shutdown(self) -> None:
        """Cancel every job this dispatcher claimed and has not finished.

        That covers live workers and jobs still waiting for a slot.
        """
        for job_id in sorted(self._claimed | set(self._running)):
            try:
                _ = self.cancel(job_id, reason=SHUTDOWN_REASON)
            except (JobNotFoundError, InvalidTransitionError):
                continue
        processes = list(self._running.values())
        if processes:
            _ = await asyncio.gather(*(p.wait() for p in processes))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _publish(self, job_id: str) -> None:
        record = self.repository.get_job(job_id)
        if record is None:
            return
        payload = json.dumps(
            {
                "id": record.id,
                "type": record.type,
                "status": record.status.value,
                "progress": record.progress,
                "error": record.error,
            }
        )
        _ = self.broadcaster.publish_event(topic=job_topic(job_id), payload=payload)
