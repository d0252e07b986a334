"""Worker process - runs exactly one job and reports it on stdout.

Usage:
    JOB_ID=... JOB_TYPE=backup JOB_PAYLOAD='{"database": "main"}' \\
        python -m admin_job_tools.worker_process
    echo '{"jobId": "...", "type": "backup"}' | \\
        python -m admin_job_tools.worker_process --from-stdin

stdout carries progress lines followed by exactly one terminal
``WorkerResponse`` line; logs go to stderr. The job row is never written
here: the dispatcher records the terminal state from the message.
"""

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Mapping, Sequence
from typing import TextIO

from loguru import logger
from pydantic import ValidationError

from .common.file_storage_impl import LocalFileStorage
from .common.job_storage import JobStorage
from .common.schema_job import WorkerJobData, WorkerProgress, WorkerResponse
from .config import get_settings
from .utils.log_config import configure_logging
from .worker import TaskRegistry, get_task_registry


class MissingJobIdentityError(Exception):
    """The worker was started without a job id or job type."""


class InvalidJobPayloadError(Exception):
    def __init__(self, job_id: str, job_type: str, detail: str):
        self.job_id: str = job_id
        self.job_type: str = job_type
        super().__init__(f"Invalid JOB_PAYLOAD: {detail}")


def read_job_from_env(environ: Mapping[str, str]) -> WorkerJobData:
    """Build the job descriptor from ``JOB_*`` environment variables.

    Raises:
        MissingJobIdentityError: ``JOB_ID`` or ``JOB_TYPE`` is missing.
        InvalidJobPayloadError: ``JOB_PAYLOAD`` is not a JSON object.
    """
    job_id = environ.get("JOB_ID")
    job_type = environ.get("JOB_TYPE")
    if not job_id or not job_type:
        raise MissingJobIdentityError("JOB_ID and JOB_TYPE are required")

    worker_id = environ.get("WORKER_ID") or None
    user_id = environ.get("USER_ID") or None

    raw_payload = environ.get("JOB_PAYLOAD")
    if raw_payload is None:
        payload = {"jobId": job_id, "type": job_type}
        if worker_id:
            payload["workerId"] = worker_id
        if user_id:
            payload["userId"] = user_id
    else:
        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise InvalidJobPayloadError(job_id, job_type, str(exc)) from exc
        if not isinstance(payload, dict):
            raise InvalidJobPayloadError(job_id, job_type, "expected a JSON object")

    return WorkerJobData(
        job_id=job_id,
        type=job_type,
        payload=payload,
        worker_id=worker_id,
        user_id=user_id,
    )


def read_job_from_stream(stream: TextIO) -> WorkerJobData:
    """Read a single JSON descriptor ``{jobId, type, payload, ...}``.

    Raises:
        MissingJobIdentityError: The message is not a valid descriptor.
    """
    try:
        return WorkerJobData.model_validate_json(stream.read())
    except ValidationError as exc:
        raise MissingJobIdentityError(str(exc)) from exc


async def run_job(
    job: WorkerJobData,
    registry: TaskRegistry,
    storage: JobStorage,
    out: TextIO | None = None,
) -> WorkerResponse:
    """Run ``job`` with its compute module; progress lines go to ``out``."""
    task = registry.get(job.type)
    if task is None:
        return WorkerResponse.failed(job.job_id, job.type, f"No worker found for job type: {job.type}")

    def progress_callback(pct: int) -> None:
        if out is not None:
            emit(out, WorkerProgress(job_id=job.job_id, progress=max(0, min(100, pct))).to_wire())

    logger.info(f"Worker starting job {job.job_id} ({job.type})")
    result = await task.execute(job.to_record(), storage, progress_callback)
    return WorkerResponse.from_task_result(job, result)


def emit(out: TextIO, line: str) -> None:
    _ = out.write(line + "\n")
    out.flush()


def main(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    registry: TaskRegistry | None = None,
    storage: JobStorage | None = None,
) -> int:
    parser = argparse.ArgumentParser(description="Run one admin job and report its result.")
    _ = parser.add_argument(
        "--from-stdin",
        action="store_true",
        help="Read the job descriptor as JSON from stdin instead of JOB_* variables",
    )
    args = parser.parse_args(argv)

    env = os.environ if environ is None else environ
    out = sys.stdout if stdout is None else stdout
    settings = get_settings(env)
    configure_logging(settings.log_level)

    try:
        if args.from_stdin:
            job = read_job_from_stream(sys.stdin if stdin is None else stdin)
        else:
            job = read_job_from_env(env)
    except MissingJobIdentityError as exc:
        logger.error(f"Worker started without a job: {exc}")
        return 1
    except InvalidJobPayloadError as exc:
        emit(out, WorkerResponse.failed(exc.job_id, exc.job_type, str(exc)).to_wire())
        return 0

    try:
        tasks = registry if registry is not None else get_task_registry()
        job_storage = storage if storage is not None else LocalFileStorage(settings.storage_dir)
        response = asyncio.run(run_job(job, tasks, job_storage, out))
    except Exception as exc:
        logger.exception(f"Worker failed on job {job.job_id}: {exc}")
        response = WorkerResponse.failed(job.job_id, job.type, str(exc))

    emit(out, response.to_wire())
    logger.info(f"Worker finished job {job.job_id}: success={response.success}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
