from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    database_url: str
    storage_dir: Path
    mqtt_url: str | None
    max_workers: int
    job_timeout: float | None
    simulated_work_seconds: float
    log_level: str


def get_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from ``ADMIN_JOBS_*`` environment variables."""
    env = os.environ if environ is None else environ
    var_dir = Path.cwd() / "var"

    database_url = env.get("ADMIN_JOBS_DATABASE_URL") or f"sqlite:///{var_dir / 'admin_jobs.db'}"
    storage_dir = Path(env.get("ADMIN_JOBS_STORAGE_DIR") or var_dir / "storage").expanduser().resolve()
    mqtt_url = env.get("ADMIN_JOBS_MQTT_URL") or None

    max_workers = int(env.get("ADMIN_JOBS_MAX_WORKERS", "4"))
    if max_workers < 1:
        raise ValueError("ADMIN_JOBS_MAX_WORKERS must be at least 1")

    # 0 disables the per-job timeout
    job_timeout = float(env.get("ADMIN_JOBS_JOB_TIMEOUT", "600")) or None
    simulated_work_seconds = float(env.get("ADMIN_JOBS_SIMULATED_WORK_SECONDS", "1.5"))
    log_level = env.get("ADMIN_JOBS_LOG_LEVEL", "INFO").upper()

    return Settings(
        database_url=database_url,
        storage_dir=storage_dir,
        mqtt_url=mqtt_url,
        max_workers=max_workers,
        job_timeout=job_timeout,
        simulated_work_seconds=simulated_work_seconds,
        log_level=log_level,
    )
