"""Unit tests for the backup plugin.

Tests schema validation, simulated progress and task execution.
"""

import pytest

from admin_job_tools.common.schema_job_record import JobRecord
from admin_job_tools.plugins.backup.schema import BackupOutput, BackupParams
from admin_job_tools.plugins.backup.task import BackupTask


# ============================================================================
# SCHEMA TESTS
# ============================================================================


def test_backup_params_defaults():
    params = BackupParams()

    assert params.database is None
    assert params.format == "sql"
    assert params.options.compress is False
    assert params.options.include_schema is True


def test_backup_params_accept_camel_case_options():
    params = BackupParams.model_validate(
        {"database": "main", "options": {"includeSchema": False, "excludeData": True}}
    )

    assert params.options.include_schema is False
    assert params.options.exclude_data is True


def test_backup_params_reject_unknown_format():
    with pytest.raises(ValueError):
        _ = BackupParams(format="xml")  # type: ignore


def test_backup_output_message():
    assert BackupOutput().message == "Backup job completed"


# ============================================================================
# TASK TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_backup_task_reports_progress(file_storage):
    task = BackupTask(simulated_delay=0)
    progress: list[int] = []

    output = await task.run(
        "job-1",
        BackupParams(database="test_db", tables=["users"]),
        file_storage,
        progress.append,
    )

    assert output.database == "test_db"
    assert output.tables == ["users"]
    assert progress == sorted(progress)
    assert len(progress) == 4
    assert progress[-1] == 99


@pytest.mark.asyncio
async def test_backup_task_execute_completes(file_storage):
    task = BackupTask(simulated_delay=0)
    record = JobRecord(id="job-2", type="backup", payload={"database": "test_db"})

    result = await task.execute(record, file_storage)

    assert result.status == "completed"
    assert result.output.message == "Backup job completed"


@pytest.mark.asyncio
async def test_backup_task_invalid_payload(file_storage):
    task = BackupTask(simulated_delay=0)
    record = JobRecord(id="job-3", type="backup", payload={"tables": "users"})

    result = await task.execute(record, file_storage)

    assert result.status == "failed"
    assert result.error.startswith("Invalid payload")


def test_backup_task_type():
    assert BackupTask().task_type == "backup"
