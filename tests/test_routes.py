"""API tests: generic job routes and typed plugin routes.

The app is built from create_master_router with a dispatcher that runs jobs
in-process, so background tasks finish before TestClient returns.
"""

from admin_job_tools.common.job_storage import InvalidJobPathError
from admin_job_tools.common.schema_job_record import JobRecord, JobStatus


def _create(api_client, job_type="backup", payload=None, **params):
    response = api_client.post(
        "/api/jobs",
        json={"type": job_type, "payload": payload or {}},
        params=params,
    )
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# /jobs
# ============================================================================


def test_create_job_stays_pending_by_default(api_client, fake_dispatcher):
    created = _create(api_client, payload={"database": "main"})

    assert created["type"] == "backup"
    assert created["status"] == "pending"
    assert fake_dispatcher.started == []

    job = api_client.get(f"/api/jobs/{created['id']}").json()
    assert job["payload"] == {"database": "main"}
    assert job["status"] == "pending"


def test_create_job_with_start_runs_it(api_client, fake_dispatcher):
    created = _create(api_client, payload={"database": "main"}, start="true")

    assert created["status"] == "running"
    assert fake_dispatcher.started == [created["id"]]

    job = api_client.get(f"/api/jobs/{created['id']}").json()
    assert job["status"] == "completed"
    assert job["result"]["message"] == "Backup job completed"


def test_create_job_rejects_missing_type(api_client):
    response = api_client.post("/api/jobs", json={"payload": {}})
    assert response.status_code == 422


def test_list_and_filter_jobs(api_client):
    _ = _create(api_client, "backup")
    _ = _create(api_client, "extract")

    assert len(api_client.get("/api/jobs").json()) == 2
    assert [j["type"] for j in api_client.get("/api/jobs", params={"type": "extract"}).json()] == [
        "extract"
    ]
    assert api_client.get("/api/jobs", params={"status": "failed"}).json() == []
    assert api_client.get("/api/jobs", params={"status": "bogus"}).status_code == 422


def test_stats(api_client):
    _ = _create(api_client)
    _ = _create(api_client, start="true")

    stats = api_client.get("/api/jobs/stats").json()
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["completed"] == 1


def test_get_unknown_job_is_404(api_client):
    assert api_client.get("/api/jobs/does-not-exist").status_code == 404


def test_start_pending_job(api_client, fake_dispatcher):
    created = _create(api_client, "fine-tuning", {"trainingConfig": {"epochs": 2}})

    response = api_client.post(f"/api/jobs/{created['id']}/start")

    assert response.status_code == 202
    assert response.json()["status"] == "running"
    job = api_client.get(f"/api/jobs/{created['id']}").json()
    assert job["status"] == "completed"
    assert job["result"]["details"]["epochs"] == 2


def test_start_twice_is_conflict(api_client):
    created = _create(api_client)

    assert api_client.post(f"/api/jobs/{created['id']}/start").status_code == 202
    assert api_client.post(f"/api/jobs/{created['id']}/start").status_code == 409
    assert api_client.post("/api/jobs/missing/start").status_code == 404


def test_cancel_pending_job(api_client):
    created = _create(api_client)

    response = api_client.post(f"/api/jobs/{created['id']}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert api_client.post(f"/api/jobs/{created['id']}/cancel").status_code == 409
    assert api_client.post("/api/jobs/missing/cancel").status_code == 404


def test_delete_job_removes_record_and_files(api_client, file_storage):
    created = _create(api_client)
    file_storage.create_directory(created["id"])

    response = api_client.delete(f"/api/jobs/{created['id']}")

    assert response.json() == {"id": created["id"], "deleted": True}
    assert api_client.get(f"/api/jobs/{created['id']}").status_code == 404
    assert not file_storage.resolve_path(created["id"]).exists()


def test_delete_running_job_is_conflict(api_client, job_repository):
    _ = job_repository.add_job(JobRecord(id="busy", type="backup"))
    _ = job_repository.claim_job("busy", "w1")

    assert api_client.delete("/api/jobs/busy").status_code == 409
    assert job_repository.get_job("busy").status == JobStatus.running


# ============================================================================
# Typed plugin routes
# ============================================================================


def test_backup_route_starts_job(api_client):
    response = api_client.post(
        "/api/jobs/backup",
        json={"database": "test_db", "tables": ["users"], "options": {"compress": True}},
    )

    assert response.status_code == 202
    job = api_client.get(f"/api/jobs/{response.json()['id']}").json()
    assert job["type"] == "backup"
    assert job["status"] == "completed"
    assert job["result"]["details"]["compressed"] is True


def test_typed_route_without_start_stays_pending(api_client, fake_dispatcher):
    response = api_client.post(
        "/api/jobs/fine-tuning",
        params={"start": "false"},
        json={"modelId": "base-model", "trainingConfig": {"epochs": 5}},
    )

    assert response.status_code == 202
    assert response.json()["status"] == "pending"
    assert fake_dispatcher.started == []
    job = api_client.get(f"/api/jobs/{response.json()['id']}").json()
    assert job["payload"]["modelId"] == "base-model"
    assert job["payload"]["trainingConfig"]["epochs"] == 5


def test_typed_route_validates_payload(api_client):
    response = api_client.post("/api/jobs/extract", json={"outputFormat": "xml"})
    assert response.status_code == 422


def test_extract_route_writes_backup(api_client, file_storage):
    response = api_client.post("/api/jobs/extract", json={"outputFormat": "json"})

    job_id = response.json()["id"]
    job = api_client.get(f"/api/jobs/{job_id}").json()
    assert job["status"] == "completed"
    backup_file = job["result"]["details"]["backup_file"]
    assert file_storage.resolve_path(job_id, backup_file).is_file()


def test_generic_route_no_op(api_client):
    response = api_client.post("/api/jobs/generic", json={"operation": "vacuum"})

    job = api_client.get(f"/api/jobs/{response.json()['id']}").json()
    assert job["status"] == "completed"
    assert job["result"]["message"] == "No operation performed"


def test_restore_route_requires_url(api_client):
    response = api_client.post("/api/jobs/restore", json={})

    job = api_client.get(f"/api/jobs/{response.json()['id']}").json()
    assert job["status"] == "failed"
    assert job["error"] == "Backup URL is required"


def test_restore_upload_replays_dump(api_client, job_repository, file_storage):
    dump = b"CREATE TABLE restored (id INTEGER);\nINSERT INTO restored (id) VALUES (1);\n"

    response = api_client.post(
        "/api/jobs/restore/upload",
        files={"file": ("dump.sql", dump, "application/sql")},
        data={"batch_size": "10"},
    )

    assert response.status_code == 202
    job_id = response.json()["id"]
    job = api_client.get(f"/api/jobs/{job_id}").json()
    assert job["status"] == "completed", job["error"]
    assert job["payload"]["backupUrl"].startswith("file://")
    assert job["payload"]["options"]["batchSize"] == 10
    assert job["result"]["details"]["tables_restored"] == ["restored"]
    assert file_storage.resolve_path(job_id, "input/dump.sql").is_file()
    assert list(file_storage.resolve_path(job_id, "restore").iterdir()) == []


def test_restore_upload_keeps_only_the_filename(api_client, file_storage):
    dump = b"CREATE TABLE restored (id INTEGER);\n"

    response = api_client.post(
        "/api/jobs/restore/upload",
        files={"file": ("../../escape.sql", dump, "application/sql")},
        params={"start": "false"},
    )

    assert response.status_code == 202, response.text
    job_id = response.json()["id"]
    assert file_storage.resolve_path(job_id, "input/escape.sql").is_file()
    assert not (file_storage.base_dir / "escape.sql").exists()


def test_restore_upload_rejects_unusable_filename(api_client, job_repository, file_storage):
    response = api_client.post(
        "/api/jobs/restore/upload",
        files={"file": ("..", b"INSERT INTO t VALUES (1);\n", "application/sql")},
    )

    assert response.status_code == 400
    assert job_repository.list_jobs() == []
    assert list(file_storage.base_dir.iterdir()) == []


def test_restore_upload_storage_failure_removes_job_directory(
    api_client, job_repository, file_storage, monkeypatch
):
    async def failing_save(job_id, relative_path, source):
        raise InvalidJobPathError(job_id, relative_path)

    monkeypatch.setattr(file_storage, "save", failing_save)

    response = api_client.post(
        "/api/jobs/restore/upload",
        files={"file": ("dump.sql", b"INSERT INTO t VALUES (1);\n", "application/sql")},
    )

    assert response.status_code == 400
    assert job_repository.list_jobs() == []
    assert list(file_storage.base_dir.iterdir()) == []
