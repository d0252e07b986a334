"""Tests for the assembled FastAPI application."""

from fastapi.testclient import TestClient

from admin_job_tools.app import create_app
from admin_job_tools.config import get_settings
from admin_job_tools.dispatcher import Dispatcher


def test_health_and_job_routes():
    app = create_app(get_settings())

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}

        created = client.post("/api/jobs", json={"type": "backup", "payload": {"database": "main"}})
        assert created.status_code == 201
        assert client.get(f"/api/jobs/{created.json()['id']}").json()["status"] == "pending"
        assert client.get("/api/jobs/stats").json()["total"] == 1


def test_app_state_wiring(tmp_path):
    settings = get_settings(
        {
            "ADMIN_JOBS_DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}",
            "ADMIN_JOBS_STORAGE_DIR": str(tmp_path / "files"),
            "ADMIN_JOBS_MAX_WORKERS": "3",
        }
    )

    app = create_app(settings)

    assert isinstance(app.state.dispatcher, Dispatcher)
    assert app.state.dispatcher.max_workers == 3
    assert str(app.state.repository.engine.url).endswith("app.db")
    app.state.repository.engine.dispose()
