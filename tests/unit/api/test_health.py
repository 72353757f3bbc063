"""Unit tests for health endpoints."""

from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from feed_service.config import Settings, get_settings


def test_health_check(client: TestClient) -> None:
    """Test basic health check returns healthy status."""
    response = client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert "timestamp" in data
    assert "storage" in data["dependencies"]


def test_liveness_check(client: TestClient) -> None:
    """Test liveness check returns alive status."""
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_readiness_memory_backend(client: TestClient) -> None:
    """In-process storage is always ready."""
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200

    data = response.json()
    assert data["ready"] is True
    assert data["checks"] == {"storage": True}


def test_readiness_file_backend(app: Any, tmp_path: Path) -> None:
    """File storage is ready when its directory is writable."""
    settings = Settings(app_env="test", storage_backend="file", storage_dir=tmp_path / "state")
    app.dependency_overrides[get_settings] = lambda: settings

    data = TestClient(app).get("/api/v1/health/ready").json()
    assert data["ready"] is True
    assert (tmp_path / "state").is_dir()


def test_readiness_file_backend_not_writable(app: Any, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    settings = Settings(app_env="test", storage_backend="file", storage_dir=blocker)
    app.dependency_overrides[get_settings] = lambda: settings

    data = TestClient(app).get("/api/v1/health/ready").json()
    assert data["ready"] is False
    assert data["checks"]["storage"] is False
