"""Tests for the service mapping HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from api.services.service_mapping_errors import DataSourceUnavailable
from database import simple_connection
from database.simple_connection import ServiceMappingDatabase, get_database
from main import app


@pytest.fixture
def client(db, add_taxonomy, add_providers, monkeypatch):
    monkeypatch.setattr(AppConfig, "ADMIN_API_KEY", None)
    monkeypatch.setattr(AppConfig, "PROVIDER_ACTIVE_STATUS", "ativo")
    add_taxonomy(
        {"id": "tax-canal", "service": "Canalizacao", "count": 10},
        {"id": "tax-jard", "service": "Jardinagem", "count": 5},
    )
    add_providers(("p1", "Canalização, Jardim"))

    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_run_returns_summary(client):
    response = client.post("/api/v1/service-mapping/run", json={})

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["total_processed"] == 2
    assert summary["auto_accepted"] == 1
    assert summary["routed_to_review"] == 1
    assert summary["failed"] == 0
    assert summary["auto_match_rate"] == 50.0
    assert "outcomes" not in summary


def test_run_with_outcomes(client):
    response = client.post("/api/v1/service-mapping/run", json={"dry_run": True, "include_outcomes": True})

    summary = response.json()["summary"]
    assert summary["dry_run"] is True
    labels = {o["label"]: o for o in summary["outcomes"]}
    assert labels["canalizacao"]["status"] == "mapped"
    assert labels["canalizacao"]["best_taxonomy_id"] == "tax-canal"
    assert labels["jardim"]["status"] == "suggested"


def test_suggestions_and_stats_after_run(client):
    client.post("/api/v1/service-mapping/run", json={})

    suggestions = client.get("/api/v1/service-mapping/suggestions").json()
    assert suggestions["count"] == 1
    assert suggestions["suggestions"][0]["provider_service_name"] == "jardim"

    stats = client.get("/api/v1/service-mapping/stats").json()
    assert stats["mappings"] == 1
    assert stats["verified_mappings"] == 1
    assert stats["pending_suggestions"] == 1


def test_suggestions_rejects_unknown_status(client):
    assert client.get("/api/v1/service-mapping/suggestions", params={"status": "archived"}).status_code == 422


def test_run_requires_admin_key_when_configured(client, monkeypatch):
    monkeypatch.setattr(AppConfig, "ADMIN_API_KEY", "s3cret")

    assert client.post("/api/v1/service-mapping/run", json={}).status_code == 401
    ok = client.post("/api/v1/service-mapping/run", json={"dry_run": True}, headers={"X-Admin-Key": "s3cret"})
    assert ok.status_code == 200


def test_run_reports_unavailable_data_source(client):
    bare = ServiceMappingDatabase(database_url="sqlite://", create_tables=False)
    app.dependency_overrides[get_database] = lambda: bare

    response = client.post("/api/v1/service-mapping/run", json={})

    assert response.status_code == 503
    assert "service_taxonomy" in response.json()["detail"]


def test_unreachable_database_dependency_returns_503(client):
    def unreachable():
        raise DataSourceUnavailable("database", "connection refused")

    app.dependency_overrides[get_database] = unreachable

    response = client.get("/api/v1/service-mapping/stats")

    assert response.status_code == 503
    assert "connection refused" in response.json()["detail"]


def test_get_database_wraps_connection_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(simple_connection, "_db", None)
    monkeypatch.setattr(AppConfig, "DATABASE_URL", f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")

    with pytest.raises(DataSourceUnavailable):
        get_database()
