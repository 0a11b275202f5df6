"""Smoke tests for FastAPI application endpoints.

This module uses pytest's monkeypatch fixture to mock settings values,
avoiding dependencies on specific configuration files or environment variables.
"""
from fastapi.testclient import TestClient

from mission_media import main
from mission_media.main import app


def test_ping_endpoint():
    """Test liveness endpoint."""
    client = TestClient(app)
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"message": "pong"}


def test_health_endpoint(monkeypatch):
    """Test health endpoint with mocked settings."""
    monkeypatch.setattr(main.settings, "environment", "test")
    monkeypatch.setattr(main.settings, "app_version", "1.0.0")

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "environment": "test",
        "version": "1.0.0",
    }


def test_config_endpoint(monkeypatch):
    """Test config endpoint with mocked settings."""
    monkeypatch.setattr(main.settings, "app_name", "Test App")
    monkeypatch.setattr(main.settings, "app_version", "2.0.0")
    monkeypatch.setattr(main.settings, "environment", "test")
    monkeypatch.setattr(main.settings, "debug", True)
    monkeypatch.setattr(main.settings, "storage_type", "memory")
    monkeypatch.setattr(main.settings, "transform_output_format", "source")
    monkeypatch.setattr(main.settings, "jpeg_quality", 80)
    monkeypatch.setattr(main.settings, "max_transform_dimension", 2048)
    monkeypatch.setattr(main.settings, "default_page_size", 20)
    monkeypatch.setattr(main.settings, "max_page_size", 50)
    monkeypatch.setattr(main.settings, "log_level", "DEBUG")
    monkeypatch.setattr(main.settings, "log_json", True)

    client = TestClient(app)
    response = client.get("/config")
    assert response.status_code == 200
    assert response.json() == {
        "app_name": "Test App",
        "app_version": "2.0.0",
        "environment": "test",
        "debug": True,
        "storage_type": "memory",
        "transform_output_format": "source",
        "jpeg_quality": 80,
        "max_transform_dimension": 2048,
        "default_page_size": 20,
        "max_page_size": 50,
        "log_level": "DEBUG",
        "log_json": True,
    }


def test_unknown_route():
    """Test that unknown paths are 404."""
    client = TestClient(app)
    response = client.get("/does-not-exist")
    assert response.status_code == 404


def test_cors_preflight():
    """Test that browsers may read range headers on image responses."""
    client = TestClient(app)
    response = client.options(
        "/image/img-1",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert "GET" in response.headers["access-control-allow-methods"]
