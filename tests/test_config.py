import importlib

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from tasklist import app as app_module
from tasklist.config import Settings, get_settings, reset_settings_cache


@pytest.fixture
def fresh_app(monkeypatch):
    """Reload the app module so import-time settings see env overrides."""

    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://example.com, https://demo.local")
    reloaded = importlib.reload(app_module)
    try:
        yield reloaded.app
    finally:
        monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
        importlib.reload(app_module)


def test_defaults():
    settings = Settings(jwt_secret="s3cret")

    assert settings.jwt_algorithms == ["HS256"]
    assert settings.jwt_leeway_seconds == 0
    assert settings.memstore_path == "/srv/tasklist/memstore.json"
    assert settings.snapshot_interval_seconds == 0
    assert settings.conceal_foreign_tasks is False
    assert settings.host == "0.0.0.0"
    assert settings.port == 3030


def test_jwt_secret_required():
    with pytest.raises(ValidationError):
        Settings()
    with pytest.raises(ValidationError):
        Settings(jwt_secret="")


def test_from_env_reads_service_variables(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.setenv("MEMSTORE_PATH", "/tmp/elsewhere.json")
    monkeypatch.setenv("TODO_ADDR", "127.0.0.1")
    monkeypatch.setenv("TODO_PORT", "8080")
    monkeypatch.setenv("JWT_ALGORITHMS", "hs256, HS512")
    monkeypatch.setenv("CONCEAL_FOREIGN_TASKS", "true")

    settings = Settings.from_env()

    assert settings.jwt_secret == "from-env"
    assert settings.memstore_path == "/tmp/elsewhere.json"
    assert settings.host == "127.0.0.1"
    assert settings.port == 8080
    assert settings.jwt_algorithms == ["HS256", "HS512"]
    assert settings.conceal_foreign_tasks is True


def test_empty_address_and_port_fall_back(monkeypatch):
    monkeypatch.setenv("TODO_ADDR", "")
    monkeypatch.setenv("TODO_PORT", "")

    settings = Settings.from_env()

    assert settings.host == "0.0.0.0"
    assert settings.port == 3030


@pytest.mark.parametrize("value", ["RS256", "none", ""])
def test_unsupported_algorithms_rejected(value):
    with pytest.raises(ValidationError):
        Settings(jwt_secret="s3cret", jwt_algorithms=value)


def test_negative_interval_rejected():
    with pytest.raises(ValidationError):
        Settings(jwt_secret="s3cret", snapshot_interval_seconds=-1)


def test_unknown_environment_flags_are_ignored(monkeypatch):
    monkeypatch.setenv("TEST_MODE", "true")

    settings = Settings.from_env()

    assert "test_mode" not in Settings.model_fields
    assert not hasattr(settings, "test_mode")


def test_settings_cache_reset(monkeypatch):
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("JWT_LEEWAY_SECONDS", "15")
    reset_settings_cache()

    assert get_settings().jwt_leeway_seconds == 15


def test_security_and_cors_headers(fresh_app):
    client = TestClient(fresh_app)
    response = client.get("/healthz", headers={"Origin": "https://example.com"})

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["access-control-allow-origin"] == "https://example.com"


def test_cors_rejects_unlisted_origin(fresh_app):
    client = TestClient(fresh_app)
    response = client.get("/healthz", headers={"Origin": "https://evil.example"})

    assert "access-control-allow-origin" not in response.headers
