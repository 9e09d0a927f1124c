"""Configuration, logging and app wiring tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from closet_app.app import ClosetApp, build_server_app
from closet_app.config import DEFAULT_CACHE_TTL_SECONDS, ClosetConfig
from closet_app.logging_config import JsonFormatter, correlation_context, redact_for_log
from tools.remote_store import SQLiteWardrobeTable
from tools.vision_providers import MockTagProvider


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("APP_ENV", "APP_CONFIG_PATH", "CLOSET_BACKEND", "ANALYSIS_CACHE_MAX_ENTRIES", "API_BASE_URL"):
        monkeypatch.delenv(key, raising=False)


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)

    config = ClosetConfig.from_env()

    assert config.backend == "local"
    assert config.analysis_cache_ttl_seconds == DEFAULT_CACHE_TTL_SECONDS
    assert config.analysis_cache_max_entries == 500
    assert config.request_timeout_seconds is None


def test_config_yaml_is_overridden_by_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    config_file = tmp_path / "staging.yaml"
    config_file.write_text(
        "# staging\ncloset_backend: supabase\napi_base_url: 'https://staging.test'\nrequest_timeout_seconds: 7\n"
    )
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_file))
    monkeypatch.setenv("API_BASE_URL", "https://override.test")

    config = ClosetConfig.from_env()

    assert config.backend == "supabase"
    assert config.api_base_url == "https://override.test"
    assert config.request_timeout_seconds == 7.0


def test_redact_for_log_scrubs_sensitive_values() -> None:
    payload = {
        "user_id": "abc",
        "contact": "me@example.com",
        "image": "data:image/png;base64,AAAA",
        "bytes": b"12345",
        "nested": [{"access_token": "t"}],
    }

    assert redact_for_log(payload) == {
        "user_id": "[redacted]",
        "contact": "[redacted-email]",
        "image": "[redacted-url]",
        "bytes": "<5 bytes>",
        "nested": [{"access_token": "[redacted]"}],
    }


def test_json_formatter_includes_correlation_id() -> None:
    record = logging.LogRecord("closet", logging.INFO, __file__, 1, "hello", None, None)
    record.event = "hello"
    record.kind = "create"

    with correlation_context("corr-1"):
        payload = json.loads(JsonFormatter().format(record))

    assert payload["correlation_id"] == "corr-1"
    assert payload["kind"] == "create"
    assert payload["level"] == "INFO"


def _local_config(tmp_path: Path) -> ClosetConfig:
    return ClosetConfig(
        backend="local",
        local_db_path=str(tmp_path / "wardrobe.db"),
        local_storage_dir=str(tmp_path / "bucket"),
        analysis_cache_path=str(tmp_path / "cache.json"),
    )


def test_closet_app_wires_local_backend(tmp_path: Path) -> None:
    app = ClosetApp(_local_config(tmp_path), providers=[MockTagProvider("mock", tags=["grey wool sweater"])])

    assert isinstance(app.table, SQLiteWardrobeTable)
    assert app.session.current_user.id == "local-user"
    assert app.load_items() == 0


def test_build_server_app_local(tmp_path: Path) -> None:
    from fastapi.testclient import TestClient

    client = TestClient(build_server_app(_local_config(tmp_path)))

    assert client.get("/healthz").json()["status"] == "ok"
    unauthorized = client.post("/api/wardrobe/add", json={}, headers={"Authorization": "Bearer wrong"})
    assert unauthorized.status_code == 401
