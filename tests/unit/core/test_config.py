from __future__ import annotations

import json

import pytest

from openapi_dataflow.core.config import Settings, _parse_csv_str, get_settings


def test_settings_default_values(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that Settings have correct default values when no env vars are set."""
    for name in ("DEBUG", "PROMETHEUS_ENABLED", "COMMIT_SHA"):
        monkeypatch.delenv(name, raising=False)

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.debug is False
    assert settings.allowed_api_keys == []
    assert settings.prometheus_enabled is True
    assert settings.commit_sha is None
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.route_prefix == "api/dataflow"
    assert settings.default_accept == "application/json"
    assert settings.static_placeholders == {}


def test_settings_parsing_from_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that Settings correctly parse values from environment variables."""
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("ALLOWED_API_KEYS", "key1, key2, key3")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/3")
    monkeypatch.setenv("ROUTE_PREFIX", "/services/flows/")
    monkeypatch.setenv("DEFAULT_ACCEPT", "application/xml")
    monkeypatch.setenv("STATIC_PLACEHOLDERS", '{"~env:stage": "prod", "~env:build": 7}')
    monkeypatch.setenv("COMMIT_SHA", "testsha123env")
    monkeypatch.setenv("PROMETHEUS_ENABLED", "false")

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.debug is True
    assert settings.allowed_api_keys == ["key1", "key2", "key3"]
    assert settings.redis_url == "redis://cache:6379/3"
    assert settings.route_prefix == "services/flows"
    assert settings.default_accept == "application/xml"
    assert settings.static_placeholders == {"~env:stage": "prod", "~env:build": "7"}
    assert settings.commit_sha == "testsha123env"
    assert settings.prometheus_enabled is False


@pytest.mark.parametrize("prefix", ["", "/", "//"])
def test_empty_route_prefix_is_rejected(prefix: str) -> None:
    with pytest.raises(ValueError, match="ROUTE_PREFIX"):
        Settings(route_prefix=prefix)


def test_static_placeholders_must_be_a_json_object(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATIC_PLACEHOLDERS", "not json")
    with pytest.raises(ValueError, match="STATIC_PLACEHOLDERS"):
        Settings()

    monkeypatch.setenv("STATIC_PLACEHOLDERS", '["a", "b"]')
    with pytest.raises(ValueError, match="STATIC_PLACEHOLDERS"):
        Settings()


def test_static_placeholders_empty_string_and_null_values(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("STATIC_PLACEHOLDERS", "")
    assert Settings().static_placeholders == {}

    assert Settings(static_placeholders={"~x": None}).static_placeholders == {"~x": ""}


def test_get_settings_returns_settings_instance() -> None:
    get_settings.cache_clear()
    assert isinstance(get_settings(), Settings)


def test_get_settings_caching_normal_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that get_settings() caches the Settings instance in non-pytest environments."""
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    get_settings.cache_clear()

    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
    get_settings.cache_clear()


def test_get_settings_pytest_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that get_settings() returns a fresh instance when PYTEST_CURRENT_TEST is set."""
    monkeypatch.setenv("PYTEST_CURRENT_TEST", "some_test_is_running")
    get_settings.cache_clear()

    assert get_settings() is not get_settings()


def test_allowed_api_keys_empty_string_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOWED_API_KEYS", "")
    get_settings.cache_clear()
    assert get_settings().allowed_api_keys == []


def test_settings_api_keys_already_json_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test ALLOWED_API_KEYS when it's already a JSON string in env."""
    monkeypatch.setenv("ALLOWED_API_KEYS", json.dumps(["json_key1", "json_key2"]))
    get_settings.cache_clear()
    assert get_settings().allowed_api_keys == ["json_key1", "json_key2"]


def test_coerce_api_keys_invalid_json(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test _coerce_allowed_api_keys falls back to CSV for invalid JSON."""
    monkeypatch.setenv("ALLOWED_API_KEYS", '["key1", key2]')
    assert Settings().allowed_api_keys == ['["key1"', "key2]"]


def test_coerce_api_keys_direct_list() -> None:
    settings = Settings(allowed_api_keys=["direct1", " direct2 ", "", 123])
    assert settings.allowed_api_keys == ["direct1", "direct2", "123"]


def test_parse_csv_str_helper() -> None:
    assert _parse_csv_str("a,b,c") == ["a", "b", "c"]
    assert _parse_csv_str(" a , b , c ") == ["a", "b", "c"]
    assert _parse_csv_str("") == []
    assert _parse_csv_str(" , ") == []
    assert _parse_csv_str("a,,b") == ["a", "b"]
