from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from pydantic import ValidationError

from service_monitor.config import Config, ConfigError, GetRouteTest, PostRouteTest, load_config
from service_monitor.retry import RetryError, retry_request

_ENV_VARS = ("TELEGRAM_BOT_TOKEN", "SERVICE_MONITOR_API_TOKEN", "SERVICE_MONITOR_HOST", "SERVICE_MONITOR_PORT", "LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_load_yaml_config_with_route_tests(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "telegram_bot_token: 1:x",
                "api_token: secret",
                "groups: [-100, 5]",
                "api_tests:",
                "  - type: GET",
                "    url: https://api.example.com/health",
                "  - type: POST",
                "    url: https://api.example.com/login",
                "    body: '{\"a\": 1}'",
                "ssl_tests:",
                "  - example.com",
                "  - url: api.example.com",
            ]
        ),
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.groups == [-100, 5]
    assert isinstance(config.api_tests[0], GetRouteTest)
    assert isinstance(config.api_tests[1], PostRouteTest)
    assert config.api_tests[1].content_type == "application/json"
    assert config.ssl_tests == ["example.com", "api.example.com"]
    assert config.website_monitor_interval == 20
    config.validate_for_startup()


def test_load_json_config_and_env_overrides(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"telegram_bot_token": "from-file", "port": 9000, "times_to_retry": 2}), encoding="utf-8")
    clean_env.setenv("TELEGRAM_BOT_TOKEN", "from-env")
    clean_env.setenv("SERVICE_MONITOR_PORT", "9100")

    config = load_config(path)
    assert config.telegram_bot_token == "from-env"
    assert config.port == 9100
    assert config.times_to_retry == 2


def test_missing_file_uses_defaults(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    config = load_config(tmp_path / "nope.yaml")
    assert config.api_tests == []
    assert config.pause_reminder_interval == 86400
    with pytest.raises(ConfigError):
        config.validate_for_startup()


def test_invalid_config_raises_config_error(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("api_tests:\n  - type: PUT\n    url: http://x\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)

    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_validate_for_startup_requires_api_token_only_when_api_enabled() -> None:
    with pytest.raises(ConfigError):
        Config(telegram_bot_token="1:x").validate_for_startup()
    Config(telegram_bot_token="1:x", enable_api=False).validate_for_startup()
    Config(enable_api=False, enable_telegram=False, enable_service_monitor=False).validate_for_startup()


def test_config_is_frozen() -> None:
    config = Config(telegram_bot_token="1:x")
    with pytest.raises(ValidationError):
        config.port = 1


@pytest.mark.asyncio
async def test_retry_request_returns_first_success() -> None:
    request = httpx.Request("GET", "http://svc/")
    responses = [httpx.Response(503, request=request), httpx.Response(200, request=request)]
    calls = {"n": 0}

    async def send() -> httpx.Response:
        calls["n"] += 1
        return responses.pop(0)

    resp = await retry_request(send, times=5)
    assert resp.status_code == 200
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_retry_request_exhausted_keeps_last_outcome() -> None:
    request = httpx.Request("GET", "http://svc/")

    async def always_500() -> httpx.Response:
        return httpx.Response(500, request=request)

    with pytest.raises(RetryError) as exc_info:
        await retry_request(always_500, times=3)
    assert exc_info.value.attempts == 3
    assert exc_info.value.response is not None and exc_info.value.response.status_code == 500
    assert exc_info.value.error is None

    async def always_down() -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RetryError) as exc_info:
        await retry_request(always_down, times=2)
    assert isinstance(exc_info.value.error, httpx.ConnectError)
    assert exc_info.value.response is None
    assert "ConnectError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_retry_request_backoff_sleeps_between_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr("service_monitor.retry.asyncio.sleep", fake_sleep)
    request = httpx.Request("GET", "http://svc/")

    async def always_down() -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RetryError):
        await retry_request(always_down, times=3, backoff_seconds=1.0)
    assert len(delays) == 2
    assert 1.0 <= delays[0] <= 2.0
    assert 2.0 <= delays[1] <= 3.0
