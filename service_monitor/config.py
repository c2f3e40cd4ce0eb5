"""Configuration management for the service monitor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration cannot be loaded or is unusable."""


class GetRouteTest(BaseModel):
    """A GET probe target."""

    model_config = ConfigDict(frozen=True)

    type: Literal["GET"] = "GET"
    url: str


class PostRouteTest(BaseModel):
    """A POST probe target with a raw body."""

    model_config = ConfigDict(frozen=True)

    type: Literal["POST"] = "POST"
    url: str
    body: str = ""
    content_type: str = "application/json"


RouteTest = Annotated[Union[GetRouteTest, PostRouteTest], Field(discriminator="type")]


class Config(BaseModel):
    """Main configuration for the service monitor. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    # Service monitor
    enable_service_monitor: bool = Field(default=True, description="Run the periodic website monitor")
    api_tests: list[RouteTest] = Field(default_factory=list, description="API endpoints to probe")
    frontend_tests: list[RouteTest] = Field(default_factory=list, description="Frontend endpoints to probe")
    ssl_tests: list[str] = Field(default_factory=list, description="Hostnames whose certificates are checked")
    website_monitor_interval: int = Field(default=20, ge=1, description="Seconds between probe passes")
    pause_reminder_interval: int = Field(default=86400, ge=1, description="Seconds paused before a reminder")
    probe_timeout_seconds: float = Field(default=5.0, gt=0, description="Per-attempt probe timeout")

    # Retry
    times_to_retry: int = Field(default=5, ge=1, description="Attempts per request, first one included")
    retry_backoff_seconds: float = Field(default=0.0, ge=0, description="Base delay between attempts")
    max_pending_messages: int = Field(default=100, ge=1, description="Undelivered messages kept for redelivery")

    # Telegram
    enable_telegram: bool = Field(default=True, description="Run the command polling loop")
    telegram_bot_token: Optional[str] = Field(default=None, description="Bot API token")
    telegram_api_url: str = Field(default="https://api.telegram.org", description="Bot API base URL")
    telegram_poll_interval: float = Field(default=2.0, ge=0, description="Seconds between polling cycles")
    telegram_timeout_seconds: float = Field(default=15.0, gt=0, description="Per-attempt Bot API timeout")
    groups: list[int] = Field(default_factory=list, description="Default chat ids for notifications")

    # Inbound webhook
    enable_api: bool = Field(default=True, description="Serve the inbound notification webhook")
    host: str = Field(default="127.0.0.1", description="Webhook bind host")
    port: int = Field(default=8000, ge=0, le=65535, description="Webhook bind port")
    api_token: Optional[str] = Field(default=None, description="Token expected in the Basic credentials")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("ssl_tests", mode="before")
    @classmethod
    def _hostnames(cls, value: Any) -> Any:
        # Older config files list certificates as {"url": "<host>"} objects.
        if isinstance(value, list):
            return [item.get("url") if isinstance(item, dict) else item for item in value]
        return value

    @property
    def needs_telegram(self) -> bool:
        return self.enable_telegram or self.enable_service_monitor or self.enable_api

    def validate_for_startup(self) -> None:
        """Fail fast on missing credentials before any loop starts."""
        if self.needs_telegram and not (self.telegram_bot_token or "").strip():
            raise ConfigError("telegram_bot_token is required (set it in the config or TELEGRAM_BOT_TOKEN)")
        if self.enable_api and not (self.api_token or "").strip():
            raise ConfigError("api_token is required when enable_api is true (or SERVICE_MONITOR_API_TOKEN)")


def load_config(config_path: Optional[str | Path] = None) -> Config:
    """Load configuration from file and environment variables."""
    if config_path is None:
        config_path = os.getenv("SERVICE_MONITOR_CONFIG", "config.yaml")
    path = Path(config_path)

    config_data: dict[str, Any] = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse config file {path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
    else:
        logger.warning("Config file not found, using defaults", path=str(path))

    env_overrides = {
        "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN"),
        "api_token": os.getenv("SERVICE_MONITOR_API_TOKEN"),
        "host": os.getenv("SERVICE_MONITOR_HOST"),
        "port": os.getenv("SERVICE_MONITOR_PORT"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    for key, value in env_overrides.items():
        if value is not None and value.strip():
            config_data[key] = value.strip()

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
