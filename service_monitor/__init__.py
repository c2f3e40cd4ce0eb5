"""Service monitor: Telegram-driven health checks with an inbound alert webhook."""

from service_monitor.config import Config, ConfigError, load_config
from service_monitor.monitor import Monitor

__all__ = ["Config", "ConfigError", "Monitor", "load_config"]
