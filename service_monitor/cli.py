from __future__ import annotations

import argparse
import asyncio
import logging
import os

import structlog

from service_monitor.config import ConfigError, load_config
from service_monitor.monitor import Monitor

logger = structlog.get_logger(__name__)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    # The Telegram token is embedded in the Bot API URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Service monitor with Telegram commands and alert webhook")
    parser.add_argument(
        "--config",
        default=os.getenv("SERVICE_MONITOR_CONFIG", "config.yaml"),
        help="Path to YAML or JSON config",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
        config.validate_for_startup()
    except ConfigError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2
    configure_logging(args.log_level or config.log_level)

    try:
        monitor = Monitor(config)
    except ConfigError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2

    try:
        asyncio.run(monitor.start())
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
