"""Runs the command loop, the website monitor and the webhook in one process."""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from service_monitor.api import ApiService
from service_monitor.commands import CommandDispatcher
from service_monitor.config import Config
from service_monitor.markdown import escape_markdown
from service_monitor.pause import PauseState, PauseTick
from service_monitor.report import handle_validation
from service_monitor.telegram import CommandChannel, TelegramClient
from service_monitor.website import Website

logger = structlog.get_logger(__name__)

PAUSE_REMINDER_MESSAGE = "⚠️ REMINDER\nService monitor is in pause."


class Monitor:
    """Composition and lifecycle only; behaviour lives in the components.

    Only the webhook server stops on its own (when ``shutdown`` is set);
    the two polling loops run until the process exits.
    """

    def __init__(
        self,
        config: Config,
        telegram: Optional[CommandChannel] = None,
        website: Optional[Website] = None,
        pause: Optional[PauseState] = None,
    ):
        self.config = config
        self.telegram: CommandChannel = telegram if telegram is not None else TelegramClient(config)
        self.website = website if website is not None else Website(config)
        self.pause = pause if pause is not None else PauseState()
        self.dispatcher = CommandDispatcher(self.telegram, self.website, self.pause)
        self.api = ApiService(config, self.telegram)

    async def start(self, shutdown: Optional[asyncio.Event] = None) -> None:
        units = []
        if self.config.enable_telegram:
            units.append(self.run_telegram_monitor())
        if self.config.enable_service_monitor:
            units.append(self.run_website_monitor())
        if self.config.enable_api:
            units.append(self.api.start_api(shutdown))
        if not units:
            logger.warning("Nothing enabled, exiting")
            return
        logger.info(
            "Monitor started",
            telegram=self.config.enable_telegram,
            service_monitor=self.config.enable_service_monitor,
            api=self.config.enable_api,
        )
        try:
            await asyncio.gather(*units)
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self.website.aclose()
        if isinstance(self.telegram, TelegramClient):
            await self.telegram.aclose()

    async def run_commands_sync(self) -> None:
        await self.telegram.sync_commands()
        commands = await self.telegram.get_commands()
        logger.info("Bot commands", commands=[c.command for c in commands])

    async def telegram_cycle(self) -> int:
        """One polling pass: redeliver pending sends, then handle new commands."""
        await self.telegram.send_pending_messages()
        updates = await self.telegram.get_all_updates()
        if updates:
            logger.info("Received updates", count=len(updates), last_update_id=updates[-1].update_id)
        await self.dispatcher.handle_updates(updates)
        return len(updates)

    async def run_telegram_monitor(self) -> None:
        try:
            await self.run_commands_sync()
        except Exception:
            logger.exception("Command sync failed")
        while True:
            try:
                await self.telegram_cycle()
            except Exception:
                logger.exception("Error in telegram loop")
            await asyncio.sleep(self.config.telegram_poll_interval)

    async def website_cycle(self) -> PauseTick:
        """One monitor pass: probe everything, or account the pause."""
        if not self.config.enable_telegram:
            # No command loop to redeliver queued sends.
            await self.telegram.send_pending_messages()
        tick = await self.pause.tick(self.config.website_monitor_interval, self.config.pause_reminder_interval)
        if tick is PauseTick.REMIND:
            await self.telegram.send_message(escape_markdown(PAUSE_REMINDER_MESSAGE))
        if tick is not PauseTick.ACTIVE:
            return tick

        errors = await self.website.summary()
        for err in errors:
            logger.warning("Validation failed", error=err)
        await handle_validation(self.telegram, errors)
        return tick

    async def run_website_monitor(self) -> None:
        while True:
            try:
                await self.website_cycle()
            except Exception:
                logger.exception("Error in website monitor loop")
            await asyncio.sleep(self.config.website_monitor_interval)
