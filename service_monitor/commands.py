"""Bot command extraction and routing."""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable

import structlog

from service_monitor.markdown import escape_markdown
from service_monitor.pause import PauseState
from service_monitor.report import handle_validation
from service_monitor.telegram import NotificationService, Update
from service_monitor.website import Website

logger = structlog.get_logger(__name__)

API_OK_MESSAGE = "✅ Api is working fine."
FRONTEND_OK_MESSAGE = "✅ Frontend is working fine."
CERTS_OK_MESSAGE = "✅ Certificates are OK."
PAUSED_MESSAGE = "✅ Service is paused, if you want to resume it use the command /unpause."
UNPAUSED_MESSAGE = "✅ Service is resumed."


def extract_command(command: str) -> str:
    """Drop the ``@botname`` suffix Telegram appends in group chats."""
    return command.split("@", 1)[0]


def entity_text(text: str, offset: int, length: int) -> str:
    # Entity offsets and lengths are counted in UTF-16 code units.
    raw = text.encode("utf-16-le")
    return raw[offset * 2 : (offset + length) * 2].decode("utf-16-le", errors="ignore")


def iter_commands(update: Update) -> Iterable[tuple[int, str]]:
    """Yield ``(chat_id, command)`` for each bot_command entity, in order."""
    msg = update.message
    if msg is None or not msg.text:
        return
    for entity in msg.entities:
        if entity.type != "bot_command":
            continue
        yield msg.chat.id, extract_command(entity_text(msg.text, entity.offset, entity.length))


class CommandDispatcher:
    def __init__(self, telegram: NotificationService, website: Website, pause: PauseState):
        self.telegram = telegram
        self.website = website
        self.pause = pause
        self._handlers: dict[str, Callable[[int], Awaitable[None]]] = {
            "/check_all": self.check_all,
            "/check_api": self.check_api,
            "/check_frontend": self.check_frontend,
            "/check_certs": self.check_certs,
            "/pause": self.pause_monitor,
            "/unpause": self.unpause_monitor,
        }

    async def handle_updates(self, updates: Iterable[Update]) -> None:
        for update in updates:
            for chat_id, command in iter_commands(update):
                try:
                    await self.dispatch(command, chat_id)
                except Exception:
                    logger.exception("Command failed", command=command, chat_id=chat_id)

    async def dispatch(self, command: str, chat_id: int) -> bool:
        handler = self._handlers.get(command)
        if handler is None:
            logger.warning("Unknown command", command=command, chat_id=chat_id)
            return False
        logger.info("Running command", command=command, chat_id=chat_id)
        await handler(chat_id)
        return True

    async def check_api(self, chat_id: int) -> None:
        errors = await self.website.check_api()
        await handle_validation(self.telegram, errors, API_OK_MESSAGE, [chat_id])

    async def check_frontend(self, chat_id: int) -> None:
        errors = await self.website.check_frontend()
        await handle_validation(self.telegram, errors, FRONTEND_OK_MESSAGE, [chat_id])

    async def check_certs(self, chat_id: int) -> None:
        errors = await self.website.check_certificates()
        await handle_validation(self.telegram, errors, CERTS_OK_MESSAGE, [chat_id])

    async def check_all(self, chat_id: int) -> None:
        await self.check_api(chat_id)
        await self.check_frontend(chat_id)
        await self.check_certs(chat_id)

    async def pause_monitor(self, chat_id: int) -> None:
        await self.pause.set_paused(True)
        await self.telegram.send_message(escape_markdown(PAUSED_MESSAGE), [chat_id])

    async def unpause_monitor(self, chat_id: int) -> None:
        await self.pause.set_paused(False)
        await self.telegram.send_message(escape_markdown(UNPAUSED_MESSAGE), [chat_id])
