from __future__ import annotations

from typing import Any, Optional, Sequence

from service_monitor.config import Config
from service_monitor.telegram import BOT_COMMANDS, BotCommand, Update


def make_config(**overrides: Any) -> Config:
    data: dict[str, Any] = {
        "telegram_bot_token": "123:abc",
        "api_token": "test",
        "groups": [100, 200],
        "times_to_retry": 3,
    }
    data.update(overrides)
    return Config(**data)


def command_update(update_id: int, chat_id: int, text: str) -> Update:
    entities = []
    pos = 0
    for word in text.split(" "):
        if word.startswith("/"):
            entities.append({"type": "bot_command", "offset": pos, "length": len(word)})
        pos += len(word) + 1
    return Update.model_validate(
        {"update_id": update_id, "message": {"chat": {"id": chat_id}, "text": text, "entities": entities}}
    )


class FakeTelegram:
    """Records sends instead of talking to the Bot API."""

    def __init__(self, batches: Optional[list[list[Update]]] = None):
        self.sent: list[tuple[str, Optional[list[int]]]] = []
        self.batches = list(batches or [])
        self.pending_drains = 0
        self.synced = False

    async def send_message(self, text: str, chat_ids: Optional[Sequence[int]] = None) -> None:
        self.sent.append((text, list(chat_ids) if chat_ids is not None else None))

    async def get_all_updates(self) -> list[Update]:
        return self.batches.pop(0) if self.batches else []

    async def send_pending_messages(self) -> int:
        self.pending_drains += 1
        return 0

    async def sync_commands(self) -> bool:
        self.synced = True
        return True

    async def get_commands(self) -> list[BotCommand]:
        return list(BOT_COMMANDS)


class FakeWebsite:
    def __init__(self, api=None, frontend=None, certs=None):
        self.api = list(api or [])
        self.frontend = list(frontend or [])
        self.certs = list(certs or [])
        self.calls: list[str] = []

    async def check_api(self) -> list[str]:
        self.calls.append("api")
        return list(self.api)

    async def check_frontend(self) -> list[str]:
        self.calls.append("frontend")
        return list(self.frontend)

    async def check_certificates(self) -> list[str]:
        self.calls.append("certs")
        return list(self.certs)

    async def summary(self) -> list[str]:
        return await self.check_api() + await self.check_frontend() + await self.check_certificates()

    async def aclose(self) -> None:
        return None
