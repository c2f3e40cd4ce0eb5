"""Telegram Bot API client: long-polling, message delivery and bot commands."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from service_monitor.config import Config, ConfigError
from service_monitor.retry import RetryError, retry_request

logger = structlog.get_logger(__name__)

UPDATES_PAGE_SIZE = 100


class Chat(BaseModel):
    id: int


class MessageEntity(BaseModel):
    type: str
    offset: int
    length: int


class Message(BaseModel):
    chat: Chat
    text: Optional[str] = None
    entities: list[MessageEntity] = Field(default_factory=list)


class Update(BaseModel):
    update_id: int
    message: Optional[Message] = None


class GetUpdatesResponse(BaseModel):
    ok: bool = True
    result: list[Update] = Field(default_factory=list)


class BotCommand(BaseModel):
    command: str
    description: str


class GetMyCommandsResponse(BaseModel):
    ok: bool = True
    result: list[BotCommand] = Field(default_factory=list)


BOT_COMMANDS: tuple[BotCommand, ...] = (
    BotCommand(command="/check_all", description="Validate all."),
    BotCommand(command="/check_api", description="Validate api."),
    BotCommand(command="/check_frontend", description="Validate frontend."),
    BotCommand(command="/check_certs", description="Validate certificates."),
    BotCommand(command="/pause", description="Pause validations."),
    BotCommand(command="/unpause", description="Unpause validations."),
)


@dataclass(frozen=True)
class GetRequest:
    url: str


@dataclass(frozen=True)
class PostRequest:
    url: str
    body: str
    content_type: str = "application/json"


TelegramRequest = Union[GetRequest, PostRequest]


class NotificationService(Protocol):
    """What the monitor loops and the webhook need from the channel."""

    async def send_message(self, text: str, chat_ids: Optional[Sequence[int]] = None) -> None: ...


class CommandChannel(NotificationService, Protocol):
    """Full channel used by the command loop."""

    async def get_all_updates(self) -> list[Update]: ...

    async def send_pending_messages(self) -> int: ...

    async def sync_commands(self) -> bool: ...

    async def get_commands(self) -> list[BotCommand]: ...


class TelegramClient:
    """Production notification channel backed by the Telegram Bot API.

    Sends that exhaust their retry budget are kept in a bounded pending
    queue and attempted once more by :meth:`send_pending_messages`. This is
    best-effort delivery: a message can still be lost when the queue
    overflows or the process exits.
    """

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        token = (config.telegram_bot_token or "").strip()
        if not token:
            raise ConfigError("telegram_bot_token is required")
        self.config = config
        self._token = token
        self.api_url = f"{config.telegram_api_url.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self._offset = 0
        self._pending: deque[TelegramRequest] = deque()

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def pending_messages(self) -> list[TelegramRequest]:
        return list(self._pending)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _redact(self, text: str) -> str:
        return text.replace(self._token, "<redacted>")

    async def _send(self, req: TelegramRequest) -> httpx.Response:
        timeout = self.config.telegram_timeout_seconds
        if isinstance(req, PostRequest):
            return await self._client.post(
                req.url,
                content=req.body.encode("utf-8"),
                headers={"Content-Type": req.content_type},
                timeout=timeout,
            )
        if isinstance(req, GetRequest):
            return await self._client.get(req.url, timeout=timeout)
        raise TypeError(f"Unsupported request type: {type(req).__name__}")

    def _enqueue(self, req: TelegramRequest) -> None:
        if len(self._pending) >= self.config.max_pending_messages:
            self._pending.popleft()
            logger.warning("Pending queue full, dropped oldest message", limit=self.config.max_pending_messages)
        self._pending.append(req)

    async def retry_request(self, req: TelegramRequest) -> httpx.Response:
        """Send ``req`` with the configured retry budget.

        On exhaustion, POST requests are queued for one later redelivery
        before the ``RetryError`` propagates.
        """
        try:
            return await retry_request(
                lambda: self._send(req),
                times=self.config.times_to_retry,
                backoff_seconds=self.config.retry_backoff_seconds,
            )
        except RetryError as e:
            if isinstance(req, PostRequest):
                self._enqueue(req)
            logger.warning(
                "Telegram request failed",
                method="POST" if isinstance(req, PostRequest) else "GET",
                attempts=e.attempts,
                error=self._redact(e.describe()),
                queued=isinstance(req, PostRequest),
            )
            raise

    async def send_pending_messages(self) -> int:
        """Retry every queued message once; returns how many were delivered."""
        batch = list(self._pending)
        self._pending.clear()
        if not batch:
            return 0
        logger.info("Retrying pending messages", count=len(batch))
        delivered = 0
        for req in batch:
            try:
                await self.retry_request(req)
            except RetryError:
                continue
            delivered += 1
        return delivered

    async def _get_updates(self, limit: int, offset: int) -> Optional[list[Update]]:
        url = f'{self.api_url}/getUpdates?allowed_updates=["message"]&limit={limit}&offset={offset}'
        try:
            resp = await self.retry_request(GetRequest(url=url))
        except RetryError:
            return None
        try:
            return GetUpdatesResponse.model_validate_json(resp.content).result
        except ValidationError as e:
            logger.error("Malformed getUpdates response, skipping this cycle", error=str(e))
            return None

    async def get_all_updates(self) -> list[Update]:
        """Fetch every update past the cursor, one page at a time.

        Advancing the cursor acknowledges the page to Telegram, so updates
        fetched here are never delivered again even if handling fails.
        """
        updates: list[Update] = []
        while True:
            page = await self._get_updates(UPDATES_PAGE_SIZE, self._offset)
            if not page:
                break
            self._offset = page[-1].update_id + 1
            updates.extend(page)
        return updates

    async def send_message(self, text: str, chat_ids: Optional[Sequence[int]] = None) -> None:
        targets = list(chat_ids) if chat_ids is not None else list(self.config.groups)
        url = f"{self.api_url}/sendMessage"
        for chat_id in targets:
            body = json.dumps({"chat_id": chat_id, "text": text, "parse_mode": "markdown"}, ensure_ascii=False)
            try:
                await self.retry_request(PostRequest(url=url, body=body))
            except RetryError:
                logger.error("Error sending message to group", chat_id=chat_id)

    async def set_commands(self, commands: Sequence[BotCommand]) -> bool:
        body = json.dumps({"commands": [c.model_dump() for c in commands]}, ensure_ascii=False)
        try:
            await self.retry_request(PostRequest(url=f"{self.api_url}/setMyCommands", body=body))
        except RetryError:
            logger.error("Error setting up the list of commands")
            return False
        return True

    async def sync_commands(self) -> bool:
        return await self.set_commands(BOT_COMMANDS)

    async def get_commands(self) -> list[BotCommand]:
        try:
            resp = await self.retry_request(GetRequest(url=f"{self.api_url}/getMyCommands"))
        except RetryError:
            return []
        try:
            return GetMyCommandsResponse.model_validate_json(resp.content).result
        except ValidationError as e:
            logger.error("Malformed getMyCommands response", error=str(e))
            return []
