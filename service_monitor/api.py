"""Inbound webhook that forwards pushed alerts to the notification channel."""

from __future__ import annotations

import asyncio
import base64
import binascii
import hmac
from typing import Any, Optional

import structlog
import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ValidationError

from service_monitor.config import Config
from service_monitor.markdown import escape_markdown
from service_monitor.telegram import NotificationService

logger = structlog.get_logger(__name__)


class NotificationRequest(BaseModel):
    message: str


def validate_basic_auth(api_token: str, header: Optional[str]) -> bool:
    """True when ``header`` is ``Basic <base64(api_token)>``."""
    if not api_token:
        return False
    parts = (header or "").strip().split(None, 1)
    if len(parts) != 2 or parts[0] != "Basic":
        return False
    try:
        decoded = base64.b64decode(parts[1].strip(), validate=True)
        decoded.decode("utf-8")
    except (binascii.Error, ValueError):
        return False
    return hmac.compare_digest(decoded, api_token.encode("utf-8"))


def _state(req: Request, name: str) -> Any:
    value = getattr(req.app.state, name, None)
    if value is None:
        raise RuntimeError(f"App state '{name}' not configured")
    return value


def require_basic_auth(req: Request) -> None:
    config: Config = _state(req, "config")
    if not validate_basic_auth(config.api_token or "", req.headers.get("authorization")):
        logger.warning("Rejected notification, bad credentials", client=req.client.host if req.client else None)
        raise HTTPException(status_code=403, detail="forbidden")


def create_app(config: Config, telegram: NotificationService) -> FastAPI:
    app = FastAPI(title="Service Monitor", version="0.1.0")
    app.state.config = config
    app.state.telegram = telegram

    @app.post("/notification", status_code=202, dependencies=[Depends(require_basic_auth)])
    async def post_notification(req: Request, background_tasks: BackgroundTasks):
        # Parsed here so that credentials are checked before the body.
        try:
            body = NotificationRequest.model_validate_json(await req.body())
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"invalid body: {e.error_count()} error(s)") from e
        service: NotificationService = _state(req, "telegram")
        background_tasks.add_task(service.send_message, escape_markdown(body.message), None)
        logger.info("Notification accepted", length=len(body.message))
        return {"status": "accepted"}

    return app


class ApiService:
    """Serves the webhook until the optional shutdown event is set."""

    def __init__(self, config: Config, telegram: NotificationService):
        self.config = config
        self.app = create_app(config, telegram)
        self.server: Optional[uvicorn.Server] = None

    @property
    def started(self) -> bool:
        return bool(self.server is not None and self.server.started)

    async def start_api(self, shutdown: Optional[asyncio.Event] = None) -> None:
        server_config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level="warning",
            lifespan="off",
        )
        self.server = uvicorn.Server(server_config)
        logger.info("Webhook server starting", host=self.config.host, port=self.config.port)

        if shutdown is None:
            await self.server.serve()
            return

        serve_task = asyncio.create_task(self.server.serve())
        stop_task = asyncio.create_task(shutdown.wait())
        try:
            await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            self.server.should_exit = True
            await serve_task
        logger.info("Webhook server stopped")
