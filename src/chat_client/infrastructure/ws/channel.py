"""aiohttp WebSocket push channel: background receive loop with reconnect."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import aiohttp
from pydantic import ValidationError as PayloadError

from chat_client.application.exceptions import NetworkError
from chat_client.application.ports.push import OnPushEvent
from chat_client.config import settings
from chat_client.infrastructure.ws.protocol import WsInbound, WsOutbound, decode_event

logger = logging.getLogger(__name__)

INITIAL_BACKOFF_SECONDS = 0.5


class WebSocketPushChannel:
    """Implements application.ports.push.PushChannel.

    Every (re)connect authenticates with the current bearer credential and
    re-subscribes to the rooms returned by ``subscriptions``.
    """

    def __init__(
        self,
        callback: OnPushEvent,
        token_provider: Callable[[], str | None],
        *,
        local_user_id: Callable[[], str | None] = lambda: None,
        subscriptions: Callable[[], Iterable[str]] = tuple,
        url: str | None = None,
        heartbeat: float | None = None,
        max_backoff: float | None = None,
    ) -> None:
        self._callback = callback
        self._token_provider = token_provider
        self._local_user_id = local_user_id
        self._subscriptions = subscriptions
        self._url = url or settings.WS_URL
        self._heartbeat = heartbeat if heartbeat is not None else settings.WS_HEARTBEAT_SECONDS
        self._max_backoff = max_backoff if max_backoff is not None else settings.WS_RECONNECT_MAX_SECONDS
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def start(self) -> None:
        if not self._url:
            logger.info("WS_URL not set, push channel disabled")
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="ws-push-channel")
        logger.info("Push channel started url=%s", self._url)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Push channel stopped")

    async def send(self, frame_type: str, data: dict[str, Any]) -> None:
        if self._ws is None or self._ws.closed:
            logger.debug("Dropping %s frame, push channel not connected", frame_type)
            return
        frame = WsOutbound(type=frame_type, data=data)
        try:
            await self._ws.send_str(frame.model_dump_json())
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise NetworkError(f"Push channel send failed: {exc}") from exc

    async def subscribe(self, room_id: str) -> None:
        await self.send("subscribe", {"room_id": room_id})

    async def _run(self) -> None:
        backoff = INITIAL_BACKOFF_SECONDS
        async with aiohttp.ClientSession() as session:
            while True:
                token = self._token_provider()
                if not token:
                    logger.info("No credential, push channel idle")
                    return
                try:
                    async with session.ws_connect(
                        self._url,
                        params={"token": token},
                        heartbeat=self._heartbeat,
                    ) as ws:
                        self._ws = ws
                        backoff = INITIAL_BACKOFF_SECONDS
                        logger.info("Push channel connected")
                        for room_id in self._subscriptions():
                            await self.subscribe(room_id)
                        await self._receive(ws)
                except (aiohttp.ClientError, asyncio.TimeoutError, NetworkError) as exc:
                    logger.warning("Push channel connection failed: %s", exc)
                finally:
                    self._ws = None

                logger.info("Push channel reconnecting in %.1fs", backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._max_backoff)

    async def _receive(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await self.handle_text(msg.data)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

    async def handle_text(self, raw: str) -> None:
        """Decode one text frame and hand the event to the callback."""
        try:
            frame = WsInbound.model_validate(json.loads(raw))
            event = decode_event(
                frame,
                self._local_user_id(),
                datetime.now(timezone.utc),
            )
        except (ValueError, PayloadError) as exc:
            logger.warning("Skipping malformed push frame: %s", exc)
            return
        if event is None:
            return
        try:
            await self._callback(event)
        except Exception:
            logger.exception("Error processing push event type=%s", frame.type)
