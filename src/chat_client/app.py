from __future__ import annotations

import logging
from pathlib import Path

import httpx

from chat_client.application.dto.room import BotConfigDTO
from chat_client.application.exceptions import ValidationError
from chat_client.application.ports.clock import Clock
from chat_client.application.ports.credentials import CredentialStore
from chat_client.config import Settings, settings as default_settings
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RoomKind
from chat_client.domain.value_objects.ids import MessageId
from chat_client.infrastructure.auth.claims import credential_expired
from chat_client.infrastructure.auth.token_file import FileCredentialStore
from chat_client.infrastructure.http.client import HttpChatTransport
from chat_client.infrastructure.ws.channel import WebSocketPushChannel
from chat_client.services import attachment_service
from chat_client.services.directory_cache import DirectoryCache
from chat_client.services.push_dispatcher import PushDispatcher
from chat_client.services.room_store import RoomStore
from chat_client.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class ChatClient:
    """Composition root: one transport, three stores and the push channel."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        credentials: CredentialStore | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock | None = None,
        enable_push: bool = True,
    ) -> None:
        self.settings = config or default_settings
        cfg = self.settings

        self.transport = HttpChatTransport(
            lambda: self.session.bearer,
            lambda: self.session.user.id if self.session.user else None,
            base_url=cfg.api_url,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
            transport=http_transport,
        )
        self.session = SessionStore(
            self.transport.auth,
            credentials or FileCredentialStore(Path(cfg.token_path)),
            expiry_check=credential_expired,
        )
        self.rooms = RoomStore(
            self.transport,
            self.session,
            clock=clock,
            bot_reply_delay=cfg.BOT_REPLY_DELAY_SECONDS,
            page_size=cfg.MESSAGES_PAGE_SIZE,
            search_page_size=cfg.SEARCH_PAGE_SIZE,
        )
        self.directory = DirectoryCache(self.transport, self.session)
        self.dispatcher = PushDispatcher(self.rooms, self.directory)

        self.push: WebSocketPushChannel | None = None
        if enable_push and cfg.WS_URL:
            self.push = WebSocketPushChannel(
                self.dispatcher,
                lambda: self.session.token,
                local_user_id=lambda: self.session.user.id if self.session.user else None,
                subscriptions=lambda: [r.id for r in self.rooms.rooms if r.kind != RoomKind.BOT],
                url=cfg.WS_URL,
                heartbeat=cfg.WS_HEARTBEAT_SECONDS,
                max_backoff=cfg.WS_RECONNECT_MAX_SECONDS,
            )
            self.rooms.attach_push_channel(self.push)

        self.session.on_logout(self.rooms.reset)
        self.session.on_logout(self.directory.reset)

    async def start(self) -> User | None:
        """Restore a persisted session and, when authenticated, load initial state."""
        user = await self.session.restore()
        if user is not None:
            await self.on_authenticated()
        return user

    async def login(self, identifier: str, password: str) -> User:
        user = await self.session.login(identifier, password)
        await self.on_authenticated()
        return user

    async def on_authenticated(self) -> None:
        await self.rooms.load_rooms()
        await self.directory.load_friends()
        await self.directory.load_friend_requests()
        if self.push is not None:
            await self.push.start()

    async def logout(self) -> None:
        if self.push is not None:
            await self.push.stop()
        await self.session.logout()

    async def configure_bot(self, name: str, provider: str, model: str, api_key: str) -> User:
        if not name.strip():
            raise ValidationError("Bot name is required")
        if not api_key.strip():
            raise ValidationError("API key is required")
        bot = await self.transport.bots.configure(
            BotConfigDTO(name=name.strip(), provider=provider, model=model, api_key=api_key),
        )
        logger.info("Configured bot %s (%s/%s)", bot.id, provider, model)
        return bot

    async def list_bots(self) -> list[User]:
        return await self.transport.bots.list_bots()

    async def upload_attachment(
        self,
        message_id: MessageId,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> Attachment:
        return await attachment_service.upload_attachment(
            message_id, file_name, content, self.transport, content_type,
        )

    async def download_attachment(self, attachment: Attachment | str) -> bytes:
        return await attachment_service.download_attachment(attachment, self.transport)

    async def list_attachments(self, message_id: MessageId) -> list[Attachment]:
        return await attachment_service.list_attachments(message_id, self.transport)

    async def delete_attachment(self, attachment_id: str) -> None:
        await attachment_service.delete_attachment(attachment_id, self.transport)

    async def aclose(self) -> None:
        if self.push is not None:
            await self.push.stop()
        await self.rooms.aclose()
        await self.transport.aclose()
