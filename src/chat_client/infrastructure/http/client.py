"""httpx implementation of the :class:`ChatTransport` port."""
from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any, Callable, Iterable, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PayloadError

from chat_client.application.dto.message import SendMessageDTO
from chat_client.application.dto.room import BotConfigDTO, CreateRoomDTO
from chat_client.application.dto.search import MessagePage, UserLookup
from chat_client.application.dto.session import AuthResult, ProfileUpdateDTO, RegistrationDTO
from chat_client.application.exceptions import NetworkError, NotFoundError, ServerRejectedError
from chat_client.config import settings
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Room
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RoomKind
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId
from chat_client.infrastructure.http.errors import raise_for_status
from chat_client.infrastructure.http.mappers import (
    attachment_to_entity,
    bot_to_entity,
    friend_request_to_entity,
    lookup_to_entity,
    message_to_entity,
    room_to_entity,
    user_to_entity,
)
from chat_client.infrastructure.http.schemas import (
    AttachmentPayload,
    AuthPayload,
    BotConfigureRequest,
    BotEnvelope,
    BotPayload,
    BotPromptRequest,
    ChangePasswordRequest,
    CreateRoomRequest,
    FriendRequestCreate,
    FriendRequestPayload,
    LoginRequest,
    MessagePayload,
    PagePayload,
    ProfileUpdateRequest,
    RegisterRequest,
    RoomPayload,
    SendMessageRequest,
    UserLookupPayload,
    UserPayload,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

TokenProvider = Callable[[], str | None]

P = TypeVar("P", bound=BaseModel)
E = TypeVar("E")


def _items(data: Any) -> list[Any]:
    """List endpoints answer with either a bare list or a Spring ``Page``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("content"), list):
        return data["content"]
    raise ServerRejectedError("Malformed list response")


def _parse(model: type[P], data: Any) -> P:
    try:
        return model.model_validate(data)
    except PayloadError as exc:
        raise ServerRejectedError(f"Malformed {model.__name__} response") from exc


def _parse_many(model: type[P], items: Iterable[Any], mapper: Callable[[P], E]) -> list[E]:
    """Map every valid item; an item that fails validation is skipped."""
    result: list[E] = []
    for raw in items:
        try:
            payload = model.model_validate(raw)
        except PayloadError as exc:
            logger.warning("Skipping malformed %s: %s", model.__name__, exc.errors()[:1])
            continue
        result.append(mapper(payload))
    return result


class ApiClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Adds the bearer credential (read late from ``token_provider`` so that a
    session swap is picked up by the next call), a per-request correlation id
    and the status -> error mapping.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {REQUEST_ID_HEADER: uuid.uuid4().hex}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=params,
                files=files,
                data=data,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(f"Could not reach the server: {exc}") from exc

        logger.debug(
            "%s %s -> %s request_id=%s",
            method, path, response.status_code, headers[REQUEST_ID_HEADER],
        )
        raise_for_status(response)
        return response

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        return _decode(await self.request("GET", path, **kwargs))

    async def post_json(self, path: str, **kwargs: Any) -> Any:
        return _decode(await self.request("POST", path, **kwargs))

    async def put_json(self, path: str, **kwargs: Any) -> Any:
        return _decode(await self.request("PUT", path, **kwargs))

    async def aclose(self) -> None:
        await self._client.aclose()


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ServerRejectedError("Response is not JSON", response.status_code) from exc


class HttpAuthGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def login(self, identifier: str, password: str) -> AuthResult:
        body = LoginRequest(username_or_email=identifier, password=password)
        payload = _parse(AuthPayload, await self._api.post_json("/auth/login", json=body.to_json()))
        return AuthResult(user=user_to_entity(payload.user), token=payload.token)

    async def register(self, data: RegistrationDTO) -> AuthResult:
        body = RegisterRequest(
            username=data.username,
            email=data.email,
            password=data.password,
            full_name=data.full_name,
        )
        payload = _parse(AuthPayload, await self._api.post_json("/auth/register", json=body.to_json()))
        return AuthResult(user=user_to_entity(payload.user), token=payload.token)

    async def get_profile(self) -> User:
        return user_to_entity(_parse(UserPayload, await self._api.get_json("/auth/profile")))

    async def update_profile(self, data: ProfileUpdateDTO) -> User:
        body = ProfileUpdateRequest(
            full_name=data.full_name,
            username=data.username,
            avatar_url=data.avatar_url,
        )
        raw = await self._api.put_json("/auth/profile", json=body.to_json())
        return user_to_entity(_parse(UserPayload, raw))

    async def change_password(self, current_password: str, new_password: str) -> None:
        body = ChangePasswordRequest(current_password=current_password, new_password=new_password)
        await self._api.request("POST", "/auth/change-password", json=body.to_json())

    async def logout(self) -> None:
        await self._api.request("POST", "/auth/logout")


class HttpRoomGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def list_rooms(self) -> list[Room]:
        data = await self._api.get_json("/chat/rooms")
        return _parse_many(RoomPayload, _items(data), room_to_entity)

    async def create_room(self, data: CreateRoomDTO) -> Room:
        body = CreateRoomRequest(
            name=data.name,
            is_group=data.kind == RoomKind.GROUP,
            participant_ids=[str(uid) for uid in data.participant_ids],
            kind=data.kind.value,
        )
        raw = await self._api.post_json("/chat/rooms", json=body.to_json())
        return room_to_entity(_parse(RoomPayload, raw))

    async def open_direct_room(self, friend_id: UserId) -> Room:
        raw = await self._api.post_json(f"/chat/rooms/dm/{friend_id}")
        return room_to_entity(_parse(RoomPayload, raw))

    async def list_messages(
        self,
        room_id: RoomId,
        *,
        page: int = 0,
        size: int = 50,
    ) -> list[Message]:
        data = await self._api.get_json(
            f"/chat/rooms/{room_id}/messages",
            params={"page": page, "size": size},
        )
        return _parse_many(MessagePayload, _items(data), lambda p: message_to_entity(p, room_id))

    async def send_message(self, data: SendMessageDTO) -> Message:
        body = SendMessageRequest(
            content=data.body,
            message_type=data.type.value,
            client_msg_id=data.client_msg_id,
        )
        raw = await self._api.post_json(f"/chat/rooms/{data.room_id}/messages", json=body.to_json())
        message = message_to_entity(_parse(MessagePayload, raw), data.room_id)
        if message.client_msg_id is None:
            # Older backends do not echo the idempotency key.
            message = dataclasses.replace(message, client_msg_id=data.client_msg_id)
        return message

    async def add_participant(self, room_id: RoomId, user_id: UserId) -> None:
        await self._api.request(
            "POST",
            f"/chat/rooms/{room_id}/participants",
            params={"participantId": user_id},
        )

    async def remove_participant(self, room_id: RoomId, user_id: UserId) -> None:
        await self._api.request("DELETE", f"/chat/rooms/{room_id}/participants/{user_id}")


class HttpMessageGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def edit_message(self, message_id: MessageId, body: str) -> Message:
        raw = await self._api.put_json(f"/chat/messages/{message_id}", json={"content": body})
        return message_to_entity(_parse(MessagePayload, raw))

    async def delete_message(self, message_id: MessageId) -> None:
        await self._api.request("DELETE", f"/chat/messages/{message_id}")

    async def search(
        self,
        query: str,
        *,
        room_id: RoomId | None = None,
        page: int = 0,
        size: int = 20,
    ) -> MessagePage:
        path = f"/chat/rooms/{room_id}/messages/search" if room_id else "/chat/messages/search"
        data = await self._api.get_json(path, params={"query": query, "page": page, "size": size})
        items = _parse_many(MessagePayload, _items(data), lambda p: message_to_entity(p, room_id))
        if isinstance(data, dict):
            envelope = _parse(PagePayload, data)
            return MessagePage(
                items=items,
                page=envelope.number,
                size=envelope.size or size,
                total_elements=envelope.total_elements,
                total_pages=envelope.total_pages,
            )
        return MessagePage(
            items=items,
            page=page,
            size=size,
            total_elements=len(items),
            total_pages=1 if items else 0,
        )


class HttpFriendsGateway:
    def __init__(self, api: ApiClient, local_user_id: Callable[[], str | None]) -> None:
        self._api = api
        self._local_user_id = local_user_id

    async def list_friends(self) -> list[User]:
        data = await self._api.get_json("/friends")
        return _parse_many(UserPayload, _items(data), user_to_entity)

    async def list_requests(self) -> list[FriendRequest]:
        data = await self._api.get_json("/friends/requests")
        me = self._local_user_id()
        return _parse_many(
            FriendRequestPayload,
            _items(data),
            lambda p: friend_request_to_entity(p, me),
        )

    async def send_request(self, *, email: str | None = None, handle: str | None = None) -> None:
        body = FriendRequestCreate(email=email, username=handle)
        await self._api.request("POST", "/friends/requests", json=body.to_json())

    async def accept_request(self, request_id: str) -> None:
        await self._api.request("PUT", f"/friends/requests/{request_id}/accept")

    async def reject_request(self, request_id: str) -> None:
        await self._api.request("PUT", f"/friends/requests/{request_id}/reject")

    async def remove_friend(self, friend_id: UserId) -> None:
        await self._api.request("DELETE", f"/friends/{friend_id}")


def _lookup_or_user(raw: Any) -> Any:
    if isinstance(raw, dict) and "user" in raw:
        return raw
    return {"user": raw}


class HttpUserGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def search_users(self, query: str) -> list[UserLookup]:
        data = await self._api.get_json("/users/search", params={"q": query})
        return _parse_many(UserLookupPayload, map(_lookup_or_user, _items(data)), lookup_to_entity)

    async def find_user(self, query: str) -> UserLookup | None:
        try:
            data = await self._api.get_json("/users/find", params={"q": query})
        except NotFoundError:
            return None
        if not data:
            return None
        return lookup_to_entity(_parse(UserLookupPayload, _lookup_or_user(data)))


class HttpFileGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def upload(
        self,
        message_id: MessageId,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> Attachment:
        raw = await self._api.post_json(
            "/files/upload",
            files={"file": (file_name, content, content_type)},
            data={"messageId": str(message_id)},
        )
        return attachment_to_entity(_parse(AttachmentPayload, raw), message_id)

    async def download(self, file_name: str) -> bytes:
        response = await self._api.request("GET", f"/files/download/{file_name}")
        return response.content

    async def list_for_message(self, message_id: MessageId) -> list[Attachment]:
        data = await self._api.get_json(f"/files/message/{message_id}")
        return _parse_many(AttachmentPayload, _items(data), lambda p: attachment_to_entity(p, message_id))

    async def delete(self, attachment_id: str) -> None:
        await self._api.request("DELETE", f"/files/attachment/{attachment_id}")


class HttpBotGateway:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def configure(self, data: BotConfigDTO) -> User:
        body = BotConfigureRequest(
            bot_name=data.name,
            provider=data.provider,
            model=data.model,
            api_key=data.api_key,
        )
        raw = await self._api.post_json("/gemini/configure", json=body.to_json())
        _check_envelope(raw)
        return bot_to_entity(_parse(BotPayload, raw))

    async def list_bots(self) -> list[User]:
        raw = await self._api.get_json("/gemini/bots")
        envelope = _check_envelope(raw)
        return _parse_many(BotPayload, envelope.bots or [], bot_to_entity)

    async def generate_response(self, bot_id: UserId, prompt: str) -> str:
        body = BotPromptRequest(prompt=prompt)
        raw = await self._api.post_json(f"/gemini/bot/{bot_id}/response", json=body.to_json())
        envelope = _check_envelope(raw)
        if not envelope.response:
            raise ServerRejectedError("Bot returned an empty response")
        return envelope.response


def _check_envelope(raw: Any) -> BotEnvelope:
    """The bot endpoints report failures in-band with ``status: "error"``."""
    envelope = _parse(BotEnvelope, raw)
    if envelope.status.lower() == "error":
        raise ServerRejectedError(envelope.message or "Bot request failed")
    return envelope


class HttpChatTransport:
    """Aggregates the HTTP gateways over one shared :class:`ApiClient`."""

    def __init__(
        self,
        token_provider: TokenProvider,
        local_user_id: Callable[[], str | None],
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api = ApiClient(token_provider, base_url=base_url, timeout=timeout, transport=transport)
        self.auth = HttpAuthGateway(self._api)
        self.rooms = HttpRoomGateway(self._api)
        self.messages = HttpMessageGateway(self._api)
        self.friends = HttpFriendsGateway(self._api, local_user_id)
        self.users = HttpUserGateway(self._api)
        self.files = HttpFileGateway(self._api)
        self.bots = HttpBotGateway(self._api)

    async def aclose(self) -> None:
        await self._api.aclose()
