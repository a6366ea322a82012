"""Transport adapter ports.

Stores depend on these Protocols only. Implementations translate store intents
into network calls and map every backend payload into domain entities before
returning, so no wire-shape detail reaches the stores.
"""
from __future__ import annotations

from typing import Protocol

from chat_client.application.dto.message import SendMessageDTO
from chat_client.application.dto.room import BotConfigDTO, CreateRoomDTO
from chat_client.application.dto.search import MessagePage, UserLookup
from chat_client.application.dto.session import AuthResult, ProfileUpdateDTO, RegistrationDTO
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Room
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId


class AuthGateway(Protocol):
    async def login(self, identifier: str, password: str) -> AuthResult: ...

    async def register(self, data: RegistrationDTO) -> AuthResult: ...

    async def get_profile(self) -> User: ...

    async def update_profile(self, data: ProfileUpdateDTO) -> User: ...

    async def change_password(self, current_password: str, new_password: str) -> None: ...

    async def logout(self) -> None: ...


class RoomGateway(Protocol):
    async def list_rooms(self) -> list[Room]: ...

    async def create_room(self, data: CreateRoomDTO) -> Room: ...

    async def open_direct_room(self, friend_id: UserId) -> Room: ...

    async def list_messages(
        self,
        room_id: RoomId,
        *,
        page: int = 0,
        size: int = 50,
    ) -> list[Message]: ...

    async def send_message(self, data: SendMessageDTO) -> Message: ...

    async def add_participant(self, room_id: RoomId, user_id: UserId) -> None: ...

    async def remove_participant(self, room_id: RoomId, user_id: UserId) -> None: ...


class MessageGateway(Protocol):
    async def edit_message(self, message_id: MessageId, body: str) -> Message: ...

    async def delete_message(self, message_id: MessageId) -> None: ...

    async def search(
        self,
        query: str,
        *,
        room_id: RoomId | None = None,
        page: int = 0,
        size: int = 20,
    ) -> MessagePage: ...


class FriendsGateway(Protocol):
    async def list_friends(self) -> list[User]: ...

    async def list_requests(self) -> list[FriendRequest]: ...

    async def send_request(self, *, email: str | None = None, handle: str | None = None) -> None: ...

    async def accept_request(self, request_id: str) -> None: ...

    async def reject_request(self, request_id: str) -> None: ...

    async def remove_friend(self, friend_id: UserId) -> None: ...


class UserGateway(Protocol):
    async def search_users(self, query: str) -> list[UserLookup]: ...

    async def find_user(self, query: str) -> UserLookup | None:
        """Point lookup. A miss is ``None``, not an error."""
        ...


class FileGateway(Protocol):
    async def upload(
        self,
        message_id: MessageId,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> Attachment: ...

    async def download(self, file_name: str) -> bytes: ...

    async def list_for_message(self, message_id: MessageId) -> list[Attachment]: ...

    async def delete(self, attachment_id: str) -> None: ...


class BotGateway(Protocol):
    async def configure(self, data: BotConfigDTO) -> User: ...

    async def list_bots(self) -> list[User]: ...

    async def generate_response(self, bot_id: UserId, prompt: str) -> str: ...


class ChatTransport(Protocol):
    auth: AuthGateway
    rooms: RoomGateway
    messages: MessageGateway
    friends: FriendsGateway
    users: UserGateway
    files: FileGateway
    bots: BotGateway

    async def aclose(self) -> None: ...
