"""Wire models for the REST backend.

Inbound models accept every field spelling the backend has used
(camelCase, snake_case, legacy names) so that the mappers see one shape.
Outbound models serialize with the backend's camelCase names.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _as_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Outbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# -- inbound -----------------------------------------------------------------


class UserPayload(_Inbound):
    id: str | None = None
    full_name: str | None = Field(
        None, validation_alias=AliasChoices("full_name", "fullName", "display_name", "name"),
    )
    user_name: str | None = Field(
        None, validation_alias=AliasChoices("user_name", "userName", "username", "handle"),
    )
    email: str | None = None
    avatar_url: str | None = Field(None, validation_alias=AliasChoices("avatar_url", "avatarUrl", "avatar"))
    status: bool | None = Field(None, validation_alias=AliasChoices("status", "online", "isOnline"))
    is_bot: bool = Field(False, validation_alias=AliasChoices("is_bot", "isBot"))
    provider: str | None = None
    model: str | None = None
    configured: bool | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in ("online", "active", "true", "1")
        return value


class MessagePayload(_Inbound):
    id: str | None = None
    room_id: str | None = Field(None, validation_alias=AliasChoices("room_id", "roomId", "chatId"))
    sender_id: str | None = Field(None, validation_alias=AliasChoices("sender_id", "senderId"))
    sender: UserPayload | None = None
    content: str | None = Field(None, validation_alias=AliasChoices("content", "text", "body"))
    message_type: str | None = Field(None, validation_alias=AliasChoices("message_type", "messageType", "type"))
    sent_at: datetime | None = Field(
        None, validation_alias=AliasChoices("sent_at", "sentAt", "created_at", "createdAt", "timestamp"),
    )
    edited_at: datetime | None = Field(None, validation_alias=AliasChoices("edited_at", "editedAt"))
    deleted_at: datetime | None = Field(None, validation_alias=AliasChoices("deleted_at", "deletedAt"))
    is_deleted: bool = Field(False, validation_alias=AliasChoices("is_deleted", "isDeleted", "deleted"))
    seq: int | None = Field(None, validation_alias=AliasChoices("seq", "sequence"))
    client_msg_id: UUID | None = Field(None, validation_alias=AliasChoices("client_msg_id", "clientMsgId"))

    @field_validator("id", "room_id", "sender_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)


class RoomPayload(_Inbound):
    id: str | None = None
    name: str | None = None
    kind: str | None = Field(None, validation_alias=AliasChoices("kind", "type", "roomType"))
    is_group: bool | None = Field(None, validation_alias=AliasChoices("is_group", "isGroup"))
    creator_id: str | None = Field(None, validation_alias=AliasChoices("creator_id", "creatorId"))
    avatar_url: str | None = Field(None, validation_alias=AliasChoices("avatar_url", "avatarUrl"))
    description: str | None = None
    participants: list[UserPayload] | None = None
    roles: dict[str, str] | None = None
    last_message: MessagePayload | None = Field(
        None, validation_alias=AliasChoices("last_message", "lastMessage"),
    )

    @field_validator("id", "creator_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)


class PagePayload(_Inbound):
    """Spring ``Page`` envelope."""

    content: list[Any] = []
    number: int = 0
    size: int = 0
    total_elements: int = Field(0, validation_alias=AliasChoices("total_elements", "totalElements"))
    total_pages: int = Field(0, validation_alias=AliasChoices("total_pages", "totalPages"))


class AuthPayload(_Inbound):
    token: str = Field(validation_alias=AliasChoices("token", "accessToken", "access_token"))
    user: UserPayload


class FriendRequestPayload(_Inbound):
    id: str
    sender_id: str | None = Field(None, validation_alias=AliasChoices("sender_id", "senderId"))
    receiver_id: str | None = Field(None, validation_alias=AliasChoices("receiver_id", "receiverId"))
    status: str = "PENDING"
    created_at: datetime | None = Field(None, validation_alias=AliasChoices("created_at", "createdAt"))
    sender: UserPayload | None = None
    receiver: UserPayload | None = None
    direction: str | None = None

    @field_validator("id", "sender_id", "receiver_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)


class UserLookupPayload(_Inbound):
    user: UserPayload
    status: str | None = None


class AttachmentPayload(_Inbound):
    id: str
    message_id: str | None = Field(None, validation_alias=AliasChoices("message_id", "messageId"))
    file_name: str = Field(validation_alias=AliasChoices("file_name", "fileName"))
    file_url: str = Field(validation_alias=AliasChoices("file_url", "fileUrl"))
    file_type: str | None = Field(None, validation_alias=AliasChoices("file_type", "fileType"))
    file_size: int | None = Field(None, validation_alias=AliasChoices("file_size", "fileSize"))
    uploaded_at: datetime | None = Field(None, validation_alias=AliasChoices("uploaded_at", "uploadedAt"))

    @field_validator("id", "message_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)


class BotPayload(_Inbound):
    """Bot record as returned by ``/gemini/configure`` and ``/gemini/bots``."""

    id: str = Field(validation_alias=AliasChoices("id", "botId", "bot_id"))
    name: str | None = Field(None, validation_alias=AliasChoices("name", "botName", "bot_name"))
    provider: str = "gemini"
    model: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_str(value)


class BotEnvelope(_Inbound):
    status: str = "success"
    message: str | None = None
    response: str | None = None
    bots: list[dict[str, Any]] | None = None


# -- outbound ----------------------------------------------------------------


class LoginRequest(_Outbound):
    username_or_email: str = Field(serialization_alias="usernameOrEmail")
    password: str


class RegisterRequest(_Outbound):
    username: str
    email: str
    password: str
    full_name: str = Field(serialization_alias="fullName")


class ProfileUpdateRequest(_Outbound):
    full_name: str | None = Field(None, serialization_alias="fullName")
    username: str | None = None
    avatar_url: str | None = Field(None, serialization_alias="avatarUrl")


class ChangePasswordRequest(_Outbound):
    current_password: str = Field(serialization_alias="currentPassword")
    new_password: str = Field(serialization_alias="newPassword")


class SendMessageRequest(_Outbound):
    content: str
    message_type: str = Field("text", serialization_alias="messageType")
    client_msg_id: UUID | None = Field(None, serialization_alias="clientMsgId")


class CreateRoomRequest(_Outbound):
    name: str
    is_group: bool = Field(serialization_alias="isGroup")
    participant_ids: list[str] = Field(serialization_alias="participantIds")
    kind: str | None = None


class FriendRequestCreate(_Outbound):
    email: str | None = None
    username: str | None = None


class BotConfigureRequest(_Outbound):
    bot_name: str = Field(serialization_alias="botName")
    provider: str
    model: str
    api_key: str = Field(serialization_alias="apiKey")


class BotPromptRequest(_Outbound):
    prompt: str
