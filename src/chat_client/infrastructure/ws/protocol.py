"""WebSocket message envelope models and push event decoding."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from chat_client.application.dto.events import (
    FriendRequestAcceptedEvent,
    FriendRequestEvent,
    MessageDeletedEvent,
    MessageEditedEvent,
    NewMessageEvent,
    PresenceEvent,
    PushEvent,
    TypingEvent,
)
from chat_client.domain.entities.message import Message
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId
from chat_client.infrastructure.http.mappers import (
    aware,
    friend_request_to_entity,
    message_to_entity,
    user_to_entity,
)
from chat_client.infrastructure.http.schemas import FriendRequestPayload, MessagePayload, UserPayload

logger = logging.getLogger(__name__)


class WsInbound(BaseModel):
    """Server → Client."""

    type: str  # new_message | message_edited | message_deleted | typing_indicator | ...
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Client → Server."""

    type: str  # subscribe | typing | mark_read | ping
    data: dict[str, Any] = {}


class _EventData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class MessageDeletedData(_EventData):
    room_id: str = Field(validation_alias=AliasChoices("room_id", "roomId"))
    message_id: str = Field(validation_alias=AliasChoices("message_id", "messageId", "id"))
    deleted_at: datetime | None = Field(None, validation_alias=AliasChoices("deleted_at", "deletedAt"))


class TypingData(_EventData):
    room_id: str = Field(validation_alias=AliasChoices("room_id", "roomId"))
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    is_typing: bool = Field(True, validation_alias=AliasChoices("is_typing", "isTyping", "typing"))


class RequestAcceptedData(_EventData):
    request_id: str = Field(validation_alias=AliasChoices("request_id", "requestId", "id"))
    friend: UserPayload


class PresenceData(_EventData):
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    online: bool = Field(validation_alias=AliasChoices("online", "status", "isOnline"))

    @field_validator("online", mode="before")
    @classmethod
    def coerce_online(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in ("online", "active", "true", "1")
        return value


def _message_data(data: dict[str, Any]) -> dict[str, Any]:
    """Message events carry the record either inline or under ``message``."""
    inner = data.get("message")
    return inner if isinstance(inner, dict) else data


def _room_message(kind: str, data: dict[str, Any]) -> Message | None:
    message = message_to_entity(MessagePayload.model_validate(_message_data(data)))
    if not message.room_id or not message.id:
        logger.warning("Dropping %s frame without room or message id", kind)
        return None
    return message


def decode_event(
    frame: WsInbound,
    local_user_id: str | None,
    received_at: datetime,
) -> PushEvent | None:
    """Turn a server frame into a typed event; ``None`` for frames the client ignores.

    Raises pydantic's ``ValidationError`` when a known frame has a malformed body.
    """
    kind = frame.type
    data = frame.data

    if kind == "new_message":
        message = _room_message(kind, data)
        return NewMessageEvent(message=message) if message is not None else None

    if kind == "message_edited":
        message = _room_message(kind, data)
        return MessageEditedEvent(message=message) if message is not None else None

    if kind == "message_deleted":
        deleted = MessageDeletedData.model_validate(data)
        return MessageDeletedEvent(
            room_id=RoomId(deleted.room_id),
            message_id=MessageId(deleted.message_id),
            deleted_at=aware(deleted.deleted_at) or received_at,
        )

    if kind == "typing_indicator":
        typing = TypingData.model_validate(data)
        return TypingEvent(
            room_id=RoomId(typing.room_id),
            user_id=UserId(typing.user_id),
            is_typing=typing.is_typing,
        )

    if kind == "friend_request":
        request = FriendRequestPayload.model_validate(data)
        return FriendRequestEvent(request=friend_request_to_entity(request, local_user_id))

    if kind == "friend_request_accepted":
        accepted = RequestAcceptedData.model_validate(data)
        return FriendRequestAcceptedEvent(
            request_id=accepted.request_id,
            friend=user_to_entity(accepted.friend),
        )

    if kind == "presence":
        presence = PresenceData.model_validate(data)
        return PresenceEvent(user_id=UserId(presence.user_id), online=presence.online)

    if kind not in ("pong", "subscribed"):
        logger.debug("Ignoring push frame type=%s", kind)
    return None
