"""Typed push events, decoded from the real-time channel before they reach the stores."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId


@dataclass(frozen=True, slots=True)
class NewMessageEvent:
    message: Message


@dataclass(frozen=True, slots=True)
class MessageEditedEvent:
    message: Message


@dataclass(frozen=True, slots=True)
class MessageDeletedEvent:
    room_id: RoomId
    message_id: MessageId
    deleted_at: datetime


@dataclass(frozen=True, slots=True)
class TypingEvent:
    room_id: RoomId
    user_id: UserId
    is_typing: bool


@dataclass(frozen=True, slots=True)
class FriendRequestEvent:
    request: FriendRequest


@dataclass(frozen=True, slots=True)
class FriendRequestAcceptedEvent:
    request_id: str
    friend: User


@dataclass(frozen=True, slots=True)
class PresenceEvent:
    user_id: UserId
    online: bool


PushEvent = (
    NewMessageEvent
    | MessageEditedEvent
    | MessageDeletedEvent
    | TypingEvent
    | FriendRequestEvent
    | FriendRequestAcceptedEvent
    | PresenceEvent
)
