"""Wire payload -> domain entity mapping.

This is the only place that knows how the backend spells things. Bot vs
human is decided here, once, from explicit payload fields.
"""
from __future__ import annotations

from datetime import datetime, timezone

from chat_client.application.dto.search import UserLookup
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Participant, Room
from chat_client.domain.entities.user import BotProfile, User
from chat_client.domain.value_objects.enums import (
    MessageState,
    MessageType,
    RelationshipStatus,
    RequestDirection,
    RoomKind,
    RoomRole,
)
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId
from chat_client.infrastructure.http.schemas import (
    AttachmentPayload,
    BotPayload,
    FriendRequestPayload,
    MessagePayload,
    RoomPayload,
    UserLookupPayload,
    UserPayload,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_MESSAGE_TYPES: dict[str, MessageType] = {
    "text": MessageType.TEXT,
    "image": MessageType.IMAGE,
    "link": MessageType.LINK,
    "file": MessageType.LINK,
}

_ROOM_KINDS: dict[str, RoomKind] = {
    "dm": RoomKind.DIRECT,
    "direct": RoomKind.DIRECT,
    "group": RoomKind.GROUP,
    "bot": RoomKind.BOT,
}


def aware(value: datetime | None) -> datetime | None:
    """Backend timestamps without an offset are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def user_to_entity(payload: UserPayload) -> User:
    bot = None
    if payload.is_bot or payload.provider:
        bot = BotProfile(
            provider=payload.provider or "gemini",
            model=payload.model or "",
            configured=payload.configured if payload.configured is not None else True,
        )
    handle = payload.user_name or (payload.email.split("@")[0] if payload.email else "")
    return User(
        id=UserId(payload.id or ""),
        display_name=payload.full_name or handle,
        handle=handle,
        email=payload.email,
        avatar_url=payload.avatar_url,
        online=bool(payload.status),
        bot=bot,
    )


def bot_to_entity(payload: BotPayload) -> User:
    name = payload.name or "AI Bot"
    return User(
        id=UserId(payload.id),
        display_name=name,
        handle=name,
        online=True,
        bot=BotProfile(provider=payload.provider, model=payload.model),
    )


def message_to_entity(payload: MessagePayload, room_id: str | None = None) -> Message:
    sender_id = payload.sender_id or (payload.sender.id if payload.sender else None) or ""
    deleted_at = aware(payload.deleted_at)
    sent_at = aware(payload.sent_at) or _EPOCH
    if deleted_at is None and payload.is_deleted:
        deleted_at = sent_at
    return Message(
        id=MessageId(payload.id or ""),
        room_id=RoomId(payload.room_id or room_id or ""),
        sender_id=UserId(sender_id),
        body=payload.content or "",
        type=_MESSAGE_TYPES.get((payload.message_type or "text").lower(), MessageType.TEXT),
        created_at=sent_at,
        seq=payload.seq,
        edited_at=aware(payload.edited_at),
        deleted_at=deleted_at,
        client_msg_id=payload.client_msg_id,
        state=MessageState.CONFIRMED,
    )


def room_to_entity(payload: RoomPayload) -> Room:
    users = [user_to_entity(u) for u in payload.participants or []]

    kind = _ROOM_KINDS.get((payload.kind or "").lower())
    if kind is None:
        if any(u.is_bot for u in users):
            kind = RoomKind.BOT
        elif payload.is_group:
            kind = RoomKind.GROUP
        else:
            kind = RoomKind.DIRECT

    roles = payload.roles or {}
    participants = []
    for user in users:
        raw_role = roles.get(user.id)
        if raw_role is not None:
            role = RoomRole.ADMIN if raw_role.lower() == "admin" else RoomRole.MEMBER
        elif kind == RoomKind.GROUP and user.id == payload.creator_id:
            role = RoomRole.ADMIN
        else:
            role = RoomRole.MEMBER
        participants.append(Participant(user=user, role=role))

    preview = None
    if payload.last_message is not None and payload.last_message.id:
        preview = message_to_entity(payload.last_message, payload.id)

    return Room(
        id=RoomId(payload.id or ""),
        kind=kind,
        name=payload.name or "",
        participants=tuple(participants),
        avatar_url=payload.avatar_url,
        description=payload.description,
        server_preview=preview,
    )


def friend_request_to_entity(
    payload: FriendRequestPayload,
    local_user_id: str | None,
) -> FriendRequest:
    if payload.sender is not None:
        sender = user_to_entity(payload.sender)
    else:
        sender = User(id=UserId(payload.sender_id or ""), display_name="", handle="")

    receiver_id = payload.receiver_id or (payload.receiver.id if payload.receiver else None) or ""
    if payload.direction:
        direction = RequestDirection(payload.direction.lower())
    elif local_user_id is not None and sender.id == local_user_id:
        direction = RequestDirection.OUTGOING
    else:
        direction = RequestDirection.INCOMING

    return FriendRequest(
        id=payload.id,
        sender=sender,
        receiver_id=UserId(receiver_id),
        status=payload.status,
        created_at=aware(payload.created_at),
        direction=direction,
    )


def relationship_status(raw: str | None) -> RelationshipStatus:
    value = (raw or "").strip().lower()
    if not value or value == "none":
        return RelationshipStatus.NONE
    if value == "self":
        return RelationshipStatus.SELF
    if value in ("pending_incoming", "received", "incoming"):
        return RelationshipStatus.PENDING_INCOMING
    if value.startswith("pending") or value in ("sent", "outgoing"):
        return RelationshipStatus.PENDING_OUTGOING
    if value in ("friends", "friend", "accepted"):
        return RelationshipStatus.FRIENDS
    return RelationshipStatus.NONE


def lookup_to_entity(payload: UserLookupPayload) -> UserLookup:
    return UserLookup(user=user_to_entity(payload.user), status=relationship_status(payload.status))


def attachment_to_entity(payload: AttachmentPayload, message_id: str | None = None) -> Attachment:
    return Attachment(
        id=payload.id,
        message_id=MessageId(payload.message_id or message_id or ""),
        file_name=payload.file_name,
        file_url=payload.file_url,
        file_type=payload.file_type,
        file_size=payload.file_size,
        uploaded_at=aware(payload.uploaded_at),
    )
