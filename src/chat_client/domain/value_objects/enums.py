from __future__ import annotations

from enum import StrEnum


class RoomKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"
    BOT = "bot"


class RoomRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class ParticipantKind(StrEnum):
    HUMAN = "human"
    BOT = "bot"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"


class MessageState(StrEnum):
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"
    LOCAL = "local"


class RelationshipStatus(StrEnum):
    NONE = "none"
    FRIENDS = "friends"
    PENDING_INCOMING = "pending_incoming"
    PENDING_OUTGOING = "pending_outgoing"
    SELF = "self"


class RequestDirection(StrEnum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
