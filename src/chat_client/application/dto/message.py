from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from chat_client.domain.value_objects.enums import MessageType
from chat_client.domain.value_objects.ids import RoomId


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    room_id: RoomId
    client_msg_id: UUID
    body: str
    type: MessageType = MessageType.TEXT
