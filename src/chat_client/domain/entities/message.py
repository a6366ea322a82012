from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chat_client.domain.value_objects.enums import MessageState, MessageType
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    room_id: RoomId
    sender_id: UserId
    body: str
    type: MessageType
    created_at: datetime
    seq: int | None = None
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    client_msg_id: UUID | None = None
    state: MessageState = MessageState.CONFIRMED

    @property
    def is_provisional(self) -> bool:
        return self.state == MessageState.PROVISIONAL

    @property
    def is_local(self) -> bool:
        return self.state == MessageState.LOCAL

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def order_key(self) -> tuple[datetime, int, str]:
        """Server ordering: timestamp first, then the sequence number when the backend assigns one."""
        return (self.created_at, self.seq if self.seq is not None else 0, self.id)

    def matches(self, other: Message) -> bool:
        """True when both records describe the same logical message."""
        if self.id == other.id:
            return True
        return self.client_msg_id is not None and self.client_msg_id == other.client_msg_id

    def edited(self, body: str, edited_at: datetime) -> Message:
        return dataclasses.replace(self, body=body, edited_at=edited_at)

    def tombstoned(self, deleted_at: datetime) -> Message:
        return dataclasses.replace(self, deleted_at=deleted_at)
