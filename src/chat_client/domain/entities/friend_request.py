from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RequestDirection
from chat_client.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class FriendRequest:
    id: str
    sender: User
    receiver_id: UserId
    status: str
    created_at: datetime | None
    direction: RequestDirection = RequestDirection.INCOMING

    @property
    def sender_id(self) -> UserId:
        return self.sender.id

    @property
    def counterpart_id(self) -> UserId:
        """The other side of the request from the local user's point of view."""
        if self.direction == RequestDirection.INCOMING:
            return self.sender.id
        return self.receiver_id
