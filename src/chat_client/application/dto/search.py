from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RelationshipStatus


@dataclass(frozen=True, slots=True)
class MessagePage:
    items: list[Message]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


@dataclass(frozen=True, slots=True)
class UserLookup:
    user: User
    status: RelationshipStatus = RelationshipStatus.NONE
