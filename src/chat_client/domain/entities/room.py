from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime

from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RoomKind, RoomRole
from chat_client.domain.value_objects.ids import RoomId, UserId


@dataclass(frozen=True, slots=True)
class Participant:
    user: User
    role: RoomRole = RoomRole.MEMBER
    joined_at: datetime | None = None
    departed: bool = False

    @property
    def user_id(self) -> UserId:
        return self.user.id


@dataclass(frozen=True, slots=True)
class Room:
    id: RoomId
    kind: RoomKind
    name: str
    participants: tuple[Participant, ...] = ()
    avatar_url: str | None = None
    description: str | None = None
    server_preview: Message | None = field(default=None, compare=False)

    @property
    def members(self) -> tuple[Participant, ...]:
        """Participants that have not left the room."""
        return tuple(p for p in self.participants if not p.departed)

    @property
    def member_ids(self) -> frozenset[UserId]:
        return frozenset(p.user_id for p in self.members)

    @property
    def roles(self) -> dict[UserId, RoomRole]:
        return {p.user_id: p.role for p in self.members}

    @property
    def bot_participant(self) -> User | None:
        for p in self.members:
            if p.user.is_bot:
                return p.user
        return None

    def participant(self, user_id: UserId) -> Participant | None:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def with_participant(self, participant: Participant) -> Room:
        """Add or re-admit a participant, keeping join order."""
        existing = self.participant(participant.user_id)
        if existing is None:
            return dataclasses.replace(self, participants=(*self.participants, participant))
        updated = tuple(
            dataclasses.replace(p, departed=False) if p.user_id == participant.user_id else p
            for p in self.participants
        )
        return dataclasses.replace(self, participants=updated)

    def with_departed(self, user_id: UserId) -> Room:
        updated = tuple(
            dataclasses.replace(p, departed=True) if p.user_id == user_id else p
            for p in self.participants
        )
        return dataclasses.replace(self, participants=updated)

    def with_user(self, user: User) -> Room:
        """Refresh a participant's user record (presence/profile pushes)."""
        if self.participant(user.id) is None:
            return self
        updated = tuple(
            dataclasses.replace(p, user=user) if p.user_id == user.id else p
            for p in self.participants
        )
        return dataclasses.replace(self, participants=updated)
