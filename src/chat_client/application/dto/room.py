from __future__ import annotations

from dataclasses import dataclass, field

from chat_client.domain.value_objects.enums import RoomKind
from chat_client.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class CreateRoomDTO:
    name: str
    kind: RoomKind
    participant_ids: list[UserId] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BotConfigDTO:
    name: str
    provider: str
    model: str
    api_key: str
