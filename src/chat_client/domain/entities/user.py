from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.value_objects.enums import ParticipantKind
from chat_client.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class BotProfile:
    """Marks a user record as an AI bot backed by ``provider``/``model``."""

    provider: str
    model: str
    configured: bool = True


@dataclass(frozen=True, slots=True)
class User:
    id: UserId
    display_name: str
    handle: str
    email: str | None = None
    avatar_url: str | None = None
    online: bool = False
    bot: BotProfile | None = None

    @property
    def kind(self) -> ParticipantKind:
        return ParticipantKind.BOT if self.bot is not None else ParticipantKind.HUMAN

    @property
    def is_bot(self) -> bool:
        return self.bot is not None
