from __future__ import annotations

from typing import Any, Callable, Coroutine, Protocol

from chat_client.application.dto.events import PushEvent

OnPushEvent = Callable[[PushEvent], Coroutine[Any, Any, None]]


class PushChannel(Protocol):
    """Server-push connection delivering :data:`PushEvent` values to a callback."""

    @property
    def connected(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def send(self, frame_type: str, data: dict[str, Any]) -> None: ...
