from __future__ import annotations

from typing import Protocol


class CredentialStore(Protocol):
    """Persists the bearer credential between runs. The only client-side persisted item."""

    def load(self) -> str | None: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryCredentialStore:
    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
