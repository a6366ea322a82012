from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class FileCredentialStore:
    """Implements application.ports.credentials.CredentialStore on a single file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> str | None:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def save(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(token, encoding="utf-8")
        self._path.chmod(0o600)
        logger.debug("Credential saved to %s", self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
