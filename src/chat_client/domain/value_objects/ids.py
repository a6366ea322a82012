from __future__ import annotations

from typing import NewType

RoomId = NewType("RoomId", str)
MessageId = NewType("MessageId", str)
UserId = NewType("UserId", str)
