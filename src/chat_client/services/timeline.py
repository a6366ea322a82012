"""Per-room message sequence with optimistic entries and staleness tagging.

Entries fall into two groups:

* confirmed - authoritative messages (including tombstones), kept sorted by
  server order;
* pending - provisional sends awaiting the backend and local-only bot-room
  messages, kept after the confirmed group in append order.

Every mutation bumps ``version``. A fetch captures the version when it is
issued and is only applied if nothing changed locally while it was in flight.
"""
from __future__ import annotations

import bisect
import dataclasses
from datetime import datetime
from uuid import UUID

from chat_client.domain.entities.message import Message
from chat_client.domain.value_objects.enums import MessageState
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId


class Timeline:
    def __init__(self, room_id: RoomId) -> None:
        self.room_id = room_id
        self._confirmed: list[Message] = []
        self._pending: list[Message] = []
        self._version = 0
        self._loaded = False
        self._last_read_id: MessageId | None = None

    @property
    def version(self) -> int:
        return self._version

    @property
    def loaded(self) -> bool:
        """True once a fetch result has been applied."""
        return self._loaded

    @property
    def entries(self) -> tuple[Message, ...]:
        return (*self._confirmed, *self._pending)

    def __len__(self) -> int:
        return len(self._confirmed) + len(self._pending)

    @property
    def last_message(self) -> Message | None:
        for msg in reversed(self.entries):
            if not msg.is_deleted:
                return msg
        return None

    def find(self, message_id: MessageId) -> Message | None:
        for msg in self.entries:
            if msg.id == message_id:
                return msg
        return None

    # -- optimistic path ---------------------------------------------------

    def append_pending(self, message: Message) -> None:
        """Append a provisional or local-only message at the tail."""
        if message.state == MessageState.CONFIRMED:
            raise ValueError("confirmed messages go through insert()")
        self._pending.append(message)
        self._bump()

    def confirm(self, client_msg_id: UUID, canonical: Message) -> None:
        """provisional -> confirmed: replace the draft with the backend's copy."""
        self._pending = [m for m in self._pending if m.client_msg_id != client_msg_id]
        canonical = dataclasses.replace(
            canonical,
            client_msg_id=canonical.client_msg_id or client_msg_id,
            state=MessageState.CONFIRMED,
        )
        self._upsert_confirmed(canonical)
        self._bump()

    def discard(self, client_msg_id: UUID) -> bool:
        """provisional -> discarded."""
        before = len(self._pending)
        self._pending = [
            m for m in self._pending
            if not (m.is_provisional and m.client_msg_id == client_msg_id)
        ]
        if len(self._pending) == before:
            return False
        self._bump()
        return True

    # -- authoritative path ------------------------------------------------

    def insert(self, message: Message) -> bool:
        """Insert a pushed authoritative message. Returns False for duplicates."""
        message = dataclasses.replace(message, state=MessageState.CONFIRMED)
        if any(m.matches(message) for m in self._confirmed):
            return False
        self._pending = [m for m in self._pending if not m.matches(message)]
        self._upsert_confirmed(message)
        self._bump()
        return True

    def replace(self, message: Message) -> bool:
        """Swap a confirmed entry for an updated copy (edit, tombstone)."""
        for idx, current in enumerate(self._confirmed):
            if current.id == message.id:
                self._confirmed[idx] = message
                self._bump()
                return True
        return False

    def tombstone(self, message_id: MessageId, deleted_at: datetime) -> bool:
        current = self.find(message_id)
        if current is None or current.state != MessageState.CONFIRMED:
            return False
        if current.is_deleted:
            return True
        return self.replace(current.tombstoned(deleted_at))

    def apply_fetch(self, fetched: list[Message], issued_version: int) -> bool:
        """Replace confirmed entries with a fetch result unless it went stale.

        Tombstones the backend no longer returns stay in place so rendered
        rows never vanish. Confirmed entries newer than the newest fetched
        message were pushed after the backend took its snapshot and stay too.
        Pending entries survive unless the fetch confirms them.
        """
        if issued_version != self._version:
            return False

        by_id: dict[MessageId, Message] = {}
        for msg in fetched:
            by_id[msg.id] = dataclasses.replace(msg, state=MessageState.CONFIRMED)
        newest = max((m.order_key for m in by_id.values()), default=None)
        for old in self._confirmed:
            if old.id in by_id or any(old.matches(m) for m in by_id.values()):
                continue
            if old.is_deleted or (newest is not None and old.order_key > newest):
                by_id[old.id] = old

        confirmed = sorted(by_id.values(), key=lambda m: m.order_key)
        self._confirmed = confirmed
        self._pending = [
            p for p in self._pending
            if not any(p.matches(c) for c in confirmed)
        ]
        self._loaded = True
        self._bump()
        return True

    # -- read state --------------------------------------------------------

    def mark_read(self) -> MessageId | None:
        if self._confirmed:
            self._last_read_id = self._confirmed[-1].id
        return self._last_read_id

    def unread_count(self, local_user_id: UserId | None) -> int:
        start = 0
        if self._last_read_id is not None:
            for idx, msg in enumerate(self._confirmed):
                if msg.id == self._last_read_id:
                    start = idx + 1
                    break
        return sum(
            1 for msg in self._confirmed[start:]
            if msg.sender_id != local_user_id and not msg.is_deleted
        )

    def _upsert_confirmed(self, message: Message) -> None:
        self._confirmed = [m for m in self._confirmed if not m.matches(message)]
        keys = [m.order_key for m in self._confirmed]
        self._confirmed.insert(bisect.bisect_right(keys, message.order_key), message)

    def _bump(self) -> None:
        self._version += 1
