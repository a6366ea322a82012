"""Room/message store: what rooms exist and what each room contains.

The store is the only writer of its state. Callers read snapshots
(tuples and frozen entities) and issue intents through the async methods.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from datetime import datetime

from chat_client.application.dto.message import SendMessageDTO
from chat_client.application.dto.room import CreateRoomDTO
from chat_client.application.dto.search import MessagePage
from chat_client.application.exceptions import (
    AppError,
    MessageSendError,
    NotFoundError,
    ServerRejectedError,
    ValidationError,
)
from chat_client.application.policies.room_rules import room_defect
from chat_client.application.ports.clock import Clock, SystemClock
from chat_client.application.ports.push import PushChannel
from chat_client.application.ports.transport import ChatTransport
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Participant, Room
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import MessageState, MessageType, RoomKind
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId
from chat_client.services.bot_responder import BotResponder
from chat_client.services.session_store import SessionStore
from chat_client.services.timeline import Timeline

logger = logging.getLogger(__name__)


class RoomStore:
    def __init__(
        self,
        transport: ChatTransport,
        session: SessionStore,
        *,
        clock: Clock | None = None,
        bot_reply_delay: float = 1.0,
        page_size: int = 50,
        search_page_size: int = 20,
    ) -> None:
        self._transport = transport
        self._session = session
        self._clock = clock or SystemClock()
        self._bots = BotResponder(transport.bots, self._clock, bot_reply_delay)
        self._page_size = page_size
        self._search_page_size = search_page_size
        self._push: PushChannel | None = None

        self._rooms: dict[RoomId, Room] = {}
        self._timelines: dict[RoomId, Timeline] = {}
        self._hidden: set[RoomId] = set()
        self._typing: dict[RoomId, set[UserId]] = {}
        self._active_id: RoomId | None = None
        self._rooms_loaded = False
        # Room-list version, and the version at which each room last changed locally.
        self._rooms_version = 0
        self._touched: dict[RoomId, int] = {}
        self._generation = 0
        self._bot_tasks: set[asyncio.Task[None]] = set()

    def attach_push_channel(self, channel: PushChannel | None) -> None:
        self._push = channel

    # -- snapshots ---------------------------------------------------------

    @property
    def rooms(self) -> list[Room]:
        return [r for rid, r in self._rooms.items() if rid not in self._hidden]

    @property
    def hidden_rooms(self) -> list[Room]:
        return [r for rid, r in self._rooms.items() if rid in self._hidden]

    @property
    def active_room(self) -> Room | None:
        if self._active_id is None:
            return None
        return self._rooms.get(self._active_id)

    def get_room(self, room_id: RoomId) -> Room | None:
        return self._rooms.get(room_id)

    def messages(self, room_id: RoomId) -> tuple[Message, ...]:
        timeline = self._timelines.get(room_id)
        return timeline.entries if timeline else ()

    def last_message(self, room_id: RoomId) -> Message | None:
        """Derived preview: newest visible local message, else the backend's hint."""
        timeline = self._timelines.get(room_id)
        if timeline is not None and timeline.last_message is not None:
            return timeline.last_message
        room = self._rooms.get(room_id)
        return room.server_preview if room else None

    def typing_users(self, room_id: RoomId) -> frozenset[UserId]:
        return frozenset(self._typing.get(room_id, ()))

    def unread_count(self, room_id: RoomId) -> int:
        timeline = self._timelines.get(room_id)
        if timeline is None:
            return 0
        user = self._session.user
        return timeline.unread_count(user.id if user else None)

    # -- room list lifecycle -------------------------------------------------

    async def load_rooms(self) -> list[Room]:
        """Replace the room set with the backend's list, minus unrenderable rooms.

        A failed first load leaves an empty set; a failed refresh keeps what
        was already shown. The error is re-raised either way.

        Rooms created, opened or edited locally while the fetch was in flight
        keep their local copy, together with their messages.
        """
        generation = self._generation
        issued = self._rooms_version
        try:
            fetched = await self._transport.rooms.list_rooms()
        except AppError:
            if generation == self._generation and not self._rooms_loaded:
                self._rooms = {}
                self._timelines = {}
            logger.warning("Room list load failed (initial=%s)", not self._rooms_loaded)
            raise
        if generation != self._generation:
            logger.debug("Store reset during room list fetch, dropping result")
            return self.rooms

        local_user = self._session.user
        local_id = local_user.id if local_user else None
        rooms: dict[RoomId, Room] = {}
        for room in fetched:
            defect = room_defect(room, local_id)
            if defect is not None:
                logger.warning("Filtering out room %r: %s", room.id, defect)
                continue
            if room.id in rooms:
                logger.warning("Duplicate room %s in room list, keeping first", room.id)
                continue
            rooms[room.id] = room
        filtered = len(fetched) - len(rooms)

        changed = [rid for rid, at in self._touched.items() if at > issued and rid in self._rooms]
        for rid in changed:
            rooms[rid] = self._rooms[rid]
        if changed:
            logger.debug("Keeping %d rooms changed during room list fetch", len(changed))

        self._rooms = rooms
        self._touched = {rid: at for rid, at in self._touched.items() if rid in rooms}
        self._timelines = {rid: tl for rid, tl in self._timelines.items() if rid in rooms}
        self._typing = {rid: ids for rid, ids in self._typing.items() if rid in rooms}
        self._hidden &= rooms.keys()
        if self._active_id not in rooms:
            self._active_id = None
        self._rooms_loaded = True
        logger.debug("Loaded %d rooms (%d filtered)", len(rooms), filtered)
        return self.rooms

    async def create_room(
        self,
        name: str,
        kind: RoomKind,
        participant_ids: list[UserId],
    ) -> Room:
        name = name.strip()
        if not name:
            raise ValidationError("Room name is required")
        local_id = self._session.require_user().id
        others = [pid for pid in dict.fromkeys(participant_ids) if pid != local_id]
        if kind in (RoomKind.DIRECT, RoomKind.BOT) and len(others) != 1:
            raise ValidationError(f"A {kind} room needs exactly one other participant")
        if kind == RoomKind.GROUP and not others:
            raise ValidationError("A group needs at least one other participant")

        room = await self._transport.rooms.create_room(
            CreateRoomDTO(name=name, kind=kind, participant_ids=others),
        )
        return self._admit(room)

    async def open_direct_room(self, friend_id: UserId) -> Room:
        """Find or create the direct room with ``friend_id``."""
        if friend_id == self._session.require_user().id:
            raise ValidationError("Cannot open a direct room with yourself")
        room = await self._transport.rooms.open_direct_room(friend_id)
        return self._admit(room)

    def hide_room(self, room_id: RoomId) -> None:
        self._require_room(room_id)
        self._hidden.add(room_id)
        if self._active_id == room_id:
            self._active_id = None

    def unhide_room(self, room_id: RoomId) -> None:
        self._require_room(room_id)
        self._hidden.discard(room_id)

    async def add_participant(self, room_id: RoomId, user: User) -> Room:
        room = self._require_room(room_id)
        if room.kind != RoomKind.GROUP:
            raise ValidationError("Participants can only be added to groups")
        await self._transport.rooms.add_participant(room_id, user.id)
        room = self._rooms.get(room_id, room).with_participant(
            Participant(user=user, joined_at=self._clock.now()),
        )
        self._rooms[room_id] = room
        self._touch(room_id)
        return room

    async def remove_participant(self, room_id: RoomId, user_id: UserId) -> Room:
        room = self._require_room(room_id)
        if room.kind != RoomKind.GROUP:
            raise ValidationError("Participants can only be removed from groups")
        if room.participant(user_id) is None:
            raise NotFoundError(f"User {user_id} is not in room {room_id}")
        await self._transport.rooms.remove_participant(room_id, user_id)
        room = self._rooms.get(room_id, room).with_departed(user_id)
        self._rooms[room_id] = room
        self._touch(room_id)
        if is_local(self._session.user, user_id):
            self.hide_room(room_id)
        return room

    # -- focus ---------------------------------------------------------------

    async def set_active_room(self, room: Room | None) -> None:
        if room is None:
            self._active_id = None
            return
        room = self._require_room(room.id)
        self._active_id = room.id
        if room.kind == RoomKind.BOT:
            return
        # A first fetch that went stale is retried once.
        for _ in range(2):
            if room.id not in self._rooms or self._timeline(room.id).loaded:
                return
            try:
                await self.load_messages(room.id)
            except AppError as exc:
                logger.warning("Loading messages for room %s failed: %s", room.id, exc.detail)
                return

    # -- messages ------------------------------------------------------------

    async def load_messages(self, room_id: RoomId) -> tuple[Message, ...]:
        """Fetch the room's history and replace the local sequence with it.

        The result is applied to ``room_id``'s timeline only, and only if no
        local mutation happened while the fetch was in flight.
        """
        room = self._require_room(room_id)
        timeline = self._timeline(room_id)
        if room.kind == RoomKind.BOT:
            return timeline.entries

        issued = timeline.version
        fetched = await self._transport.rooms.list_messages(
            room_id, page=0, size=self._page_size,
        )
        if self._timelines.get(room_id) is not timeline:
            logger.debug("Room %s went away during fetch, dropping result", room_id)
            return self.messages(room_id)
        if not timeline.apply_fetch(fetched, issued):
            logger.debug(
                "Discarding stale fetch for room %s (issued at v%d, now v%d)",
                room_id, issued, timeline.version,
            )
        return timeline.entries

    async def send_message(
        self,
        room_id: RoomId,
        body: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> Message:
        room = self._require_room(room_id)
        if not body.strip():
            raise ValidationError("Message body is empty")
        sender = self._session.require_user()
        timeline = self._timeline(room_id)

        client_msg_id = uuid.uuid4()
        draft = Message(
            id=MessageId(f"local-{client_msg_id.hex}"),
            room_id=room_id,
            sender_id=sender.id,
            body=body,
            type=message_type,
            created_at=self._clock.now(),
            client_msg_id=client_msg_id,
            state=MessageState.PROVISIONAL,
        )

        if room.kind == RoomKind.BOT:
            local = dataclasses.replace(draft, state=MessageState.LOCAL)
            timeline.append_pending(local)
            self._schedule_bot_reply(room, timeline, body)
            return local

        timeline.append_pending(draft)
        try:
            canonical = await self._transport.rooms.send_message(
                SendMessageDTO(
                    room_id=room_id,
                    client_msg_id=client_msg_id,
                    body=body,
                    type=message_type,
                ),
            )
        except AppError as exc:
            timeline.discard(client_msg_id)
            logger.warning("Send to room %s failed: %s", room_id, exc.detail)
            raise MessageSendError(
                exc.detail or "Failed to send message",
                room_id=room_id,
                body=body,
                message_type=message_type,
                client_msg_id=client_msg_id,
            ) from exc
        except BaseException:
            timeline.discard(client_msg_id)
            raise

        timeline.confirm(client_msg_id, canonical)
        try:
            await self.load_messages(room_id)
        except AppError as exc:
            logger.warning("Refetch after send failed for room %s: %s", room_id, exc.detail)
        return timeline.find(canonical.id) or canonical

    async def edit_message(self, message_id: MessageId, new_body: str) -> Message:
        timeline, current = self._locate(message_id)
        if current.state != MessageState.CONFIRMED or current.is_deleted:
            raise ValidationError("Only delivered, non-deleted messages can be edited")
        if not new_body.strip():
            raise ValidationError("Message body is empty")

        updated = await self._transport.messages.edit_message(message_id, new_body)
        latest = timeline.find(message_id) or current
        edited = latest.edited(updated.body, updated.edited_at or self._clock.now())
        timeline.replace(edited)
        return edited

    async def delete_message(self, message_id: MessageId) -> Message:
        timeline, current = self._locate(message_id)
        if current.state != MessageState.CONFIRMED:
            raise ValidationError("Only delivered messages can be deleted")
        if current.is_deleted:
            return current

        await self._transport.messages.delete_message(message_id)
        timeline.tombstone(message_id, self._clock.now())
        return timeline.find(message_id) or current.tombstoned(self._clock.now())

    async def search_messages(
        self,
        query: str,
        *,
        room_id: RoomId | None = None,
        page: int = 0,
        size: int | None = None,
    ) -> MessagePage:
        query = query.strip()
        if not query:
            raise ValidationError("Search query is empty")
        if page < 0:
            raise ValidationError("Page must be non-negative")
        if room_id is not None:
            self._require_room(room_id)
        return await self._transport.messages.search(
            query, room_id=room_id, page=page, size=size or self._search_page_size,
        )

    # -- read state & typing -----------------------------------------------

    async def mark_read(self, room_id: RoomId) -> None:
        self._require_room(room_id)
        last_id = self._timeline(room_id).mark_read()
        if last_id is None:
            return
        await self._send_frame("mark_read", {"room_id": room_id, "last_message_id": last_id})

    async def send_typing(self, room_id: RoomId, is_typing: bool) -> None:
        self._require_room(room_id)
        await self._send_frame("typing", {"room_id": room_id, "is_typing": is_typing})

    # -- push application ----------------------------------------------------

    def apply_new_message(self, message: Message) -> bool:
        if message.room_id not in self._rooms:
            logger.debug("Push for unknown room %s", message.room_id)
            return False
        inserted = self._timeline(message.room_id).insert(message)
        self._typing.get(message.room_id, set()).discard(message.sender_id)
        return inserted

    def apply_message_edited(self, message: Message) -> bool:
        timeline = self._timelines.get(message.room_id)
        if timeline is None:
            return False
        current = timeline.find(message.id)
        if current is None:
            return False
        return timeline.replace(
            current.edited(message.body, message.edited_at or self._clock.now()),
        )

    def apply_message_deleted(
        self,
        room_id: RoomId,
        message_id: MessageId,
        deleted_at: datetime,
    ) -> bool:
        timeline = self._timelines.get(room_id)
        if timeline is None:
            return False
        return timeline.tombstone(message_id, deleted_at)

    def apply_typing(self, room_id: RoomId, user_id: UserId, is_typing: bool) -> None:
        if room_id not in self._rooms or is_local(self._session.user, user_id):
            return
        typing = self._typing.setdefault(room_id, set())
        if is_typing:
            typing.add(user_id)
        else:
            typing.discard(user_id)

    def apply_presence(self, user: User) -> None:
        for rid, room in list(self._rooms.items()):
            self._rooms[rid] = room.with_user(user)

    # -- lifecycle -----------------------------------------------------------

    def reset(self) -> None:
        """Discard all cached state (logout)."""
        for task in list(self._bot_tasks):
            task.cancel()
        self._rooms = {}
        self._timelines = {}
        self._hidden = set()
        self._typing = {}
        self._active_id = None
        self._rooms_loaded = False
        self._touched = {}
        self._generation += 1

    async def wait_idle(self) -> None:
        """Wait for scheduled bot replies to land."""
        while self._bot_tasks:
            await asyncio.gather(*list(self._bot_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._bot_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # -- internals -----------------------------------------------------------

    def _require_room(self, room_id: RoomId) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    def _timeline(self, room_id: RoomId) -> Timeline:
        timeline = self._timelines.get(room_id)
        if timeline is None:
            timeline = self._timelines[room_id] = Timeline(room_id)
        return timeline

    def _locate(self, message_id: MessageId) -> tuple[Timeline, Message]:
        for timeline in self._timelines.values():
            msg = timeline.find(message_id)
            if msg is not None:
                return timeline, msg
        raise NotFoundError(f"Message {message_id} not found")

    def _admit(self, room: Room) -> Room:
        local_user = self._session.user
        defect = room_defect(room, local_user.id if local_user else None)
        if defect is not None:
            logger.warning("Backend returned unusable room %r: %s", room.id, defect)
            raise ServerRejectedError(f"Backend returned an unusable room: {defect}")
        self._rooms[room.id] = room
        self._hidden.discard(room.id)
        self._touch(room.id)
        return room

    def _touch(self, room_id: RoomId) -> None:
        self._rooms_version += 1
        self._touched[room_id] = self._rooms_version

    def _schedule_bot_reply(self, room: Room, timeline: Timeline, prompt: str) -> None:
        task = asyncio.create_task(
            self._deliver_bot_reply(room, timeline, prompt),
            name=f"bot-reply-{room.id}",
        )
        self._bot_tasks.add(task)
        task.add_done_callback(self._bot_tasks.discard)

    async def _deliver_bot_reply(self, room: Room, timeline: Timeline, prompt: str) -> None:
        try:
            reply = await self._bots.reply(room, prompt)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Bot reply failed for room %s", room.id)
            return
        if self._timelines.get(room.id) is not timeline:
            logger.debug("Room %s reset before bot reply arrived", room.id)
            return
        timeline.append_pending(reply)

    async def _send_frame(self, frame_type: str, data: dict[str, object]) -> None:
        if self._push is None or not self._push.connected:
            logger.debug("Push channel offline, dropping %s frame", frame_type)
            return
        try:
            await self._push.send(frame_type, data)
        except AppError as exc:
            logger.warning("Could not send %s frame: %s", frame_type, exc.detail)


def is_local(user: User | None, user_id: UserId) -> bool:
    return user is not None and user.id == user_id
