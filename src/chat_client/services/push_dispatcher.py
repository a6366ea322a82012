"""Applies decoded push events to the stores."""
from __future__ import annotations

import dataclasses
import logging

from chat_client.application.dto.events import (
    FriendRequestAcceptedEvent,
    FriendRequestEvent,
    MessageDeletedEvent,
    MessageEditedEvent,
    NewMessageEvent,
    PresenceEvent,
    PushEvent,
    TypingEvent,
)
from chat_client.application.exceptions import AppError
from chat_client.services.directory_cache import DirectoryCache
from chat_client.services.room_store import RoomStore

logger = logging.getLogger(__name__)


class PushDispatcher:
    def __init__(self, rooms: RoomStore, directory: DirectoryCache) -> None:
        self._rooms = rooms
        self._directory = directory

    async def __call__(self, event: PushEvent) -> None:
        if isinstance(event, NewMessageEvent):
            await self._on_new_message(event)
        elif isinstance(event, MessageEditedEvent):
            self._rooms.apply_message_edited(event.message)
        elif isinstance(event, MessageDeletedEvent):
            self._rooms.apply_message_deleted(event.room_id, event.message_id, event.deleted_at)
        elif isinstance(event, TypingEvent):
            self._rooms.apply_typing(event.room_id, event.user_id, event.is_typing)
        elif isinstance(event, FriendRequestEvent):
            self._directory.apply_incoming_request(event.request)
        elif isinstance(event, FriendRequestAcceptedEvent):
            self._directory.apply_request_accepted(event.request_id, event.friend)
        elif isinstance(event, PresenceEvent):
            self._on_presence(event)
        else:
            logger.debug("Ignoring unknown push event: %r", event)

    async def _on_new_message(self, event: NewMessageEvent) -> None:
        room_id = event.message.room_id
        if self._rooms.get_room(room_id) is None:
            # A room we have not seen yet (someone opened a DM with us).
            try:
                await self._rooms.load_rooms()
            except AppError as exc:
                logger.warning("Room refresh after push failed: %s", exc.detail)
                return
        self._rooms.apply_new_message(event.message)

    def _on_presence(self, event: PresenceEvent) -> None:
        updated = self._directory.apply_presence(event.user_id, event.online)
        if updated is not None:
            self._rooms.apply_presence(updated)
            return
        for room in self._rooms.rooms:
            participant = room.participant(event.user_id)
            if participant is not None:
                self._rooms.apply_presence(
                    dataclasses.replace(participant.user, online=event.online),
                )
                return
