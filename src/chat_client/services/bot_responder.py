"""Bot-room side channel: synthesizes the bot participant's reply on the client."""
from __future__ import annotations

import asyncio
import logging
import uuid

from chat_client.application.exceptions import AppError, ValidationError
from chat_client.application.ports.clock import Clock
from chat_client.application.ports.transport import BotGateway
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Room
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import MessageState, MessageType
from chat_client.domain.value_objects.ids import MessageId

logger = logging.getLogger(__name__)

UNCONFIGURED_REPLY = (
    "Hi! I'm {name}. To start chatting with me, please configure me first "
    "by setting up my API key and model. Once configured, I'll be able to "
    "respond to your messages!"
)
ERROR_REPLY = "Sorry, I encountered an error processing your message. Please try again."


class BotResponder:
    def __init__(self, bots: BotGateway, clock: Clock, delay_seconds: float) -> None:
        self._bots = bots
        self._clock = clock
        self._delay = delay_seconds

    async def reply(self, room: Room, prompt: str) -> Message:
        """Produce the bot's answer to ``prompt``.

        The reply lands after the fixed reply delay, or when the backend
        answers if that takes longer.

        The result is a local-only message; it is never written to the
        room-message endpoint.
        """
        bot = room.bot_participant
        if bot is None:
            raise ValidationError(f"Room {room.id} has no bot participant")

        text, _ = await asyncio.gather(self._generate(bot, prompt), asyncio.sleep(self._delay))
        return Message(
            id=MessageId(f"local-{uuid.uuid4().hex}"),
            room_id=room.id,
            sender_id=bot.id,
            body=text,
            type=MessageType.TEXT,
            created_at=self._clock.now(),
            state=MessageState.LOCAL,
        )

    async def _generate(self, bot: User, prompt: str) -> str:
        if bot.bot is None or not bot.bot.configured:
            return UNCONFIGURED_REPLY.format(name=bot.display_name or "Gemini")
        try:
            return await self._bots.generate_response(bot.id, prompt)
        except AppError as exc:
            logger.warning("Bot %s failed to respond: %s", bot.id, exc.detail)
            return ERROR_REPLY
