"""Entrypoint: python -m chat_client"""
from __future__ import annotations

import asyncio
import logging
import sys

from chat_client.app import ChatClient
from chat_client.application.exceptions import AppError
from chat_client.config import settings

logger = logging.getLogger("chat_client")


async def _overview() -> int:
    client = ChatClient(enable_push=False)
    try:
        user = await client.start()
        if user is None:
            if not (settings.CHAT_USERNAME and settings.CHAT_PASSWORD):
                logger.error("No saved session; set CHAT_USERNAME and CHAT_PASSWORD")
                return 1
            user = await client.login(settings.CHAT_USERNAME, settings.CHAT_PASSWORD)

        print(f"Logged in as {user.display_name} (@{user.handle})")
        for room in client.rooms.rooms:
            last = client.rooms.last_message(room.id)
            preview = last.body if last is not None else ""
            print(f"  [{room.kind.value:6}] {room.name}: {preview}")
        print(f"{len(client.directory.friends)} friends, "
              f"{client.directory.friend_request_count} pending requests")
        return 0
    except AppError as exc:
        logger.error("%s", exc.detail)
        return 1
    finally:
        await client.aclose()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(_overview()))


if __name__ == "__main__":
    main()
