from __future__ import annotations

from chat_client.domain.entities.room import Room
from chat_client.domain.value_objects.enums import RoomKind
from chat_client.domain.value_objects.ids import UserId


def room_defect(room: Room, local_user_id: UserId | None) -> str | None:
    """Return why ``room`` must not be shown, or None when it is renderable."""
    if not room.id:
        return "missing id"
    if not room.name or not room.name.strip():
        return "missing name"
    members = room.members
    if not members:
        return "no participants"

    if local_user_id is not None and local_user_id not in room.member_ids:
        return "local user is not a participant"

    if room.kind == RoomKind.DIRECT and len(members) != 2:
        return f"direct room has {len(members)} participants"

    if room.kind == RoomKind.BOT:
        bots = [p for p in members if p.user.is_bot]
        humans = [p for p in members if not p.user.is_bot]
        if len(bots) != 1 or len(humans) != 1:
            return f"bot room has {len(bots)} bots and {len(humans)} humans"

    return None
