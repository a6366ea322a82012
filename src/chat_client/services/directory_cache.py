from __future__ import annotations

import dataclasses
import logging
import re

from chat_client.application.dto.search import UserLookup
from chat_client.application.exceptions import AppError, NotFoundError, ValidationError
from chat_client.application.ports.transport import ChatTransport
from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.user import User
from chat_client.domain.value_objects.enums import RelationshipStatus, RequestDirection
from chat_client.domain.value_objects.ids import UserId
from chat_client.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def looks_like_email(identifier: str) -> bool:
    return bool(_EMAIL_RE.match(identifier))


class DirectoryCache:
    """Friend list and pending friend requests of the local user."""

    def __init__(self, transport: ChatTransport, session: SessionStore) -> None:
        self._transport = transport
        self._session = session
        self._friends: dict[UserId, User] = {}
        self._requests: dict[str, FriendRequest] = {}

    @property
    def friends(self) -> list[User]:
        return list(self._friends.values())

    @property
    def friend_requests(self) -> list[FriendRequest]:
        return list(self._requests.values())

    @property
    def incoming_requests(self) -> list[FriendRequest]:
        return [r for r in self._requests.values() if r.direction == RequestDirection.INCOMING]

    @property
    def outgoing_requests(self) -> list[FriendRequest]:
        return [r for r in self._requests.values() if r.direction == RequestDirection.OUTGOING]

    @property
    def friend_request_count(self) -> int:
        return len(self.incoming_requests)

    def is_friend(self, user_id: UserId) -> bool:
        return user_id in self._friends

    async def load_friends(self) -> list[User]:
        fetched = await self._transport.friends.list_friends()
        self._friends = {u.id: u for u in fetched}
        self._prune_settled_requests()
        return self.friends

    async def load_friend_requests(self) -> list[FriendRequest]:
        fetched = await self._transport.friends.list_requests()
        self._requests = {r.id: r for r in fetched}
        self._prune_settled_requests()
        return self.friend_requests

    async def send_friend_request(self, identifier: str) -> None:
        """Ask ``identifier`` (an email or a handle) to become a friend.

        The friend list is untouched: a request is not a friendship.
        """
        identifier = identifier.strip()
        if not identifier:
            raise ValidationError("Email or username is required")
        me = self._session.require_user()
        if identifier in (me.email, me.handle):
            raise ValidationError("You cannot send a friend request to yourself")

        if looks_like_email(identifier):
            await self._transport.friends.send_request(email=identifier)
        else:
            await self._transport.friends.send_request(handle=identifier.lstrip("@"))

        try:
            await self.load_friend_requests()
        except AppError as exc:
            logger.warning("Refreshing friend requests failed: %s", exc.detail)

    async def accept_friend_request(self, request_id: str) -> None:
        try:
            await self._transport.friends.accept_request(request_id)
        except NotFoundError:
            self._requests.pop(request_id, None)
            raise
        request = self._requests.pop(request_id, None)
        if request is not None and request.direction == RequestDirection.INCOMING:
            self._friends.setdefault(request.sender.id, request.sender)

        try:
            await self.load_friends()
        except AppError as exc:
            logger.warning("Reloading friends after accept failed: %s", exc.detail)

    async def reject_friend_request(self, request_id: str) -> None:
        try:
            await self._transport.friends.reject_request(request_id)
        except NotFoundError:
            self._requests.pop(request_id, None)
            raise
        self._requests.pop(request_id, None)

    async def remove_friend(self, friend_id: UserId) -> None:
        await self._transport.friends.remove_friend(friend_id)
        self._friends.pop(friend_id, None)

    async def find_user(self, query: str) -> UserLookup | None:
        """Point lookup by email or handle. ``None`` means "User Not Found"."""
        query = query.strip()
        if not query:
            return None
        found = await self._transport.users.find_user(query)
        if found is None:
            return None
        return self._with_local_status(found)

    async def search_users(self, query: str) -> list[UserLookup]:
        query = query.strip()
        if not query:
            return []
        results = await self._transport.users.search_users(query)
        return [self._with_local_status(r) for r in results]

    # -- push application ----------------------------------------------------

    def apply_incoming_request(self, request: FriendRequest) -> None:
        if request.counterpart_id in self._friends:
            return
        self._requests[request.id] = request

    def apply_request_accepted(self, request_id: str, friend: User) -> None:
        self._requests.pop(request_id, None)
        self._friends[friend.id] = friend
        self._prune_settled_requests()

    def apply_presence(self, user_id: UserId, online: bool) -> User | None:
        friend = self._friends.get(user_id)
        if friend is None:
            return None
        updated = dataclasses.replace(friend, online=online)
        self._friends[user_id] = updated
        return updated

    def reset(self) -> None:
        self._friends = {}
        self._requests = {}

    def _with_local_status(self, lookup: UserLookup) -> UserLookup:
        """Local knowledge beats the backend's hint when it is more specific."""
        me = self._session.user
        user_id = lookup.user.id
        if me is not None and user_id == me.id:
            status = RelationshipStatus.SELF
        elif user_id in self._friends:
            status = RelationshipStatus.FRIENDS
        else:
            status = lookup.status
            for req in self._requests.values():
                if req.counterpart_id == user_id:
                    status = (
                        RelationshipStatus.PENDING_INCOMING
                        if req.direction == RequestDirection.INCOMING
                        else RelationshipStatus.PENDING_OUTGOING
                    )
                    break
        return UserLookup(user=lookup.user, status=status)

    def _prune_settled_requests(self) -> None:
        self._requests = {
            rid: req for rid, req in self._requests.items()
            if req.counterpart_id not in self._friends
        }
