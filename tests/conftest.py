"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from chat_client.application.dto.message import SendMessageDTO
from chat_client.application.dto.room import BotConfigDTO, CreateRoomDTO
from chat_client.application.dto.search import MessagePage, UserLookup
from chat_client.application.dto.session import AuthResult, ProfileUpdateDTO, RegistrationDTO
from chat_client.application.exceptions import (
    AppError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from chat_client.application.ports.credentials import MemoryCredentialStore
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.entities.friend_request import FriendRequest
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.room import Participant, Room
from chat_client.domain.entities.user import BotProfile, User
from chat_client.domain.value_objects.enums import (
    MessageType,
    RelationshipStatus,
    RequestDirection,
    RoomKind,
    RoomRole,
)
from chat_client.domain.value_objects.ids import MessageId, RoomId, UserId
from chat_client.services.directory_cache import DirectoryCache
from chat_client.services.room_store import RoomStore
from chat_client.services.session_store import SessionStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_user(user_id: str = "u-me", name: str = "Me", *, email: str | None = None) -> User:
    handle = name.lower().replace(" ", "")
    return User(
        id=UserId(user_id),
        display_name=name,
        handle=handle,
        email=email or f"{handle}@example.com",
    )


def make_bot(bot_id: str = "b-gem", name: str = "Gemini", *, configured: bool = True) -> User:
    return User(
        id=UserId(bot_id),
        display_name=name,
        handle=name.lower(),
        online=True,
        bot=BotProfile(provider="gemini", model="gemini-pro", configured=configured),
    )


def make_room(
    room_id: str = "r-1",
    *,
    kind: RoomKind = RoomKind.DIRECT,
    members: list[User] | None = None,
    name: str | None = None,
) -> Room:
    members = members if members is not None else [make_user(), make_user("u-bob", "Bob")]
    participants = tuple(
        Participant(user=u, role=RoomRole.ADMIN if i == 0 and kind == RoomKind.GROUP else RoomRole.MEMBER)
        for i, u in enumerate(members)
    )
    return Room(
        id=RoomId(room_id),
        kind=kind,
        name=name if name is not None else f"Room {room_id}",
        participants=participants,
    )


def make_message(
    message_id: str = "m-1",
    *,
    room_id: str = "r-1",
    sender_id: str = "u-bob",
    body: str = "hi",
    at: datetime | None = None,
    seq: int | None = None,
) -> Message:
    return Message(
        id=MessageId(message_id),
        room_id=RoomId(room_id),
        sender_id=UserId(sender_id),
        body=body,
        type=MessageType.TEXT,
        created_at=at or T0,
        seq=seq,
    )


@dataclass
class FakeClock:
    """Advances one second per reading so local timestamps are strictly ordered."""

    current: datetime = T0 + timedelta(hours=1)

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@dataclass
class FakeAuth:
    accounts: dict[str, tuple[str, User]] = field(default_factory=dict)
    tokens: dict[str, User] = field(default_factory=dict)
    fail_profile: AppError | None = None
    fail_logout: AppError | None = None
    profile_calls: int = 0
    logout_calls: int = 0

    def add_account(self, user: User, password: str = "secret") -> None:
        self.accounts[user.handle] = (password, user)
        if user.email:
            self.accounts[user.email] = (password, user)

    def _issue(self, user: User) -> AuthResult:
        token = f"tok-{uuid.uuid4().hex}"
        self.tokens[token] = user
        return AuthResult(user=user, token=token)

    async def login(self, identifier: str, password: str) -> AuthResult:
        entry = self.accounts.get(identifier)
        if entry is None or entry[0] != password:
            raise AuthenticationError("Invalid credentials")
        return self._issue(entry[1])

    async def register(self, data: RegistrationDTO) -> AuthResult:
        if data.username in self.accounts or data.email in self.accounts:
            raise ValidationError("Username or email already taken")
        user = User(
            id=UserId(f"u-{data.username}"),
            display_name=data.full_name,
            handle=data.username,
            email=data.email,
        )
        self.add_account(user, data.password)
        return self._issue(user)

    async def get_profile(self) -> User:
        self.profile_calls += 1
        if self.fail_profile is not None:
            raise self.fail_profile
        if not self.tokens:
            raise AuthenticationError("Invalid token")
        return next(iter(self.tokens.values()))

    async def update_profile(self, data: ProfileUpdateDTO) -> User:
        user = next(iter(self.tokens.values()))
        return dataclasses.replace(
            user,
            display_name=data.full_name or user.display_name,
            handle=data.username or user.handle,
        )

    async def change_password(self, current_password: str, new_password: str) -> None:
        pass

    async def logout(self) -> None:
        self.logout_calls += 1
        if self.fail_logout is not None:
            raise self.fail_logout


@dataclass
class FakeRooms:
    rooms: list[Room] = field(default_factory=list)
    messages: dict[RoomId, list[Message]] = field(default_factory=dict)
    sender: User | None = None
    fail_list_rooms: AppError | None = None
    fail_send: AppError | None = None
    fail_list_messages: AppError | None = None
    list_gate: asyncio.Event | None = None
    list_started: asyncio.Event = field(default_factory=asyncio.Event)
    rooms_gate: asyncio.Event | None = None
    rooms_started: asyncio.Event = field(default_factory=asyncio.Event)
    sent: list[SendMessageDTO] = field(default_factory=list)
    list_message_calls: list[RoomId] = field(default_factory=list)
    added: list[tuple[RoomId, UserId]] = field(default_factory=list)
    removed: list[tuple[RoomId, UserId]] = field(default_factory=list)
    _next_id: int = 100

    async def list_rooms(self) -> list[Room]:
        snapshot = list(self.rooms)
        self.rooms_started.set()
        if self.rooms_gate is not None:
            await self.rooms_gate.wait()
        if self.fail_list_rooms is not None:
            raise self.fail_list_rooms
        return snapshot

    async def create_room(self, data: CreateRoomDTO) -> Room:
        others = [make_user(uid, uid.removeprefix("u-").title()) for uid in data.participant_ids]
        room = make_room(
            f"r-{len(self.rooms) + 1}",
            kind=data.kind,
            members=[self.sender or make_user(), *others],
            name=data.name,
        )
        self.rooms.append(room)
        return room

    async def open_direct_room(self, friend_id: UserId) -> Room:
        for room in self.rooms:
            if room.kind == RoomKind.DIRECT and friend_id in room.member_ids:
                return room
        room = make_room(
            f"r-dm-{friend_id}",
            members=[self.sender or make_user(), make_user(friend_id, friend_id.title())],
        )
        self.rooms.append(room)
        return room

    async def list_messages(self, room_id: RoomId, *, page: int = 0, size: int = 50) -> list[Message]:
        self.list_message_calls.append(room_id)
        snapshot = list(self.messages.get(room_id, []))[:size]
        self.list_started.set()
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.fail_list_messages is not None:
            raise self.fail_list_messages
        return snapshot

    async def send_message(self, data: SendMessageDTO) -> Message:
        self.sent.append(data)
        if self.fail_send is not None:
            raise self.fail_send
        self._next_id += 1
        history = self.messages.setdefault(data.room_id, [])
        message = Message(
            id=MessageId(f"m-{self._next_id}"),
            room_id=data.room_id,
            sender_id=self.sender.id if self.sender else UserId("u-me"),
            body=data.body,
            type=data.type,
            created_at=T0 + timedelta(days=1, seconds=self._next_id),
            client_msg_id=data.client_msg_id,
        )
        history.append(message)
        return message

    async def add_participant(self, room_id: RoomId, user_id: UserId) -> None:
        self.added.append((room_id, user_id))

    async def remove_participant(self, room_id: RoomId, user_id: UserId) -> None:
        self.removed.append((room_id, user_id))


@dataclass
class FakeMessages:
    _rooms: FakeRooms
    edited: list[tuple[MessageId, str]] = field(default_factory=list)
    deleted: list[MessageId] = field(default_factory=list)
    fail_edit: AppError | None = None
    fail_delete: AppError | None = None

    async def edit_message(self, message_id: MessageId, body: str) -> Message:
        self.edited.append((message_id, body))
        if self.fail_edit is not None:
            raise self.fail_edit
        for history in self._rooms.messages.values():
            for idx, msg in enumerate(history):
                if msg.id == message_id:
                    history[idx] = msg.edited(body, T0 + timedelta(days=2))
                    return history[idx]
        raise NotFoundError("Message not found")

    async def delete_message(self, message_id: MessageId) -> None:
        self.deleted.append(message_id)
        if self.fail_delete is not None:
            raise self.fail_delete
        for history in self._rooms.messages.values():
            for msg in history:
                if msg.id == message_id:
                    history.remove(msg)
                    return
        raise NotFoundError("Message not found")

    async def search(
        self,
        query: str,
        *,
        room_id: RoomId | None = None,
        page: int = 0,
        size: int = 20,
    ) -> MessagePage:
        hits = [
            m
            for rid, history in self._rooms.messages.items()
            if room_id is None or rid == room_id
            for m in history
            if query.lower() in m.body.lower()
        ]
        chunk = hits[page * size:(page + 1) * size]
        total_pages = (len(hits) + size - 1) // size
        return MessagePage(chunk, page, size, len(hits), total_pages)


@dataclass
class FakeFriends:
    friends: list[User] = field(default_factory=list)
    requests: list[FriendRequest] = field(default_factory=list)
    sent_requests: list[dict[str, str | None]] = field(default_factory=list)
    accept_calls: int = 0

    async def list_friends(self) -> list[User]:
        return list(self.friends)

    async def list_requests(self) -> list[FriendRequest]:
        return list(self.requests)

    async def send_request(self, *, email: str | None = None, handle: str | None = None) -> None:
        self.sent_requests.append({"email": email, "handle": handle})

    async def accept_request(self, request_id: str) -> None:
        self.accept_calls += 1
        for req in self.requests:
            if req.id == request_id:
                self.requests.remove(req)
                self.friends.append(req.sender)
                return
        raise NotFoundError("Friend request not found")

    async def reject_request(self, request_id: str) -> None:
        for req in self.requests:
            if req.id == request_id:
                self.requests.remove(req)
                return
        raise NotFoundError("Friend request not found")

    async def remove_friend(self, friend_id: UserId) -> None:
        self.friends = [f for f in self.friends if f.id != friend_id]


@dataclass
class FakeUsers:
    directory: list[User] = field(default_factory=list)

    async def search_users(self, query: str) -> list[UserLookup]:
        q = query.lower()
        return [
            UserLookup(user=u)
            for u in self.directory
            if q in u.handle.lower() or q in u.display_name.lower() or q == (u.email or "").lower()
        ]

    async def find_user(self, query: str) -> UserLookup | None:
        for u in self.directory:
            if query in (u.email, u.handle):
                return UserLookup(user=u, status=RelationshipStatus.NONE)
        return None


@dataclass
class FakeFiles:
    stored: dict[str, bytes] = field(default_factory=dict)
    attachments: list[Attachment] = field(default_factory=list)

    async def upload(
        self,
        message_id: MessageId,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> Attachment:
        self.stored[file_name] = content
        attachment = Attachment(
            id=f"a-{len(self.attachments) + 1}",
            message_id=message_id,
            file_name=file_name,
            file_url=f"/api/files/download/{file_name}",
            file_type=content_type,
            file_size=len(content),
            uploaded_at=T0,
        )
        self.attachments.append(attachment)
        return attachment

    async def download(self, file_name: str) -> bytes:
        if file_name not in self.stored:
            raise NotFoundError("File not found")
        return self.stored[file_name]

    async def list_for_message(self, message_id: MessageId) -> list[Attachment]:
        return [a for a in self.attachments if a.message_id == message_id]

    async def delete(self, attachment_id: str) -> None:
        self.attachments = [a for a in self.attachments if a.id != attachment_id]


@dataclass
class FakeBots:
    replies: dict[UserId, str] = field(default_factory=dict)
    fail: AppError | None = None
    prompts: list[tuple[UserId, str]] = field(default_factory=list)
    latency: float = 0.0

    async def configure(self, data: BotConfigDTO) -> User:
        return make_bot(f"b-{data.name.lower()}", data.name)

    async def list_bots(self) -> list[User]:
        return [make_bot(bid) for bid in self.replies]

    async def generate_response(self, bot_id: UserId, prompt: str) -> str:
        self.prompts.append((bot_id, prompt))
        await asyncio.sleep(self.latency)
        if self.fail is not None:
            raise self.fail
        return self.replies.get(bot_id, f"echo: {prompt}")


@dataclass
class FakeTransport:
    """In-memory transport for unit tests."""

    auth: FakeAuth = field(default_factory=FakeAuth)
    rooms: FakeRooms = field(default_factory=FakeRooms)
    messages: FakeMessages | None = None
    friends: FakeFriends = field(default_factory=FakeFriends)
    users: FakeUsers = field(default_factory=FakeUsers)
    files: FakeFiles = field(default_factory=FakeFiles)
    bots: FakeBots = field(default_factory=FakeBots)
    closed: bool = False

    def __post_init__(self) -> None:
        if self.messages is None:
            self.messages = FakeMessages(self.rooms)

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakePushChannel:
    connected: bool = True
    frames: list[tuple[str, dict]] = field(default_factory=list)

    async def start(self) -> None:
        self.connected = True

    async def stop(self) -> None:
        self.connected = False

    async def send(self, frame_type: str, data: dict) -> None:
        self.frames.append((frame_type, data))


def make_request(
    request_id: str,
    sender: User,
    receiver_id: str = "u-me",
    *,
    direction: RequestDirection = RequestDirection.INCOMING,
) -> FriendRequest:
    return FriendRequest(
        id=request_id,
        sender=sender,
        receiver_id=UserId(receiver_id),
        status="PENDING",
        created_at=T0,
        direction=direction,
    )


@pytest.fixture
def me() -> User:
    return make_user()


@pytest.fixture
def bob() -> User:
    return make_user("u-bob", "Bob")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport(me: User) -> FakeTransport:
    fake = FakeTransport()
    fake.auth.add_account(me)
    fake.rooms.sender = me
    return fake


@pytest.fixture
def credentials() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest_asyncio.fixture
async def session(transport: FakeTransport, credentials: MemoryCredentialStore, me: User) -> SessionStore:
    store = SessionStore(transport.auth, credentials)
    await store.login(me.handle, "secret")
    return store


@pytest.fixture
def room_store(transport: FakeTransport, session: SessionStore, clock: FakeClock) -> RoomStore:
    return RoomStore(transport, session, clock=clock, bot_reply_delay=0)


@pytest.fixture
def directory(transport: FakeTransport, session: SessionStore) -> DirectoryCache:
    return DirectoryCache(transport, session)
