"""Shared fixtures and fakes for the test suite."""

from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from craftcurio_chat.config import Settings
from craftcurio_chat.domain.models import StoredMessage, User
from craftcurio_chat.gateway.auth import TokenAuthenticator, create_access_token
from craftcurio_chat.repositories.memory import InMemoryPresenceRegistry, InMemoryUserRepository
from craftcurio_chat.services.assistant import AssistantService

SECRET = "test-secret"

ALICE = User(id="u-alice", name="Alice", email="alice@example.com", role="collector")
BOB = User(id="u-bob", name="Bob", role="artisan")
CAROL = User(id="u-carol", name="Carol", role="buyer")


def make_token(subject: str, secret: str = SECRET, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(subject, secret, expires_delta=expires_delta)


class FakeSocketServer:
    """Records handlers and models socket.io room delivery in memory.

    Each sid joins a room named after itself on connect, as socket.io does,
    and ``received`` collects ``(event, data)`` per sid.
    """

    def __init__(self) -> None:
        self.handlers: Dict[Tuple[Optional[str], str], Any] = {}
        self.rooms: Dict[str, Set[str]] = defaultdict(set)
        self.connected: Set[str] = set()
        self.received: Dict[str, List[Tuple[str, Any]]] = defaultdict(list)

    def on(self, event, handler=None, namespace=None):
        self.handlers[(namespace, event)] = handler

    async def enter_room(self, sid, room, namespace=None):
        self.rooms[room].add(sid)

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None, namespace=None, **kwargs):
        target = to if to is not None else room
        recipients = set(self.rooms.get(target, set())) if target is not None else set(self.connected)
        for sid in recipients:
            if sid != skip_sid:
                self.received[sid].append((event, data))

    def _leave_all(self, sid: str) -> None:
        for members in self.rooms.values():
            members.discard(sid)

    async def connect(self, sid: str, auth: Any, namespace: str = "/chat") -> None:
        self.rooms[sid].add(sid)
        try:
            await self.handlers[(namespace, "connect")](sid, {}, auth)
        except Exception:
            self._leave_all(sid)
            raise
        self.connected.add(sid)

    async def disconnect(self, sid: str, namespace: str = "/chat") -> None:
        self.connected.discard(sid)
        self._leave_all(sid)
        await self.handlers[(namespace, "disconnect")](sid, "client namespace disconnect")

    async def send(self, sid: str, event: str, data: Any, namespace: str = "/chat") -> None:
        await self.handlers[(namespace, event)](sid, data)

    def events(self, sid: str, name: str) -> List[Any]:
        return [data for event, data in self.received[sid] if event == name]


class FakeAssistant(AssistantService):
    """Assistant that answers without calling a model."""

    def __init__(self, reply: str = "Happy to help with that!") -> None:
        super().__init__(api_key=None)
        self.reply = reply
        self.calls: List[Tuple[List[StoredMessage], Dict[str, Any]]] = []

    def is_available(self) -> bool:
        return True

    async def generate_response(self, history, context=None) -> str:
        self.calls.append((list(history), dict(context or {})))
        return self.reply


def make_settings(**overrides) -> Settings:
    values = {"JWT_SECRET": SECRET, "LOG_FORMAT": "console", "GEMINI_API_KEY": None}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository([ALICE, BOB, CAROL])


@pytest.fixture
def presence() -> InMemoryPresenceRegistry:
    return InMemoryPresenceRegistry()


@pytest.fixture
def authenticator(users) -> TokenAuthenticator:
    return TokenAuthenticator(users, SECRET)


@pytest.fixture
def sio() -> FakeSocketServer:
    return FakeSocketServer()
