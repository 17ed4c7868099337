"""In-memory repository implementations."""

import asyncio
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

import structlog
from pydantic import TypeAdapter

from ..domain.models import ChatStats, StoredMessage, User
from .base import ChatHistoryRepository, PresenceRegistry, UserRepository

logger = structlog.get_logger()


class InMemoryUserRepository(UserRepository):
    """User directory backed by a dict."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: Dict[str, User] = {user.id: user for user in users}

    @classmethod
    def from_file(cls, path: str) -> "InMemoryUserRepository":
        """Load users from a JSON array of ``{id, name, email?, role?}`` objects."""
        with open(path, "rb") as f:
            users = TypeAdapter(List[User]).validate_json(f.read())

        repository = cls()
        for user in users:
            repository.add_user(user)
        logger.info("users_loaded", path=path, count=len(users))
        return repository

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(str(user_id))


class InMemoryPresenceRegistry(PresenceRegistry):
    """Process-local presence registry.

    Counts connections per user so that a user with several open sockets
    stays online until the last one closes. Handlers run on a single event
    loop, so each mutation is atomic without extra locking.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, int] = {}

    async def is_online(self, user_id: str) -> bool:
        return self._connections.get(str(user_id), 0) > 0

    async def mark_online(self, user_id: str) -> bool:
        key = str(user_id)
        count = self._connections.get(key, 0) + 1
        self._connections[key] = count
        logger.debug("presence_marked_online", user_id=key, connections=count)
        return count == 1

    async def mark_offline(self, user_id: str) -> bool:
        key = str(user_id)
        count = self._connections.get(key, 0)
        if count == 0:
            return False
        if count == 1:
            del self._connections[key]
            logger.debug("presence_marked_offline", user_id=key)
            return True
        self._connections[key] = count - 1
        return False

    def online_users(self) -> List[str]:
        return list(self._connections)


class InMemoryChatHistoryRepository(ChatHistoryRepository):
    """Chatbot history kept per session in process memory."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[StoredMessage]] = defaultdict(list)
        self._async_lock = asyncio.Lock()
        logger.info("chat_history_repository_initialized")

    async def add_message(self, message: StoredMessage) -> StoredMessage:
        async with self._async_lock:
            self._messages[message.session_id].append(message)
            logger.debug(
                "chat_message_stored",
                session_id=message.session_id,
                message_role=message.role
            )
            return message

    async def get_history(self, session_id: str, limit: int = 10) -> List[StoredMessage]:
        async with self._async_lock:
            messages = self._messages.get(session_id, [])
            return list(messages[-limit:]) if limit > 0 else []

    async def clear_history(self, session_id: str) -> int:
        async with self._async_lock:
            removed = self._messages.pop(session_id, [])
            logger.info("chat_history_cleared", session_id=session_id, removed=len(removed))
            return len(removed)

    async def get_stats(self, user_id: Optional[str] = None) -> ChatStats:
        async with self._async_lock:
            per_session: Dict[str, int] = {}
            for session_id, messages in self._messages.items():
                if user_id is not None:
                    messages = [m for m in messages if m.user_id == user_id]
                if messages:
                    per_session[session_id] = len(messages)

            total_messages = sum(per_session.values())
            avg = total_messages / len(per_session) if per_session else 0
            return ChatStats(
                total_chats=len(per_session),
                total_messages=total_messages,
                avg_messages_per_session=avg,
            )
