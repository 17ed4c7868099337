"""Base repository interfaces."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.models import ChatStats, StoredMessage, User


class UserRepository(ABC):
    """Looks up identities for authenticated connections."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Retrieve a user by ID."""
        pass


class PresenceRegistry(ABC):
    """Tracks which users hold at least one open chat connection.

    Implementations may live in process memory or in a shared store; the
    gateway only relies on this interface.
    """

    @abstractmethod
    async def is_online(self, user_id: str) -> bool:
        """Check whether the user has a live connection."""
        pass

    @abstractmethod
    async def mark_online(self, user_id: str) -> bool:
        """Record a new connection. Returns True if the user just came online."""
        pass

    @abstractmethod
    async def mark_offline(self, user_id: str) -> bool:
        """Record a closed connection. Returns True if the user just went offline."""
        pass


class ChatHistoryRepository(ABC):
    """Stores chatbot turns per session."""

    @abstractmethod
    async def add_message(self, message: StoredMessage) -> StoredMessage:
        """Append a message to its session."""
        pass

    @abstractmethod
    async def get_history(self, session_id: str, limit: int = 10) -> List[StoredMessage]:
        """Get the most recent messages of a session, oldest first."""
        pass

    @abstractmethod
    async def clear_history(self, session_id: str) -> int:
        """Delete all messages of a session. Returns the number removed."""
        pass

    @abstractmethod
    async def get_stats(self, user_id: Optional[str] = None) -> ChatStats:
        """Aggregate counts, optionally restricted to one user."""
        pass
