"""Domain models for the chat gateway and chatbot."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Identity resolved from a bearer token."""

    id: str
    name: str
    email: Optional[str] = None
    role: Optional[str] = None


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


@dataclass
class Connection:
    """A single chat socket and the identity bound to it."""

    sid: str
    user: Optional[User] = None
    rooms: Set[str] = field(default_factory=set)
    state: ConnectionState = ConnectionState.CONNECTING


class TypingEvent(BaseModel):
    """Client payload of ``typing`` and ``stopTyping``."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    recipient_id: str = Field(alias="recipientId")


class StoredMessage(BaseModel):
    """A chatbot turn kept in the service-side history."""

    session_id: str
    user_id: Optional[str] = None
    role: Literal["user", "assistant", "system"]
    message: str
    created_at: datetime = Field(default_factory=utcnow)
    suggested_actions: List[str] = []


class ChatMessage(BaseModel):
    """A transcript entry held by the client session."""

    role: Literal["user", "assistant"]
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    suggested_actions: Optional[List[str]] = None
    products: Optional[List[Dict[str, Any]]] = None


class MessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class Greeting(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    message: str
    quick_replies: List[str] = Field(default_factory=list, alias="quickReplies")


class AssistantReply(BaseModel):
    """Reply to one chatbot turn, as sent over the wire."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: str
    suggested_actions: List[str] = Field(default_factory=list, alias="suggestedActions")
    quick_replies: Optional[List[str]] = Field(default=None, alias="quickReplies")
    products: List[Dict[str, Any]] = []
    timestamp: datetime = Field(default_factory=utcnow)


class ChatStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_chats: int = Field(alias="totalChats")
    total_messages: int = Field(alias="totalMessages")
    avg_messages_per_session: float = Field(alias="avgMessagesPerSession")
