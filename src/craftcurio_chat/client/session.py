"""Client-side chatbot conversation state."""

import asyncio
from typing import List, Optional

import structlog

from ..domain.models import ChatMessage
from ..exceptions import (
    ChatbotAPIError,
    ChatbotError,
    RateLimitError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from ..services.prompts import QUICK_REPLIES
from .api import ChatbotAPI

logger = structlog.get_logger()

FALLBACK_GREETING = "Hi! 👋 I'm your CraftCurio assistant. How can I help you today?"
RATE_LIMITED_MESSAGE = "You're sending messages too quickly. Please wait a moment."
UNAVAILABLE_MESSAGE = "The chatbot service is currently unavailable. Please try again later."
UNAUTHORIZED_MESSAGE = "Please refresh the page and try again."
CONNECTION_MESSAGE = "I'm having trouble connecting. Please try again."


def failure_message(error: ChatbotError) -> str:
    """User-facing copy for a failed turn."""
    if isinstance(error, RateLimitError):
        return RATE_LIMITED_MESSAGE
    if isinstance(error, ServiceUnavailableError):
        return UNAVAILABLE_MESSAGE
    if isinstance(error, UnauthorizedError):
        return UNAUTHORIZED_MESSAGE
    if isinstance(error, ChatbotAPIError) and error.detail:
        return error.detail
    return CONNECTION_MESSAGE


class ChatbotSession:
    """Owns the transcript, session id, quick replies and open/loading flags.

    No operation raises: failures end up as assistant messages so the
    transcript is always displayable. Remote calls are serialized, so replies
    are appended in the order their messages were sent and each request
    carries the session id returned by the previous one.
    """

    def __init__(self, api: ChatbotAPI) -> None:
        self.api = api
        self.messages: List[ChatMessage] = []
        self.session_id: Optional[str] = None
        self.quick_replies: List[str] = list(QUICK_REPLIES)
        self.is_open = False
        self._pending = 0
        self._lock = asyncio.Lock()

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    async def initialize(self) -> None:
        async with self._lock:
            if self.messages:
                return
            try:
                greeting = await self.api.get_greeting()
            except ChatbotError as e:
                logger.warning("chatbot_greeting_failed", error=str(e))
                self.messages.append(ChatMessage(role="assistant", text=FALLBACK_GREETING))
                return

            self.session_id = greeting.session_id
            self.messages.append(ChatMessage(role="assistant", text=greeting.message))
            self.quick_replies = list(greeting.quick_replies)

    async def send_message(self, text: str) -> None:
        if not text or not text.strip():
            return

        # Appended before any await so it precedes its reply
        self.messages.append(ChatMessage(role="user", text=text))
        self._pending += 1
        try:
            async with self._lock:
                try:
                    reply = await self.api.send_message(text, self.session_id)
                except ChatbotError as e:
                    logger.warning(
                        "chatbot_message_failed",
                        session_id=self.session_id,
                        status=getattr(e, "status_code", None),
                        error=str(e)
                    )
                    self.messages.append(ChatMessage(role="assistant", text=failure_message(e)))
                    return

                self.messages.append(
                    ChatMessage(
                        role="assistant",
                        text=reply.message,
                        timestamp=reply.timestamp,
                        suggested_actions=reply.suggested_actions,
                        products=reply.products,
                    )
                )
                self.session_id = reply.session_id
                if reply.quick_replies is not None:
                    self.quick_replies = list(reply.quick_replies)
        finally:
            self._pending -= 1

    async def send_quick_reply(self, reply: str) -> None:
        await self.send_message(reply)

    async def open_chat(self) -> None:
        self.is_open = True
        if not self.messages:
            await self.initialize()

    def close_chat(self) -> None:
        self.is_open = False

    async def toggle_chat(self) -> None:
        if self.is_open:
            self.close_chat()
        else:
            await self.open_chat()

    async def clear_history(self) -> None:
        async with self._lock:
            if self.session_id:
                try:
                    await self.api.delete_history(self.session_id)
                except ChatbotError as e:
                    # Local state still resets
                    logger.warning("chatbot_clear_history_failed", session_id=self.session_id, error=str(e))
            self.messages = []
            self.session_id = None
        await self.initialize()
