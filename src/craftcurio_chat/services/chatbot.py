"""Chatbot conversation handling on the service side."""

import random
from typing import Any, Dict, List, Optional

import structlog

from ..domain.models import AssistantReply, ChatStats, StoredMessage, User
from ..repositories.base import ChatHistoryRepository
from .assistant import AssistantService, extract_intent
from .prompts import FAQ_PATTERNS, GREETING_MESSAGES, QUICK_REPLIES, SUGGESTED_ACTIONS

logger = structlog.get_logger()


class ChatbotService:
    """Stores turns, answers FAQs directly and delegates the rest to the assistant."""

    def __init__(
        self,
        history: ChatHistoryRepository,
        assistant: AssistantService,
        max_history: int = 10,
    ) -> None:
        self.history = history
        self.assistant = assistant
        self.max_history = max_history

    def is_available(self) -> bool:
        return self.assistant.is_available()

    def get_greeting(self) -> str:
        return random.choice(GREETING_MESSAGES)

    @property
    def quick_replies(self) -> List[str]:
        return list(QUICK_REPLIES)

    def check_faq(self, message: str) -> Optional[str]:
        lowered = message.lower()
        for pattern, answer in FAQ_PATTERNS.items():
            if pattern in lowered:
                return answer
        return None

    def generate_suggested_actions(self, intents: List[str]) -> List[str]:
        actions: List[str] = []
        for intent in intents:
            actions.extend(SUGGESTED_ACTIONS.get(intent, []))
        return actions

    def build_context(self, user: Optional[User], intents: List[str]) -> Dict[str, Any]:
        context: Dict[str, Any] = {"intents": intents}
        if user is not None:
            context["user"] = {"name": user.name, "role": user.role}
        return context

    async def process_message(
        self,
        session_id: str,
        text: str,
        user: Optional[User] = None,
    ) -> AssistantReply:
        """Run one conversation turn and return the assistant reply."""
        user_id = user.id if user else None
        await self.history.add_message(
            StoredMessage(session_id=session_id, user_id=user_id, role="user", message=text)
        )
        conversation = await self.history.get_history(session_id, limit=self.max_history)

        intents = extract_intent(text)
        answer = self.check_faq(text)
        source = "faq"
        if answer is None:
            answer = await self.assistant.generate_response(
                conversation, self.build_context(user, intents)
            )
            source = "assistant"

        suggested_actions = self.generate_suggested_actions(intents)
        await self.history.add_message(
            StoredMessage(
                session_id=session_id,
                user_id=user_id,
                role="assistant",
                message=answer,
                suggested_actions=suggested_actions,
            )
        )

        logger.info(
            "chatbot_message_processed",
            session_id=session_id,
            intents=intents,
            source=source,
            user_message_length=len(text),
            reply_length=len(answer)
        )
        return AssistantReply(
            session_id=session_id,
            message=answer,
            suggested_actions=suggested_actions,
            quick_replies=self.quick_replies,
            products=[],
        )

    async def clear_history(self, session_id: str) -> int:
        return await self.history.clear_history(session_id)

    async def get_stats(self, user_id: Optional[str] = None) -> ChatStats:
        return await self.history.get_stats(user_id)
