"""Assistant service backed by Google's Gemini model."""

import json
import random
import re
from typing import Any, Dict, List, Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions

from ..domain.models import StoredMessage
from ..exceptions import AssistantUnavailableError
from .prompts import FALLBACK_MESSAGES, SYSTEM_PROMPT

logger = structlog.get_logger()

INTENT_PATTERNS = [
    ("search", r"\b(search|find|looking for|show me|browse)\b"),
    ("product_info", r"\b(product|item|collectible|pottery|jewelry|textile|woodwork|painting)\b"),
    ("auction", r"\b(auction|bid|bidding|highest bid|reserve price)\b"),
    ("order", r"\b(order|track|shipping|delivery|status)\b"),
    ("payment", r"\b(payment|pay|razorpay|transaction|refund|card)\b"),
    ("account", r"\b(account|profile|sign up|login|register|password)\b"),
    ("help", r"\b(help|how to|guide|explain|what is)\b"),
]


def extract_intent(message: str) -> List[str]:
    """Classify a message into coarse intents, ``["general"]`` if none match."""
    lowered = message.lower()
    intents = [name for name, pattern in INTENT_PATTERNS if re.search(pattern, lowered)]
    return intents or ["general"]


class AssistantService:
    """Generates chatbot replies with Gemini.

    The service is unavailable when no API key is configured; callers check
    ``is_available()`` before routing a message to it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.7,
        max_output_tokens: int = 1000,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.model_name = model_name
        self.model = None
        if api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(
                model_name,
                system_instruction=system_prompt,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                },
            )
        logger.info("assistant_service_init", model=model_name, available=self.is_available())

    def is_available(self) -> bool:
        return self.model is not None

    def _format_contents(
        self,
        history: List[StoredMessage],
        context: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """Map stored turns to Gemini contents, context attached to the last user turn."""
        contents = [
            {"role": "user" if msg.role == "user" else "model", "parts": [msg.message]}
            for msg in history
            if msg.role != "system"
        ]
        # Contents must open with a user turn
        while contents and contents[0]["role"] != "user":
            contents.pop(0)
        if context and contents and contents[-1]["role"] == "user":
            preamble = f"Context about the user and platform:\n{json.dumps(context, default=str)}"
            contents[-1]["parts"].insert(0, preamble)
        return contents

    async def generate_response(
        self,
        history: List[StoredMessage],
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        if self.model is None:
            raise AssistantUnavailableError("Assistant model is not configured")

        contents = self._format_contents(history, context or {})
        try:
            response = await self.model.generate_content_async(contents)
            text = (response.text or "").strip()
            return text or random.choice(FALLBACK_MESSAGES)
        except exceptions.ResourceExhausted as e:
            logger.warning("gemini_quota_exhausted", error=str(e))
            raise AssistantUnavailableError("Assistant quota exhausted") from e
        except Exception as e:
            logger.error("response_generation_error", error=str(e))
            return random.choice(FALLBACK_MESSAGES)
