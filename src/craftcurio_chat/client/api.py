"""HTTP client for the chatbot service."""

from typing import Any, Dict, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from ..domain.models import AssistantReply, Greeting
from ..exceptions import (
    ChatbotAPIError,
    RateLimitError,
    ServiceUnavailableError,
    TransportError,
    UnauthorizedError,
)

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

STATUS_ERRORS = {
    401: UnauthorizedError,
    429: RateLimitError,
    503: ServiceUnavailableError,
}


class ChatbotAPI:
    """Thin wrapper over ``httpx.AsyncClient`` for the ``/chatbot`` endpoints.

    ``client`` must be configured with the chatbot base URL, for example
    ``https://example.com/api/chatbot``. Every failure is raised as a
    ``ChatbotError`` subclass.
    """

    def __init__(self, client: httpx.AsyncClient, token: Optional[str] = None) -> None:
        self._client = client
        self.token = token

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            detail = body.get("error") if isinstance(body, dict) else None
            error_class = STATUS_ERRORS.get(response.status_code, ChatbotAPIError)
            raise error_class(response.status_code, detail)

        if not isinstance(body, dict) or not body.get("success"):
            detail = body.get("error") if isinstance(body, dict) else None
            raise ChatbotAPIError(response.status_code, detail)
        return body

    def _parse(self, model: Type[ModelT], body: Dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(body.get("data"))
        except ValidationError as e:
            logger.warning("chatbot_response_malformed", model=model.__name__, error=str(e))
            raise ChatbotAPIError(200) from e

    async def get_greeting(self) -> Greeting:
        body = await self._request("GET", "/greeting")
        return self._parse(Greeting, body)

    async def send_message(self, message: str, session_id: Optional[str] = None) -> AssistantReply:
        body = await self._request(
            "POST", "/message", json={"message": message, "sessionId": session_id}
        )
        return self._parse(AssistantReply, body)

    async def delete_history(self, session_id: str) -> None:
        await self._request("DELETE", f"/history/{session_id}")
