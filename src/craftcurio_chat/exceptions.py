"""Error taxonomy for the chat gateway and the chatbot client."""

from typing import Optional

from socketio.exceptions import ConnectionRefusedError


class AuthenticationError(ConnectionRefusedError):
    """Raised when a chat socket fails the handshake checks.

    Raising it from a socket.io connect handler refuses the connection; the
    client receives ``"Authentication error: <reason>"``.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Authentication error: {reason}")

    def __str__(self) -> str:
        return self.error_args["message"]


class ChatbotError(Exception):
    """Base class for failures talking to the chatbot service."""


class TransportError(ChatbotError):
    """The chatbot service could not be reached."""


class ChatbotAPIError(ChatbotError):
    """The chatbot service answered with an error status or envelope."""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail or 'request failed'}")


class RateLimitError(ChatbotAPIError):
    """HTTP 429 from the chatbot service."""


class ServiceUnavailableError(ChatbotAPIError):
    """HTTP 503 from the chatbot service."""


class UnauthorizedError(ChatbotAPIError):
    """HTTP 401 from the chatbot service."""


class AssistantUnavailableError(Exception):
    """The language model backing the chatbot is not configured or exhausted."""
