"""
FastAPI Application Module

HTTP and Socket.IO entry point for the CraftCurio chat core.

Key Features:
- Chatbot endpoints (greeting, message, history, stats, health)
- Per-identity rate limiting and per-session request queuing
- Authenticated /chat Socket.IO namespace with presence and typing relays
- Structured logging, Prometheus metrics and OpenTelemetry tracing

Every collaborator is built once in ``create_app`` and reached through
``app.state``; nothing is looked up from module globals.
"""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

import socketio
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from ..config import Settings, get_settings
from ..domain.models import Greeting, MessageRequest, User
from ..exceptions import AssistantUnavailableError
from ..gateway.auth import TokenAuthenticator
from ..gateway.chat import ChatGateway
from ..repositories.base import ChatHistoryRepository, PresenceRegistry, UserRepository
from ..repositories.memory import (
    InMemoryChatHistoryRepository,
    InMemoryPresenceRegistry,
    InMemoryUserRepository,
)
from ..services.assistant import AssistantService
from ..services.chatbot import ChatbotService
from ..telemetry import CUSTOM_REGISTRY, ERRORS, REQUESTS, configure_logging
from .rate_limiter import RateLimiter, RateLimitExceeded, rate_limit_key
from .request_queue import RequestQueue

logger = get_logger()

UNAVAILABLE_MESSAGE = "Chatbot service is currently unavailable. Please try again later."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles app startup/shutdown and resource management"""
    await app.state.rate_limiter.start()
    logger.info("application_startup_complete")

    yield

    await app.state.request_queue.cleanup()
    await app.state.rate_limiter.stop()
    logger.info("application_shutdown_complete")


def get_chatbot(request: Request) -> ChatbotService:
    return request.app.state.chatbot


def get_gateway(request: Request) -> ChatGateway:
    return request.app.state.gateway


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_request_queue(request: Request) -> RequestQueue:
    return request.app.state.request_queue


async def get_optional_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[User]:
    """Resolve the bearer token if present; guests get None."""
    authenticator: TokenAuthenticator = request.app.state.authenticator
    return await authenticator.resolve_optional(authorization)


router = APIRouter()


@router.get("/chatbot/health")
async def health_check(chatbot: ChatbotService = Depends(get_chatbot)) -> JSONResponse:
    """Reports whether the assistant model is configured"""
    available = chatbot.is_available()
    return JSONResponse(
        status_code=200 if available else 503,
        content={
            "success": available,
            "status": "operational" if available else "unavailable",
            "message": "Chatbot service is running" if available else UNAVAILABLE_MESSAGE,
        },
    )


@router.get("/chatbot/greeting")
async def get_greeting(chatbot: ChatbotService = Depends(get_chatbot)) -> dict:
    """Starts a conversation with a fresh session id"""
    REQUESTS.labels(endpoint="greeting").inc()
    greeting = Greeting(
        session_id=str(uuid4()),
        message=chatbot.get_greeting(),
        quick_replies=chatbot.quick_replies,
    )
    return {"success": True, "data": greeting.model_dump(by_alias=True)}


@router.post("/chatbot/message")
async def send_message(
    payload: MessageRequest,
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    chatbot: ChatbotService = Depends(get_chatbot),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    request_queue: RequestQueue = Depends(get_request_queue),
) -> dict:
    """
    Processes a user message and returns the assistant reply.
    Turns of the same session run one at a time in arrival order.
    """
    REQUESTS.labels(endpoint="message").inc()
    text = payload.message or ""
    if not text.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    if not chatbot.is_available():
        raise HTTPException(status_code=503, detail=UNAVAILABLE_MESSAGE)

    session_id = payload.session_id or str(uuid4())

    key = rate_limit_key(request, user)
    try:
        await rate_limiter.check_rate_limit(key)
    except RateLimitExceeded:
        raise HTTPException(
            status_code=429,
            detail="Too many messages. Please wait a moment and try again.",
            headers={"X-RateLimit-Remaining": "0"},
        )
    response.headers["X-RateLimit-Remaining"] = str(await rate_limiter.get_remaining_requests(key))

    try:
        reply = await request_queue.enqueue_request(
            session_id, chatbot.process_message, session_id, text, user
        )
    except AssistantUnavailableError:
        raise HTTPException(status_code=503, detail=UNAVAILABLE_MESSAGE)
    except TimeoutError:
        raise HTTPException(status_code=408, detail="Request timeout")
    except Exception as e:
        logger.error("send_message_error", session_id=session_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to process message. Please try again.")

    return {"success": True, "data": reply.model_dump(mode="json", by_alias=True)}


@router.delete("/chatbot/history/{session_id}")
async def clear_history(
    session_id: str,
    chatbot: ChatbotService = Depends(get_chatbot),
) -> dict:
    """Deletes stored turns of a session"""
    REQUESTS.labels(endpoint="history").inc()
    removed = await chatbot.clear_history(session_id)
    logger.info("history_clear_requested", session_id=session_id, removed=removed)
    return {"success": True, "message": "Chat history cleared"}


@router.get("/chatbot/stats")
async def get_stats(
    user: Optional[User] = Depends(get_optional_user),
    chatbot: ChatbotService = Depends(get_chatbot),
) -> dict:
    """Conversation counts, scoped to the caller when authenticated"""
    stats = await chatbot.get_stats(user.id if user else None)
    return {"success": True, "data": stats.model_dump(by_alias=True)}


@router.get("/chat/online/{user_id}")
async def get_online_status(user_id: str, gateway: ChatGateway = Depends(get_gateway)) -> dict:
    """Answers whether a user holds an open chat connection"""
    return {"success": True, "data": {"userId": user_id, "online": await gateway.is_user_online(user_id)}}


def create_app(
    settings: Optional[Settings] = None,
    *,
    users: Optional[UserRepository] = None,
    presence: Optional[PresenceRegistry] = None,
    history: Optional[ChatHistoryRepository] = None,
    assistant: Optional[AssistantService] = None,
) -> FastAPI:
    """Build the HTTP app and the Socket.IO gateway sharing one set of collaborators."""
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    if users is None:
        users = (
            InMemoryUserRepository.from_file(settings.USERS_FILE)
            if settings.USERS_FILE
            else InMemoryUserRepository()
        )
    presence = presence if presence is not None else InMemoryPresenceRegistry()
    history = history if history is not None else InMemoryChatHistoryRepository()
    if assistant is None:
        assistant = AssistantService(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL,
            temperature=settings.TEMPERATURE,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS,
        )

    app = FastAPI(
        title="CraftCurio Chat API",
        description="Chat presence gateway and chatbot service",
        version="0.1.0",
        lifespan=lifespan
    )

    cors_origins = "*" if "*" in settings.CORS_ORIGINS else settings.CORS_ORIGINS
    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=cors_origins)
    authenticator = TokenAuthenticator(users, settings.JWT_SECRET, settings.JWT_ALGORITHM)

    app.state.settings = settings
    app.state.sio = sio
    app.state.authenticator = authenticator
    app.state.gateway = ChatGateway(sio, authenticator, presence, namespace=settings.CHAT_NAMESPACE)
    app.state.chatbot = ChatbotService(history, assistant, max_history=settings.MAX_CONVERSATION_HISTORY)
    app.state.rate_limiter = RateLimiter(
        rate_limit=settings.MESSAGE_RATE_LIMIT,
        time_window=settings.MESSAGE_RATE_WINDOW,
    )
    app.state.request_queue = RequestQueue(queue_timeout=settings.REQUEST_TIMEOUT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        ERRORS.labels(status=str(exc.status_code)).inc()
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Logs request lifecycle"""
        logger.info("request_started", method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
            logger.info("request_finished", path=request.url.path, status=response.status_code)
            return response
        except Exception as e:
            logger.error("request_failed", path=request.url.path, error=str(e))
            raise

    app.include_router(router, prefix=settings.API_PREFIX)

    @app.get("/metrics")
    async def metrics():
        """Provides Prometheus metrics for system monitoring"""
        return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")

    # Set up request tracing
    FastAPIInstrumentor.instrument_app(app)

    return app


def create_asgi_app(settings: Optional[Settings] = None, **kwargs) -> socketio.ASGIApp:
    """Wrap the FastAPI app so Socket.IO traffic reaches the gateway."""
    app = create_app(settings, **kwargs)
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "craftcurio_chat.api.app:create_asgi_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
    )


if __name__ == "__main__":
    main()
