"""
Chat Presence Gateway

Socket.IO namespace handlers for the marketplace chat. Every connection is
authenticated during the handshake; authenticated sockets join a personal
room named after their user id, which is how typing indicators and other
direct events reach a user on all of their open sockets.

Presence is delegated to a ``PresenceRegistry`` so the in-process registry
can be replaced by a shared store when running more than one worker.
"""

from typing import Any, Dict, Optional

import socketio
import structlog
from pydantic import ValidationError

from ..domain.models import Connection, ConnectionState, TypingEvent
from ..exceptions import AuthenticationError
from ..repositories.base import PresenceRegistry
from ..telemetry import AUTH_FAILURES, CONNECTIONS, TYPING_RELAYS
from .auth import TokenAuthenticator

logger = structlog.get_logger()


class ChatGateway:
    """Authenticates chat sockets and relays presence and typing events."""

    def __init__(
        self,
        sio: socketio.AsyncServer,
        authenticator: TokenAuthenticator,
        presence: PresenceRegistry,
        namespace: str = "/chat",
    ) -> None:
        self.sio = sio
        self.authenticator = authenticator
        self.presence = presence
        self.namespace = namespace
        self._connections: Dict[str, Connection] = {}
        self._register_handlers()

    def _register_handlers(self) -> None:
        self.sio.on("connect", self.on_connect, namespace=self.namespace)
        self.sio.on("disconnect", self.on_disconnect, namespace=self.namespace)
        self.sio.on("typing", self.on_typing, namespace=self.namespace)
        self.sio.on("stopTyping", self.on_stop_typing, namespace=self.namespace)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_connection(self, sid: str) -> Optional[Connection]:
        return self._connections.get(sid)

    async def on_connect(self, sid: str, environ: Dict[str, Any], auth: Any = None) -> None:
        connection = Connection(sid=sid, state=ConnectionState.AUTHENTICATING)
        try:
            user = await self.authenticator.authenticate_handshake(auth)
        except AuthenticationError as exc:
            connection.state = ConnectionState.DISCONNECTED
            AUTH_FAILURES.labels(reason=exc.reason).inc()
            logger.warning("chat_auth_failed", sid=sid, reason=exc.reason)
            raise

        connection.user = user
        connection.state = ConnectionState.AUTHENTICATED
        self._connections[sid] = connection

        # Personal room for direct addressing
        await self.sio.enter_room(sid, user.id, namespace=self.namespace)
        connection.rooms.add(user.id)
        CONNECTIONS.inc()

        if await self.presence.mark_online(user.id):
            await self.sio.emit(
                "userOnline",
                {"userId": user.id},
                skip_sid=sid,
                namespace=self.namespace,
            )
        logger.info("chat_user_connected", sid=sid, user_id=user.id, user_name=user.name)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        connection = self._connections.pop(sid, None)
        if connection is None or connection.user is None:
            return

        connection.state = ConnectionState.DISCONNECTED
        user_id = connection.user.id
        if await self.presence.mark_offline(user_id):
            await self.sio.emit(
                "userOffline",
                {"userId": user_id},
                skip_sid=sid,
                namespace=self.namespace,
            )
        logger.info("chat_user_disconnected", sid=sid, user_id=user_id, reason=str(reason) if reason else None)

    async def on_typing(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, data, is_typing=True)

    async def on_stop_typing(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, data, is_typing=False)

    async def _relay_typing(self, sid: str, data: Any, is_typing: bool) -> None:
        connection = self._connections.get(sid)
        if connection is None or connection.user is None:
            logger.debug("typing_from_unknown_sid", sid=sid)
            return

        try:
            event = TypingEvent.model_validate(data)
        except ValidationError:
            logger.warning("typing_payload_invalid", sid=sid, user_id=connection.user.id)
            return

        await self.sio.emit(
            "typing",
            {
                "conversationId": event.conversation_id,
                "userId": connection.user.id,
                "isTyping": is_typing,
            },
            to=event.recipient_id,
            skip_sid=sid,
            namespace=self.namespace,
        )
        TYPING_RELAYS.labels(kind="start" if is_typing else "stop").inc()

    async def is_user_online(self, user_id: str) -> bool:
        return await self.presence.is_online(str(user_id))

    async def emit_to_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Send an event to every socket of a user through their personal room."""
        await self.sio.emit(event, payload, to=str(user_id), namespace=self.namespace)
