"""Bearer token verification for chat sockets and the chatbot API."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from jose import JWTError, jwt

from ..domain.models import User
from ..exceptions import AuthenticationError
from ..repositories.base import UserRepository

logger = structlog.get_logger()


def create_access_token(
    subject: Any,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=15))
    payload: Dict[str, Any] = {
        "sub": str(subject),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "type": "access",
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


class TokenAuthenticator:
    """Resolves a bearer token to a user.

    Checks run in a fixed order (presence, signature and expiry, user lookup)
    and the first failure raises ``AuthenticationError``.
    """

    def __init__(self, users: UserRepository, secret: str, algorithm: str = "HS256"):
        self.users = users
        self._secret = secret
        self._algorithm = algorithm

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise AuthenticationError("Invalid token") from exc

    async def authenticate(self, token: Optional[str]) -> User:
        if not token or not isinstance(token, str):
            raise AuthenticationError("Token required")

        claims = self.decode(token)
        user_id = claims.get("sub") or claims.get("id")
        user = await self.users.get_user(str(user_id)) if user_id else None
        if user is None:
            raise AuthenticationError("User not found")
        return user

    async def authenticate_handshake(self, auth: Any) -> User:
        """Authenticate a socket.io handshake auth payload ``{token: ...}``."""
        token = auth.get("token") if isinstance(auth, dict) else None
        return await self.authenticate(token)

    async def resolve_optional(self, authorization: Optional[str]) -> Optional[User]:
        """Resolve an ``Authorization`` header, treating any failure as a guest."""
        if not authorization or not authorization.startswith("Bearer "):
            return None
        try:
            return await self.authenticate(authorization[len("Bearer "):])
        except AuthenticationError as exc:
            logger.debug("optional_auth_ignored", reason=exc.reason)
            return None
