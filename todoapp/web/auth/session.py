"""Cookie-based session authentication with signed, stateless tokens."""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import jwt
import structlog
from fastapi import HTTPException, Request

from todoapp.config.settings import SESSION_MAX_AGE, get_settings

if TYPE_CHECKING:
    from fastapi import Response

logger = structlog.get_logger(__name__)

SESSION_COOKIE_NAME = "session"
JWT_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class SessionData:
    """Identity carried by a valid session token."""

    user_id: int
    username: str


class SessionAuth:
    """Issues and validates HS256 session tokens.

    Nothing is stored server-side: a token is valid while its signature
    checks out and it has not expired. Expired, tampered and malformed
    tokens are indistinguishable to callers.
    """

    def __init__(self, secret_key: str, max_age: int = SESSION_MAX_AGE) -> None:
        self._secret = secret_key
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age

    def create_session(self, user_id: int, username: str) -> str:
        """Create a signed token for the user."""
        now = int(time.time())
        payload = {
            "sub": str(user_id),
            "username": username,
            "iat": now,
            "exp": now + self._max_age,
        }
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        logger.info("session_created", user_id=user_id, username=username)
        return token

    def validate_session(self, token: str | None) -> SessionData | None:
        """Validate a token and return the embedded identity."""
        if not token:
            return None
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError:
            return None

        username = payload.get("username")
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            return None
        if not isinstance(username, str):
            return None
        return SessionData(user_id=user_id, username=username)

    def set_cookie(self, response: Response, token: str, secure: bool) -> None:
        """Attach the session token as an HTTP-only cookie."""
        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=token,
            httponly=True,
            secure=secure,
            samesite="lax",
            max_age=self._max_age,
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        """Remove the session cookie (the token itself stays valid until expiry)."""
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")
        logger.info("session_cleared")


@lru_cache
def get_session_auth() -> SessionAuth:
    """Return the process-wide SessionAuth built from settings."""
    settings = get_settings()
    return SessionAuth(secret_key=settings.secret_key, max_age=settings.session_max_age)


async def require_auth(request: Request) -> SessionData:
    """FastAPI dependency: the current session identity, or 401."""
    auth = get_session_auth()
    session = auth.validate_session(request.cookies.get(SESSION_COOKIE_NAME))
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    structlog.contextvars.bind_contextvars(user_id=session.user_id)
    return session
