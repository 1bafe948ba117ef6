"""Password hashing and the password-based sign-up/sign-in path."""

from __future__ import annotations

from typing import TYPE_CHECKING

import bcrypt
import structlog

from todoapp.exceptions import InvalidCredentialsError, UserNotFoundError

if TYPE_CHECKING:
    from todoapp.models.database import User
    from todoapp.storage.repositories.users import DatabaseUserRepository

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash; passkey-only users never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        logger.warning("password_hash_malformed")
        return False


class PasswordAuthService:
    """Username/password accounts, independent of the WebAuthn challenge flow."""

    def __init__(self, user_repo: DatabaseUserRepository) -> None:
        self._user_repo = user_repo

    async def register(self, username: str, password: str) -> User:
        """Create a user with a hashed password. Raises UserExistsError if taken."""
        user = await self._user_repo.create(username, password_hash=hash_password(password))
        logger.info("password_user_registered", user_id=user.id, username=username)
        return user

    async def login(self, username: str, password: str) -> User:
        user = await self._user_repo.get_by_username(username)
        if user is None:
            msg = f"User not found: {username}"
            raise UserNotFoundError(msg)
        if not verify_password(password, user.password_hash):
            msg = "Invalid password"
            raise InvalidCredentialsError(msg)
        logger.info("password_user_logged_in", user_id=user.id, username=username)
        return user
