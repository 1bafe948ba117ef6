"""User repository: SQLModel-backed."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.exceptions import UserExistsError
from todoapp.models.database import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseUserRepository:
    """User store. Usernames are unique and never change once created."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, username: str, password_hash: str | None = None) -> User:
        async with AsyncSession(self._engine) as session:
            user = User(username=username, password_hash=password_hash)
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                msg = f"Username already taken: {username}"
                raise UserExistsError(msg) from exc
            await session.refresh(user)
            logger.info("user_created", user_id=user.id, username=username)
            return user

    async def get_by_id(self, user_id: int) -> User | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(User).where(col(User.username) == username)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_or_create(self, username: str) -> User:
        """Return the user for ``username``, creating a password-less one if absent."""
        user = await self.get_by_username(username)
        if user:
            return user
        try:
            return await self.create(username)
        except UserExistsError:
            # Lost a race with a concurrent create for the same username.
            existing = await self.get_by_username(username)
            if existing is None:
                raise
            return existing
