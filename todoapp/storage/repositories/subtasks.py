"""Subtask repository: SQLModel-backed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.models.database import Subtask, Todo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({"title", "completed", "position"})


class DatabaseSubtaskRepository:
    """Subtask store. Ownership is checked through the parent todo."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, todo_id: int, title: str) -> Subtask:
        """Append a subtask after the todo's current last position."""
        async with AsyncSession(self._engine) as session:
            stmt = sa_select(func.max(Subtask.position)).where(col(Subtask.todo_id) == todo_id)
            max_position = (await session.execute(stmt)).scalar()
            position = 0 if max_position is None else max_position + 1

            subtask = Subtask(todo_id=todo_id, title=title, position=position)
            session.add(subtask)
            await session.commit()
            await session.refresh(subtask)
            logger.debug("subtask_created", subtask_id=subtask.id, todo_id=todo_id)
            return subtask

    async def get(self, subtask_id: int, user_id: int) -> Subtask | None:
        async with AsyncSession(self._engine) as session:
            return await self._get_owned(session, subtask_id, user_id)

    async def list_for_todo(self, todo_id: int) -> list[Subtask]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Subtask)
                .where(col(Subtask.todo_id) == todo_id)
                .order_by(col(Subtask.position).asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update(self, subtask_id: int, user_id: int, **updates: Any) -> Subtask | None:
        async with AsyncSession(self._engine) as session:
            subtask = await self._get_owned(session, subtask_id, user_id)
            if subtask is None:
                return None
            for key, value in updates.items():
                if key in _UPDATABLE_FIELDS:
                    setattr(subtask, key, value)
            session.add(subtask)
            await session.commit()
            await session.refresh(subtask)
            return subtask

    async def delete(self, subtask_id: int, user_id: int) -> bool:
        async with AsyncSession(self._engine) as session:
            subtask = await self._get_owned(session, subtask_id, user_id)
            if subtask is None:
                return False
            await session.delete(subtask)
            await session.commit()
            return True

    @staticmethod
    async def _get_owned(session: AsyncSession, subtask_id: int, user_id: int) -> Subtask | None:
        stmt = (
            select(Subtask)
            .join(Todo, col(Todo.id) == col(Subtask.todo_id))
            .where(col(Subtask.id) == subtask_id, col(Todo.user_id) == user_id)
        )
        result = await session.execute(stmt)
        return result.scalars().first()
