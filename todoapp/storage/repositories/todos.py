"""Todo repository: SQLModel-backed, always scoped to the owning user."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.models.database import Subtask, Tag, Todo, TodoTag, _utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"title", "due_date", "priority", "completed", "recurrence_pattern", "reminder_minutes"}
)


class DatabaseTodoRepository:
    """Todo store. Lookups by ID return None for rows owned by another user."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(
        self,
        user_id: int,
        title: str,
        due_date: str,
        priority: str = "medium",
        recurrence_pattern: str | None = None,
        reminder_minutes: int | None = None,
    ) -> Todo:
        async with AsyncSession(self._engine) as session:
            todo = Todo(
                user_id=user_id,
                title=title,
                due_date=due_date,
                priority=priority,
                recurrence_pattern=recurrence_pattern,
                reminder_minutes=reminder_minutes,
            )
            session.add(todo)
            await session.commit()
            await session.refresh(todo)
            logger.info("todo_created", todo_id=todo.id, user_id=user_id)
            return todo

    async def get(self, todo_id: int, user_id: int) -> Todo | None:
        async with AsyncSession(self._engine) as session:
            todo = await session.get(Todo, todo_id)
            if todo is None or todo.user_id != user_id:
                return None
            return todo

    async def list_for_user(self, user_id: int) -> list[Todo]:
        """All of a user's todos, open ones first, then by due date."""
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Todo)
                .where(col(Todo.user_id) == user_id)
                .order_by(col(Todo.completed).asc(), col(Todo.due_date).asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update(self, todo_id: int, user_id: int, **updates: Any) -> Todo | None:
        """Apply a partial update. Completing a todo stamps ``completed_at``."""
        async with AsyncSession(self._engine) as session:
            todo = await session.get(Todo, todo_id)
            if todo is None or todo.user_id != user_id:
                return None
            for key, value in updates.items():
                if key not in _UPDATABLE_FIELDS:
                    continue
                setattr(todo, key, value)
                if key == "completed":
                    todo.completed_at = _utc_now() if value else None
            session.add(todo)
            await session.commit()
            await session.refresh(todo)
            return todo

    async def delete(self, todo_id: int, user_id: int) -> bool:
        async with AsyncSession(self._engine) as session:
            todo = await session.get(Todo, todo_id)
            if todo is None or todo.user_id != user_id:
                return False

            # Delete child rows that reference this todo (no DB cascade)
            await session.execute(delete(Subtask).where(col(Subtask.todo_id) == todo_id))
            await session.execute(delete(TodoTag).where(col(TodoTag.todo_id) == todo_id))
            await session.delete(todo)
            await session.commit()
            logger.info("todo_deleted", todo_id=todo_id, user_id=user_id)
            return True

    # ------------------------------------------------------------------
    # Tags on todos
    # ------------------------------------------------------------------

    async def add_tag(self, todo_id: int, tag_id: int) -> None:
        """Link a tag to a todo. Linking twice is a no-op."""
        async with AsyncSession(self._engine) as session:
            if await session.get(TodoTag, (todo_id, tag_id)) is None:
                session.add(TodoTag(todo_id=todo_id, tag_id=tag_id))
                await session.commit()

    async def remove_tag(self, todo_id: int, tag_id: int) -> None:
        async with AsyncSession(self._engine) as session:
            await session.execute(
                delete(TodoTag).where(
                    col(TodoTag.todo_id) == todo_id, col(TodoTag.tag_id) == tag_id
                )
            )
            await session.commit()

    async def tags_for_todo(self, todo_id: int) -> list[Tag]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Tag)
                .join(TodoTag, col(TodoTag.tag_id) == col(Tag.id))
                .where(col(TodoTag.todo_id) == todo_id)
                .order_by(col(Tag.name).asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def list_reminder_candidates(self, user_id: int, notified_before: datetime) -> list[Todo]:
        """Open todos with a reminder that were not notified since ``notified_before``."""
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Todo)
                .where(
                    col(Todo.user_id) == user_id,
                    col(Todo.completed).is_(False),
                    col(Todo.reminder_minutes).is_not(None),
                    (col(Todo.last_notification_sent).is_(None))
                    | (col(Todo.last_notification_sent) < notified_before),
                )
                .order_by(col(Todo.due_date).asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def mark_notified(self, todo_id: int, when: datetime) -> None:
        async with AsyncSession(self._engine) as session:
            todo = await session.get(Todo, todo_id)
            if todo:
                todo.last_notification_sent = when
                session.add(todo)
                await session.commit()
