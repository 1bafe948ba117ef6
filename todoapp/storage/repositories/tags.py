"""Tag repository: SQLModel-backed."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.exceptions import TagExistsError
from todoapp.models.database import Tag, TodoTag

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

TAG_COLORS = (
    "#EF4444",  # red
    "#F59E0B",  # amber
    "#10B981",  # green
    "#3B82F6",  # blue
    "#6366F1",  # indigo
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#14B8A6",  # teal
    "#F97316",  # orange
    "#84CC16",  # lime
)


def random_tag_color() -> str:
    return secrets.choice(TAG_COLORS)


class DatabaseTagRepository:
    """Per-user tag store; names are unique within a user."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, user_id: int, name: str, color: str | None = None) -> Tag:
        async with AsyncSession(self._engine) as session:
            tag = Tag(user_id=user_id, name=name, color=color or random_tag_color())
            session.add(tag)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                msg = f"Tag name already exists: {name}"
                raise TagExistsError(msg) from exc
            await session.refresh(tag)
            logger.info("tag_created", tag_id=tag.id, user_id=user_id)
            return tag

    async def get(self, tag_id: int, user_id: int) -> Tag | None:
        async with AsyncSession(self._engine) as session:
            tag = await session.get(Tag, tag_id)
            if tag is None or tag.user_id != user_id:
                return None
            return tag

    async def list_for_user(self, user_id: int) -> list[Tag]:
        async with AsyncSession(self._engine) as session:
            stmt = select(Tag).where(col(Tag.user_id) == user_id).order_by(col(Tag.name).asc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update(self, tag_id: int, user_id: int, **updates: Any) -> Tag | None:
        async with AsyncSession(self._engine) as session:
            tag = await session.get(Tag, tag_id)
            if tag is None or tag.user_id != user_id:
                return None
            if updates.get("name") is not None:
                tag.name = updates["name"]
            if updates.get("color") is not None:
                tag.color = updates["color"]
            session.add(tag)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                msg = f"Tag name already exists: {updates.get('name')}"
                raise TagExistsError(msg) from exc
            await session.refresh(tag)
            return tag

    async def delete(self, tag_id: int, user_id: int) -> bool:
        async with AsyncSession(self._engine) as session:
            tag = await session.get(Tag, tag_id)
            if tag is None or tag.user_id != user_id:
                return False
            await session.execute(delete(TodoTag).where(col(TodoTag.tag_id) == tag_id))
            await session.delete(tag)
            await session.commit()
            logger.info("tag_deleted", tag_id=tag_id, user_id=user_id)
            return True
