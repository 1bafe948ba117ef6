"""Todo template repository: SQLModel-backed."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.models.database import Template

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseTemplateRepository:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, template: Template) -> Template:
        async with AsyncSession(self._engine) as session:
            session.add(template)
            await session.commit()
            await session.refresh(template)
            logger.info("template_created", template_id=template.id, user_id=template.user_id)
            return template

    async def get(self, template_id: int, user_id: int) -> Template | None:
        async with AsyncSession(self._engine) as session:
            template = await session.get(Template, template_id)
            if template is None or template.user_id != user_id:
                return None
            return template

    async def list_for_user(self, user_id: int) -> list[Template]:
        """Newest first."""
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Template)
                .where(col(Template.user_id) == user_id)
                .order_by(col(Template.created_at).desc(), col(Template.id).desc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def delete(self, template_id: int, user_id: int) -> bool:
        async with AsyncSession(self._engine) as session:
            template = await session.get(Template, template_id)
            if template is None or template.user_id != user_id:
                return False
            await session.delete(template)
            await session.commit()
            return True
