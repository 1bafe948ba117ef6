"""Authenticator (WebAuthn credential) repository: SQLModel-backed."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from todoapp.exceptions import CredentialExistsError
from todoapp.models.database import Authenticator, _utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseAuthenticatorRepository:
    """Credential store keyed by the globally unique credential ID."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, authenticator: Authenticator) -> Authenticator:
        async with AsyncSession(self._engine) as session:
            session.add(authenticator)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                msg = "Credential ID already registered"
                raise CredentialExistsError(msg) from exc
            await session.refresh(authenticator)
            logger.info("authenticator_created", user_id=authenticator.user_id)
            return authenticator

    async def get_by_credential_id(self, credential_id: str) -> Authenticator | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(Authenticator).where(col(Authenticator.credential_id) == credential_id)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def list_for_user(self, user_id: int) -> list[Authenticator]:
        async with AsyncSession(self._engine) as session:
            stmt = select(Authenticator).where(col(Authenticator.user_id) == user_id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_counter(
        self,
        credential_id: str,
        new_counter: int,
        last_used_at: datetime | None = None,
    ) -> None:
        """Persist the counter reported by the verifier after a successful assertion."""
        async with AsyncSession(self._engine) as session:
            stmt = select(Authenticator).where(col(Authenticator.credential_id) == credential_id)
            result = await session.execute(stmt)
            authenticator = result.scalars().first()
            if authenticator:
                authenticator.counter = new_counter
                authenticator.last_used_at = last_used_at or _utc_now()
                session.add(authenticator)
                await session.commit()
