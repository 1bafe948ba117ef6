"""Tag API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from todoapp.exceptions import TagExistsError
from todoapp.storage.repositories.tags import DatabaseTagRepository
from todoapp.web.auth.session import SessionData, require_auth
from todoapp.web.dependencies import get_tag_repo

router = APIRouter(prefix="/api/tags", tags=["tags"])

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class CreateTagRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)


class UpdateTagRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)


@router.get("")
async def list_tags(
    session: SessionData = Depends(require_auth),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> list[dict[str, Any]]:
    return [t.model_dump() for t in await tag_repo.list_for_user(session.user_id)]


@router.post("", status_code=201)
async def create_tag(
    body: CreateTagRequest,
    session: SessionData = Depends(require_auth),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> dict[str, Any]:
    try:
        tag = await tag_repo.create(session.user_id, body.name, body.color)
    except TagExistsError as exc:
        raise HTTPException(status_code=409, detail="Tag name already exists") from exc
    return tag.model_dump()


@router.patch("/{tag_id}")
async def update_tag(
    tag_id: int,
    body: UpdateTagRequest,
    session: SessionData = Depends(require_auth),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> dict[str, Any]:
    try:
        tag = await tag_repo.update(tag_id, session.user_id, **body.model_dump(exclude_none=True))
    except TagExistsError as exc:
        raise HTTPException(status_code=409, detail="Tag name already exists") from exc
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag.model_dump()


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: int,
    session: SessionData = Depends(require_auth),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> dict[str, bool]:
    if not await tag_repo.delete(tag_id, session.user_id):
        raise HTTPException(status_code=404, detail="Tag not found")
    return {"success": True}
