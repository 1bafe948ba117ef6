"""Subtask API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
from todoapp.storage.repositories.todos import DatabaseTodoRepository
from todoapp.web.auth.session import SessionData, require_auth
from todoapp.web.dependencies import get_subtask_repo, get_todo_repo

router = APIRouter(prefix="/api/subtasks", tags=["subtasks"])


class CreateSubtaskRequest(BaseModel):
    todo_id: int
    title: str = Field(min_length=1, max_length=500)


class UpdateSubtaskRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    completed: bool | None = None
    position: int | None = Field(default=None, ge=0)


@router.post("", status_code=201)
async def create_subtask(
    body: CreateSubtaskRequest,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
) -> dict[str, Any]:
    if await todo_repo.get(body.todo_id, session.user_id) is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    subtask = await subtask_repo.create(body.todo_id, body.title)
    return subtask.model_dump()


@router.patch("/{subtask_id}")
async def update_subtask(
    subtask_id: int,
    body: UpdateSubtaskRequest,
    session: SessionData = Depends(require_auth),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
) -> dict[str, Any]:
    subtask = await subtask_repo.update(
        subtask_id, session.user_id, **body.model_dump(exclude_none=True)
    )
    if subtask is None:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return subtask.model_dump()


@router.delete("/{subtask_id}")
async def delete_subtask(
    subtask_id: int,
    session: SessionData = Depends(require_auth),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
) -> dict[str, bool]:
    if not await subtask_repo.delete(subtask_id, session.user_id):
        raise HTTPException(status_code=404, detail="Subtask not found")
    return {"success": True}
