"""Todo CRUD API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from todoapp.services.todos import TodoService
from todoapp.storage.repositories.tags import DatabaseTagRepository
from todoapp.storage.repositories.todos import DatabaseTodoRepository
from todoapp.types import Priority, RecurrencePattern
from todoapp.web.auth.session import SessionData, require_auth
from todoapp.web.dependencies import get_tag_repo, get_todo_repo, get_todo_service

router = APIRouter(prefix="/api/todos", tags=["todos"])

_CLEARABLE_FIELDS = frozenset({"recurrence_pattern", "reminder_minutes"})


class CreateTodoRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    due_date: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    recurrence_pattern: RecurrencePattern | None = None
    reminder_minutes: int | None = Field(default=None, ge=0)


class UpdateTodoRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    due_date: str | None = Field(default=None, min_length=1)
    priority: Priority | None = None
    completed: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None
    reminder_minutes: int | None = Field(default=None, ge=0)


class AddTagRequest(BaseModel):
    tag_id: int


@router.get("")
async def list_todos(
    session: SessionData = Depends(require_auth),
    todos: TodoService = Depends(get_todo_service),
) -> list[dict[str, Any]]:
    return await todos.list_detailed(session.user_id)


@router.post("", status_code=201)
async def create_todo(
    body: CreateTodoRequest,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    todos: TodoService = Depends(get_todo_service),
) -> dict[str, Any]:
    todo = await todo_repo.create(
        user_id=session.user_id,
        title=body.title,
        due_date=body.due_date,
        priority=body.priority.value,
        recurrence_pattern=body.recurrence_pattern.value if body.recurrence_pattern else None,
        reminder_minutes=body.reminder_minutes,
    )
    return await todos.describe(todo)


@router.patch("/{todo_id}")
async def update_todo(
    todo_id: int,
    body: UpdateTodoRequest,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    todos: TodoService = Depends(get_todo_service),
) -> dict[str, Any]:
    # Explicit nulls clear recurrence/reminder; omitted fields are left alone.
    updates = {
        key: value
        for key, value in body.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or key in _CLEARABLE_FIELDS
    }
    todo = await todo_repo.update(todo_id, session.user_id, **updates)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return await todos.describe(todo)


@router.delete("/{todo_id}")
async def delete_todo(
    todo_id: int,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
) -> dict[str, bool]:
    deleted = await todo_repo.delete(todo_id, session.user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"success": True}


@router.post("/{todo_id}/tags")
async def add_tag_to_todo(
    todo_id: int,
    body: AddTagRequest,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> dict[str, bool]:
    if await todo_repo.get(todo_id, session.user_id) is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    if await tag_repo.get(body.tag_id, session.user_id) is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    await todo_repo.add_tag(todo_id, body.tag_id)
    return {"success": True}


@router.delete("/{todo_id}/tags")
async def remove_tag_from_todo(
    todo_id: int,
    tag_id: int,
    session: SessionData = Depends(require_auth),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
) -> dict[str, bool]:
    if await todo_repo.get(todo_id, session.user_id) is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    await todo_repo.remove_tag(todo_id, tag_id)
    return {"success": True}
