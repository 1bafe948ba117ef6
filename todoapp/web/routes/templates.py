"""Todo template API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from todoapp.exceptions import TemplateNotFoundError, TodoNotFoundError
from todoapp.services.templates import TemplateService
from todoapp.services.todos import TodoService
from todoapp.storage.repositories.templates import DatabaseTemplateRepository
from todoapp.web.auth.session import SessionData, require_auth
from todoapp.web.dependencies import get_template_repo, get_template_service, get_todo_service

router = APIRouter(prefix="/api/templates", tags=["templates"])


class CreateTemplateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    todo_id: int
    category: str | None = None


class InstantiateTemplateRequest(BaseModel):
    due_date: str = Field(min_length=1)


@router.get("")
async def list_templates(
    session: SessionData = Depends(require_auth),
    template_repo: DatabaseTemplateRepository = Depends(get_template_repo),
) -> list[dict[str, Any]]:
    return [t.model_dump() for t in await template_repo.list_for_user(session.user_id)]


@router.post("", status_code=201)
async def create_template(
    body: CreateTemplateRequest,
    session: SessionData = Depends(require_auth),
    templates: TemplateService = Depends(get_template_service),
) -> dict[str, Any]:
    """Save an existing todo as a reusable template."""
    try:
        template = await templates.create_from_todo(
            session.user_id, body.name, body.todo_id, category=body.category
        )
    except TodoNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Todo not found") from exc
    return template.model_dump()


@router.post("/{template_id}/instantiate", status_code=201)
async def instantiate_template(
    template_id: int,
    body: InstantiateTemplateRequest,
    session: SessionData = Depends(require_auth),
    templates: TemplateService = Depends(get_template_service),
    todos: TodoService = Depends(get_todo_service),
) -> dict[str, Any]:
    """Create a new todo from a template."""
    try:
        todo = await templates.instantiate(template_id, session.user_id, body.due_date)
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Template not found") from exc
    return await todos.describe(todo)


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    session: SessionData = Depends(require_auth),
    template_repo: DatabaseTemplateRepository = Depends(get_template_repo),
) -> dict[str, bool]:
    if not await template_repo.delete(template_id, session.user_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return {"success": True}
