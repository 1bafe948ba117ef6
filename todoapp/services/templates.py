"""Todo templates: snapshot a todo, then stamp out new todos from it."""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING

import structlog

from todoapp.exceptions import TemplateNotFoundError, TodoNotFoundError
from todoapp.models.database import Template, require_id
from todoapp.utils.dates import parse_due_date, utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from todoapp.models.database import Todo
    from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
    from todoapp.storage.repositories.tags import DatabaseTagRepository
    from todoapp.storage.repositories.templates import DatabaseTemplateRepository
    from todoapp.storage.repositories.todos import DatabaseTodoRepository

logger = structlog.get_logger(__name__)

_SECONDS_PER_DAY = 86400


class TemplateService:
    def __init__(
        self,
        template_repo: DatabaseTemplateRepository,
        todo_repo: DatabaseTodoRepository,
        subtask_repo: DatabaseSubtaskRepository,
        tag_repo: DatabaseTagRepository,
        timezone: str,
    ) -> None:
        self._template_repo = template_repo
        self._todo_repo = todo_repo
        self._subtask_repo = subtask_repo
        self._tag_repo = tag_repo
        self._timezone = timezone

    async def create_from_todo(
        self,
        user_id: int,
        name: str,
        todo_id: int,
        category: str | None = None,
        now: datetime | None = None,
    ) -> Template:
        """Capture a todo's priority, subtask titles, tags and relative due date."""
        todo = await self._todo_repo.get(todo_id, user_id)
        if todo is None:
            msg = f"Todo not found: {todo_id}"
            raise TodoNotFoundError(msg)

        subtasks = await self._subtask_repo.list_for_todo(todo_id)
        tags = await self._todo_repo.tags_for_todo(todo_id)

        template = Template(
            user_id=user_id,
            name=name,
            category=category,
            due_date_offset=self._days_until(todo.due_date, now or utc_now()),
            priority=todo.priority,
            subtasks_json=json.dumps([{"title": s.title} for s in subtasks]) if subtasks else None,
            tag_ids_json=json.dumps([t.id for t in tags]) if tags else None,
        )
        return await self._template_repo.create(template)

    async def instantiate(self, template_id: int, user_id: int, due_date: str) -> Todo:
        template = await self._template_repo.get(template_id, user_id)
        if template is None:
            msg = f"Template not found: {template_id}"
            raise TemplateNotFoundError(msg)

        todo = await self._todo_repo.create(
            user_id=user_id,
            title=f"Todo from {template.name}",
            due_date=due_date,
            priority=template.priority,
        )
        todo_id = require_id(todo)

        for subtask in _load_json_list(template.subtasks_json, "subtasks", template_id):
            if isinstance(subtask, dict) and subtask.get("title"):
                await self._subtask_repo.create(todo_id, str(subtask["title"]))

        for tag_id in _load_json_list(template.tag_ids_json, "tag_ids", template_id):
            # Tags deleted since the template was saved are skipped.
            if isinstance(tag_id, int) and await self._tag_repo.get(tag_id, user_id):
                await self._todo_repo.add_tag(todo_id, tag_id)

        logger.info("template_instantiated", template_id=template_id, todo_id=todo_id)
        return todo

    def _days_until(self, due_date: str, now: datetime) -> int:
        try:
            due = parse_due_date(due_date, self._timezone)
        except ValueError:
            return 0
        return math.ceil((due - now).total_seconds() / _SECONDS_PER_DAY)


def _load_json_list(raw: str | None, field: str, template_id: int) -> list[object]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("template_json_invalid", field=field, template_id=template_id)
        return []
    return value if isinstance(value, list) else []
