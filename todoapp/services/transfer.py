"""Export a user's todos and tags to a backup document, and import one back."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from todoapp.exceptions import ImportFormatError
from todoapp.models.api import BACKUP_VERSION, BackupDocument
from todoapp.models.database import require_id
from todoapp.utils.dates import utc_now

if TYPE_CHECKING:
    from todoapp.services.todos import TodoService
    from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
    from todoapp.storage.repositories.tags import DatabaseTagRepository
    from todoapp.storage.repositories.todos import DatabaseTodoRepository

logger = structlog.get_logger(__name__)


class TransferService:
    def __init__(
        self,
        todo_service: TodoService,
        todo_repo: DatabaseTodoRepository,
        subtask_repo: DatabaseSubtaskRepository,
        tag_repo: DatabaseTagRepository,
    ) -> None:
        self._todo_service = todo_service
        self._todo_repo = todo_repo
        self._subtask_repo = subtask_repo
        self._tag_repo = tag_repo

    async def export(self, user_id: int, username: str) -> dict[str, Any]:
        todos = await self._todo_service.list_detailed(user_id)
        tags = await self._tag_repo.list_for_user(user_id)
        return {
            "version": BACKUP_VERSION,
            "export_date": utc_now().isoformat(),
            "user": {"username": username},
            "todos": todos,
            "tags": [t.model_dump() for t in tags],
        }

    async def import_backup(self, user_id: int, payload: Any) -> dict[str, int]:
        """Recreate todos, subtasks and tags from a backup.

        Tags are matched to the user's existing tags by name; todo-tag links
        are remapped through the resulting old-ID to new-ID table.
        """
        try:
            document = BackupDocument.model_validate(payload)
        except ValidationError as exc:
            msg = "Invalid import data"
            raise ImportFormatError(msg) from exc

        existing = {t.name: t for t in await self._tag_repo.list_for_user(user_id)}
        tag_mapping: dict[int, int] = {}
        for backup_tag in document.tags:
            tag = existing.get(backup_tag.name)
            if tag is None:
                tag = await self._tag_repo.create(user_id, backup_tag.name, backup_tag.color)
                existing[tag.name] = tag
            tag_mapping[backup_tag.id] = require_id(tag)

        for backup_todo in document.todos:
            todo = await self._todo_repo.create(
                user_id=user_id,
                title=backup_todo.title,
                due_date=backup_todo.due_date,
                priority=backup_todo.priority.value,
                recurrence_pattern=(
                    backup_todo.recurrence_pattern.value if backup_todo.recurrence_pattern else None
                ),
                reminder_minutes=backup_todo.reminder_minutes,
            )
            todo_id = require_id(todo)
            if backup_todo.completed:
                await self._todo_repo.update(todo_id, user_id, completed=True)

            for backup_subtask in backup_todo.subtasks:
                subtask = await self._subtask_repo.create(todo_id, backup_subtask.title)
                if backup_subtask.completed:
                    await self._subtask_repo.update(require_id(subtask), user_id, completed=True)

            for ref in backup_todo.tags:
                new_tag_id = tag_mapping.get(ref.id)
                if new_tag_id is not None:
                    await self._todo_repo.add_tag(todo_id, new_tag_id)

        logger.info(
            "backup_imported",
            user_id=user_id,
            todos=len(document.todos),
            tags=len(tag_mapping),
        )
        return {"todos": len(document.todos), "tags": len(tag_mapping)}
