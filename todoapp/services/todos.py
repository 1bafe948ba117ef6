"""Todo composition: todos with their subtasks, tags and progress."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from todoapp.models.database import require_id

if TYPE_CHECKING:
    from todoapp.models.database import Subtask, Todo
    from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
    from todoapp.storage.repositories.todos import DatabaseTodoRepository


def calculate_progress(subtasks: list[Subtask]) -> dict[str, int]:
    """Completed/total counts and a rounded percentage (0 when there are no subtasks)."""
    total = len(subtasks)
    completed = sum(1 for s in subtasks if s.completed)
    percentage = round(completed / total * 100) if total else 0
    return {"completed": completed, "total": total, "percentage": percentage}


class TodoService:
    def __init__(
        self,
        todo_repo: DatabaseTodoRepository,
        subtask_repo: DatabaseSubtaskRepository,
    ) -> None:
        self._todo_repo = todo_repo
        self._subtask_repo = subtask_repo

    async def describe(self, todo: Todo) -> dict[str, Any]:
        """Serialize a todo together with its subtasks, tags and progress."""
        todo_id = require_id(todo)
        subtasks = await self._subtask_repo.list_for_todo(todo_id)
        tags = await self._todo_repo.tags_for_todo(todo_id)
        data = todo.model_dump()
        data["subtasks"] = [s.model_dump() for s in subtasks]
        data["tags"] = [t.model_dump() for t in tags]
        data["progress"] = calculate_progress(subtasks)
        return data

    async def list_detailed(self, user_id: int) -> list[dict[str, Any]]:
        todos = await self._todo_repo.list_for_user(user_id)
        return [await self.describe(todo) for todo in todos]
