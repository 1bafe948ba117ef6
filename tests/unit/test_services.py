"""Unit tests for todo, template, transfer and reminder services."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from todoapp.exceptions import ImportFormatError, TemplateNotFoundError, TodoNotFoundError
from todoapp.models.database import Subtask, Todo
from todoapp.services.reminders import ReminderService, reminder_window_open
from todoapp.services.templates import TemplateService
from todoapp.services.todos import TodoService, calculate_progress
from todoapp.services.transfer import TransferService
from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
from todoapp.storage.repositories.tags import DatabaseTagRepository
from todoapp.storage.repositories.templates import DatabaseTemplateRepository
from todoapp.storage.repositories.todos import DatabaseTodoRepository
from todoapp.utils.dates import parse_due_date

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

TZ = "Asia/Singapore"


@pytest.mark.unit
class TestDueDates:
    def test_naive_value_is_local_time(self) -> None:
        parsed = parse_due_date("2026-03-01T09:00", TZ)
        assert parsed == datetime(2026, 3, 1, 1, 0, tzinfo=UTC)

    def test_aware_value_kept(self) -> None:
        parsed = parse_due_date("2026-03-01T09:00+00:00", TZ)
        assert parsed == datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_due_date("next tuesday", TZ)


@pytest.mark.unit
class TestProgress:
    def test_empty(self) -> None:
        assert calculate_progress([]) == {"completed": 0, "total": 0, "percentage": 0}

    def test_rounds_percentage(self) -> None:
        subtasks = [
            Subtask(todo_id=1, title="a", completed=True),
            Subtask(todo_id=1, title="b"),
            Subtask(todo_id=1, title="c"),
        ]
        assert calculate_progress(subtasks) == {"completed": 1, "total": 3, "percentage": 33}


def _services(engine: AsyncEngine):
    todo_repo = DatabaseTodoRepository(engine)
    subtask_repo = DatabaseSubtaskRepository(engine)
    tag_repo = DatabaseTagRepository(engine)
    template_repo = DatabaseTemplateRepository(engine)
    todo_service = TodoService(todo_repo, subtask_repo)
    templates = TemplateService(template_repo, todo_repo, subtask_repo, tag_repo, timezone=TZ)
    transfer = TransferService(todo_service, todo_repo, subtask_repo, tag_repo)
    return todo_repo, subtask_repo, tag_repo, todo_service, templates, transfer


@pytest.mark.unit
class TestTodoService:
    async def test_describe_includes_children(self, async_engine: AsyncEngine) -> None:
        todo_repo, subtask_repo, tag_repo, todo_service, _, _ = _services(async_engine)
        todo = await todo_repo.create(1, "Plan trip", "2026-06-01T10:00")
        step = await subtask_repo.create(todo.id, "Book flights")
        await subtask_repo.update(step.id, 1, completed=True)
        await subtask_repo.create(todo.id, "Book hotel")
        tag = await tag_repo.create(1, "travel")
        await todo_repo.add_tag(todo.id, tag.id)

        data = await todo_service.describe(todo)

        assert data["title"] == "Plan trip"
        assert [s["title"] for s in data["subtasks"]] == ["Book flights", "Book hotel"]
        assert [t["name"] for t in data["tags"]] == ["travel"]
        assert data["progress"] == {"completed": 1, "total": 2, "percentage": 50}


@pytest.mark.unit
class TestTemplateService:
    async def test_create_from_todo_snapshots_details(self, async_engine: AsyncEngine) -> None:
        todo_repo, subtask_repo, tag_repo, _, templates, _ = _services(async_engine)
        todo = await todo_repo.create(1, "Weekly review", "2026-03-04T09:00", priority="high")
        await subtask_repo.create(todo.id, "Inbox zero")
        tag = await tag_repo.create(1, "work")
        await todo_repo.add_tag(todo.id, tag.id)

        now = datetime(2026, 3, 1, 1, 0, tzinfo=UTC)  # 2026-03-01 09:00 local
        template = await templates.create_from_todo(1, "Review", todo.id, category="work", now=now)

        assert template.priority == "high"
        assert template.category == "work"
        assert template.due_date_offset == 3
        assert json.loads(template.subtasks_json) == [{"title": "Inbox zero"}]
        assert json.loads(template.tag_ids_json) == [tag.id]

    async def test_create_without_children(self, async_engine: AsyncEngine) -> None:
        todo_repo, _, _, _, templates, _ = _services(async_engine)
        todo = await todo_repo.create(1, "Bare", "not-a-date")
        template = await templates.create_from_todo(1, "Bare", todo.id)
        assert template.subtasks_json is None
        assert template.tag_ids_json is None
        assert template.due_date_offset == 0

    async def test_create_from_other_users_todo(self, async_engine: AsyncEngine) -> None:
        todo_repo, _, _, _, templates, _ = _services(async_engine)
        todo = await todo_repo.create(2, "Not mine", "2026-03-04T09:00")
        with pytest.raises(TodoNotFoundError):
            await templates.create_from_todo(1, "Steal", todo.id)

    async def test_instantiate(self, async_engine: AsyncEngine) -> None:
        todo_repo, subtask_repo, tag_repo, _, templates, _ = _services(async_engine)
        source = await todo_repo.create(1, "Weekly review", "2026-03-04T09:00", priority="low")
        await subtask_repo.create(source.id, "Inbox zero")
        keep = await tag_repo.create(1, "work")
        gone = await tag_repo.create(1, "old")
        await todo_repo.add_tag(source.id, keep.id)
        await todo_repo.add_tag(source.id, gone.id)
        template = await templates.create_from_todo(1, "Review", source.id)
        await tag_repo.delete(gone.id, 1)

        todo = await templates.instantiate(template.id, 1, "2026-03-11T09:00")

        assert todo.title == "Todo from Review"
        assert todo.priority == "low"
        assert todo.due_date == "2026-03-11T09:00"
        assert [s.title for s in await subtask_repo.list_for_todo(todo.id)] == ["Inbox zero"]
        assert [t.name for t in await todo_repo.tags_for_todo(todo.id)] == ["work"]

    async def test_instantiate_missing_template(self, async_engine: AsyncEngine) -> None:
        _, _, _, _, templates, _ = _services(async_engine)
        with pytest.raises(TemplateNotFoundError):
            await templates.instantiate(999, 1, "2026-03-11T09:00")


@pytest.mark.unit
class TestTransferService:
    async def test_export_shape(self, async_engine: AsyncEngine) -> None:
        todo_repo, _, tag_repo, _, _, transfer = _services(async_engine)
        await todo_repo.create(1, "Mine", "2026-03-04T09:00")
        await todo_repo.create(2, "Theirs", "2026-03-04T09:00")
        await tag_repo.create(1, "work")

        data = await transfer.export(1, "alice")

        assert data["version"] == "1.0"
        assert data["user"] == {"username": "alice"}
        assert [t["title"] for t in data["todos"]] == ["Mine"]
        assert [t["name"] for t in data["tags"]] == ["work"]
        assert "export_date" in data

    async def test_import_remaps_tags(self, async_engine: AsyncEngine) -> None:
        todo_repo, subtask_repo, tag_repo, _, _, transfer = _services(async_engine)
        existing = await tag_repo.create(1, "work", color="#000000")
        payload = {
            "version": "1.0",
            "todos": [
                {
                    "title": "Imported",
                    "due_date": "2026-03-04T09:00",
                    "priority": "high",
                    "completed": True,
                    "subtasks": [{"title": "step", "completed": True}],
                    "tags": [{"id": 10}, {"id": 11}, {"id": 99}],
                }
            ],
            "tags": [
                {"id": 10, "name": "work", "color": "#FFFFFF"},
                {"id": 11, "name": "home", "color": "#3B82F6"},
            ],
        }

        result = await transfer.import_backup(1, payload)

        assert result == {"todos": 1, "tags": 2}
        tags = {t.name: t for t in await tag_repo.list_for_user(1)}
        assert set(tags) == {"work", "home"}
        assert tags["work"].id == existing.id
        assert tags["work"].color == "#000000"

        (todo,) = await todo_repo.list_for_user(1)
        assert todo.completed is True
        assert todo.completed_at is not None
        assert [s.completed for s in await subtask_repo.list_for_todo(todo.id)] == [True]
        assert [t.name for t in await todo_repo.tags_for_todo(todo.id)] == ["home", "work"]

    async def test_export_then_import_into_another_account(
        self, async_engine: AsyncEngine
    ) -> None:
        todo_repo, subtask_repo, tag_repo, _, _, transfer = _services(async_engine)
        todo = await todo_repo.create(1, "Carry over", "2026-03-04T09:00")
        await subtask_repo.create(todo.id, "step")
        tag = await tag_repo.create(1, "work")
        await todo_repo.add_tag(todo.id, tag.id)

        backup = await transfer.export(1, "alice")
        await transfer.import_backup(2, backup)

        (copied,) = await todo_repo.list_for_user(2)
        assert copied.title == "Carry over"
        assert [t.name for t in await todo_repo.tags_for_todo(copied.id)] == ["work"]

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {"tags": []},
            {"todos": "nope"},
            {"todos": [{"title": "", "due_date": "2026-03-04"}]},
            {"todos": [{"title": "x", "due_date": "2026-03-04", "priority": "urgent"}]},
        ],
    )
    async def test_invalid_payload(self, async_engine: AsyncEngine, payload) -> None:
        todo_repo, _, _, _, _, transfer = _services(async_engine)
        with pytest.raises(ImportFormatError):
            await transfer.import_backup(1, payload)
        assert await todo_repo.list_for_user(1) == []


@pytest.mark.unit
class TestReminders:
    def test_window(self) -> None:
        todo = Todo(user_id=1, title="t", due_date="2026-03-01T09:00", reminder_minutes=30)
        due = datetime(2026, 3, 1, 1, 0, tzinfo=UTC)
        assert reminder_window_open(todo, due - timedelta(minutes=30), TZ) is True
        assert reminder_window_open(todo, due - timedelta(minutes=31), TZ) is False
        assert reminder_window_open(todo, due, TZ) is False

    def test_no_reminder_configured(self) -> None:
        todo = Todo(user_id=1, title="t", due_date="2026-03-01T09:00")
        assert reminder_window_open(todo, datetime(2026, 3, 1, 0, 59, tzinfo=UTC), TZ) is False

    async def test_collect_due_marks_notified(self, async_engine: AsyncEngine) -> None:
        todo_repo = DatabaseTodoRepository(async_engine)
        service = ReminderService(todo_repo, timezone=TZ)
        due_soon = await todo_repo.create(1, "soon", "2026-03-01T09:00", reminder_minutes=60)
        await todo_repo.create(1, "later", "2026-03-02T09:00", reminder_minutes=60)
        await todo_repo.create(1, "no reminder", "2026-03-01T09:00")
        now = datetime(2026, 3, 1, 0, 30, tzinfo=UTC)

        first = await service.collect_due(1, now=now)
        assert [t.id for t in first] == [due_soon.id]

        # Not repeated within the re-notify interval
        assert await service.collect_due(1, now=now + timedelta(minutes=10)) == []

    async def test_completed_todos_skipped(self, async_engine: AsyncEngine) -> None:
        todo_repo = DatabaseTodoRepository(async_engine)
        service = ReminderService(todo_repo, timezone=TZ)
        todo = await todo_repo.create(1, "soon", "2026-03-01T09:00", reminder_minutes=60)
        await todo_repo.update(todo.id, 1, completed=True)
        assert await service.collect_due(1, now=datetime(2026, 3, 1, 0, 30, tzinfo=UTC)) == []
