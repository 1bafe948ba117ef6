"""Due-reminder selection for todos with a reminder lead time."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from todoapp.models.database import require_id
from todoapp.utils.dates import parse_due_date, utc_now

if TYPE_CHECKING:
    from todoapp.models.database import Todo
    from todoapp.storage.repositories.todos import DatabaseTodoRepository

logger = structlog.get_logger(__name__)

RENOTIFY_AFTER = timedelta(hours=1)


def reminder_window_open(todo: Todo, now: datetime, tz_name: str) -> bool:
    """True when ``due - reminder_minutes <= now < due``."""
    if todo.reminder_minutes is None:
        return False
    try:
        due = parse_due_date(todo.due_date, tz_name)
    except ValueError:
        logger.warning("todo_due_date_invalid", todo_id=todo.id, due_date=todo.due_date)
        return False
    return due - timedelta(minutes=todo.reminder_minutes) <= now < due


class ReminderService:
    def __init__(self, todo_repo: DatabaseTodoRepository, timezone: str) -> None:
        self._todo_repo = todo_repo
        self._timezone = timezone

    async def collect_due(self, user_id: int, now: datetime | None = None) -> list[Todo]:
        """Return todos whose reminder should fire now and stamp them as notified."""
        now = now or utc_now()
        naive_now = now.astimezone(UTC).replace(tzinfo=None)
        candidates = await self._todo_repo.list_reminder_candidates(
            user_id, notified_before=naive_now - RENOTIFY_AFTER
        )
        due = [t for t in candidates if reminder_window_open(t, now, self._timezone)]
        for todo in due:
            await self._todo_repo.mark_notified(require_id(todo), naive_now)
            todo.last_notification_sent = naive_now
        if due:
            logger.info("reminders_due", user_id=user_id, count=len(due))
        return due
