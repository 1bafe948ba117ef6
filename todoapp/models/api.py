"""Backup (export/import) document schemas."""

from pydantic import BaseModel, Field

from todoapp.types import Priority, RecurrencePattern

BACKUP_VERSION = "1.0"


class BackupTag(BaseModel):
    id: int
    name: str = Field(min_length=1)
    color: str | None = None


class BackupTagRef(BaseModel):
    id: int


class BackupSubtask(BaseModel):
    title: str = Field(min_length=1)
    completed: bool = False


class BackupTodo(BaseModel):
    id: int | None = None
    title: str = Field(min_length=1)
    due_date: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    reminder_minutes: int | None = None
    subtasks: list[BackupSubtask] = []
    tags: list[BackupTagRef] = []


class BackupDocument(BaseModel):
    version: str = BACKUP_VERSION
    todos: list[BackupTodo]
    tags: list[BackupTag] = []
