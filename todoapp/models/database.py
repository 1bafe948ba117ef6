"""SQLModel database table models."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


# Timestamps are stored as naive UTC.
_Timestamp = DateTime(timezone=False)


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for the naive `_Timestamp` columns."""
    return datetime.now(UTC).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str | None = None  # None for passkey-only users
    created_at: datetime = Field(default_factory=_utc_now, sa_type=_Timestamp)


class Authenticator(SQLModel, table=True):
    __tablename__ = "authenticators"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    credential_id: str = Field(index=True, unique=True)  # base64url
    public_key: bytes
    counter: int = Field(default=0)
    transports: str = Field(default="[]")  # JSON list of transport hints
    created_at: datetime = Field(default_factory=_utc_now, sa_type=_Timestamp)
    last_used_at: datetime | None = Field(default=None, sa_type=_Timestamp)


# ---------------------------------------------------------------------------
# Todo data
# ---------------------------------------------------------------------------


class Todo(SQLModel, table=True):
    __tablename__ = "todos"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str
    due_date: str  # ISO-8601
    priority: str = Field(default="medium")  # high | medium | low
    completed: bool = Field(default=False)
    completed_at: datetime | None = Field(default=None, sa_type=_Timestamp)
    recurrence_pattern: str | None = None  # daily | weekly | monthly | yearly
    reminder_minutes: int | None = None
    last_notification_sent: datetime | None = Field(default=None, sa_type=_Timestamp)
    created_at: datetime = Field(default_factory=_utc_now, sa_type=_Timestamp)


class Subtask(SQLModel, table=True):
    __tablename__ = "subtasks"

    id: int | None = Field(default=None, primary_key=True)
    todo_id: int = Field(foreign_key="todos.id", index=True)
    title: str
    completed: bool = Field(default=False)
    position: int = Field(default=0)


class Tag(SQLModel, table=True):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tags_user_name"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    name: str
    color: str


class TodoTag(SQLModel, table=True):
    __tablename__ = "todo_tags"

    todo_id: int = Field(foreign_key="todos.id", primary_key=True)
    tag_id: int = Field(foreign_key="tags.id", primary_key=True)


class Template(SQLModel, table=True):
    __tablename__ = "templates"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    name: str
    category: str | None = None
    due_date_offset: int = Field(default=0)  # days from instantiation
    priority: str = Field(default="medium")
    subtasks_json: str | None = None  # [{"title": ...}, ...]
    tag_ids_json: str | None = None  # [tag_id, ...]
    created_at: datetime = Field(default_factory=_utc_now, sa_type=_Timestamp)


def require_id(row: User | Authenticator | Todo | Subtask | Tag | Template) -> int:
    """Return the primary key of a row that has been flushed to the database."""
    if row.id is None:
        msg = f"{type(row).__name__} has not been persisted"
        raise ValueError(msg)
    return row.id
