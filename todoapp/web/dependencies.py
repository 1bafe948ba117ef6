"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine  # noqa: TC002  (resolved by FastAPI at runtime)

from todoapp.config.settings import get_settings
from todoapp.services.reminders import ReminderService
from todoapp.services.templates import TemplateService
from todoapp.services.todos import TodoService
from todoapp.services.transfer import TransferService
from todoapp.storage.database import get_engine
from todoapp.storage.repositories.authenticators import DatabaseAuthenticatorRepository
from todoapp.storage.repositories.subtasks import DatabaseSubtaskRepository
from todoapp.storage.repositories.tags import DatabaseTagRepository
from todoapp.storage.repositories.templates import DatabaseTemplateRepository
from todoapp.storage.repositories.todos import DatabaseTodoRepository
from todoapp.storage.repositories.users import DatabaseUserRepository
from todoapp.web.auth.challenge_store import InMemoryChallengeStore
from todoapp.web.auth.passkey_service import PasskeyService
from todoapp.web.auth.passwords import PasswordAuthService

# Outstanding WebAuthn challenges for this process, shared by every request
challenge_store = InMemoryChallengeStore(default_ttl_seconds=get_settings().challenge_ttl_seconds)


def provide_engine() -> AsyncEngine:
    """Database engine dependency (overridden in tests)."""
    return get_engine()


def provide_challenge_store() -> InMemoryChallengeStore:
    return challenge_store


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


def get_user_repo(engine: AsyncEngine = Depends(provide_engine)) -> DatabaseUserRepository:
    return DatabaseUserRepository(engine)


def get_authenticator_repo(
    engine: AsyncEngine = Depends(provide_engine),
) -> DatabaseAuthenticatorRepository:
    return DatabaseAuthenticatorRepository(engine)


def get_todo_repo(engine: AsyncEngine = Depends(provide_engine)) -> DatabaseTodoRepository:
    return DatabaseTodoRepository(engine)


def get_subtask_repo(engine: AsyncEngine = Depends(provide_engine)) -> DatabaseSubtaskRepository:
    return DatabaseSubtaskRepository(engine)


def get_tag_repo(engine: AsyncEngine = Depends(provide_engine)) -> DatabaseTagRepository:
    return DatabaseTagRepository(engine)


def get_template_repo(
    engine: AsyncEngine = Depends(provide_engine),
) -> DatabaseTemplateRepository:
    return DatabaseTemplateRepository(engine)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_passkey_service(
    request: Request,
    user_repo: DatabaseUserRepository = Depends(get_user_repo),
    authenticator_repo: DatabaseAuthenticatorRepository = Depends(get_authenticator_repo),
    challenges: InMemoryChallengeStore = Depends(provide_challenge_store),
) -> PasskeyService:
    """Build a PasskeyService whose RP ID and origin match this request."""
    settings = get_settings()
    host = request.headers.get("host")
    return PasskeyService(
        authenticator_repo=authenticator_repo,
        user_repo=user_repo,
        challenges=challenges,
        rp_id=settings.resolve_rp_id(host),
        rp_name=settings.rp_name,
        origin=settings.resolve_origin(request.url.scheme, host),
        timeout_ms=settings.registration_timeout_ms,
    )


def get_password_service(
    user_repo: DatabaseUserRepository = Depends(get_user_repo),
) -> PasswordAuthService:
    return PasswordAuthService(user_repo)


def get_todo_service(
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
) -> TodoService:
    return TodoService(todo_repo, subtask_repo)


def get_template_service(
    template_repo: DatabaseTemplateRepository = Depends(get_template_repo),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> TemplateService:
    return TemplateService(
        template_repo, todo_repo, subtask_repo, tag_repo, timezone=get_settings().timezone
    )


def get_transfer_service(
    todo_service: TodoService = Depends(get_todo_service),
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
    subtask_repo: DatabaseSubtaskRepository = Depends(get_subtask_repo),
    tag_repo: DatabaseTagRepository = Depends(get_tag_repo),
) -> TransferService:
    return TransferService(todo_service, todo_repo, subtask_repo, tag_repo)


def get_reminder_service(
    todo_repo: DatabaseTodoRepository = Depends(get_todo_repo),
) -> ReminderService:
    return ReminderService(todo_repo, timezone=get_settings().timezone)
