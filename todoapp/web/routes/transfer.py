"""Backup export/import and reminder routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from todoapp.exceptions import ImportFormatError
from todoapp.services.reminders import ReminderService
from todoapp.services.todos import TodoService
from todoapp.services.transfer import TransferService
from todoapp.utils.dates import utc_now
from todoapp.web.auth.session import SessionData, require_auth
from todoapp.web.dependencies import get_reminder_service, get_todo_service, get_transfer_service

router = APIRouter(prefix="/api", tags=["transfer"])


@router.get("/export")
async def export_data(
    session: SessionData = Depends(require_auth),
    transfer: TransferService = Depends(get_transfer_service),
) -> JSONResponse:
    """Download every todo and tag for the current user as JSON."""
    data = await transfer.export(session.user_id, session.username)
    filename = f"todos-backup-{utc_now().date().isoformat()}.json"
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_data(
    payload: Any = Body(...),
    session: SessionData = Depends(require_auth),
    transfer: TransferService = Depends(get_transfer_service),
) -> dict[str, Any]:
    try:
        imported = await transfer.import_backup(session.user_id, payload)
    except ImportFormatError as exc:
        raise HTTPException(status_code=400, detail="Invalid import data") from exc
    return {"success": True, "imported": imported}


@router.get("/reminders")
async def due_reminders(
    session: SessionData = Depends(require_auth),
    reminders: ReminderService = Depends(get_reminder_service),
    todos: TodoService = Depends(get_todo_service),
) -> list[dict[str, Any]]:
    """Todos whose reminder window is open now; each is marked as notified."""
    due = await reminders.collect_due(session.user_id)
    return [await todos.describe(todo) for todo in due]
