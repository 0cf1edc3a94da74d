from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from callboard.routes.deps import current_user
from callboard.services import crm
from callboard.store import search_notes

router = APIRouter(prefix="/api/crm/notes", tags=["notes"])


@router.get("")
async def list_notes(
    customer_id: int | None = None,
    search: str | None = None,
    limit: int = 50,
    user_id: str = Depends(current_user),
):
    return {"notes": search_notes(user_id, customer_id, search, limit)}


@router.post("", status_code=201)
async def create_note(payload: dict[str, Any] = Body(...), user_id: str = Depends(current_user)):
    return {"note": crm.create_note(user_id, payload)}


@router.patch("/{note_id}")
async def update_note(
    note_id: int,
    payload: dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
):
    return {"note": crm.update_note(user_id, note_id, payload)}


@router.post("/{note_id}/pin")
async def toggle_pin(note_id: int, user_id: str = Depends(current_user)):
    return {"note": crm.toggle_pin(user_id, note_id)}


@router.delete("/{note_id}")
async def delete_note(note_id: int, user_id: str = Depends(current_user)):
    crm.delete_note(user_id, note_id)
    return {"success": True}
