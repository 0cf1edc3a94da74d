from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from callboard.exceptions import ValidationError
from callboard.routes.deps import current_user
from callboard.services import ai

router = APIRouter(prefix="/api/summaries", tags=["summaries"])


@router.post("")
def summarize(payload: dict[str, Any] = Body(...), user_id: str = Depends(current_user)):
    text = payload.get("conversationText")
    if not text or not isinstance(text, str):
        raise ValidationError(["Conversation text is required"])
    api_key = ai.llm_key_for_user(user_id)
    return {"summary": ai.summarize_conversation(api_key, text)}
