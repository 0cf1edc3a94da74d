from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from callboard.exceptions import ValidationError
from callboard.routes.deps import current_user
from callboard.store import masked_credentials, save_credentials

router = APIRouter(prefix="/api/settings", tags=["settings"])

_KEY_LABELS = {
    "vapi_private_key": "Invalid Vapi private key",
    "vapi_public_key": "Invalid Vapi public key",
    "llm_api_key": "Invalid LLM API key format",
}


@router.get("/api-keys")
async def get_api_keys(user_id: str = Depends(current_user)):
    return {"apiKeys": masked_credentials(user_id)}


@router.post("/api-keys")
async def update_api_keys(
    payload: dict[str, Any] = Body(...), user_id: str = Depends(current_user)
):
    errors = [
        message
        for name, message in _KEY_LABELS.items()
        if payload.get(name) and not isinstance(payload[name], str)
    ]
    if errors:
        raise ValidationError(errors)

    save_credentials(user_id, **{name: payload.get(name) for name in _KEY_LABELS})
    return {"success": True}
