from __future__ import annotations

from fastapi import Header, HTTPException


def current_user(x_user_id: str | None = Header(None)) -> str:
    """The authenticated user id, set by the auth proxy in front of the app."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
