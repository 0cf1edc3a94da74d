from __future__ import annotations

from fastapi import APIRouter, Depends

from callboard.routes.deps import current_user
from callboard.services.sync import sync_contacts

router = APIRouter(prefix="/api/crm", tags=["sync"])


@router.post("/sync-airtable")
def sync_airtable(user_id: str = Depends(current_user)):
    result = sync_contacts(user_id)
    return {
        "success": True,
        "summary": {
            "total": result.total,
            "created": result.created,
            "updated": result.updated,
            "skipped": result.skipped,
        },
        "skippedRecords": result.skipped_records or None,
    }
