from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from callboard.routes.deps import current_user
from callboard.services import crm
from callboard.services.validation import CUSTOMER_STATUSES
from callboard.store import RecordStore, search_customers

router = APIRouter(prefix="/api/crm/customers", tags=["customers"])


@router.get("")
async def list_customers(
    search: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    user_id: str = Depends(current_user),
):
    if status not in CUSTOMER_STATUSES:
        status = None
    customers, total = search_customers(user_id, search, status, limit, offset)
    return {
        "customers": customers,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": total > offset + limit,
        },
    }


@router.post("", status_code=201)
async def create_customer(
    payload: dict[str, Any] = Body(...), user_id: str = Depends(current_user)
):
    return {"customer": crm.create_customer(user_id, payload)}


@router.get("/{customer_id}")
async def get_customer(customer_id: int, user_id: str = Depends(current_user)):
    return {"customer": RecordStore("customers", user_id).get(customer_id)}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    payload: dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
):
    return {"customer": crm.update_customer(user_id, customer_id, payload)}


@router.delete("/{customer_id}")
async def delete_customer(customer_id: int, user_id: str = Depends(current_user)):
    crm.delete_customer(user_id, customer_id)
    return {"message": "Customer deleted successfully"}
