"""Single-record customer and note operations.

Unlike the contact sync, nothing here downgrades errors: validation,
not-found, conflict and store failures all propagate to the caller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from callboard.exceptions import ConflictError, ValidationError
from callboard.services.validation import (
    NOTE_PRIORITIES,
    note_defaults,
    validate_customer,
    validate_note,
)
from callboard.store import RecordStore

logger = logging.getLogger(__name__)

_CUSTOMER_FIELDS = ("phone_number", "name", "email", "company", "tags", "status",
                    "external_id", "external_data")
_CUSTOMER_UPDATE_FIELDS = ("phone_number", "name", "email", "company", "tags", "status")
_NOTE_FIELDS = ("customer_id", "call_id", "title", "content", "priority", "tags", "is_pinned")
_NOTE_UPDATE_FIELDS = ("title", "content", "priority", "tags", "is_pinned")

DUPLICATE_PHONE = "A customer with this phone number already exists"


def _pick(payload: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    return {k: payload[k] for k in fields if payload.get(k) is not None}


def create_customer(user_id: str, payload: Mapping[str, Any], db_path: Path | None = None) -> dict:
    data = _pick(payload, _CUSTOMER_FIELDS)
    data.setdefault("status", "active")
    data.setdefault("external_data", {})

    result = validate_customer(data, creating=True)
    if not result.valid:
        raise ValidationError(result.errors)

    store = RecordStore("customers", user_id, db_path)
    if store.find_one(phone_number=data["phone_number"]):
        raise ConflictError(DUPLICATE_PHONE)

    customer = store.insert(data)
    logger.info("Created customer %s for user %s", customer["id"], user_id)
    return customer


def update_customer(
    user_id: str, customer_id: int, payload: Mapping[str, Any], db_path: Path | None = None
) -> dict:
    data = _pick(payload, _CUSTOMER_UPDATE_FIELDS)

    result = validate_customer(data, creating=False)
    if not result.valid:
        raise ValidationError(result.errors)

    store = RecordStore("customers", user_id, db_path)
    store.get(customer_id)

    if "phone_number" in data:
        duplicate = store.find_one(phone_number=data["phone_number"])
        if duplicate and duplicate["id"] != customer_id:
            raise ConflictError(DUPLICATE_PHONE)

    return store.update(customer_id, data)


def delete_customer(user_id: str, customer_id: int, db_path: Path | None = None) -> None:
    """Delete a customer; its notes go with it."""
    RecordStore("customers", user_id, db_path).delete(customer_id)
    logger.info("Deleted customer %s for user %s", customer_id, user_id)


def create_note(user_id: str, payload: Mapping[str, Any], db_path: Path | None = None) -> dict:
    result = validate_note(payload)
    if not result.valid:
        raise ValidationError(result.errors)

    data = note_defaults(_pick(payload, _NOTE_FIELDS))
    customer = RecordStore("customers", user_id, db_path).get(data["customer_id"])

    note = RecordStore("notes", user_id, db_path).insert(data)
    note["customer"] = customer
    return note


def update_note(
    user_id: str, note_id: int, payload: Mapping[str, Any], db_path: Path | None = None
) -> dict:
    data = _pick(payload, _NOTE_UPDATE_FIELDS)
    errors = []
    for required in ("title", "content"):
        if required in payload and not payload[required]:
            errors.append(f"{required.capitalize()} cannot be empty")
    if "priority" in data and data["priority"] not in NOTE_PRIORITIES:
        errors.append(f"Priority must be one of: {', '.join(NOTE_PRIORITIES)}")
    if errors:
        raise ValidationError(errors)

    notes = RecordStore("notes", user_id, db_path)
    note = notes.update(note_id, data) if data else notes.get(note_id)
    note["customer"] = RecordStore("customers", user_id, db_path).find_one(id=note["customer_id"])
    return note


def toggle_pin(user_id: str, note_id: int, db_path: Path | None = None) -> dict:
    notes = RecordStore("notes", user_id, db_path)
    note = notes.get(note_id)
    return update_note(user_id, note_id, {"is_pinned": not note["is_pinned"]}, db_path)


def delete_note(user_id: str, note_id: int, db_path: Path | None = None) -> None:
    RecordStore("notes", user_id, db_path).delete(note_id)
