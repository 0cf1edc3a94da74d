"""Field rules for customer and note payloads.

Validators never raise. They collect every violated rule so a caller can
show all problems at once, then decide whether to raise ``ValidationError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from callboard.services.phone import is_valid_e164

CUSTOMER_STATUSES = ("active", "inactive", "blocked")
NOTE_PRIORITIES = ("low", "medium", "high")

_EMAIL_REGEX = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[str] = field(default_factory=list)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def validate_customer(payload: Mapping[str, Any], creating: bool = True) -> ValidationResult:
    """Check a customer payload. Phone number is only required on create."""
    errors: list[str] = []

    phone = payload.get("phone_number")
    if phone is None or phone == "":
        if creating:
            errors.append("Phone number is required")
    elif not is_valid_e164(phone):
        errors.append("Phone number must be in E.164 format (e.g., +1234567890)")

    email = payload.get("email")
    if email and not (isinstance(email, str) and _EMAIL_REGEX.fullmatch(email)):
        errors.append("Invalid email format")

    status = payload.get("status")
    if status is not None and status not in CUSTOMER_STATUSES:
        errors.append(f"Status must be one of: {', '.join(CUSTOMER_STATUSES)}")

    tags = payload.get("tags")
    if tags is not None and not _is_sequence(tags):
        errors.append("Tags must be an array of strings")

    return ValidationResult(valid=not errors, errors=errors)


def validate_note(payload: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []

    if not payload.get("customer_id"):
        errors.append("Customer ID is required")
    if not payload.get("title"):
        errors.append("Title is required")
    if not payload.get("content"):
        errors.append("Content is required")

    priority = payload.get("priority")
    if priority is not None and priority not in NOTE_PRIORITIES:
        errors.append(f"Priority must be one of: {', '.join(NOTE_PRIORITIES)}")

    tags = payload.get("tags")
    if tags is not None and not _is_sequence(tags):
        errors.append("Tags must be an array of strings")

    return ValidationResult(valid=not errors, errors=errors)


def note_defaults(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a note payload with priority and pin defaults filled in."""
    data = dict(payload)
    data["priority"] = data.get("priority") or "medium"
    data["is_pinned"] = bool(data.get("is_pinned", False))
    return data
