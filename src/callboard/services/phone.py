from __future__ import annotations

import re

# Stricter gate for numbers typed in directly; normalize() is the gate for
# contact feed ingestion.
E164_REGEX = re.compile(r"\+[1-9]\d{1,14}", re.ASCII)

_NON_DIGITS = re.compile(r"\D", re.ASCII)


def normalize(raw: str | None) -> str | None:
    """Convert an arbitrary phone string to E.164, or None if it can't be."""
    if not raw:
        return None

    digits = _NON_DIGITS.sub("", raw)

    if len(digits) < 10:
        return None

    # North American local number
    if len(digits) == 10:
        return f"+1{digits}"

    # North American number with country code
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"

    # Already carries an international country code
    if 11 <= len(digits) <= 15:
        return f"+{digits}"

    return None


def is_valid_e164(phone: str | None) -> bool:
    if not isinstance(phone, str):
        return False
    return E164_REGEX.fullmatch(phone) is not None
