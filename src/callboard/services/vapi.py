"""Voice platform client: calls, assistants and chats.

Raw payloads are loosely typed upstream, so every record is parsed into a
dataclass here and anything that doesn't fit raises ``UpstreamFormatError``
before it reaches the analytics code.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

import httpx

from callboard.exceptions import CredentialMissing, UpstreamFormatError
from callboard.models import Assistant, CallRecord, Chat, ChatMessage, Message, Page
from callboard.services.http import JsonApiClient
from callboard.store import get_credentials

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.vapi.ai"
MAX_PAGES = 1000


@dataclass
class CallFilters:
    limit: int = 50
    assistant_id: str | None = None
    created_at_gt: datetime | str | None = None
    created_at_lt: datetime | str | None = None

    def params(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "assistantId": self.assistant_id or None,
            "createdAtGt": _iso(self.created_at_gt),
            "createdAtLt": _iso(self.created_at_lt),
        }


def _iso(value: datetime | str | None) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value or None


def parse_datetime(value: Any, field: str = "timestamp") -> datetime | None:
    """ISO-8601 string to an aware datetime; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise UpstreamFormatError(f"{field} is not a timestamp string: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise UpstreamFormatError(f"{field} is not ISO-8601: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_mapping(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise UpstreamFormatError(f"Expected {what} object, got {type(raw).__name__}")
    if not isinstance(raw.get("id"), str) or not raw["id"]:
        raise UpstreamFormatError(f"{what} is missing an id")
    return raw


def _optional_str(raw: dict, key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise UpstreamFormatError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _nested_number(raw: dict, key: str) -> str | None:
    inner = raw.get(key)
    if isinstance(inner, dict) and isinstance(inner.get("number"), str):
        return inner["number"]
    return None


def parse_call(raw: Any) -> CallRecord:
    raw = _require_mapping(raw, "call")

    cost = raw.get("cost")
    if cost is None:
        cost = 0.0
    elif isinstance(cost, bool) or not isinstance(cost, (int, float)):
        raise UpstreamFormatError(f"call {raw['id']} has non-numeric cost {cost!r}")

    messages = []
    for m in raw.get("messages") or []:
        if not isinstance(m, dict):
            raise UpstreamFormatError(f"call {raw['id']} has a malformed message")
        time = m.get("time")
        messages.append(
            Message(
                role=str(m.get("role", "")),
                text=str(m.get("message") or m.get("content") or ""),
                time=float(time) if isinstance(time, (int, float)) else None,
            )
        )

    summary = _optional_str(raw, "summary")
    analysis = raw.get("analysis")
    if summary is None and isinstance(analysis, dict) and isinstance(analysis.get("summary"), str):
        summary = analysis["summary"]

    return CallRecord(
        id=raw["id"],
        status=_optional_str(raw, "status") or "",
        type=_optional_str(raw, "type") or "",
        assistant_id=_optional_str(raw, "assistantId"),
        created_at=parse_datetime(raw.get("createdAt"), "createdAt"),
        started_at=parse_datetime(raw.get("startedAt"), "startedAt"),
        ended_at=parse_datetime(raw.get("endedAt"), "endedAt"),
        phone_number=_nested_number(raw, "customer") or _nested_number(raw, "phoneNumber"),
        cost=float(cost),
        messages=messages,
        summary=summary or None,
        recording_url=_optional_str(raw, "recordingUrl"),
    )


def parse_assistant(raw: Any) -> Assistant:
    raw = _require_mapping(raw, "assistant")
    return Assistant(
        id=raw["id"],
        name=_optional_str(raw, "name") or "",
        description=_optional_str(raw, "description") or "",
        created_at=parse_datetime(raw.get("createdAt"), "createdAt"),
        updated_at=parse_datetime(raw.get("updatedAt"), "updatedAt"),
    )


def parse_chat(raw: Any) -> Chat:
    raw = _require_mapping(raw, "chat")
    messages = []
    for m in raw.get("messages") or []:
        if not isinstance(m, dict):
            raise UpstreamFormatError(f"chat {raw['id']} has a malformed message")
        messages.append(
            ChatMessage(
                role=str(m.get("role", "")),
                content=str(m.get("content") or m.get("message") or ""),
                timestamp=str(m.get("timestamp") or ""),
            )
        )
    return Chat(
        id=raw["id"],
        status=_optional_str(raw, "status") or "",
        assistant_id=_optional_str(raw, "assistantId"),
        messages=messages,
        created_at=parse_datetime(raw.get("createdAt"), "createdAt"),
        updated_at=parse_datetime(raw.get("updatedAt"), "updatedAt"),
    )


def parse_page(data: Any, key: str, parser: Callable[[Any], T]) -> Page[T]:
    """Accept either a bare list or ``{"results": [...], "offset": "..."}``."""
    if isinstance(data, list):
        return Page(items=[parser(item) for item in data])
    if not isinstance(data, dict):
        raise UpstreamFormatError(f"Unexpected {key} response: {type(data).__name__}")

    items = data.get("results", data.get(key))
    if not isinstance(items, list):
        raise UpstreamFormatError(f"{key} response has no record list")
    cursor = data.get("offset")
    return Page(
        items=[parser(item) for item in items],
        next_cursor=str(cursor) if cursor not in (None, "") else None,
    )


class VapiClient(JsonApiClient):
    """Client for one user's voice platform account."""

    service = "Vapi"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise CredentialMissing("Vapi private API key not configured")
        super().__init__(
            base_url or os.environ.get("VAPI_BASE_URL", DEFAULT_BASE_URL),
            api_key,
            transport=transport,
        )

    def fetch_call_page(
        self, filters: CallFilters | None = None, cursor: str | None = None
    ) -> Page[CallRecord]:
        params = (filters or CallFilters()).params()
        params["offset"] = cursor
        return parse_page(self.get_json("/call", params), "calls", parse_call)

    def fetch_all_calls(self, filters: CallFilters | None = None) -> list[CallRecord]:
        """Follow the continuation cursor until the last page."""
        calls: list[CallRecord] = []
        cursor: str | None = None
        seen: set[str] = set()
        for _ in range(MAX_PAGES):
            page = self.fetch_call_page(filters, cursor)
            calls.extend(page.items)
            cursor = page.next_cursor
            if cursor is None:
                return calls
            if cursor in seen:
                raise UpstreamFormatError(f"Vapi returned a repeated page cursor: {cursor}")
            seen.add(cursor)
        raise UpstreamFormatError(f"Vapi call listing exceeded {MAX_PAGES} pages")

    def list_calls(self, filters: CallFilters | None = None) -> list[CallRecord]:
        return self.fetch_call_page(filters).items

    def get_call(self, call_id: str) -> CallRecord:
        return parse_call(self.get_json(f"/call/{call_id}"))

    def list_assistants(self, filters: CallFilters | None = None) -> Page[Assistant]:
        params = (filters or CallFilters()).params()
        params.pop("assistantId", None)
        return parse_page(self.get_json("/assistant", params), "assistants", parse_assistant)

    def list_chats(self, filters: CallFilters | None = None) -> Page[Chat]:
        return parse_page(
            self.get_json("/chat", (filters or CallFilters()).params()), "chats", parse_chat
        )

    def get_chat(self, chat_id: str) -> Chat:
        return parse_chat(self.get_json(f"/chat/{chat_id}"))


def client_for_user(
    user_id: str,
    db_path: Path | None = None,
    transport: httpx.BaseTransport | None = None,
) -> VapiClient:
    keys = get_credentials(user_id, db_path) or {}
    if not keys.get("vapi_private_key"):
        raise CredentialMissing("Vapi private API key not configured")
    return VapiClient(keys["vapi_private_key"], transport=transport)
