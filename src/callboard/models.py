from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Message:
    role: str = ""
    text: str = ""
    time: float | None = None


@dataclass
class CallRecord:
    id: str = ""
    status: str = ""
    type: str = ""
    assistant_id: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    phone_number: str | None = None
    cost: float = 0.0
    messages: list[Message] = field(default_factory=list)
    summary: str | None = None
    recording_url: str | None = None

    @property
    def duration(self) -> float | None:
        """Seconds between start and end, or None if either is missing."""
        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


@dataclass
class Assistant:
    id: str = ""
    name: str = ""
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ChatMessage:
    role: str = ""
    content: str = ""
    timestamp: str = ""


@dataclass
class Chat:
    id: str = ""
    status: str = ""
    assistant_id: str | None = None
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    # opaque continuation token, None on the last page
    next_cursor: str | None = None


@dataclass
class ContactRecord:
    """One row of the external contact feed."""

    external_id: str = ""
    name: str | None = None
    phone: str = ""
    email: str | None = None


@dataclass
class SkippedRecord:
    external_id: str = ""
    name: str | None = None
    phone: str = ""
    reason: str = ""


@dataclass
class SyncResult:
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    skipped_records: list[SkippedRecord] = field(default_factory=list)


@dataclass
class HourBucket:
    hour: int = 0
    calls: int = 0


@dataclass
class DailyTrend:
    date: date
    calls: int = 0
    successful: int = 0
    cost: float = 0.0

    @property
    def label(self) -> str:
        return f"{self.date:%b} {self.date.day}"


@dataclass
class CallType:
    type: str = ""
    count: int = 0
    percentage: float = 0.0


@dataclass
class MonthlyTotal:
    month: str = ""
    calls: int = 0
    cost: float = 0.0


@dataclass
class Analytics:
    total_calls: int = 0
    success_rate: float = 0.0
    avg_duration: float = 0.0
    total_cost: float = 0.0
    peak_hours: list[HourBucket] = field(default_factory=list)
    daily_trends: list[DailyTrend] = field(default_factory=list)
    call_types: list[CallType] = field(default_factory=list)
    monthly_comparison: list[MonthlyTotal] = field(default_factory=list)
    calls_today: int = 0
