"""Derived call analytics.

Everything here is a pure function of a list of ``CallRecord``. Nothing is
rounded; callers round for display.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from callboard.exceptions import ValidationError
from callboard.models import (
    Analytics,
    CallRecord,
    CallType,
    DailyTrend,
    HourBucket,
    MonthlyTotal,
)

RANGES = {"7d": 7, "30d": 30, "90d": 90}
DAILY_TREND_DAYS = 14
MONTHLY_COMPARISON_MONTHS = 3

# Checked in order; the first keyword found wins.
INTENT_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("reservation", "booking"), "Reservation"),
    (("menu",), "Menu Inquiry"),
    (("hours",), "Hours Inquiry"),
    (("order",), "Order"),
    (("complaint",), "Complaint"),
]


@dataclass
class Window:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        # naive bounds are taken as UTC, like parsed call timestamps
        if self.start.tzinfo is None:
            self.start = self.start.replace(tzinfo=timezone.utc)
        if self.end.tzinfo is None:
            self.end = self.end.replace(tzinfo=timezone.utc)

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def window_for(days_back: int, now: datetime | None = None) -> Window:
    if days_back not in RANGES.values():
        raise ValidationError([f"Time range must be one of: {', '.join(RANGES)}"])
    end = now or datetime.now(timezone.utc)
    return Window(start=end - timedelta(days=days_back), end=end)


def parse_range(value: str, now: datetime | None = None) -> Window:
    """``"7d"``, ``"30d"`` or ``"90d"`` to a window ending now."""
    if value not in RANGES:
        raise ValidationError([f"Time range must be one of: {', '.join(RANGES)}"])
    return window_for(RANGES[value], now)


def classify_intent(summary: str | None) -> str:
    if not summary:
        return "Unknown"
    lower = summary.lower()
    for keywords, label in INTENT_KEYWORDS:
        if any(k in lower for k in keywords):
            return label
    return "General Inquiry"


def is_completed(call: CallRecord) -> bool:
    return call.status == "completed"


def success_rate(calls: list[CallRecord]) -> float:
    if not calls:
        return 0.0
    return sum(1 for c in calls if is_completed(c)) / len(calls) * 100


def average_duration(calls: list[CallRecord]) -> float:
    """Mean duration in seconds over completed calls.

    A completed call missing either timestamp adds nothing to the total but
    still counts in the denominator.
    """
    completed = [c for c in calls if is_completed(c)]
    if not completed:
        return 0.0
    return sum(c.duration or 0.0 for c in completed) / len(completed)


def total_cost(calls: Iterable[CallRecord]) -> float:
    return sum(c.cost or 0.0 for c in calls)


def _local(moment: datetime, tz: tzinfo | None) -> datetime:
    # astimezone(None) converts to the host's local zone
    return moment.astimezone(tz)


def in_window(calls: Iterable[CallRecord], window: Window) -> list[CallRecord]:
    return [c for c in calls if c.created_at is not None and c.created_at in window]


def peak_hours(calls: list[CallRecord], tz: tzinfo | None = None) -> list[HourBucket]:
    counts = [0] * 24
    for call in calls:
        if call.created_at is not None:
            counts[_local(call.created_at, tz).hour] += 1
    return [HourBucket(hour=h, calls=n) for h, n in enumerate(counts)]


def daily_trends(calls: list[CallRecord], tz: tzinfo | None = None) -> list[DailyTrend]:
    """Per-date totals for the last dates that have calls (gaps are not filled)."""
    by_date: dict[date, DailyTrend] = {}
    for call in calls:
        if call.created_at is None:
            continue
        day = _local(call.created_at, tz).date()
        trend = by_date.setdefault(day, DailyTrend(date=day))
        trend.calls += 1
        if is_completed(call):
            trend.successful += 1
        trend.cost += call.cost or 0.0
    return [by_date[d] for d in sorted(by_date)][-DAILY_TREND_DAYS:]


def call_types(calls: list[CallRecord]) -> list[CallType]:
    counts: dict[str, int] = {}
    for call in calls:
        intent = classify_intent(call.summary)
        counts[intent] = counts.get(intent, 0) + 1
    total = len(calls)
    return [
        CallType(type=intent, count=n, percentage=n / total * 100 if total else 0.0)
        for intent, n in counts.items()
    ]


def monthly_comparison(calls: list[CallRecord], tz: tzinfo | None = None) -> list[MonthlyTotal]:
    by_month: dict[tuple[int, int], MonthlyTotal] = {}
    for call in calls:
        if call.created_at is None:
            continue
        local = _local(call.created_at, tz)
        key = (local.year, local.month)
        total = by_month.setdefault(key, MonthlyTotal(month=f"{local:%b}"))
        total.calls += 1
        total.cost += call.cost or 0.0
    return [by_month[k] for k in sorted(by_month)][-MONTHLY_COMPARISON_MONTHS:]


def aggregate(
    calls: Iterable[CallRecord],
    window: Window,
    tz: tzinfo | None = None,
    today: date | None = None,
) -> Analytics:
    """Analytics for the calls created inside ``window`` (bounds inclusive)."""
    selected = in_window(calls, window)
    today = today or _local(window.end, tz).date()
    return Analytics(
        total_calls=len(selected),
        success_rate=success_rate(selected),
        avg_duration=average_duration(selected),
        total_cost=total_cost(selected),
        peak_hours=peak_hours(selected, tz),
        daily_trends=daily_trends(selected, tz),
        call_types=call_types(selected),
        monthly_comparison=monthly_comparison(selected, tz),
        calls_today=sum(1 for c in selected if _local(c.created_at, tz).date() == today),
    )


def call_summary_metrics(calls: list[CallRecord]) -> dict[str, float]:
    """Headline numbers shown next to a call listing, rounded to cents."""
    return {
        "totalCalls": len(calls),
        "successRate": round(success_rate(calls), 2),
        "avgDuration": round(average_duration(calls), 2),
        "cost": round(total_cost(calls), 2),
    }


def overview(calls: list[CallRecord], recent: int = 10) -> dict:
    """Numbers for the dashboard landing page."""
    completed = [c for c in calls if is_completed(c)]
    reservations = sum(1 for c in completed if classify_intent(c.summary) == "Reservation")
    return {
        "total_calls": len(calls),
        "total_reservations": reservations,
        "total_revenue": total_cost(completed),
        "avg_call_duration": average_duration(calls),
        "success_rate": success_rate(calls),
        "recent_calls": calls[:recent],
    }


def daily_trends_csv(analytics: Analytics) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Date", "Total Calls", "Successful Calls", "Cost", "Success Rate"])
    for day in analytics.daily_trends:
        rate = day.successful / day.calls * 100 if day.calls else 0.0
        writer.writerow([day.label, day.calls, day.successful, f"{day.cost:.4f}", f"{rate:.1f}%"])
    return buf.getvalue()
