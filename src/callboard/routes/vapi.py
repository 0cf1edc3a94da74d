from __future__ import annotations

from dataclasses import replace

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from callboard.exceptions import ValidationError
from callboard.models import CallRecord
from callboard.routes.deps import current_user
from callboard.services import ai, analytics
from callboard.services.vapi import CallFilters, client_for_user
from callboard.store import get_cached_summaries, save_cached_summary

router = APIRouter(prefix="/api/vapi", tags=["vapi"])


def _filters(
    limit: int = 50,
    assistant_id: str | None = Query(None, alias="assistantId"),
    created_at_gt: str | None = Query(None, alias="createdAtGt"),
    created_at_lt: str | None = Query(None, alias="createdAtLt"),
) -> CallFilters:
    # "all" is what the assistant picker sends for no filter
    if assistant_id == "all":
        assistant_id = None
    return CallFilters(limit, assistant_id, created_at_gt, created_at_lt)


def _with_cached_summaries(user_id: str, calls: list[CallRecord]) -> list[CallRecord]:
    missing = [c.id for c in calls if not c.summary]
    cached = get_cached_summaries(user_id, missing)
    return [replace(c, summary=cached[c.id]) if c.id in cached else c for c in calls]


@router.get("/calls")
def list_calls(filters: CallFilters = Depends(_filters), user_id: str = Depends(current_user)):
    calls = client_for_user(user_id).list_calls(filters)
    calls = _with_cached_summaries(user_id, calls)
    return {"calls": calls, "analytics": analytics.call_summary_metrics(calls)}


@router.get("/calls/{call_id}")
def get_call(call_id: str, user_id: str = Depends(current_user)):
    call = client_for_user(user_id).get_call(call_id)
    return {"call": _with_cached_summaries(user_id, [call])[0]}


@router.post("/calls/{call_id}/summary")
def summarize_call(call_id: str, user_id: str = Depends(current_user)):
    """Generate, cache and return a summary for one call's transcript."""
    call = client_for_user(user_id).get_call(call_id)
    transcript = ai.format_transcript(call.messages)
    if not transcript:
        raise ValidationError(["Call has no transcript to summarize"])

    api_key = ai.llm_key_for_user(user_id)
    summary = ai.summarize_conversation(api_key, transcript)
    save_cached_summary(user_id, call_id, summary)
    return {
        "summary": summary,
        "intent": analytics.classify_intent(summary),
        "analysis": ai.analyze_conversation(api_key, transcript),
    }


@router.get("/assistants")
def list_assistants(filters: CallFilters = Depends(_filters), user_id: str = Depends(current_user)):
    page = client_for_user(user_id).list_assistants(filters)
    return {"assistants": page.items, "nextCursor": page.next_cursor}


@router.get("/chats")
def list_chats(filters: CallFilters = Depends(_filters), user_id: str = Depends(current_user)):
    page = client_for_user(user_id).list_chats(filters)
    return {"chats": page.items, "nextCursor": page.next_cursor}


@router.get("/chats/{chat_id}")
def get_chat(chat_id: str, user_id: str = Depends(current_user)):
    return {"chat": client_for_user(user_id).get_chat(chat_id)}


@router.get("/analytics")
def call_analytics(
    time_range: str = Query("7d", alias="range"),
    assistant_id: str | None = Query(None, alias="assistantId"),
    output: str = Query("json", alias="format"),
    user_id: str = Depends(current_user),
):
    window = analytics.parse_range(time_range)
    filters = CallFilters(
        limit=100,
        assistant_id=None if assistant_id == "all" else assistant_id,
        created_at_gt=window.start,
    )
    calls = _with_cached_summaries(user_id, client_for_user(user_id).fetch_all_calls(filters))
    result = analytics.aggregate(calls, window)

    if output == "csv":
        return PlainTextResponse(
            analytics.daily_trends_csv(result),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="call-analytics-{time_range}.csv"'},
        )
    return {"range": time_range, "analytics": result}


@router.get("/overview")
def dashboard_overview(user_id: str = Depends(current_user)):
    calls = client_for_user(user_id).list_calls(CallFilters(limit=100))
    return {"overview": analytics.overview(_with_cached_summaries(user_id, calls))}
