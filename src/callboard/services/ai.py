from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path

import anthropic

from callboard.exceptions import CredentialMissing, UpstreamError, UpstreamFormatError
from callboard.models import Message
from callboard.store import get_credentials

logger = logging.getLogger(__name__)

DEFAULT_MODEL = os.environ.get("CALLBOARD_LLM_MODEL", "claude-sonnet-4-20250514")

SUMMARY_PROMPT = """\
Please analyze this restaurant phone conversation and provide a concise summary including:
1. Customer intent (reservation, inquiry, complaint, etc.)
2. Key details (party size, date/time, special requests)
3. Outcome (successful booking, information provided, issue resolved, etc.)
4. Any follow-up actions needed

Conversation:
{conversation}

Please provide a clear, professional summary in 2-3 sentences.
"""

ANALYSIS_PROMPT = """\
Analyze this restaurant phone conversation and provide a JSON response with:
1. "sentiment": "positive", "neutral", or "negative"
2. "intent": primary purpose of the call
3. "key_points": array of important details mentioned
4. "action_items": array of follow-up actions needed

Conversation:
{conversation}

Return ONLY valid JSON, no markdown fences or extra text.
"""

FALLBACK_ANALYSIS = {
    "sentiment": "neutral",
    "intent": "General inquiry",
    "key_points": ["Conversation analysis unavailable"],
    "action_items": [],
}


def llm_key_for_user(user_id: str, db_path: Path | None = None) -> str:
    keys = get_credentials(user_id, db_path) or {}
    if not keys.get("llm_api_key"):
        raise CredentialMissing("LLM API key not configured")
    return keys["llm_api_key"]


def format_transcript(messages: list[Message]) -> str:
    """Render a call transcript as ``role: text`` lines."""
    return "\n".join(f"{m.role}: {m.text}" for m in messages if m.text)


def _complete(api_key: str, prompt: str, max_tokens: int) -> str:
    if not api_key:
        raise CredentialMissing("LLM API key not configured")
    client = anthropic.Anthropic(api_key=api_key)
    try:
        message = client.messages.create(
            model=DEFAULT_MODEL,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIStatusError as exc:
        raise UpstreamError(exc.status_code, str(exc.message), service="LLM") from exc
    except anthropic.APIError as exc:
        raise UpstreamError(0, str(exc), service="LLM") from exc

    text = "".join(block.text for block in message.content if block.type == "text").strip()
    if not text:
        raise UpstreamFormatError("LLM returned an empty response")
    return text


def summarize_conversation(api_key: str, conversation_text: str) -> str:
    """Generate a 2-3 sentence summary of a call transcript."""
    return _complete(api_key, SUMMARY_PROMPT.format(conversation=conversation_text), 512)


def analyze_conversation(api_key: str, conversation_text: str) -> dict:
    """Sentiment, intent, key points and action items; neutral fallback on failure."""
    try:
        raw = _complete(api_key, ANALYSIS_PROMPT.format(conversation=conversation_text), 1024)
        if raw.startswith("```"):
            raw = raw.split("\n", 1)[1]
            raw = raw.rsplit("```", 1)[0]
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("analysis is not a JSON object")
    except CredentialMissing:
        raise
    except (UpstreamError, UpstreamFormatError, ValueError):
        logger.exception("Conversation analysis failed, using fallback analysis")
        return copy.deepcopy(FALLBACK_ANALYSIS)

    return {**copy.deepcopy(FALLBACK_ANALYSIS), **data}
