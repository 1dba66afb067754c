"""Parsing of the LLM's structured analysis.

Model output is frequently wrapped in markdown fences or surrounded by
prose. Parsing strips fences, keeps the outermost ``{...}`` and decodes it;
anything that still fails yields the neutral insight.
"""

import json
import re
from typing import Any

from pydantic import BaseModel, Field

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

SENTIMENTS = {"positive", "neutral", "negative"}
URGENCIES = {"low", "medium", "high"}
MAX_LIST_ITEMS = 10


class InsightParseError(ValueError):
    """Raised when model output holds no usable JSON object."""


class LLMInsight(BaseModel):
    """Normalized analysis returned by the model."""

    sentiment: str = "neutral"
    sentiment_score: float = 0.0
    urgency: str = "low"
    emotions: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    is_complaint: bool = False
    is_praise: bool = False
    is_suggestion: bool = False
    summary: str = ""
    should_generate_action: bool = False
    flagged_for_review: bool = False


NEUTRAL_INSIGHT = LLMInsight(sentiment="neutral", urgency="low", should_generate_action=False)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences."""
    return _FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str:
    """Return the outermost ``{...}`` span of the text."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise InsightParseError("No JSON object in model output")
    return text[start : end + 1]


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if str(item).strip()]
    return items[:MAX_LIST_ITEMS]


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(-1.0, min(1.0, score))


def normalize_insight(data: dict) -> LLMInsight:
    """Coerce a decoded object into an LLMInsight, accepting camelCase keys."""
    sentiment = str(_pick(data, "sentiment", default="neutral")).lower()
    urgency = str(_pick(data, "urgency", default="low")).lower()
    classification = _pick(data, "classification", default={})
    if not isinstance(classification, dict):
        classification = {}

    return LLMInsight(
        sentiment=sentiment if sentiment in SENTIMENTS else "neutral",
        sentiment_score=_score(_pick(data, "sentimentScore", "sentiment_score", default=0)),
        urgency=urgency if urgency in URGENCIES else "low",
        emotions=_string_list(_pick(data, "emotions")),
        keywords=_string_list(_pick(data, "keywords")),
        themes=_string_list(_pick(data, "themes")),
        is_complaint=_bool(_pick(classification, "isComplaint", "is_complaint", default=False)),
        is_praise=_bool(_pick(classification, "isPraise", "is_praise", default=False)),
        is_suggestion=_bool(
            _pick(classification, "isSuggestion", "is_suggestion", default=False)
        ),
        summary=str(_pick(data, "summary", default="")),
        should_generate_action=_bool(
            _pick(data, "shouldGenerateAction", "should_generate_action", default=False)
        ),
        flagged_for_review=_bool(
            _pick(data, "flaggedForReview", "flagged_for_review", default=False)
        ),
    )


def parse_insight(text: str) -> LLMInsight:
    """
    Parse model output into an insight.

    Raises:
        InsightParseError: If no JSON object can be decoded
    """
    candidate = extract_json_object(strip_code_fences(text or ""))
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise InsightParseError(f"Malformed JSON in model output: {e}") from e
    if not isinstance(data, dict):
        raise InsightParseError("Model output is not a JSON object")
    return normalize_insight(data)
