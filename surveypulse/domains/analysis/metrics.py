"""Quantitative metrics extracted from typed answers."""

import math
from typing import Any

from pydantic import BaseModel, Field

from surveypulse.domains.survey.models import RATING_QUESTION_TYPES, Question, QuestionType

NPS_TEXT_VALUES = {
    "not at all likely": 0,
    "not likely": 2,
    "unlikely": 3,
    "somewhat unlikely": 4,
    "neutral": 5,
    "somewhat likely": 6,
    "likely": 7,
    "very likely": 9,
    "extremely likely": 10,
}

RATING_TEXT_VALUES = {
    "very poor": 1,
    "poor": 2,
    "average": 3,
    "fair": 3,
    "good": 4,
    "very good": 5,
    "excellent": 5,
}

# Lower bounds on rating / 5, best band first
RATING_BANDS = (
    (0.8, "excellent"),
    (0.6, "good"),
    (0.4, "average"),
    (0.2, "poor"),
)


class QuantitativeMetrics(BaseModel):
    """NPS and rating figures derived from one response."""

    nps_score: float | None = None
    rating: float | None = None
    nps_category: str | None = None
    rating_category: str | None = None
    normalized_score: float | None = None
    avg_rating: float | None = None
    all_ratings: list[float] = Field(default_factory=list)


def parse_answer_value(answer: Any) -> float | None:
    """
    Read a numeric value out of an answer.

    Accepts numbers, numeric strings and the fixed NPS/rating phrases.
    Booleans, NaN, infinities and anything else return None.
    """
    if isinstance(answer, bool) or answer is None:
        return None
    if isinstance(answer, (int, float)):
        return _finite(float(answer))
    if isinstance(answer, str):
        text = answer.strip().lower()
        if not text:
            return None
        try:
            return _finite(float(text))
        except ValueError:
            pass
        if text in NPS_TEXT_VALUES:
            return float(NPS_TEXT_VALUES[text])
        if text in RATING_TEXT_VALUES:
            return float(RATING_TEXT_VALUES[text])
    return None


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def nps_category(score: float | None) -> str | None:
    """promoter at 9+, detractor at 6 or below, passive in between."""
    if score is None:
        return None
    if score >= 9:
        return "promoter"
    if score <= 6:
        return "detractor"
    return "passive"


def categorize_rating(rating: float | None, scale: float = 5) -> str | None:
    """Map a rating to one of five bands."""
    if rating is None:
        return None
    ratio = rating / scale
    for lower_bound, label in RATING_BANDS:
        if ratio >= lower_bound:
            return label
    return "very_poor"


def normalize_score(score: float | None) -> float | None:
    """Map a 0-10 score onto 0-100."""
    if score is None:
        return None
    return round(score * 10, 2)


def extract_metrics(
    answers: list,
    questions: list[Question],
    fallback_score: float | None = None,
    fallback_rating: float | None = None,
) -> QuantitativeMetrics:
    """
    Derive NPS and rating metrics from typed answers.

    The first NPS answer and the first rating-like answer win; every
    rating-like answer feeds the average. Values supplied directly on the
    response are used when no typed answer provides one.
    """
    question_types = {question.id: question.type for question in questions}
    nps_score: float | None = None
    rating: float | None = None
    all_ratings: list[float] = []

    for answer in answers:
        question_type = question_types.get(answer.question_id)
        if question_type is None:
            continue
        value = parse_answer_value(answer.answer)
        if value is None:
            continue

        if question_type == QuestionType.NPS:
            if nps_score is None:
                nps_score = min(max(value, 0.0), 10.0)
        elif question_type in RATING_QUESTION_TYPES:
            all_ratings.append(value)
            if rating is None:
                rating = value

    if nps_score is None:
        nps_score = _finite(fallback_score)
    if rating is None:
        rating = _finite(fallback_rating)

    avg_rating = None
    if all_ratings:
        avg_rating = round(sum(all_ratings) / len(all_ratings), 2)
    elif rating is not None:
        avg_rating = rating

    return QuantitativeMetrics(
        nps_score=nps_score,
        rating=rating,
        nps_category=nps_category(nps_score),
        rating_category=categorize_rating(rating),
        normalized_score=normalize_score(nps_score),
        avg_rating=avg_rating,
        all_ratings=all_ratings,
    )
