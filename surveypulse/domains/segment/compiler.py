"""Compile the audience filter DSL into a MongoDB contact query.

Only whitelisted keys are accepted and every value is type checked, so a
filter can never smuggle operators such as ``$where`` into the query.
"""

import math
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from surveypulse.core.exceptions import SegmentFilterError
from surveypulse.domains.contact.models import ContactStatus

FORBIDDEN_OPERATORS = {"$where", "$expr", "$function", "$accumulator"}
NPS_CATEGORIES = {"promoter", "passive", "detractor"}
CONTACT_STATUSES = {status.value for status in ContactStatus}
MAX_DEPTH = 5

STATS = "survey_stats"


# Value checks

def _string(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SegmentFilterError(f"'{key}' must be a non-empty string", key)
    return value.strip()


def _string_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not value:
        raise SegmentFilterError(f"'{key}' must be a non-empty list of strings", key)
    return [_string(key, item) for item in value]


def _number(key: str, value: Any) -> float:
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SegmentFilterError(f"'{key}' must be a number", key)
    if not math.isfinite(value):
        raise SegmentFilterError(f"'{key}' must be a finite number", key)
    if value < 0:
        raise SegmentFilterError(f"'{key}' must not be negative", key)
    return value


def _days(key: str, value: Any) -> float:
    days = _number(key, value)
    if days <= 0:
        raise SegmentFilterError(f"'{key}' must be a positive number of days", key)
    return days


def _flag(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise SegmentFilterError(f"'{key}' must be true or false", key)
    return value


def _choice(key: str, value: Any, allowed: set[str]) -> str:
    value = _string(key, value)
    if value not in allowed:
        raise SegmentFilterError(
            f"'{key}' must be one of {', '.join(sorted(allowed))}", key
        )
    return value


# Clause builders; each returns a query fragment

Clause = dict[str, Any]


def _days_ago(now: datetime, days: float) -> datetime:
    return now - timedelta(days=days)


def _status(value, now) -> Clause:
    return {"status": _choice("status", value, CONTACT_STATUSES)}


def _has_tag(value, now) -> Clause:
    return {"tags": {"$in": [_string("hasTag", value)]}}


def _has_tags(value, now) -> Clause:
    return {"tags": {"$in": _string_list("hasTags", value)}}


def _has_all_tags(value, now) -> Clause:
    return {"tags": {"$all": _string_list("hasAllTags", value)}}


def _auto_tag(value, now) -> Clause:
    return {"auto_tags": {"$in": [_string("autoTag", value)]}}


def _has_auto_tags(value, now) -> Clause:
    return {"auto_tags": {"$in": _string_list("hasAutoTags", value)}}


def _category_id(value, now) -> Clause:
    return {"category_ids": _string("categoryId", value)}


def _category_ids(value, now) -> Clause:
    return {"category_ids": {"$in": _string_list("categoryIds", value)}}


def _inactive_days(value, now) -> Clause:
    return {"last_activity": {"$lte": _days_ago(now, _days("inactiveDays", value))}}


def _active_days(value, now) -> Clause:
    return {"last_activity": {"$gte": _days_ago(now, _days("activeDays", value))}}


def _created_last_days(value, now) -> Clause:
    return {"created_at": {"$gte": _days_ago(now, _days("createdLastDays", value))}}


def _created_before_days(value, now) -> Clause:
    return {"created_at": {"$lte": _days_ago(now, _days("createdBeforeDays", value))}}


def _responded_last_days(value, now) -> Clause:
    since = _days_ago(now, _days("respondedLastDays", value))
    return {f"{STATS}.last_response_date": {"$gte": since}}


def _not_responded_days(value, now) -> Clause:
    before = _days_ago(now, _days("notRespondedDays", value))
    return {
        f"{STATS}.last_response_date": {"$lte": before},
        f"{STATS}.responded_count": {"$gt": 0},
    }


def _invited_but_not_responded(value, now) -> Clause:
    if not _flag("invitedButNotResponded", value):
        return {}
    return {
        f"{STATS}.invited_count": {"$gt": 0},
        f"{STATS}.responded_count": {"$in": [0, None]},
    }


def _has_responded(value, now) -> Clause:
    if not _flag("hasResponded", value):
        return {}
    return {f"{STATS}.responded_count": {"$gt": 0}}


def _never_responded(value, now) -> Clause:
    if not _flag("neverResponded", value):
        return {}
    return {
        "$or": [
            {f"{STATS}.responded_count": 0},
            {f"{STATS}.responded_count": {"$exists": False}},
        ]
    }


def _min_responses(value, now) -> Clause:
    return {f"{STATS}.responded_count": {"$gte": _number("minResponses", value)}}


def _max_responses(value, now) -> Clause:
    return {f"{STATS}.responded_count": {"$lte": _number("maxResponses", value)}}


def _nps_below(value, now) -> Clause:
    return {f"{STATS}.latest_nps_score": {"$lt": _number("npsBelow", value)}}


def _nps_above(value, now) -> Clause:
    return {f"{STATS}.latest_nps_score": {"$gt": _number("npsAbove", value)}}


def _nps_between(value, now) -> Clause:
    if not isinstance(value, list) or len(value) != 2:
        raise SegmentFilterError("'npsBetween' must be [min, max]", "npsBetween")
    low, high = (_number("npsBetween", item) for item in value)
    if low > high:
        raise SegmentFilterError("'npsBetween' min exceeds max", "npsBetween")
    return {f"{STATS}.latest_nps_score": {"$gte": low, "$lte": high}}


def _nps_category(value, now) -> Clause:
    return {f"{STATS}.nps_category": _choice("npsCategory", value, NPS_CATEGORIES)}


def _rating_below(value, now) -> Clause:
    return {f"{STATS}.latest_rating": {"$lt": _number("ratingBelow", value)}}


def _rating_above(value, now) -> Clause:
    return {f"{STATS}.latest_rating": {"$gt": _number("ratingAbove", value)}}


def _equals(key: str, field: str) -> Callable[[Any, datetime], Clause]:
    def build(value, now) -> Clause:
        return {field: _string(key, value)}

    return build


def _any_of(key: str, field: str) -> Callable[[Any, datetime], Clause]:
    def build(value, now) -> Clause:
        return {field: {"$in": _string_list(key, value)}}

    return build


def _company_contains(value, now) -> Clause:
    # Escaped so user text is matched literally
    pattern = re.escape(_string("companyContains", value))
    return {"company": {"$regex": pattern, "$options": "i"}}


CLAUSE_BUILDERS: dict[str, Callable[[Any, datetime], Clause]] = {
    # Basic
    "status": _status,
    "hasTag": _has_tag,
    "hasTags": _has_tags,
    "hasAllTags": _has_all_tags,
    "autoTag": _auto_tag,
    "hasAutoTags": _has_auto_tags,
    # Category
    "categoryId": _category_id,
    "categoryIds": _category_ids,
    # Time
    "inactiveDays": _inactive_days,
    "activeDays": _active_days,
    "createdLastDays": _created_last_days,
    "createdBeforeDays": _created_before_days,
    # Survey behaviour
    "respondedLastDays": _responded_last_days,
    "notRespondedDays": _not_responded_days,
    "invitedButNotResponded": _invited_but_not_responded,
    "hasResponded": _has_responded,
    "neverResponded": _never_responded,
    "minResponses": _min_responses,
    "maxResponses": _max_responses,
    # NPS and rating
    "npsBelow": _nps_below,
    "npsAbove": _nps_above,
    "npsBetween": _nps_between,
    "npsCategory": _nps_category,
    "ratingBelow": _rating_below,
    "ratingAbove": _rating_above,
    # Location
    "country": _equals("country", "enrichment.country"),
    "countries": _any_of("countries", "enrichment.country"),
    "city": _equals("city", "enrichment.city"),
    "cities": _any_of("cities", "enrichment.city"),
    "region": _equals("region", "enrichment.region"),
    "regions": _any_of("regions", "enrichment.region"),
    # Company
    "company": _equals("company", "company"),
    "companyContains": _company_contains,
    "domain": _equals("domain", "enrichment.domain"),
}

ALLOWED_KEYS = frozenset({*CLAUSE_BUILDERS, "$and", "$or"})


def validate_filters(filters: Any) -> None:
    """Reject anything that is not a dict of whitelisted keys."""
    if not isinstance(filters, dict):
        raise SegmentFilterError("Filters must be an object")
    invalid = sorted(str(key) for key in filters if key not in ALLOWED_KEYS)
    if invalid:
        raise SegmentFilterError(
            f"Invalid filter keys: {', '.join(invalid)}", invalid[0]
        )


def _is_operator_dict(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and all(
        key.startswith("$") for key in value
    )


def _merge(query: dict[str, Any], fragment: Clause) -> None:
    """Merge a fragment into the query, ANDing clauses that would collide."""
    for field, condition in fragment.items():
        if field == "$and":
            query.setdefault("$and", []).extend(condition)
        elif field == "$or":
            if "$or" in query:
                query.setdefault("$and", []).append({"$or": query["$or"]})
            query["$or"] = condition
        elif field not in query:
            query[field] = condition
        elif (
            _is_operator_dict(query[field])
            and _is_operator_dict(condition)
            and not set(query[field]) & set(condition)
        ):
            query[field] = {**query[field], **condition}
        else:
            query.setdefault("$and", []).append({field: condition})


def _compile(filters: Any, now: datetime, depth: int) -> dict[str, Any]:
    if depth > MAX_DEPTH:
        raise SegmentFilterError("Filters are nested too deeply")
    validate_filters(filters)

    query: dict[str, Any] = {}
    for key, value in filters.items():
        if key in ("$and", "$or"):
            if not isinstance(value, list) or not value:
                raise SegmentFilterError(f"'{key}' must be a non-empty list of filters", key)
            _merge(query, {key: [_compile(item, now, depth + 1) for item in value]})
            continue
        _merge(query, CLAUSE_BUILDERS[key](value, now))
    return query


def _assert_safe(value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if key in FORBIDDEN_OPERATORS:
                raise SegmentFilterError(f"Operator '{key}' is not allowed", key)
            _assert_safe(item)
    elif isinstance(value, list):
        for item in value:
            _assert_safe(item)


def compile_filters(filters: dict[str, Any], now: datetime) -> dict[str, Any]:
    """
    Compile a filter object into a contact query.

    Args:
        filters: Filter DSL, e.g. ``{"npsCategory": "detractor", "inactiveDays": 30}``
        now: Reference time for the day-window keys

    Returns:
        MongoDB query over the contacts collection, without the tenant key

    Raises:
        SegmentFilterError: On unknown keys or malformed values
    """
    query = _compile(filters, now, depth=0)
    _assert_safe(query)
    return query
