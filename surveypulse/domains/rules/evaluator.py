"""Rule evaluation and priority resolution.

Both functions are pure: they read the analysis and the response and
return data, leaving persistence to the caller.
"""

from dataclasses import dataclass, field

from surveypulse.domains.response.models import Response, ResponseAnalysis
from surveypulse.domains.rules.models import (
    PRIORITY_RANK,
    ClassificationCondition,
    KeywordCondition,
    RatingAtMostCondition,
    Rule,
    ScoreRangeCondition,
    SentimentUrgencyCondition,
)

FALLBACK_TITLE = "Customer Feedback Issue"
FALLBACK_CATEGORY = "Survey Feedback"
MAX_THEME_TAGS = 3


@dataclass
class ActionCandidate:
    """Action proposed for a response."""

    title: str
    description: str
    priority: str
    category: str
    tags: list[str]
    rule_name: str | None = None


@dataclass
class RuleDecision:
    """Outcome of evaluating the catalog against one response."""

    primary: ActionCandidate | None
    matched: list[Rule] = field(default_factory=list)
    recognitions: list[Rule] = field(default_factory=list)


def _nps_score(analysis: ResponseAnalysis, response: Response) -> float | None:
    if analysis.metrics and analysis.metrics.nps_score is not None:
        return analysis.metrics.nps_score
    return response.score


def _rating(analysis: ResponseAnalysis, response: Response) -> float | None:
    if analysis.metrics and analysis.metrics.rating is not None:
        return analysis.metrics.rating
    return response.rating


def condition_matches(rule: Rule, analysis: ResponseAnalysis, response: Response) -> bool:
    """Evaluate one rule's condition."""
    condition = rule.when

    if isinstance(condition, SentimentUrgencyCondition):
        if condition.sentiment and analysis.sentiment != condition.sentiment:
            return False
        if condition.urgency and analysis.urgency != condition.urgency:
            return False
        return bool(condition.sentiment or condition.urgency)

    if isinstance(condition, ClassificationCondition):
        if not getattr(analysis.classification, condition.flag):
            return False
        return not condition.sentiment or analysis.sentiment == condition.sentiment

    if isinstance(condition, RatingAtMostCondition):
        rating = _rating(analysis, response)
        return rating is not None and rating <= condition.value

    if isinstance(condition, ScoreRangeCondition):
        score = _nps_score(analysis, response)
        if score is None:
            return False
        if condition.min is not None and score < condition.min:
            return False
        return condition.max is None or score <= condition.max

    if isinstance(condition, KeywordCondition):
        text = response.text_content().lower()
        return any(keyword.lower() in text for keyword in condition.keywords)

    return False


def evaluate_rules(
    rules: list[Rule], analysis: ResponseAnalysis, response: Response
) -> list[Rule]:
    """Every enabled rule whose condition holds, in catalog order."""
    return [
        rule
        for rule in rules
        if rule.enabled and condition_matches(rule, analysis, response)
    ]


def _merge_tags(tags: list[str], themes: list[str]) -> list[str]:
    merged: list[str] = []
    for tag in [*tags, *themes[:MAX_THEME_TAGS]]:
        if tag and tag not in merged:
            merged.append(tag)
    return merged


def _description(analysis: ResponseAnalysis, response: Response) -> str:
    return analysis.summary or response.review or "Generated from survey feedback"


def resolve_priority(
    matched: list[Rule], analysis: ResponseAnalysis, response: Response
) -> RuleDecision:
    """
    Pick the primary action among matched rules.

    Rules that do not create actions are set aside as recognitions. The
    highest-priority remaining rule wins, ties going to catalog order. With
    nothing left, an action is only proposed when the analysis asked for
    one.
    """
    actionable = [rule for rule in matched if rule.create_action]
    recognitions = [rule for rule in matched if not rule.create_action]

    if not actionable:
        if not analysis.should_generate_action:
            return RuleDecision(primary=None, matched=matched, recognitions=recognitions)
        primary = ActionCandidate(
            title=FALLBACK_TITLE,
            description=_description(analysis, response),
            priority="high" if analysis.urgency == "high" else "medium",
            category=FALLBACK_CATEGORY,
            tags=_merge_tags(["auto"], analysis.themes),
        )
        return RuleDecision(primary=primary, matched=matched, recognitions=recognitions)

    # sorted() is stable, so equal priorities keep catalog order
    top = sorted(
        actionable,
        key=lambda rule: PRIORITY_RANK.get(rule.action.priority, 0),
        reverse=True,
    )[0]
    primary = ActionCandidate(
        title=top.action.title,
        description=_description(analysis, response),
        priority=top.action.priority,
        category=top.action.category,
        tags=_merge_tags(top.action.tags, analysis.themes),
        rule_name=top.name,
    )
    return RuleDecision(primary=primary, matched=matched, recognitions=recognitions)
