"""Built-in rule catalog and loading from configuration."""

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter

from surveypulse.domains.rules.models import (
    ActionTemplate,
    ClassificationCondition,
    KeywordCondition,
    RatingAtMostCondition,
    Rule,
    RuleOverride,
    ScoreRangeCondition,
    SentimentUrgencyCondition,
)

logger = logging.getLogger(__name__)

CONTACT_ME_KEYWORDS = [
    "contact me", "call me", "reach out", "get in touch", "phone me",
    "email me", "callback", "call back", "speak to someone", "talk to manager",
    "need help", "urgent help", "please call", "waiting for call",
]

NEGATIVE_KEYWORDS = [
    "terrible", "awful", "horrible", "worst", "hate", "angry", "furious",
    "disappointed", "unacceptable", "disgusting", "pathetic", "useless",
    "scam", "fraud", "lawsuit", "lawyer", "legal", "report",
    "refund", "cancel", "never again", "waste of money", "rip off",
]

DEFAULT_RULES: list[Rule] = [
    Rule(
        name="negativeHighUrgency",
        when=SentimentUrgencyCondition(sentiment="negative", urgency="high"),
        action=ActionTemplate(
            title="Urgent Negative Feedback",
            priority="high",
            category="Customer Complaint",
            tags=["auto", "negative-sentiment", "urgent", "high-urgency"],
        ),
    ),
    Rule(
        name="highUrgency",
        when=SentimentUrgencyCondition(urgency="high"),
        action=ActionTemplate(
            title="Urgent Feedback Follow-up",
            priority="high",
            category="Urgent Feedback",
            tags=["auto", "urgent", "high-urgency"],
        ),
    ),
    Rule(
        name="lowRating",
        when=RatingAtMostCondition(value=2),
        action=ActionTemplate(
            title="Low Rating Alert",
            priority="high",
            category="Low Satisfaction",
            tags=["auto", "low-rating", "follow-up"],
        ),
    ),
    Rule(
        name="severeDetractor",
        when=ScoreRangeCondition(max=3),
        action=ActionTemplate(
            title="Severe NPS Detractor",
            priority="high",
            category="Detractor Recovery",
            tags=["auto", "nps", "detractor", "critical"],
        ),
    ),
    Rule(
        name="contactRequest",
        when=KeywordCondition(keywords=CONTACT_ME_KEYWORDS),
        action=ActionTemplate(
            title="Customer Callback Requested",
            priority="high",
            category="Callback",
            tags=["auto", "callback", "urgent", "contact-request"],
        ),
    ),
    Rule(
        name="negativeKeywords",
        when=KeywordCondition(keywords=NEGATIVE_KEYWORDS),
        action=ActionTemplate(
            title="Negative Keywords Detected",
            priority="high",
            category="Customer Complaint",
            tags=["auto", "negative-keywords", "escalate"],
        ),
    ),
    Rule(
        name="negativeMediumUrgency",
        when=SentimentUrgencyCondition(sentiment="negative", urgency="medium"),
        action=ActionTemplate(
            title="Negative Feedback Detected",
            priority="medium",
            category="Customer Complaint",
            tags=["auto", "negative-sentiment", "medium-urgency"],
        ),
    ),
    Rule(
        name="detractor",
        when=ScoreRangeCondition(min=4, max=6),
        action=ActionTemplate(
            title="NPS Detractor Identified",
            priority="medium",
            category="Detractor Recovery",
            tags=["auto", "nps", "detractor"],
        ),
    ),
    Rule(
        name="complaint",
        when=ClassificationCondition(flag="is_complaint"),
        action=ActionTemplate(
            title="Customer Complaint",
            priority="medium",
            category="Complaint",
            tags=["auto", "complaint"],
        ),
    ),
    Rule(
        name="negativeLowUrgency",
        when=SentimentUrgencyCondition(sentiment="negative", urgency="low"),
        action=ActionTemplate(
            title="Negative Feedback (Low Urgency)",
            priority="low",
            category="Feedback Review",
            tags=["auto", "negative-sentiment", "low-urgency"],
        ),
    ),
    Rule(
        name="suggestion",
        when=ClassificationCondition(flag="is_suggestion"),
        action=ActionTemplate(
            title="Customer Suggestion",
            priority="low",
            category="Improvement",
            tags=["auto", "suggestion", "improvement"],
        ),
    ),
    Rule(
        name="praise",
        when=ClassificationCondition(flag="is_praise", sentiment="positive"),
        action=ActionTemplate(
            title="Positive Feedback Received",
            priority="low",
            category="Recognition",
            tags=["auto", "praise", "recognition"],
        ),
        create_action=False,
    ),
]

_rules_adapter = TypeAdapter(list[Rule])


def load_catalog(path: str | None = None) -> list[Rule]:
    """
    Load the rule catalog.

    Args:
        path: JSON file holding a list of rules. The built-in catalog is
            used when empty.
    """
    if not path:
        return list(DEFAULT_RULES)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    rules = _rules_adapter.validate_python(raw)
    logger.info(f"Loaded {len(rules)} action rules from {path}")
    return rules


def apply_overrides(rules: list[Rule], overrides: dict[str, RuleOverride]) -> list[Rule]:
    """Merge per-tenant overrides into the catalog, keeping catalog order."""
    unknown = set(overrides) - {rule.name for rule in rules}
    if unknown:
        logger.warning(f"Ignoring overrides for unknown rules: {sorted(unknown)}")
    return [
        overrides[rule.name].apply(rule) if rule.name in overrides else rule
        for rule in rules
    ]
