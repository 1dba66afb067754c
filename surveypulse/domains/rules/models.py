"""Action rule catalog models.

Each rule is data: a tagged condition plus the action it proposes. The
catalog can be loaded from configuration and overridden per tenant.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1, "long-term": 0}


class SentimentUrgencyCondition(BaseModel):
    """Matches on the analysed sentiment and/or urgency. None matches anything."""

    kind: Literal["sentiment_urgency"] = "sentiment_urgency"
    sentiment: str | None = None
    urgency: str | None = None


class ClassificationCondition(BaseModel):
    """Matches a classification flag, optionally with a sentiment."""

    kind: Literal["classification"] = "classification"
    flag: Literal["is_complaint", "is_praise", "is_suggestion"]
    sentiment: str | None = None


class RatingAtMostCondition(BaseModel):
    """Matches when the rating is present and at most ``value``."""

    kind: Literal["rating_at_most"] = "rating_at_most"
    value: float


class ScoreRangeCondition(BaseModel):
    """Matches when the NPS score is present and inside [min, max]."""

    kind: Literal["score_range"] = "score_range"
    min: float | None = None
    max: float | None = None


class KeywordCondition(BaseModel):
    """Matches when the response text contains any keyword (case-insensitive)."""

    kind: Literal["keywords"] = "keywords"
    keywords: list[str]


RuleCondition = Annotated[
    Union[
        SentimentUrgencyCondition,
        ClassificationCondition,
        RatingAtMostCondition,
        ScoreRangeCondition,
        KeywordCondition,
    ],
    Field(discriminator="kind"),
]


class ActionTemplate(BaseModel):
    """Action proposed when a rule matches."""

    title: str
    priority: Literal["high", "medium", "low", "long-term"]
    category: str
    tags: list[str] = Field(default_factory=list)


class Rule(BaseModel):
    """A single catalog entry."""

    name: str
    when: RuleCondition
    action: ActionTemplate
    create_action: bool = True
    enabled: bool = True


class RuleOverride(BaseModel):
    """Per-tenant adjustments to a catalog rule."""

    enabled: bool | None = None
    create_action: bool | None = None
    title: str | None = None
    priority: Literal["high", "medium", "low", "long-term"] | None = None
    category: str | None = None
    tags: list[str] | None = None

    def apply(self, rule: Rule) -> Rule:
        """Return a copy of the rule with the override applied."""
        action_changes = {
            key: value
            for key, value in {
                "title": self.title,
                "priority": self.priority,
                "category": self.category,
                "tags": self.tags,
            }.items()
            if value is not None
        }
        rule_changes = {"action": rule.action.model_copy(update=action_changes)}
        if self.enabled is not None:
            rule_changes["enabled"] = self.enabled
        if self.create_action is not None:
            rule_changes["create_action"] = self.create_action
        return rule.model_copy(update=rule_changes)
