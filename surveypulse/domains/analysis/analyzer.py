"""Content analyzer - LLM insight plus quantitative metrics."""

import asyncio
import logging
from dataclasses import dataclass

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.logging import log_context
from surveypulse.domains.analysis.metrics import QuantitativeMetrics, extract_metrics
from surveypulse.domains.analysis.parsing import (
    NEUTRAL_INSIGHT,
    InsightParseError,
    LLMInsight,
    parse_insight,
)
from surveypulse.domains.response.models import Classification, Response, ResponseAnalysis
from surveypulse.domains.survey.models import Survey
from surveypulse.integrations.llm.base import LLMProvider, LLMProviderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You analyze customer feedback for a customer experience team. "
    "Reply with a single JSON object and nothing else."
)

ANALYSIS_PROMPT = """Analyze this survey response.

Survey: {title}
{body}

Return strict JSON with exactly these fields:
{{
  "sentiment": "positive" | "neutral" | "negative",
  "sentimentScore": number between -1 and 1,
  "urgency": "low" | "medium" | "high",
  "emotions": [string],
  "keywords": [string],
  "themes": [string],
  "classification": {{"isComplaint": bool, "isPraise": bool, "isSuggestion": bool}},
  "summary": string,
  "shouldGenerateAction": bool,
  "flaggedForReview": bool
}}"""


@dataclass
class AnalysisResult:
    """Insight, metrics and whether the neutral fallback was used."""

    insight: LLMInsight
    metrics: QuantitativeMetrics
    fallback_reason: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.fallback_reason is not None


def build_prompt(response: Response, survey: Survey) -> str:
    """Render the analysis prompt from the response's answers."""
    questions = survey.question_map()
    lines = []
    for answer in response.answers:
        question = questions.get(answer.question_id)
        label = question.text if question and question.text else answer.question_id
        lines.append(f"Q: {label}\nA: {answer.answer}")
    if response.review:
        lines.append(f"Review: {response.review}")
    if response.rating is not None:
        lines.append(f"Rating: {response.rating}/5")
    if response.score is not None:
        lines.append(f"NPS: {response.score}/10")
    return ANALYSIS_PROMPT.format(title=survey.title, body="\n".join(lines))


class ContentAnalyzer:
    """Runs the LLM analysis of a response and derives its metrics."""

    def __init__(
        self,
        llm: LLMProvider | None,
        timeout_seconds: float = 20.0,
        max_tokens: int = 400,
        clock: Clock = system_clock,
    ):
        self._llm = llm
        self._timeout = timeout_seconds
        self._max_tokens = max_tokens
        self._clock = clock

    async def analyze(self, response: Response, survey: Survey) -> AnalysisResult:
        """
        Analyze a response.

        Never raises for LLM problems: provider errors, timeouts and
        unparseable output all yield the neutral insight with the reason
        recorded.
        """
        metrics = extract_metrics(
            response.answers,
            survey.questions,
            fallback_score=response.score,
            fallback_rating=response.rating,
        )
        insight, fallback_reason = await self._request_insight(response, survey)

        if fallback_reason:
            logger.warning(
                f"Using neutral analysis: {fallback_reason}",
                extra=log_context(
                    tenant_id=response.tenant_id,
                    survey_id=response.survey_id,
                    response_id=response.id,
                ),
            )

        return AnalysisResult(insight=insight, metrics=metrics, fallback_reason=fallback_reason)

    async def _request_insight(
        self, response: Response, survey: Survey
    ) -> tuple[LLMInsight, str | None]:
        if self._llm is None:
            return NEUTRAL_INSIGHT, "llm_unavailable"

        prompt = build_prompt(response, survey)
        try:
            completion = await asyncio.wait_for(
                self._llm.complete(
                    prompt, max_tokens=self._max_tokens, system_prompt=SYSTEM_PROMPT
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return NEUTRAL_INSIGHT, "llm_timeout"
        except LLMProviderError as e:
            return NEUTRAL_INSIGHT, f"llm_error: {e}"

        try:
            return parse_insight(completion.text), None
        except InsightParseError as e:
            return NEUTRAL_INSIGHT, f"parse_error: {e}"

    def build_analysis(self, result: AnalysisResult) -> ResponseAnalysis:
        """Assemble the analysis block written back onto the response."""
        insight = result.insight
        return ResponseAnalysis(
            sentiment=insight.sentiment,
            sentiment_score=insight.sentiment_score,
            urgency=insight.urgency,
            emotions=insight.emotions,
            keywords=insight.keywords,
            themes=insight.themes,
            classification=Classification(
                is_complaint=insight.is_complaint,
                is_praise=insight.is_praise,
                is_suggestion=insight.is_suggestion,
            ),
            summary=insight.summary,
            should_generate_action=insight.should_generate_action,
            nps_category=result.metrics.nps_category,
            rating_category=result.metrics.rating_category,
            flagged_for_review=insight.flagged_for_review,
            fallback_reason=result.fallback_reason,
            metrics=result.metrics,
            analyzed_at=self._clock.now(),
        )
